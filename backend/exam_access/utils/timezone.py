"""
Timezone helpers. Timestamps are stored as naive datetimes in the configured local zone.
"""
from datetime import datetime
import pytz

from ..core.config import settings


LOCAL_TZ = pytz.timezone(settings.default_timezone)


def get_local_now() -> datetime:
    """Current time in the configured zone"""
    return datetime.now(LOCAL_TZ)


def local_now_naive() -> datetime:
    """Current local time without tzinfo, the form stored in the database"""
    return get_local_now().replace(tzinfo=None)
