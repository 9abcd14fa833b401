from ..core.database import Base
from ..utils.timezone import local_now_naive


def local_timestamp():
    return local_now_naive()


__all__ = ["Base", "local_timestamp"]
