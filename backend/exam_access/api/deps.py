from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

ROLES = ("student", "admin", "payment_service", "proctor")


@dataclass
class Actor:
    """Caller identity as asserted by the upstream auth layer."""
    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_current_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: str = Header("student"),
) -> Actor:
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    role = x_user_role.lower()
    if role not in ROLES:
        raise HTTPException(status_code=403, detail=f"Unknown role: {x_user_role}")
    return Actor(id=x_user_id, role=role)


def get_current_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise HTTPException(
            status_code=403, detail="The user doesn't have enough privileges"
        )
    return actor


def require_roles(*roles: str):
    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(
                status_code=403, detail="The user doesn't have enough privileges"
            )
        return actor

    return dependency


def resolve_student(actor: Actor, student_id: Optional[str]) -> str:
    """Students act on themselves. Admins and proctors may name another student."""
    if student_id is None or student_id == actor.id:
        return actor.id
    if actor.role in ("admin", "proctor"):
        return student_id
    raise HTTPException(status_code=403, detail="Not authorized to act for another student")
