"""
Ownership rule for owned resources.

A principal may change a bootcamp, course or review when it created it or
when it is an admin. Every mutating handler asks ``ensure_can_modify``.
"""

from typing import Any

from pydantic import BaseModel

from errors import Unauthorized


class Principal(BaseModel):
    id: str
    name: str
    email: str
    role: str = "user"


def can_modify(principal: Principal, owner_id: Any) -> bool:
    return principal.id == str(owner_id) or principal.role == "admin"


def ensure_can_modify(principal: Principal, owner_id: Any, resource: str, action: str = "update") -> None:
    if not can_modify(principal, owner_id):
        raise Unauthorized(f"User {principal.id} is not authorized to {action} {resource}")
