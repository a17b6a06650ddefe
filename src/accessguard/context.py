from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional, Tuple


user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
roles_var: ContextVar[Tuple[str, ...]] = ContextVar("roles", default=())


@dataclass(frozen=True)
class Principal:
    user_id: Optional[str]
    roles: Tuple[str, ...]


def get_principal() -> Principal:
    return Principal(user_id=user_id_var.get(), roles=tuple(roles_var.get()))
