from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy.orm import Session

from accessguard.config import get_settings
from accessguard.context import get_principal
from accessguard.exceptions import AccessDenied
from accessguard.guard.schemas import AccessEvaluation, AccessKind, Record
from .models import FieldPermission, ObjectPermission

logger = logging.getLogger(__name__)

# Object-level operations each access kind needs.
_OBJECT_OPERATIONS = {
    AccessKind.readable: ("read",),
    AccessKind.creatable: ("create",),
    AccessKind.updatable: ("update",),
    AccessKind.upsertable: ("create", "update"),
}


class AclPermissionEngine:
    """
    Object- and field-level permission checks backed by ACL tables.

    Identities are matched against the principal's roles, its user id and
    the implicit "world" identity. Admin roles bypass every check.
    """

    def __init__(
        self,
        session: Session,
        *,
        user_id: Optional[str] = None,
        roles: Optional[Iterable[str]] = None,
        admin_roles: Optional[Iterable[str]] = None,
    ):
        self.session = session
        principal = get_principal()
        self.user_id = str(user_id or principal.user_id or "guest")
        self.roles = list(roles if roles is not None else principal.roles) or ["guest"]
        self.admin_roles = set(
            admin_roles if admin_roles is not None else get_settings().admin_roles()
        )

        self.effective_identities: Set[str] = set(self.roles)
        self.effective_identities.add(self.user_id)
        self.effective_identities.add("world")

    @property
    def is_admin(self) -> bool:
        return bool(self.effective_identities & self.admin_roles)

    # ----------------------------------------------------
    #  Object level
    # ----------------------------------------------------
    def check_object_access(self, object_type: str, operation: str) -> bool:
        """operation: read|create|update|delete"""
        if self.is_admin:
            return True

        column = getattr(ObjectPermission, f"can_{operation}", None)
        if column is None:
            raise ValueError(f"Unknown object operation: {operation}")

        entry = (
            self.session.query(ObjectPermission)
            .filter(ObjectPermission.object_type == object_type)
            .filter(ObjectPermission.identity_id.in_(sorted(self.effective_identities)))
            .filter(column.is_(True))
            .first()
        )
        return entry is not None

    def require_object_access(self, object_type: str, operation: str) -> None:
        if not self.check_object_access(object_type, operation):
            raise AccessDenied(action=operation, resource=object_type)

    # ----------------------------------------------------
    #  Field level
    # ----------------------------------------------------
    def inaccessible_fields(
        self, object_type: str, field_names: Iterable[str], access_kind: AccessKind
    ) -> Set[str]:
        if self.is_admin:
            return set()

        names = set(field_names)
        if not names:
            return set()

        rules: List[FieldPermission] = (
            self.session.query(FieldPermission)
            .filter(FieldPermission.object_type == object_type)
            .filter(FieldPermission.field_name.in_(sorted(names)))
            .all()
        )

        governed: Set[str] = set()
        granted: Set[str] = set()
        for rule in rules:
            governed.add(rule.field_name)
            if rule.identity_id not in self.effective_identities:
                continue
            allowed = rule.can_read if access_kind == AccessKind.readable else rule.can_edit
            if allowed:
                granted.add(rule.field_name)

        return governed - granted

    def evaluate_access(
        self, access_kind: AccessKind, records: Sequence[Record], strip: bool = True
    ) -> AccessEvaluation:
        records = list(records)
        object_types = sorted({r.type for r in records})

        for object_type in object_types:
            for operation in _OBJECT_OPERATIONS[access_kind]:
                self.require_object_access(object_type, operation)

        field_names: Dict[str, Set[str]] = {}
        for record in records:
            field_names.setdefault(record.type, set()).update(
                name for name in record.fields if name != "id"
            )

        inaccessible = {
            object_type: self.inaccessible_fields(object_type, names, access_kind)
            for object_type, names in field_names.items()
        }

        removed: Dict[str, Set[str]] = {}
        output: List[Record] = []
        for record in records:
            hidden = inaccessible.get(record.type, set()) & set(record.fields)
            if hidden:
                removed.setdefault(record.type, set()).update(hidden)
            if strip and hidden:
                output.append(record.without_fields(hidden))
            else:
                output.append(record)

        if removed:
            logger.debug(
                "User %s lacks %s access to %s",
                self.user_id,
                access_kind.value,
                {k: sorted(v) for k, v in removed.items()},
            )
        return AccessEvaluation(records=output, removed_fields=removed)
