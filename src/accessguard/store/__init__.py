from accessguard.store.engine import SqlPersistenceEngine
from accessguard.store.permissions import AclPermissionEngine

__all__ = ["AclPermissionEngine", "SqlPersistenceEngine"]
