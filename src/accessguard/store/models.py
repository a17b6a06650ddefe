from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from accessguard.models.base import Base


class StoredRecord(Base):
    """
    Generic record table: every object type lives here,
    with its values in a JSON column.
    """

    __tablename__ = "guard_records"

    id = Column(String, primary_key=True)  # UUID
    object_type = Column(String, index=True, nullable=False)
    fields = Column(JSON, nullable=False, default=dict)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class FieldDefinition(Base):
    """Optional per-field metadata; max_length drives truncation."""

    __tablename__ = "guard_field_definitions"
    __table_args__ = (UniqueConstraint("object_type", "name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    object_type = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    max_length = Column(Integer, nullable=True)


class ObjectPermission(Base):
    """
    Object-level access entry: what an identity (user id or role)
    may do with records of one object type.
    """

    __tablename__ = "guard_object_permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    object_type = Column(String, index=True, nullable=False)
    identity_id = Column(String, nullable=False)

    can_read = Column(Boolean, default=False)
    can_create = Column(Boolean, default=False)
    can_update = Column(Boolean, default=False)
    can_delete = Column(Boolean, default=False)


class FieldPermission(Base):
    """
    Field-level access entry. A field with no entries is open to anyone
    with object access; once it has one, only granted identities see it.
    """

    __tablename__ = "guard_field_permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    object_type = Column(String, index=True, nullable=False)
    field_name = Column(String, nullable=False)
    identity_id = Column(String, nullable=False)

    can_read = Column(Boolean, default=False)
    can_edit = Column(Boolean, default=False)
