from __future__ import annotations

import pytest
from sqlalchemy.orm import sessionmaker

from accessguard.database import create_db_engine
from accessguard.models.base import Base
from accessguard.store.models import (
    FieldDefinition,
    FieldPermission,
    ObjectPermission,
    StoredRecord,
)


@pytest.fixture()
def session():
    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(
        bind=engine,
        tables=[
            StoredRecord.__table__,
            FieldDefinition.__table__,
            ObjectPermission.__table__,
            FieldPermission.__table__,
        ],
    )
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture()
def seeded_session(session):
    """
    Sales role: full Account access, but Industry is hidden (no field grant)
    and Rating is readable but not editable. Admin role: implicit bypass.
    """
    session.add_all(
        [
            ObjectPermission(
                object_type="Account",
                identity_id="sales",
                can_read=True,
                can_create=True,
                can_update=True,
                can_delete=True,
            ),
            ObjectPermission(object_type="Contact", identity_id="world", can_read=True),
            FieldPermission(
                object_type="Account", field_name="Industry", identity_id="finance", can_read=True
            ),
            FieldPermission(
                object_type="Account",
                field_name="Rating",
                identity_id="sales",
                can_read=True,
                can_edit=False,
            ),
            FieldDefinition(object_type="Account", name="Name", max_length=10),
        ]
    )
    session.commit()
    return session
