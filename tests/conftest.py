# tests/conftest.py
"""Shared fixtures: in-memory SQLite, seeded actors, record factories and a mocked notifier."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["API_KEY"] = ""
os.environ["EMAIL_GATEWAY_URL"] = ""
os.environ["SMS_GATEWAY_URL"] = ""
os.environ["LOG_DIR"] = ""

import pytest
from datetime import date, datetime
from unittest.mock import AsyncMock, MagicMock
import erps.models  # noqa: F401
from erps.database import Base, SessionLocal, engine
from erps.models.inspection import CHECKLIST_FIELDS, INSPECTION_AREAS, Inspection
from erps.models.photo import Photo
from erps.models.user import User
from erps.models.warranty import Warranty

NOTIFIER_METHODS = (
    "warranty_verification_requested",
    "inspection_verification_requested",
    "customer_activation_requested",
    "warranty_rejected",
    "inspection_reminder",
    "warranty_lapsed",
    "warranty_reinstated",
)

WARRANTY_CATEGORIES = ("GENERATOR", "COUPLER", "CORROSION_OR_CLEAR")
INSPECTION_CATEGORIES = ("GENERATOR_RED_LIGHT", "COUPLERS", "CORROSION_OR_CLEAR")


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    mock = MagicMock()
    for name in NOTIFIER_METHODS:
        setattr(mock, name, AsyncMock(return_value=True))
    return mock


def _user(db, role, name, **flags):
    user = User(
        full_name=name,
        email=f"{name.lower().replace(' ', '.')}@example.com",
        phone_number="+61400000000",
        role=role,
        is_accredited=flags.get("is_accredited", False),
        is_certified=flags.get("is_certified", False),
        is_active=flags.get("is_active", True),
        created_at=datetime.utcnow(),
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def make_user(db):
    def _make(role, name="Someone", **flags):
        return _user(db, role, name, **flags)
    return _make


@pytest.fixture
def agent(db):
    return _user(db, "AGENT", "Alex Agent")


@pytest.fixture
def installer(db):
    return _user(db, "INSTALLER", "Ivy Installer", is_accredited=True)


@pytest.fixture
def inspector(db):
    return _user(db, "INSPECTOR", "Ian Inspector", is_certified=True)


@pytest.fixture
def admin(db):
    return _user(db, "ADMIN", "Ada Admin")


def owner_fields(**overrides):
    fields = {
        "first_name": "Sam",
        "last_name": "Driver",
        "email": "sam@example.com",
        "phone_number": "+61400000009",
        "make": "Toyota",
        "model": "Hilux",
        "vin_number": "JTEBU5JR0K5000001",
        "generator_serial_number": "GEN-0001",
        "number_of_couplers": 4,
        "date_installed": date(2026, 1, 15),
        "corrosion_found": False,
    }
    fields.update(overrides)
    return fields


def photo_items(categories=WARRANTY_CATEGORIES):
    return [{"category": c, "url": f"https://blob.example.com/{c.lower()}.jpg"} for c in categories]


@pytest.fixture
def make_warranty(db, agent, installer):
    """Insert a warranty directly in any status, for tests that start mid-lifecycle."""
    def _make(status="DRAFT", photos=WARRANTY_CATEGORIES, **overrides):
        now = datetime.utcnow()
        warranty = Warranty(
            **owner_fields(**overrides),
            agent_id=agent.id,
            installer_id=installer.id,
            verification_status=status,
            is_deleted=False,
            created_at=now,
            modified_at=now,
        )
        db.add(warranty)
        db.flush()
        for category in photos:
            db.add(Photo(warranty_id=warranty.id, category=category, url=f"https://blob.example.com/{category}.jpg",
                         is_deleted=False, uploaded_at=now))
        db.commit()
        return warranty
    return _make


def complete_inspection_fields(**overrides):
    fields = {"inspection_date": date(2027, 1, 10), "corrosion_found": False}
    fields.update({name: True for name in CHECKLIST_FIELDS})
    fields.update({f"{area}_condition": "PASS" for area in INSPECTION_AREAS})
    fields.update(overrides)
    return fields


@pytest.fixture
def make_inspection(db, inspector):
    def _make(warranty, status="DRAFT", photos=INSPECTION_CATEGORIES, **overrides):
        now = datetime.utcnow()
        inspection = Inspection(
            **complete_inspection_fields(**overrides),
            warranty_id=warranty.id,
            inspector_id=inspector.id,
            verification_status=status,
            is_deleted=False,
            created_at=now,
            modified_at=now,
        )
        db.add(inspection)
        db.flush()
        for category in photos:
            db.add(Photo(inspection_id=inspection.id, category=category,
                         url=f"https://blob.example.com/{category}.jpg", is_deleted=False, uploaded_at=now))
        db.commit()
        return inspection
    return _make
