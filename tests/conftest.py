"""Shared fixtures: a throwaway SQLite database and helpers to build events."""

import os
import tempfile
from datetime import datetime, timedelta

import pytest

# must happen before anything from backend.trials is imported
_TMP_DIR = tempfile.mkdtemp(prefix="trials-test-")
os.environ["TRIALS_DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["TRIALS_SEED_CATALOG"] = "0"
os.environ.pop("JUDGE_PIN", None)
os.environ.pop("MANAGER_PIN", None)
os.environ.pop("TRIALS_SHEET_WEBHOOK_URL", None)

from backend.trials.db import Base, SessionLocal, engine  # noqa: E402
from backend.trials import models  # noqa: E402,F401
from backend.trials.models import Attempt, Competitor  # noqa: E402
from backend.trials.services import catalog  # noqa: E402
from backend.trials.services.catalog import CatalogSnapshot, ClassInfo, SectionInfo  # noqa: E402


class RecordingNotifier:
    """Synchronous stand-in for ChangeNotifier that remembers every event."""

    def __init__(self):
        self.events = []

    def ledger_changed(self, event):
        self.events.append(event)

    @property
    def kinds(self):
        return [e.kind for e in self.events]


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def event(db):
    """
    Small event: Clubman and Advanced share S1-S3, Kids rides K1-K2.

    Advanced: 2 laps, Clubman: 3 laps, Kids: 2 laps.
    """
    s1 = catalog.create_section(db, "Section 1")
    s2 = catalog.create_section(db, "Section 2")
    s3 = catalog.create_section(db, "Section 3")
    k1 = catalog.create_section(db, "Kids 1")
    k2 = catalog.create_section(db, "Kids 2")

    advanced = catalog.create_class(db, "advanced", "Advanced", 2, [s1.id, s2.id, s3.id], color="red")
    clubman = catalog.create_class(db, "clubman", "Clubman", 3, [s1.id, s2.id, s3.id], color="emerald")
    kids = catalog.create_class(db, "kids", "Kids", 2, [k1.id, k2.id], color="yellow")

    data = {
        "s1": s1.id, "s2": s2.id, "s3": s3.id, "k1": k1.id, "k2": k2.id,
        "advanced": advanced.id, "clubman": clubman.id, "kids": kids.id,
    }
    db.commit()
    return data


def add_competitor(db, number, name, *class_ids):
    from backend.trials.models import TrialClass

    competitor = Competitor(
        number=number,
        name=name,
        classes=[db.get(TrialClass, cid) for cid in class_ids],
    )
    db.add(competitor)
    db.commit()
    return competitor


# --- pure-engine helpers ---------------------------------------------


BASE_TIME = datetime(2026, 5, 1, 9, 0, 0)


def snapshot(sections, classes, version=1):
    """sections: {id: name}; classes: list of (id, code, laps, section_ids)."""
    return CatalogSnapshot(
        version=version,
        sections={sid: SectionInfo(id=sid, name=name, position=sid) for sid, name in sections.items()},
        classes=tuple(
            ClassInfo(id=cid, code=code, name=code.title(), laps=laps, section_ids=tuple(sids))
            for cid, code, laps, sids in classes
        ),
    )


def attempt(competitor_id, section_id, lap, points=0, is_dnf=False, minute=0):
    return Attempt(
        competitor_id=competitor_id,
        section_id=section_id,
        lap=lap,
        points=None if is_dnf else points,
        is_dnf=is_dnf,
        created_at=BASE_TIME + timedelta(minutes=minute),
    )


class Rider:
    """Plain competitor record for the standings calculator."""

    def __init__(self, id, number, name, class_ids):
        self.id = id
        self.number = number
        self.name = name
        self.class_ids = frozenset(class_ids)
