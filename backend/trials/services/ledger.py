# backend/trials/services/ledger.py
"""
Журнал попыток. Единственное место, где пишутся строки Attempt.

Функции делают flush, но не commit: транзакцией и уведомлениями
управляет services/scoring.py.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import DuplicateAttempt, AttemptNotFound
from ..models import Attempt, PENALTY_VALUES
from ..models.competitor import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    points: int | None = None
    is_dnf: bool = False

    def __post_init__(self):
        if self.is_dnf and self.points is not None:
            raise ValueError("DNF outcome cannot carry penalty points")
        if not self.is_dnf:
            if self.points is None:
                raise ValueError("Outcome needs penalty points or DNF")
            if self.points not in PENALTY_VALUES:
                raise ValueError(
                    f"Penalty must be one of {', '.join(map(str, PENALTY_VALUES))}, got {self.points}"
                )

    @classmethod
    def penalty(cls, points: int) -> "Outcome":
        return cls(points=points, is_dnf=False)

    @classmethod
    def dnf(cls) -> "Outcome":
        return cls(points=None, is_dnf=True)

    def label(self) -> str:
        return "DNF" if self.is_dnf else str(self.points)


def _find(db: Session, competitor_id: int, section_id: int, lap: int) -> Attempt | None:
    stmt = select(Attempt).where(
        Attempt.competitor_id == competitor_id,
        Attempt.section_id == section_id,
        Attempt.lap == lap,
    )
    return db.scalar(stmt)


def record_attempt(
    db: Session,
    competitor_id: int,
    section_id: int,
    lap: int,
    outcome: Outcome,
) -> Attempt:
    if _find(db, competitor_id, section_id, lap) is not None:
        raise DuplicateAttempt(competitor_id, section_id, lap)

    attempt = Attempt(
        competitor_id=competitor_id,
        section_id=section_id,
        lap=lap,
        points=outcome.points,
        is_dnf=outcome.is_dnf,
        created_at=utcnow(),
        updated_at=None,
    )
    db.add(attempt)
    try:
        # уникальный индекс ловит дубль от параллельного судьи
        with db.begin_nested():
            db.flush()
    except IntegrityError:
        raise DuplicateAttempt(competitor_id, section_id, lap)
    return attempt


def correct_attempt(db: Session, attempt_id: int, outcome: Outcome) -> Attempt:
    attempt = db.get(Attempt, attempt_id)
    if attempt is None:
        raise AttemptNotFound(attempt_id)

    attempt.points = outcome.points
    attempt.is_dnf = outcome.is_dnf
    attempt.updated_at = utcnow()
    db.flush()
    return attempt


def remove_attempt(db: Session, attempt_id: int) -> Attempt:
    attempt = db.get(Attempt, attempt_id)
    if attempt is None:
        raise AttemptNotFound(attempt_id)
    db.delete(attempt)
    db.flush()
    return attempt


def remove_all_attempts(db: Session) -> int:
    result = db.execute(delete(Attempt))
    db.expire_all()
    return result.rowcount or 0


# --- чтение -------------------------------------------------------


def list_by_competitor(db: Session, competitor_id: int) -> list[Attempt]:
    stmt = (
        select(Attempt)
        .where(Attempt.competitor_id == competitor_id)
        .order_by(Attempt.lap, Attempt.section_id)
    )
    return list(db.scalars(stmt).all())


def list_by_section(db: Session, section_id: int) -> list[Attempt]:
    stmt = (
        select(Attempt)
        .where(Attempt.section_id == section_id)
        .order_by(Attempt.created_at.desc(), Attempt.id.desc())
    )
    return list(db.scalars(stmt).all())


def list_all(db: Session) -> list[Attempt]:
    stmt = select(Attempt).order_by(Attempt.created_at.desc(), Attempt.id.desc())
    return list(db.scalars(stmt).all())


def attempt_to_dict(attempt: Attempt) -> dict:
    data = {
        "id": attempt.id,
        "competitor_id": attempt.competitor_id,
        "section_id": attempt.section_id,
        "lap": attempt.lap,
        "points": attempt.points,
        "is_dnf": bool(attempt.is_dnf),
        "created_at": attempt.created_at.isoformat() if attempt.created_at else None,
        "updated_at": attempt.updated_at.isoformat() if attempt.updated_at else None,
    }
    if attempt.competitor is not None:
        data["competitor_number"] = attempt.competitor.number
        data["competitor_name"] = attempt.competitor.name
    if attempt.section is not None:
        data["section_name"] = attempt.section.name
    return data
