# backend/trials/services/scoring.py
"""
Внешний интерфейс ядра судейства: проверка, запись и исправление попыток,
таблица результатов.

Проверка ворот и запись попытки: одна атомарная операция под общим
замком процесса.
Уникальный индекс (competitor, section, lap) страхует сверху: проигранная
гонка превращается в DuplicateAttempt, а не в двойную запись.
"""

import logging
import threading

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..core.config import get_settings
from ..core.errors import Blocked, CourseComplete, CompetitorNotFound, SectionNotFound
from ..models import Attempt, Competitor, Section
from . import ledger
from .catalog import load_catalog
from .ledger import Outcome, attempt_to_dict
from .notifier import ChangeNotifier, LedgerEvent, get_notifier, CREATED, CORRECTED, REMOVED, RESET
from .progression import ProgressionResult, ProgressionStatus, evaluate
from .standings import Leaderboard, compute_standings

logger = logging.getLogger(__name__)

_write_lock = threading.Lock()


def _get_competitor(db: Session, competitor_id: int) -> Competitor:
    competitor = db.get(Competitor, competitor_id)
    if competitor is None:
        raise CompetitorNotFound(competitor_id)
    return competitor


def _evaluate(db: Session, competitor_id: int, section_id: int) -> ProgressionResult:
    competitor = _get_competitor(db, competitor_id)
    if db.get(Section, section_id) is None:
        raise SectionNotFound(section_id)

    catalog = load_catalog(db)
    attempts = ledger.list_by_competitor(db, competitor_id)
    return evaluate(catalog, competitor.class_ids, section_id, attempts)


def evaluate_attempt(db: Session, competitor_id: int, section_id: int) -> ProgressionResult:
    """Только чтение: какой круг будет у попытки и можно ли её записать."""
    try:
        return _evaluate(db, competitor_id, section_id)
    finally:
        db.rollback()


def _notify(notifier: ChangeNotifier | None, event: LedgerEvent) -> None:
    (notifier or get_notifier()).ledger_changed(event)


def submit_attempt(
    db: Session,
    competitor_id: int,
    section_id: int,
    outcome: Outcome,
    notifier: ChangeNotifier | None = None,
) -> Attempt:
    with _write_lock:
        try:
            result = _evaluate(db, competitor_id, section_id)

            if result.status is ProgressionStatus.COURSE_COMPLETE:
                logger.info(
                    "Refused competitor %s at section %s: course complete (%s laps)",
                    competitor_id, section_id, result.max_laps,
                )
                raise CourseComplete(result.max_laps)

            if result.status is ProgressionStatus.BLOCKED:
                logger.info(
                    "Refused competitor %s at section %s: lap %s incomplete, missing %s",
                    competitor_id, section_id, result.lap_to_finish,
                    ", ".join(result.blocking_sections),
                )
                raise Blocked(result.lap_to_finish, result.blocking_sections)

            attempt = ledger.record_attempt(
                db, competitor_id, section_id, result.next_lap, outcome
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(attempt)
    payload = attempt_to_dict(attempt)
    logger.info(
        "Score #%s: competitor %s section %s lap %s = %s",
        attempt.id, competitor_id, section_id, attempt.lap, outcome.label(),
    )
    _notify(notifier, LedgerEvent(CREATED, payload))
    return attempt


def correct_attempt(
    db: Session,
    attempt_id: int,
    outcome: Outcome,
    notifier: ChangeNotifier | None = None,
) -> Attempt:
    """Исправление меняет только исход; круг заново не вычисляется."""
    with _write_lock:
        try:
            attempt = ledger.correct_attempt(db, attempt_id, outcome)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(attempt)
    logger.info("Score #%s corrected to %s", attempt_id, outcome.label())
    _notify(notifier, LedgerEvent(CORRECTED, attempt_to_dict(attempt)))
    return attempt


def remove_attempt(
    db: Session,
    attempt_id: int,
    notifier: ChangeNotifier | None = None,
) -> None:
    with _write_lock:
        try:
            existing = db.get(Attempt, attempt_id)
            payload = attempt_to_dict(existing) if existing is not None else None
            ledger.remove_attempt(db, attempt_id)
            db.commit()
        except Exception:
            db.rollback()
            raise

    logger.warning("Score #%s deleted", attempt_id)
    _notify(notifier, LedgerEvent(REMOVED, payload))


def reset_all_attempts(db: Session, notifier: ChangeNotifier | None = None) -> int:
    """Удаляет ВСЕ попытки. Необратимо."""
    with _write_lock:
        try:
            removed = ledger.remove_all_attempts(db)
            db.commit()
        except Exception:
            db.rollback()
            raise

    logger.warning("All scores reset: %d removed", removed)
    _notify(notifier, LedgerEvent(RESET))
    return removed


def get_standings(
    db: Session,
    class_id: int | None = None,
    dnf_penalty: int | None = None,
) -> list[Leaderboard]:
    """
    Вся выборка: в одной транзакции, т.е. из одного снимка БД:
    каталог, участники и попытки согласованы между собой.
    """
    if dnf_penalty is None:
        dnf_penalty = get_settings().DNF_PENALTY
    try:
        catalog = load_catalog(db)
        competitors = db.scalars(
            select(Competitor).options(selectinload(Competitor.classes))
        ).all()
        attempts = db.scalars(select(Attempt)).all()
        return compute_standings(
            catalog,
            competitors,
            attempts,
            class_id=class_id,
            dnf_penalty=dnf_penalty,
        )
    finally:
        db.rollback()
