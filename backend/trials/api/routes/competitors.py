# backend/trials/api/routes/competitors.py

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ...db import get_db
from ...core.errors import ClassNotFound, CompetitorNotFound, DuplicateCompetitorNumber
from ...models import Competitor, TrialClass
from ...services import ledger
from ...services.ledger import attempt_to_dict
from ...services.live_feed import get_live_feed
from ..schemas import CompetitorIn
from .auth import require_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/competitors", tags=["competitors"])


def competitor_to_dict(c: Competitor) -> dict:
    return {
        "id": c.id,
        "number": c.number,
        "name": c.name,
        "class_ids": sorted(c.class_ids),
        "created_at": c.created_at.isoformat() if c.created_at else None,
    }


def _resolve_classes(db: Session, class_ids: list[int]) -> list[TrialClass]:
    classes = []
    for class_id in dict.fromkeys(class_ids):
        trial_class = db.get(TrialClass, class_id)
        if not trial_class:
            raise ClassNotFound(class_id)
        classes.append(trial_class)
    return classes


def _check_number(db: Session, number: int, competitor_id: int | None = None) -> None:
    existing = db.scalar(select(Competitor).where(Competitor.number == number))
    if existing and existing.id != competitor_id:
        raise DuplicateCompetitorNumber(number)


def _competitor_changed() -> None:
    # табло перечитает список участников
    get_live_feed().publish({"type": "competitor_update"})


@router.get("/")
def competitors_list(db: Session = Depends(get_db)):
    stmt = (
        select(Competitor)
        .options(selectinload(Competitor.classes))
        .order_by(Competitor.number.asc())
    )
    return [competitor_to_dict(c) for c in db.scalars(stmt).all()]


@router.get("/{competitor_id}")
def competitor_detail(competitor_id: int, db: Session = Depends(get_db)):
    competitor = db.get(Competitor, competitor_id)
    if not competitor:
        raise CompetitorNotFound(competitor_id)

    data = competitor_to_dict(competitor)
    data["scores"] = [attempt_to_dict(a) for a in ledger.list_by_competitor(db, competitor_id)]
    return data


@router.post("/", status_code=201, dependencies=[Depends(require_manager)])
def create_competitor(body: CompetitorIn, db: Session = Depends(get_db)):
    _check_number(db, body.number)
    competitor = Competitor(
        number=body.number,
        name=body.name.strip(),
        classes=_resolve_classes(db, body.class_ids),
    )
    db.add(competitor)
    db.commit()
    db.refresh(competitor)

    logger.info("Competitor #%s %s registered", competitor.number, competitor.name)
    _competitor_changed()
    return competitor_to_dict(competitor)


@router.put("/{competitor_id}", dependencies=[Depends(require_manager)])
def update_competitor(competitor_id: int, body: CompetitorIn, db: Session = Depends(get_db)):
    competitor = db.get(Competitor, competitor_id)
    if not competitor:
        raise CompetitorNotFound(competitor_id)
    _check_number(db, body.number, competitor_id=competitor_id)

    competitor.number = body.number
    competitor.name = body.name.strip()
    competitor.classes = _resolve_classes(db, body.class_ids)
    db.commit()
    db.refresh(competitor)

    _competitor_changed()
    return competitor_to_dict(competitor)


@router.delete("/{competitor_id}", status_code=204, dependencies=[Depends(require_manager)])
def delete_competitor(competitor_id: int, db: Session = Depends(get_db)):
    """Удаляет участника вместе со всеми его попытками."""
    competitor = db.get(Competitor, competitor_id)
    if not competitor:
        raise CompetitorNotFound(competitor_id)

    db.delete(competitor)
    db.commit()

    logger.warning("Competitor %s deleted with all scores", competitor_id)
    _competitor_changed()
    return Response(status_code=204)
