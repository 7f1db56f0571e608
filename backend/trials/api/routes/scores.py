# backend/trials/api/routes/scores.py

import asyncio

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ...db import get_db
from ...core.errors import CompetitorNotFound, SectionNotFound
from ...models import Competitor, Section
from ...services import ledger, scoring
from ...services.catalog import load_catalog
from ...services.ledger import attempt_to_dict
from ...services.live_feed import format_sse, get_live_feed
from ..schemas import OutcomeIn, ScoreIn
from .auth import require_judge, require_manager

router = APIRouter(prefix="/api/scores", tags=["scores"])

# ручки записи: обычные def: FastAPI выполнит их в пуле потоков,
# а scoring держит threading.Lock вокруг проверки и записи


@router.get("/sections")
def list_sections(db: Session = Depends(get_db)):
    catalog = load_catalog(db)
    return [
        {"id": s.id, "name": s.name, "position": s.position}
        for s in catalog.list_sections()
    ]


@router.get("/classes")
def list_classes(db: Session = Depends(get_db)):
    catalog = load_catalog(db)
    return [
        {
            "id": c.id,
            "code": c.code,
            "name": c.name,
            "laps": c.laps,
            "color": c.color,
            "section_ids": list(c.section_ids),
        }
        for c in catalog.list_classes()
    ]


@router.get("/")
def list_scores(db: Session = Depends(get_db)):
    return [attempt_to_dict(a) for a in ledger.list_all(db)]


@router.get("/section/{section_id}")
def scores_by_section(section_id: int, db: Session = Depends(get_db)):
    if db.get(Section, section_id) is None:
        raise SectionNotFound(section_id)
    return [attempt_to_dict(a) for a in ledger.list_by_section(db, section_id)]


@router.get("/competitor/{competitor_id}")
def scores_by_competitor(competitor_id: int, db: Session = Depends(get_db)):
    if db.get(Competitor, competitor_id) is None:
        raise CompetitorNotFound(competitor_id)
    return [attempt_to_dict(a) for a in ledger.list_by_competitor(db, competitor_id)]


@router.get("/leaderboard")
def leaderboard(class_id: int | None = None, db: Session = Depends(get_db)):
    return [board.as_dict() for board in scoring.get_standings(db, class_id=class_id)]


@router.get("/next-lap/{competitor_id}/{section_id}")
def next_lap(competitor_id: int, section_id: int, db: Session = Depends(get_db)):
    result = scoring.evaluate_attempt(db, competitor_id, section_id)
    return result.as_dict()


@router.post("/", status_code=201, dependencies=[Depends(require_judge)])
def create_score(body: ScoreIn, db: Session = Depends(get_db)):
    attempt = scoring.submit_attempt(
        db, body.competitor_id, body.section_id, body.to_outcome()
    )
    return attempt_to_dict(attempt)


@router.put("/{attempt_id}", dependencies=[Depends(require_judge)])
def update_score(attempt_id: int, body: OutcomeIn, db: Session = Depends(get_db)):
    attempt = scoring.correct_attempt(db, attempt_id, body.to_outcome())
    return attempt_to_dict(attempt)


# /all объявляем раньше /{attempt_id}
@router.delete("/all", status_code=204, dependencies=[Depends(require_manager)])
def delete_all_scores(db: Session = Depends(get_db)):
    scoring.reset_all_attempts(db)
    return Response(status_code=204)


@router.delete("/{attempt_id}", status_code=204, dependencies=[Depends(require_manager)])
def delete_score(attempt_id: int, db: Session = Depends(get_db)):
    scoring.remove_attempt(db, attempt_id)
    return Response(status_code=204)


@router.get("/stream")
async def scores_stream(request: Request):
    """EventSource для табло: события журнала и свежая таблица результатов."""
    feed = get_live_feed()
    q = feed.subscribe()

    async def gen():
        try:
            yield ": connected\n\n"
            while not await request.is_disconnected():
                try:
                    message = await asyncio.wait_for(q.get(), timeout=15.0)
                except asyncio.TimeoutError:
                    # keep-alive, чтобы прокси не рвали соединение
                    yield ": ping\n\n"
                    continue
                yield format_sse(message)
        finally:
            feed.unsubscribe(q)

    return StreamingResponse(
        gen(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-store"},
    )
