# backend/trials/api/routes/pages.py

from fastapi import APIRouter, Request, Depends
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from ...db import get_db
from ...core.config import get_settings
from ...services import ledger, scoring
from ...services.catalog import get_event_settings
from ...utils.formatting import format_outcome, format_time
from ...utils.jinja_filters import format_rank, format_progress

router = APIRouter()

# сколько последних попыток показать на главной
RECENT_SCORES = 20

templates = Jinja2Templates(directory=get_settings().TEMPLATE_DIR)
templates.env.filters["format_outcome"] = format_outcome
templates.env.filters["format_time"] = format_time
templates.env.filters["format_rank"] = format_rank
templates.env.globals["format_progress"] = format_progress


def _render_standings(request: Request, db: Session, class_id: int | None, template: str, recent: int = 0):
    event = get_event_settings(db)
    event_name = event.event_name
    latest = [ledger.attempt_to_dict(a) for a in ledger.list_all(db)[:recent]] if recent else []
    boards = scoring.get_standings(db, class_id=class_id)

    return templates.TemplateResponse(
        request,
        template,
        {
            "event_name": event_name,
            "boards": boards,
            "class_id": class_id,
            "latest": latest,
        },
    )


@router.get("/", include_in_schema=False, name="index")
def index(request: Request, db: Session = Depends(get_db)):
    return _render_standings(request, db, None, "index.html", recent=RECENT_SCORES)


@router.get("/display", include_in_schema=False, name="display")
def display(request: Request, class_id: int | None = None, db: Session = Depends(get_db)):
    """Табло: обновляется само по событиям из /api/scores/stream."""
    return _render_standings(request, db, class_id, "display.html")
