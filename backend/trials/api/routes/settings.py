# backend/trials/api/routes/settings.py

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...db import get_db
from ...services.catalog import get_event_settings
from ..schemas import SettingsIn
from .auth import require_manager

router = APIRouter(prefix="/api/settings", tags=["settings"])


def settings_to_dict(settings) -> dict:
    return {
        "event_name": settings.event_name,
        "event_date": settings.event_date.isoformat() if settings.event_date else None,
        "catalog_version": settings.catalog_version,
    }


@router.get("/")
def read_settings(db: Session = Depends(get_db)):
    settings = get_event_settings(db)
    db.commit()
    return settings_to_dict(settings)


@router.put("/", dependencies=[Depends(require_manager)])
def update_settings(body: SettingsIn, db: Session = Depends(get_db)):
    settings = get_event_settings(db)
    settings.event_name = body.event_name.strip()
    settings.event_date = body.event_date
    db.commit()
    return settings_to_dict(settings)
