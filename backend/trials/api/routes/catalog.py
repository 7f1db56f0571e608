# backend/trials/api/routes/catalog.py

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ...db import get_db
from ...services import catalog
from ...services.live_feed import get_live_feed
from ..schemas import ClassIn, SectionIn
from .auth import require_manager

router = APIRouter(
    prefix="/api/catalog",
    tags=["catalog"],
    dependencies=[Depends(require_manager)],  # правит только менеджер
)


def _catalog_changed() -> None:
    # секции и классы меняют таблицы на табло
    get_live_feed().publish({"type": "catalog_update"})


def section_to_dict(section) -> dict:
    return {"id": section.id, "name": section.name, "position": section.position}


def class_to_dict(trial_class) -> dict:
    return {
        "id": trial_class.id,
        "code": trial_class.code,
        "name": trial_class.name,
        "laps": trial_class.laps,
        "color": trial_class.color,
        "section_ids": list(trial_class.section_ids),
    }


@router.get("/")
def catalog_snapshot(db: Session = Depends(get_db)):
    snapshot = catalog.load_catalog(db)
    return {
        "version": snapshot.version,
        "sections": [section_to_dict(s) for s in snapshot.list_sections()],
        "classes": [class_to_dict(c) for c in snapshot.list_classes()],
    }


@router.post("/sections", status_code=201)
def create_section(body: SectionIn, db: Session = Depends(get_db)):
    section = catalog.create_section(db, body.name, body.position)
    _catalog_changed()
    return section_to_dict(section)


@router.put("/sections/{section_id}")
def rename_section(section_id: int, body: SectionIn, db: Session = Depends(get_db)):
    section = catalog.rename_section(db, section_id, body.name, body.position)
    _catalog_changed()
    return section_to_dict(section)


@router.delete("/sections/{section_id}", status_code=204)
def delete_section(section_id: int, db: Session = Depends(get_db)):
    catalog.delete_section(db, section_id)
    _catalog_changed()
    return Response(status_code=204)


@router.post("/classes", status_code=201)
def create_class(body: ClassIn, db: Session = Depends(get_db)):
    trial_class = catalog.create_class(
        db, body.code, body.name, body.laps, body.section_ids, color=body.color
    )
    _catalog_changed()
    return class_to_dict(trial_class)


@router.put("/classes/{class_id}")
def update_class(class_id: int, body: ClassIn, db: Session = Depends(get_db)):
    trial_class = catalog.update_class(
        db, class_id, body.code, body.name, body.laps, body.section_ids, color=body.color
    )
    _catalog_changed()
    return class_to_dict(trial_class)


@router.delete("/classes/{class_id}", status_code=204)
def delete_class(class_id: int, db: Session = Depends(get_db)):
    catalog.delete_class(db, class_id)
    _catalog_changed()
    return Response(status_code=204)
