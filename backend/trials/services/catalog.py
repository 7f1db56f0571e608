# backend/trials/services/catalog.py
"""
Каталог секций и классов.

Движок (ворота прогрессии и таблица результатов) никогда не читает ORM-объекты
каталога напрямую: на каждый вызов снимается неизменяемый CatalogSnapshot,
так что правка классов посреди расчёта не даёт «половинчатый» результат.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from ..core.errors import InvalidConfiguration, SectionNotFound, ClassNotFound
from ..models import Attempt, ClassSection, EventSettings, Section, TrialClass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SectionInfo:
    id: int
    name: str
    position: int = 0


@dataclass(frozen=True)
class ClassInfo:
    id: int
    code: str
    name: str
    laps: int
    section_ids: tuple[int, ...]
    color: str | None = None

    @property
    def course_size(self) -> int:
        """Сколько попыток нужно для полного зачёта; 0 для непригодного класса."""
        if self.laps <= 0 or not self.section_ids:
            return 0
        return self.laps * len(self.section_ids)

    def contains(self, section_id: int) -> bool:
        return section_id in self.section_ids


@dataclass(frozen=True)
class CatalogSnapshot:
    version: int
    sections: dict[int, SectionInfo] = field(default_factory=dict)
    classes: tuple[ClassInfo, ...] = ()

    def list_sections(self) -> list[SectionInfo]:
        return sorted(self.sections.values(), key=lambda s: (s.position, s.id))

    def list_classes(self) -> list[ClassInfo]:
        return list(self.classes)

    def get_class(self, class_id: int) -> ClassInfo:
        for c in self.classes:
            if c.id == class_id:
                return c
        raise ClassNotFound(class_id)

    def section_name(self, section_id: int) -> str:
        section = self.sections.get(section_id)
        if section is None:
            raise InvalidConfiguration(f"Section {section_id} is referenced but does not exist")
        return section.name


# --- снимок -------------------------------------------------------


def get_event_settings(db: Session) -> EventSettings:
    settings = db.get(EventSettings, 1)
    if settings is None:
        settings = EventSettings(id=1)
        db.add(settings)
        db.flush()
    return settings


def load_catalog(db: Session) -> CatalogSnapshot:
    settings = db.get(EventSettings, 1)
    version = settings.catalog_version if settings else 0

    sections = {
        s.id: SectionInfo(id=s.id, name=s.name, position=s.position)
        for s in db.scalars(select(Section)).all()
    }
    classes = tuple(
        ClassInfo(
            id=c.id,
            code=c.code,
            name=c.name,
            laps=c.laps,
            section_ids=tuple(c.section_ids),
            color=c.color,
        )
        for c in db.scalars(select(TrialClass).order_by(TrialClass.id)).all()
    )
    return CatalogSnapshot(version=version, sections=sections, classes=classes)


def _bump_version(db: Session) -> int:
    settings = get_event_settings(db)
    settings.catalog_version += 1
    return settings.catalog_version


# --- секции -------------------------------------------------------


def create_section(db: Session, name: str, position: int | None = None) -> Section:
    name = (name or "").strip()
    if not name:
        raise InvalidConfiguration("Section name is required")
    if position is None:
        position = (db.scalar(select(func.max(Section.position))) or 0) + 1

    section = Section(name=name, position=position)
    db.add(section)
    db.flush()
    _bump_version(db)
    db.commit()
    logger.info("Section %s created: %s", section.id, section.name)
    return section


def rename_section(db: Session, section_id: int, name: str, position: int | None = None) -> Section:
    """Переименовать можно всегда, даже когда по секции уже есть попытки."""
    section = db.get(Section, section_id)
    if not section:
        raise SectionNotFound(section_id)
    name = (name or "").strip()
    if not name:
        raise InvalidConfiguration("Section name is required")

    section.name = name
    if position is not None:
        section.position = position
    _bump_version(db)
    db.commit()
    return section


def delete_section(db: Session, section_id: int) -> None:
    section = db.get(Section, section_id)
    if not section:
        raise SectionNotFound(section_id)

    has_attempts = db.scalar(
        select(Attempt.id).where(Attempt.section_id == section_id).limit(1)
    )
    if has_attempts:
        raise InvalidConfiguration(f"{section.name} already has scores and cannot be deleted")

    used_by = db.scalars(
        select(TrialClass.name)
        .join(ClassSection, ClassSection.class_id == TrialClass.id)
        .where(ClassSection.section_id == section_id)
    ).all()
    if used_by:
        raise InvalidConfiguration(
            f"{section.name} is used by classes: {', '.join(used_by)}"
        )

    db.delete(section)
    _bump_version(db)
    db.commit()
    logger.info("Section %s deleted", section_id)


# --- классы -------------------------------------------------------


def _validate_class(
    db: Session,
    code: str,
    name: str,
    laps: int,
    section_ids: Iterable[int],
    class_id: int | None = None,
) -> list[int]:
    if not (code or "").strip():
        raise InvalidConfiguration("Class code is required")
    if not (name or "").strip():
        raise InvalidConfiguration("Class name is required")
    if laps is None or laps < 1:
        raise InvalidConfiguration("Class must have at least one lap")

    ids = list(section_ids)
    if not ids:
        raise InvalidConfiguration("Class must have at least one section")
    if len(set(ids)) != len(ids):
        raise InvalidConfiguration("Class lists the same section twice")

    existing = set(db.scalars(select(Section.id).where(Section.id.in_(ids))).all())
    missing = [sid for sid in ids if sid not in existing]
    if missing:
        raise InvalidConfiguration(
            f"Unknown section ids: {', '.join(str(m) for m in missing)}"
        )

    clash = db.scalar(select(TrialClass).where(TrialClass.code == code.strip()))
    if clash and clash.id != class_id:
        raise InvalidConfiguration(f"Class code '{code}' already exists")
    return ids


def _set_sections(trial_class: TrialClass, section_ids: list[int]) -> None:
    trial_class.class_sections = [
        ClassSection(section_id=sid, position=i)
        for i, sid in enumerate(section_ids, start=1)
    ]


def create_class(
    db: Session,
    code: str,
    name: str,
    laps: int,
    section_ids: Iterable[int],
    color: str | None = None,
) -> TrialClass:
    ids = _validate_class(db, code, name, laps, section_ids)

    trial_class = TrialClass(code=code.strip(), name=name.strip(), laps=laps, color=color)
    _set_sections(trial_class, ids)
    db.add(trial_class)
    db.flush()
    _bump_version(db)
    db.commit()
    logger.info("Class %s created: %d laps over sections %s", trial_class.code, laps, ids)
    return trial_class


def update_class(
    db: Session,
    class_id: int,
    code: str,
    name: str,
    laps: int,
    section_ids: Iterable[int],
    color: str | None = None,
) -> TrialClass:
    trial_class = db.get(TrialClass, class_id)
    if not trial_class:
        raise ClassNotFound(class_id)
    ids = _validate_class(db, code, name, laps, section_ids, class_id=class_id)

    trial_class.code = code.strip()
    trial_class.name = name.strip()
    trial_class.laps = laps
    trial_class.color = color
    if ids != trial_class.section_ids:
        # ORM вставит новые строки до удаления старых: чистим заранее
        trial_class.class_sections.clear()
        db.flush()
        _set_sections(trial_class, ids)

    _bump_version(db)
    db.commit()
    logger.info("Class %s updated", trial_class.code)
    return trial_class


def delete_class(db: Session, class_id: int) -> None:
    trial_class = db.get(TrialClass, class_id)
    if not trial_class:
        raise ClassNotFound(class_id)
    db.delete(trial_class)
    _bump_version(db)
    db.commit()
    logger.info("Class %s deleted", class_id)


# --- стартовое наполнение -----------------------------------------


DEFAULT_LAPS = 3


def seed_default_catalog(db: Session) -> bool:
    """
    На пустой базе создаёт стандартную раскладку:
    Section 1-6 (Clubman/Advanced), Kids 1-3, Enduro 1-2.
    Возвращает True, если что-то создали.
    """
    if db.scalar(select(Section.id).limit(1)) is not None:
        return False

    def add_sections(prefix: str, count: int, start: int) -> list[Section]:
        created = [Section(name=f"{prefix} {i}", position=start + i) for i in range(1, count + 1)]
        db.add_all(created)
        return created

    main = add_sections("Section", 6, 0)
    kids = add_sections("Kids", 3, 10)
    enduro = add_sections("Enduro", 2, 20)
    db.flush()

    config = [
        ("kids", "Kids", "yellow", kids),
        ("clubman", "Clubman", "emerald", main),
        ("advanced", "Advanced", "red", main),
        ("enduro-trial", "Enduro Trial", "gray", enduro),
    ]
    for code, name, color, sections in config:
        trial_class = TrialClass(code=code, name=name, laps=DEFAULT_LAPS, color=color)
        _set_sections(trial_class, [s.id for s in sections])
        db.add(trial_class)

    get_event_settings(db)
    _bump_version(db)
    db.commit()
    logger.info("Default catalog seeded")
    return True
