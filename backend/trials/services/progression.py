# backend/trials/services/progression.py
"""
Ворота прогрессии: какой круг получит следующая попытка участника в секции
и можно ли её записать прямо сейчас.

Всё здесь: чистые функции над снимком каталога и списком уже записанных
попыток участника. БД не трогаем, состояние не меняем.

Тонкое место: классы с общей секцией связывают круги участника, заявленного
в оба класса. Поэтому «текущий круг» считается по объединению всех
релевантных классов, а не по каждому классу отдельно.
"""

import enum
from dataclasses import dataclass
from typing import Iterable, Protocol

from .catalog import CatalogSnapshot, ClassInfo


class AttemptLike(Protocol):
    section_id: int
    lap: int


class ProgressionStatus(str, enum.Enum):
    ALLOWED = "allowed"
    BLOCKED = "blocked"
    COURSE_COMPLETE = "course_complete"


@dataclass(frozen=True)
class ProgressionResult:
    next_lap: int
    current_lap: int
    status: ProgressionStatus
    blocking_sections: tuple[str, ...] = ()
    max_laps: int | None = None
    relevant_class_ids: tuple[int, ...] = ()

    @property
    def allowed(self) -> bool:
        return self.status is ProgressionStatus.ALLOWED

    @property
    def lap_to_finish(self) -> int:
        """Круг, который надо закрыть, прежде чем ехать next_lap."""
        return self.next_lap - 1

    def as_dict(self) -> dict:
        return {
            "next_lap": self.next_lap,
            "current_lap": self.current_lap,
            "allowed": self.allowed,
            "status": self.status.value,
            "blocking_sections": list(self.blocking_sections),
            "max_laps": self.max_laps,
            "relevant_class_ids": list(self.relevant_class_ids),
        }


def relevant_classes(
    class_ids: Iterable[int],
    section_id: int,
    catalog: CatalogSnapshot,
) -> list[ClassInfo]:
    """Классы участника, в которые входит секция (в порядке каталога)."""
    member_of = set(class_ids)
    return [
        c for c in catalog.list_classes()
        if c.id in member_of and c.contains(section_id)
    ]


def _max_lap(attempts: Iterable[AttemptLike], section_ids) -> int:
    wanted = set(section_ids)
    return max((a.lap for a in attempts if a.section_id in wanted), default=0)


def evaluate(
    catalog: CatalogSnapshot,
    class_ids: Iterable[int],
    section_id: int,
    attempts: Iterable[AttemptLike],
) -> ProgressionResult:
    """
    attempts: все попытки ЭТОГО участника (по любым секциям).
    """
    attempts = list(attempts)
    classes = relevant_classes(class_ids, section_id, catalog)
    section_max = _max_lap(attempts, [section_id])

    # секция не входит ни в один класс участника: без ограничений
    if not classes:
        return ProgressionResult(
            next_lap=section_max + 1,
            current_lap=section_max,
            status=ProgressionStatus.ALLOWED,
        )

    class_refs = tuple(c.id for c in classes)
    for c in classes:
        for sid in c.section_ids:
            # упадёт InvalidConfiguration, если класс ссылается на несуществующую секцию
            catalog.section_name(sid)

    # самый короткий класс первым говорит «хватит»
    max_laps = min(c.laps for c in classes)
    current_lap = max(_max_lap(attempts, c.section_ids) for c in classes)

    if current_lap == 0:
        return ProgressionResult(
            next_lap=1,
            current_lap=0,
            status=ProgressionStatus.ALLOWED,
            max_laps=max_laps,
            relevant_class_ids=class_refs,
        )

    starts_new_lap = section_max >= current_lap
    next_lap = current_lap + 1 if starts_new_lap else current_lap

    if next_lap > max_laps:
        return ProgressionResult(
            next_lap=next_lap,
            current_lap=current_lap,
            status=ProgressionStatus.COURSE_COMPLETE,
            max_laps=max_laps,
            relevant_class_ids=class_refs,
        )

    # каждый релевантный класс должен закрыть предыдущий круг целиком,
    # иначе общая секция утащит участника вперёд через чужой класс
    previous_lap = next_lap - 1
    blocking: list[str] = []
    if previous_lap >= 1:
        done_in_previous = {a.section_id for a in attempts if a.lap == previous_lap}
        seen: set[int] = set()
        for c in classes:
            for sid in c.section_ids:
                if sid in done_in_previous or sid in seen:
                    continue
                seen.add(sid)
                blocking.append(catalog.section_name(sid))

    if blocking:
        return ProgressionResult(
            next_lap=next_lap,
            current_lap=current_lap,
            status=ProgressionStatus.BLOCKED,
            blocking_sections=tuple(blocking),
            max_laps=max_laps,
            relevant_class_ids=class_refs,
        )

    return ProgressionResult(
        next_lap=next_lap,
        current_lap=current_lap,
        status=ProgressionStatus.ALLOWED,
        max_laps=max_laps,
        relevant_class_ids=class_refs,
    )
