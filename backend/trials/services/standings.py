# backend/trials/services/standings.py
"""
Таблица результатов по классам.

Пересчитывается целиком на каждый запрос из сырого списка попыток.

Порядок в классе:
  1) сначала прошедшие всю трассу (laps × число секций), по (сумма, время
     последней попытки): меньше сумма лучше, при равенстве выше тот,
     кто набрал её раньше; одинаковый ключ = одинаковое место;
  2) затем незавершившие, по тому же ключу, без места (rank = 0).
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Protocol

from .catalog import CatalogSnapshot, ClassInfo


class CompetitorLike(Protocol):
    id: int
    number: int
    name: str
    class_ids: frozenset[int]


class ScoredAttempt(Protocol):
    competitor_id: int
    section_id: int
    points: int | None
    is_dnf: bool
    created_at: datetime


@dataclass
class StandingsEntry:
    competitor_id: int
    number: int
    name: str
    rank: int = 0
    total: int = 0
    sections_done: int = 0
    dnf_count: int = 0
    completed: bool = False
    last_scored_at: datetime | None = None

    def sort_key(self):
        # без попыток: ниже тех, у кого та же сумма, но есть попытки
        return (
            self.total,
            self.last_scored_at is None,
            self.last_scored_at or datetime.min,
        )

    def tie_key(self):
        return (self.total, self.last_scored_at)

    def as_dict(self) -> dict:
        return {
            "competitor_id": self.competitor_id,
            "number": self.number,
            "name": self.name,
            "rank": self.rank,
            "total": self.total,
            "sections_done": self.sections_done,
            "dnf_count": self.dnf_count,
            "completed": self.completed,
            "last_scored_at": self.last_scored_at.isoformat() if self.last_scored_at else None,
        }


@dataclass
class Leaderboard:
    class_id: int
    code: str
    name: str
    laps: int
    section_ids: tuple[int, ...]
    course_size: int
    color: str | None = None
    entries: list[StandingsEntry] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "class_id": self.class_id,
            "code": self.code,
            "name": self.name,
            "color": self.color,
            "laps": self.laps,
            "section_ids": list(self.section_ids),
            "course_size": self.course_size,
            "entries": [e.as_dict() for e in self.entries],
        }


def _tally(
    competitor: CompetitorLike,
    class_info: ClassInfo,
    attempts: Iterable[ScoredAttempt],
    dnf_penalty: int,
) -> StandingsEntry:
    entry = StandingsEntry(
        competitor_id=competitor.id,
        number=competitor.number,
        name=competitor.name,
    )
    sections = set(class_info.section_ids)
    for a in attempts:
        if a.competitor_id != competitor.id or a.section_id not in sections:
            continue
        entry.sections_done += 1
        if a.is_dnf:
            entry.dnf_count += 1
            entry.total += dnf_penalty
        elif a.points is not None:
            entry.total += a.points
        if entry.last_scored_at is None or a.created_at > entry.last_scored_at:
            entry.last_scored_at = a.created_at

    entry.completed = entry.sections_done >= class_info.course_size
    return entry


def _assign_ranks(entries: list[StandingsEntry]) -> None:
    """Места 1, 2, 2, 4 ...: одинаковый ключ делит место."""
    for position, entry in enumerate(entries, start=1):
        if position > 1 and entry.tie_key() == entries[position - 2].tie_key():
            entry.rank = entries[position - 2].rank
        else:
            entry.rank = position


def compute_leaderboard(
    class_info: ClassInfo,
    competitors: Iterable[CompetitorLike],
    attempts: Iterable[ScoredAttempt],
    dnf_penalty: int = 0,
) -> Leaderboard:
    board = Leaderboard(
        class_id=class_info.id,
        code=class_info.code,
        name=class_info.name,
        color=class_info.color,
        laps=class_info.laps,
        section_ids=class_info.section_ids,
        course_size=class_info.course_size,
    )
    # класс без секций или без кругов: таблица пустая, делить не на что
    if board.course_size == 0:
        return board

    members = [c for c in competitors if class_info.id in c.class_ids]
    by_competitor: dict[int, list[ScoredAttempt]] = {c.id: [] for c in members}
    for a in attempts:
        if a.competitor_id in by_competitor:
            by_competitor[a.competitor_id].append(a)

    entries = [
        _tally(c, class_info, by_competitor[c.id], dnf_penalty)
        for c in members
    ]

    complete = sorted(
        (e for e in entries if e.completed),
        key=lambda e: (e.sort_key(), e.number),
    )
    incomplete = sorted(
        (e for e in entries if not e.completed),
        key=lambda e: (e.sort_key(), e.number),
    )

    _assign_ranks(complete)
    for e in incomplete:
        e.rank = 0

    board.entries = complete + incomplete
    return board


def compute_standings(
    catalog: CatalogSnapshot,
    competitors: Iterable[CompetitorLike],
    attempts: Iterable[ScoredAttempt],
    class_id: int | None = None,
    dnf_penalty: int = 0,
) -> list[Leaderboard]:
    competitors = list(competitors)
    attempts = list(attempts)

    if class_id is not None:
        classes = [catalog.get_class(class_id)]
    else:
        classes = catalog.list_classes()

    return [
        compute_leaderboard(c, competitors, attempts, dnf_penalty=dnf_penalty)
        for c in classes
    ]
