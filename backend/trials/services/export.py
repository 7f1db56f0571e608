# backend/trials/services/export.py

import csv
import io
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..core.config import get_settings
from ..models import Attempt, Competitor
from .catalog import get_event_settings, load_catalog
from .standings import compute_standings


def _cell(attempt: Attempt) -> str | int:
    if attempt.is_dnf:
        return "DNF"
    return attempt.points


def standings_csv(db: Session, dnf_penalty: int | None = None) -> str:
    """
    Итоговая таблица в CSV: блок на каждый класс,
    колонки S1L1..SnLk (секция × круг) и сумма из той же таблицы результатов,
    что и на табло.
    """
    if dnf_penalty is None:
        dnf_penalty = get_settings().DNF_PENALTY

    try:
        event = get_event_settings(db)
        event_name = event.event_name or "Trial"
        catalog = load_catalog(db)
        competitors = db.scalars(
            select(Competitor).options(selectinload(Competitor.classes))
        ).all()
        attempts = db.scalars(select(Attempt)).all()
        boards = compute_standings(catalog, competitors, attempts, dnf_penalty=dnf_penalty)
        by_key = {(a.competitor_id, a.section_id, a.lap): _cell(a) for a in attempts}
    finally:
        db.rollback()

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([f"{event_name} - Results"])
    writer.writerow([f"Exported: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"])
    writer.writerow([])

    for board in boards:
        if not board.entries:
            continue

        columns = [
            (section_id, lap)
            for lap in range(1, board.laps + 1)
            for section_id in board.section_ids
        ]
        headers = [
            f"S{board.section_ids.index(section_id) + 1}L{lap}"
            for section_id, lap in columns
        ]

        writer.writerow([board.name.upper()])
        writer.writerow(["Rank", "Number", "Name", *headers, "Total"])
        for entry in board.entries:
            cells = [
                by_key.get((entry.competitor_id, section_id, lap), "")
                for section_id, lap in columns
            ]
            rank = entry.rank if entry.completed else "-"
            writer.writerow([rank, entry.number, entry.name, *cells, entry.total])
        writer.writerow([])

    return output.getvalue()
