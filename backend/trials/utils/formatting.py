from datetime import datetime


def format_outcome(points: int | None, is_dnf: bool = False) -> str:
    if is_dnf:
        return "DNF"
    if points is None:
        return "—"
    return str(points)


def format_time(value: datetime | None) -> str:
    if value is None:
        return "—"
    # HH:MM:SS: на табло дата не нужна
    return value.strftime("%H:%M:%S")
