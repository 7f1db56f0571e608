def format_rank(rank: int | None) -> str:
    """
    Показывает:
      1 → 1
      0 / None → —   (ещё не прошёл всю трассу)
    """
    if not rank:
        return "—"
    return str(rank)


def format_progress(sections_done: int, course_size: int) -> str:
    if not course_size:
        return "—"
    return f"{sections_done}/{course_size}"
