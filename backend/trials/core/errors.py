# backend/trials/core/errors.py
"""
Именованные исходы отказа при судействе и администрировании.

Сервисы поднимают их, а обработчик в main.py превращает в JSON-ответ
с понятной оператору причиной (duplicate / course complete / blocked ...).
"""


class TrialError(Exception):
    status_code = 400
    code = "trial_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def payload(self) -> dict:
        return {"error": self.code, "detail": self.message}


class DuplicateAttempt(TrialError):
    status_code = 409
    code = "duplicate_attempt"

    def __init__(self, competitor_id: int, section_id: int, lap: int):
        super().__init__(
            f"Score already exists for competitor {competitor_id} "
            f"at section {section_id}, lap {lap}"
        )
        self.competitor_id = competitor_id
        self.section_id = section_id
        self.lap = lap


class CourseComplete(TrialError):
    status_code = 409
    code = "course_complete"

    def __init__(self, max_laps: int):
        super().__init__(f"All {max_laps} laps already scored for this section")
        self.max_laps = max_laps

    def payload(self) -> dict:
        data = super().payload()
        data["max_laps"] = self.max_laps
        return data


class Blocked(TrialError):
    status_code = 409
    code = "blocked"

    def __init__(self, current_lap: int, blocking_sections):
        self.current_lap = current_lap
        self.blocking_sections = list(blocking_sections)
        missing = ", ".join(self.blocking_sections)
        super().__init__(f"Must complete Lap {current_lap} first. Missing: {missing}")

    def payload(self) -> dict:
        data = super().payload()
        data["current_lap"] = self.current_lap
        data["blocking_sections"] = self.blocking_sections
        return data


class NotFound(TrialError):
    status_code = 404
    code = "not_found"
    label = "Object"

    def __init__(self, object_id):
        super().__init__(f"{self.label} {object_id} not found")
        self.object_id = object_id


class AttemptNotFound(NotFound):
    label = "Score"


class CompetitorNotFound(NotFound):
    label = "Competitor"


class SectionNotFound(NotFound):
    label = "Section"


class ClassNotFound(NotFound):
    label = "Class"


class InvalidConfiguration(TrialError):
    status_code = 400
    code = "invalid_configuration"


class DuplicateCompetitorNumber(TrialError):
    status_code = 409
    code = "duplicate_number"

    def __init__(self, number: int):
        super().__init__(f"Competitor number {number} already exists")
        self.number = number
