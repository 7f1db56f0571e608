# backend/trials/api/schemas.py

from datetime import date

from pydantic import BaseModel, Field, model_validator

from ..models import PENALTY_VALUES
from ..services.ledger import Outcome


class OutcomeIn(BaseModel):
    points: int | None = None
    is_dnf: bool = False

    @model_validator(mode="after")
    def check_outcome(self):
        if self.is_dnf:
            # клиент мог прислать очки вместе с DNF: DNF важнее
            self.points = None
        elif self.points is None:
            raise ValueError("points or is_dnf is required")
        elif self.points not in PENALTY_VALUES:
            raise ValueError(f"points must be one of {list(PENALTY_VALUES)}")
        return self

    def to_outcome(self) -> Outcome:
        return Outcome.dnf() if self.is_dnf else Outcome.penalty(self.points)


class ScoreIn(OutcomeIn):
    competitor_id: int
    section_id: int


class CompetitorIn(BaseModel):
    number: int = Field(ge=1)
    name: str = Field(min_length=1)
    class_ids: list[int] = Field(default_factory=list)


class SectionIn(BaseModel):
    name: str = Field(min_length=1)
    position: int | None = None


class ClassIn(BaseModel):
    code: str = Field(min_length=1, max_length=32)
    name: str = Field(min_length=1)
    laps: int
    section_ids: list[int]
    color: str | None = None


class SettingsIn(BaseModel):
    event_name: str = Field(min_length=1)
    event_date: date | None = None


class PinIn(BaseModel):
    pin: str
    role: str
