# backend/trials/models/attempt.py

from datetime import datetime

from sqlalchemy import Integer, Boolean, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db import Base
from .competitor import utcnow


PENALTY_VALUES = (0, 1, 2, 3, 5)


class Attempt(Base):
    """
    Одна попытка участника в секции на конкретном круге.
    Либо штраф (0/1/2/3/5), либо DNF: одновременно никогда.
    """
    __tablename__ = "attempts"
    __table_args__ = (
        UniqueConstraint("competitor_id", "section_id", "lap", name="uq_attempt_competitor_section_lap"),
        CheckConstraint("lap >= 1", name="ck_attempt_lap_positive"),
        CheckConstraint(
            "(is_dnf AND points IS NULL) OR (NOT is_dnf AND points IN (0, 1, 2, 3, 5))",
            name="ck_attempt_outcome",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    competitor_id: Mapped[int] = mapped_column(
        ForeignKey("competitors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    section_id: Mapped[int] = mapped_column(
        ForeignKey("sections.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    lap: Mapped[int] = mapped_column(Integer, nullable=False)

    points: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_dnf: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
    )
    # ставится только при исправлении
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    competitor = relationship("Competitor", back_populates="attempts")
    section = relationship("Section")
