# backend/trials/models/competitor.py

from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Table
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db import Base


def utcnow() -> datetime:
    # naive UTC: SQLite всё равно теряет tzinfo при чтении
    return datetime.now(timezone.utc).replace(tzinfo=None)


# участник может быть заявлен сразу в несколько классов
competitor_classes = Table(
    "competitor_classes",
    Base.metadata,
    Column("competitor_id", ForeignKey("competitors.id", ondelete="CASCADE"), primary_key=True),
    Column("class_id", ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True),
)


class Competitor(Base):
    __tablename__ = "competitors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)

    classes = relationship("TrialClass", secondary=competitor_classes)

    attempts = relationship(
        "Attempt",
        back_populates="competitor",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
    )

    @property
    def class_ids(self) -> frozenset[int]:
        return frozenset(c.id for c in self.classes)
