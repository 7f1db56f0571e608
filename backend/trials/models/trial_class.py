# backend/trials/models/trial_class.py

from sqlalchemy import String, Integer, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db import Base
from .section import Section


class TrialClass(Base):
    """Класс соревнований (Kids, Clubman, Advanced ...): число кругов и свои секции."""
    __tablename__ = "classes"
    __table_args__ = (CheckConstraint("laps >= 1", name="ck_class_laps_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    laps: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    # только для табло, движок цвет не использует
    color: Mapped[str | None] = mapped_column(String(32), nullable=True)

    class_sections = relationship(
        "ClassSection",
        back_populates="trial_class",
        order_by="ClassSection.position",
        cascade="all, delete-orphan",
    )

    @property
    def section_ids(self) -> list[int]:
        return [cs.section_id for cs in self.class_sections]


class ClassSection(Base):
    __tablename__ = "class_sections"

    class_id: Mapped[int] = mapped_column(
        ForeignKey("classes.id", ondelete="CASCADE"),
        primary_key=True,
    )
    section_id: Mapped[int] = mapped_column(
        ForeignKey("sections.id", ondelete="RESTRICT"),
        primary_key=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    trial_class: Mapped[TrialClass] = relationship(back_populates="class_sections")
    section: Mapped[Section] = relationship()
