# backend/trials/models/section.py

from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base


class Section(Base):
    __tablename__ = "sections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)

    # порядок вывода в списках судьи и на табло
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
