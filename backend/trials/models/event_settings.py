# backend/trials/models/event_settings.py

from datetime import date

from sqlalchemy import String, Date, Integer
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base


class EventSettings(Base):
    __tablename__ = "event_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_name: Mapped[str] = mapped_column(String, nullable=False, default="Moto Trial Event")
    event_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # растёт при каждой правке секций/классов
    catalog_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
