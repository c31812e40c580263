from __future__ import annotations

from datetime import datetime, timezone
from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base

ROLE_COACH = "coach"
ROLE_ATHLETE = "athlete"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=ROLE_ATHLETE)  # coach | athlete
    coach_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    runs: Mapped[list["Run"]] = relationship("Run", back_populates="athlete", cascade="all, delete-orphan")
    garmin_connection: Mapped["GarminConnection | None"] = relationship(
        "GarminConnection", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    weekly_stats: Mapped[list["WeeklyStat"]] = relationship(
        "WeeklyStat", back_populates="athlete", cascade="all, delete-orphan"
    )

    @property
    def is_coach(self) -> bool:
        return self.role == ROLE_COACH
