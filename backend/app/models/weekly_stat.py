"""Aggregated per-athlete, per-week running summary. Replaced wholesale on every refresh."""

from datetime import date, datetime, timezone
from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base


class WeeklyStat(Base):
    __tablename__ = "weekly_stats"
    __table_args__ = (UniqueConstraint("athlete_id", "week_start", name="uq_weekly_stats_athlete_week"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    week_start: Mapped[date] = mapped_column(Date, nullable=False)  # Monday
    total_distance_km: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_runs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_pace_min_km: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)  # distance-weighted
    total_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    athlete: Mapped["User"] = relationship("User", back_populates="weekly_stats")
