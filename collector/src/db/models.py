"""
SQLAlchemy ORM models for the collector database.

Defines the append-only EnergySample table holding one row per successful
collection tick, and the single-row CalibrationRecord table that keeps the
reconciler state durable across restarts.

CHANGELOG:
- 2026-10-18: Add calibration_state table for restart correctness (STORY-008)
- 2026-10-18: Initial creation (STORY-008)

TODO:
- None
"""

from sqlalchemy import BigInteger, Double, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all collector ORM models."""

    pass


class EnergySample(Base):
    """Reconciled telemetry sample, one row per tick.

    Rows are only inserted, never updated; they are deleted all at once by
    an administrative recalibration.

    Attributes:
        id: Insertion-ordered surrogate key.
        ts_ms: Tick timestamp in epoch milliseconds.
        power_w: Instantaneous power in watts.
        lifetime_kwh: Reconciled lifetime energy in kWh.
    """

    __tablename__ = "energy_samples"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ts_ms: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    power_w: Mapped[float] = mapped_column(Double, nullable=False)
    lifetime_kwh: Mapped[float] = mapped_column(Double, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of the EnergySample."""
        return (
            f"EnergySample(ts_ms={self.ts_ms!r}, power_w={self.power_w!r}, "
            f"lifetime_kwh={self.lifetime_kwh!r})"
        )


class CalibrationRecord(Base):
    """Durable copy of the reconciler's CalibrationState (single row, id=1).

    Attributes:
        id: Always 1.
        floor_kwh: Operator-supplied calibration floor.
        accumulated_kwh: Energy accumulated since the floor was set.
        last_tick_ms: Timestamp of the last committed tick.
        last_emitted_kwh: Highest lifetime value emitted since the floor.
        updated_at_ms: When this row was last written.
    """

    __tablename__ = "calibration_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    floor_kwh: Mapped[float] = mapped_column(Double, nullable=False)
    accumulated_kwh: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)
    last_tick_ms: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    last_emitted_kwh: Mapped[float | None] = mapped_column(Double, nullable=True)
    updated_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
