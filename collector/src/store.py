"""
Durable sample store backed by SQLite through SQLAlchemy async + aiosqlite.

Holds the append-only time series of reconciled samples and the single
calibration record.  Both survive process restarts because they live in a
SQLite database file on disk in WAL mode.

Operations:
- append(sample): INSERT one sample row.
- query_range(since_ms): samples with ts_ms > since_ms, oldest first.
- energy_bounds(since_ms): MIN/MAX lifetime over the same range.
- latest(): most recent sample, or None.
- count(): number of stored samples.
- clear(): DELETE every sample (administrative only).
- load_calibration(): persisted CalibrationState, or None.
- save_calibration(state): write the calibration record.
- record_tick(sample, state): sample + state in one transaction.
- reset(state): clear samples + write state in one transaction.

Supports async context manager protocol for clean resource management.

CHANGELOG:
- 2026-10-18: Add transactional record_tick/reset (STORY-009)
- 2026-10-18: Initial creation (STORY-008)

TODO:
- None
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from collector.src.db.models import CalibrationRecord, EnergySample
from collector.src.db.session import create_engine, create_schema, create_session_factory
from collector.src.models import CalibrationState, Sample

logger = logging.getLogger(__name__)

_CALIBRATION_ID = 1


def _now_ms() -> int:
    return int(time.time() * 1000)


def _to_sample(row: EnergySample) -> Sample:
    return Sample(ts_ms=row.ts_ms, power_w=row.power_w, lifetime_kwh=row.lifetime_kwh)


class SampleStore:
    """Append-only sample series plus calibration record in SQLite.

    Args:
        path: Filesystem path for the SQLite database file.
              Accepts ``str`` or ``pathlib.Path``.

    Usage::

        async with SampleStore(path="/data/energy.db") as store:
            await store.append(Sample(ts_ms=..., power_w=..., lifetime_kwh=...))
            rows = await store.query_range(since_ms=0)
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    async def open(self) -> None:
        """Create the engine and initialize the schema."""
        self._engine = create_engine(self._path)
        await create_schema(self._engine)
        self._sessions = create_session_factory(self._engine)
        logger.info("Sample store opened at %s", self._path)

    async def close(self) -> None:
        """Dispose of the engine.

        After calling close, no further operations should be performed
        on this store instance.
        """
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessions = None

    async def __aenter__(self) -> SampleStore:
        """Enter async context manager: open the database."""
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context manager: close the database."""
        await self.close()

    def _session(self) -> AsyncSession:
        assert self._sessions is not None, "Store not opened. Call open() or use async with."
        return self._sessions()

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------

    async def append(self, sample: Sample) -> None:
        """Insert *sample* at the end of the series."""
        async with self._session() as session, session.begin():
            session.add(EnergySample(**sample.model_dump()))

    async def query_range(self, since_ms: int) -> list[Sample]:
        """Return samples with ``ts_ms > since_ms`` ordered oldest first.

        Ties on timestamp keep insertion order.
        """
        stmt = (
            select(EnergySample)
            .where(EnergySample.ts_ms > since_ms)
            .order_by(EnergySample.ts_ms.asc(), EnergySample.id.asc())
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return [_to_sample(row) for row in result.scalars().all()]

    async def energy_bounds(self, since_ms: int) -> tuple[float, float] | None:
        """Return ``(min, max)`` lifetime over samples with ``ts_ms > since_ms``.

        Returns None when no sample qualifies.
        """
        stmt = select(
            func.min(EnergySample.lifetime_kwh),
            func.max(EnergySample.lifetime_kwh),
        ).where(EnergySample.ts_ms > since_ms)
        async with self._session() as session:
            row = (await session.execute(stmt)).one()
        if row[0] is None:
            return None
        return float(row[0]), float(row[1])

    async def latest(self) -> Sample | None:
        """Return the most recently appended sample, or None."""
        stmt = select(EnergySample).order_by(EnergySample.id.desc()).limit(1)
        async with self._session() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _to_sample(row)

    async def count(self) -> int:
        """Return the number of stored samples."""
        async with self._session() as session:
            result = await session.execute(select(func.count()).select_from(EnergySample))
            return int(result.scalar_one())

    async def clear(self) -> None:
        """Delete every sample."""
        async with self._session() as session, session.begin():
            await session.execute(delete(EnergySample))
        logger.warning("Sample store cleared")

    # ------------------------------------------------------------------
    # Calibration state
    # ------------------------------------------------------------------

    async def load_calibration(self) -> CalibrationState | None:
        """Return the persisted CalibrationState, or None if never saved."""
        async with self._session() as session:
            record = await session.get(CalibrationRecord, _CALIBRATION_ID)
        if record is None:
            return None
        return CalibrationState(
            floor_kwh=record.floor_kwh,
            accumulated_kwh=record.accumulated_kwh,
            last_tick_ms=record.last_tick_ms,
            last_emitted_kwh=record.last_emitted_kwh,
        )

    async def save_calibration(self, state: CalibrationState) -> None:
        """Persist *state* as the calibration record."""
        async with self._session() as session, session.begin():
            await session.merge(_to_record(state))

    async def record_tick(self, sample: Sample, state: CalibrationState) -> None:
        """Append *sample* and persist *state* atomically.

        Either both land or neither does, so a failed write never leaves
        the calibration state ahead of the stored series.
        """
        async with self._session() as session, session.begin():
            session.add(EnergySample(**sample.model_dump()))
            await session.merge(_to_record(state))

    async def reset(self, state: CalibrationState) -> None:
        """Delete every sample and adopt *state* atomically."""
        async with self._session() as session, session.begin():
            await session.execute(delete(EnergySample))
            await session.merge(_to_record(state))
        logger.warning("Sample store reset with floor %.3f kWh", state.floor_kwh)


def _to_record(state: CalibrationState) -> CalibrationRecord:
    return CalibrationRecord(
        id=_CALIBRATION_ID,
        floor_kwh=state.floor_kwh,
        accumulated_kwh=state.accumulated_kwh,
        last_tick_ms=state.last_tick_ms,
        last_emitted_kwh=state.last_emitted_kwh,
        updated_at_ms=_now_ms(),
    )
