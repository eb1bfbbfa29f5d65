"""
Expiry sweeper: reclaims seats held by bookings that were never paid.

Every tick, in one transaction:

  1. SELECT pending bookings whose hold has run out, FOR UPDATE SKIP LOCKED
  2. UPDATE them all to EXPIRED in a single statement
  3. Give seats back with one locked increment per trip

SKIP LOCKED lets several instances (one per API process, across hosts) run
side by side: each takes the rows nobody else holds and moves on, so every
expired booking is reclaimed by exactly one of them. Losing the race for a
row is normal here, not an error.

A tick that fails is logged and dropped. Its rows are still PENDING_PAYMENT,
so the next tick picks them up again.
"""

import asyncio
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trip_booking.core.logging import bind_context, get_logger
from trip_booking.core.metrics import record_expiry_sweep
from trip_booking.db.session import transaction
from trip_booking.models.booking import Booking, BookingState
from trip_booking.services.inventory import release_seats

logger = get_logger(__name__)


@dataclass
class SweepResult:
    expired: int = 0
    trips: int = 0
    skipped: bool = False
    failed: bool = False


class ExpirySweeper:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: float = 60.0,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self._busy = False
        self._stopping = asyncio.Event()
        self._loop_task: Optional[asyncio.Task] = None
        self._ticks: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def run_once(self, now: Optional[datetime] = None) -> SweepResult:
        """Run a single tick. Never raises."""
        if self._busy:
            logger.warning("expiry_sweep_skipped", reason="previous_tick_running")
            record_expiry_sweep("skipped")
            return SweepResult(skipped=True)

        self._busy = True
        try:
            async with self.session_factory() as db:
                result = await self._expire(db, now or datetime.now(timezone.utc))
        except Exception as e:
            logger.error("expiry_sweep_failed", error=str(e), exc_info=True)
            record_expiry_sweep("failed")
            return SweepResult(failed=True)
        finally:
            self._busy = False

        record_expiry_sweep("completed", result.expired)
        if result.expired:
            logger.info("expiry_sweep_completed", expired=result.expired, trips=result.trips)
        return result

    async def _expire(self, db: AsyncSession, now: datetime) -> SweepResult:
        async with transaction(db):
            rows = (
                await db.execute(
                    select(Booking.id, Booking.trip_id, Booking.num_seats)
                    .where(
                        Booking.state == BookingState.PENDING_PAYMENT,
                        Booking.expires_at < now,
                    )
                    .with_for_update(skip_locked=True)
                )
            ).all()

            if not rows:
                return SweepResult()

            # Rows are locked above; one UPDATE for the whole batch
            await db.execute(
                update(Booking)
                .where(Booking.id.in_([row.id for row in rows]))
                .values(state=BookingState.EXPIRED)
                .execution_options(synchronize_session=False)
            )

            seats_by_trip: dict[int, int] = defaultdict(int)
            for row in rows:
                seats_by_trip[row.trip_id] += row.num_seats

            # Ascending trip id so concurrent sweepers lock trips in the same order
            for trip_id in sorted(seats_by_trip):
                await release_seats(db, trip_id, seats_by_trip[trip_id])

        return SweepResult(expired=len(rows), trips=len(seats_by_trip))

    def start(self) -> None:
        """Run one tick now (backlog from downtime), then every interval."""
        if self.running:
            return
        self._stopping.clear()
        self._loop_task = asyncio.create_task(self._run_forever(), name="expiry-sweeper")
        logger.info("expiry_sweeper_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Stop scheduling ticks and wait for the one in flight, if any."""
        self._stopping.set()
        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None
        if self._ticks:
            await asyncio.gather(*self._ticks, return_exceptions=True)
        logger.info("expiry_sweeper_stopped")

    async def _run_forever(self) -> None:
        while not self._stopping.is_set():
            # Ticks do not wait for each other; run_once skips while one is busy
            self._spawn_tick()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue

    def _spawn_tick(self) -> None:
        task = asyncio.create_task(self._scheduled_tick())
        self._ticks.add(task)
        task.add_done_callback(self._ticks.discard)

    async def _scheduled_tick(self) -> None:
        # Each task has its own contextvars copy; nothing leaks into requests
        bind_context(job="expiry_sweeper", tick_id=uuid.uuid4().hex[:12])
        await self.run_once()
