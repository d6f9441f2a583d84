"""Schedule engine: owns schedule timers and runs scans when they come due.

Each engine instance holds its own timer table (one asyncio task per armed
schedule) and an in-flight set that keeps a schedule from running twice at
once. A background sweep picks up anything whose ``next_run_at`` has passed
without a timer firing, e.g. after a restart.

Usage::

    engine = ScheduleEngine(session_factory, runner=make_scan_runner(session_factory))
    await engine.start()
    ...
    await engine.shutdown()
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import pydantic
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from secgate.config import settings
from secgate.db.models.schedule import ScheduledScanRow
from secgate.errors.exceptions import ConflictError, NotFoundError, ValidationError
from secgate.events.notifier import SCHEDULE_FAILED, LoggingNotifier, ScanNotifier, build_event
from secgate.logging_config import bind_scan_context, clear_scan_context
from secgate.models.enums import ScheduleType
from secgate.models.schedule import (
    ScheduleConfig,
    ScheduleCreate,
    ScheduleDefinition,
    ScheduleUpdate,
)
from secgate.repositories.repository_repo import RepositoryRepository
from secgate.repositories.schedule_repo import ScheduleRepository
from secgate.scheduling.calendar import as_utc, calculate_next_run

logger = logging.getLogger(__name__)

ScanRunner = Callable[[ScheduleDefinition, str], Awaitable[Any]]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_definition(row: ScheduledScanRow) -> ScheduleDefinition:
    return ScheduleDefinition(
        schedule_id=row.schedule_id,
        repository_id=row.repository_id,
        schedule_type=row.schedule_type,
        config=ScheduleConfig.model_validate(row.schedule_config or {}),
        timezone=row.timezone,
        is_enabled=row.is_enabled,
        next_run_at=as_utc(row.next_run_at),
        last_run_at=as_utc(row.last_run_at),
    )


class ScheduleEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        runner: ScanRunner,
        notifier: ScanNotifier | None = None,
        clock: Clock = _utcnow,
        catch_up_interval: float | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.runner = runner
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.catch_up_interval = (
            catch_up_interval if catch_up_interval is not None else settings.catch_up_interval_seconds
        )

        self._timers: dict[str, asyncio.Task] = {}
        self._firing: set[asyncio.Task] = set()
        self._in_flight: set[str] = set()
        self._catch_up_task: asyncio.Task | None = None
        self._running = False

    # ----- lifecycle -----

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            logger.warning("Schedule engine already started")
            return
        self._running = True

        schedules = await self.list_schedules(enabled_only=True)
        for schedule in schedules:
            self._arm(schedule)
        logger.info("Schedule engine started: %d schedules loaded, %d armed", len(schedules), len(self._timers))

        self._catch_up_task = asyncio.create_task(self._catch_up_loop(), name="secgate-catch-up")

    async def shutdown(self) -> None:
        logger.info("Shutting down schedule engine")
        self._running = False

        tasks = list(self._timers.values()) + list(self._firing)
        if self._catch_up_task is not None:
            tasks.append(self._catch_up_task)
            self._catch_up_task = None
        self._timers.clear()

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._firing.clear()
        logger.info("Schedule engine shut down")

    async def reload(self) -> None:
        for schedule_id in list(self._timers):
            self._disarm(schedule_id)
        if not self._running:
            return
        for schedule in await self.list_schedules(enabled_only=True):
            self._arm(schedule)
        logger.info("Schedule engine reloaded: %d armed", len(self._timers))

    def active_jobs(self) -> list[str]:
        return list(self._timers)

    # ----- CRUD -----

    async def create_schedule(self, request: ScheduleCreate | dict) -> ScheduleDefinition:
        if isinstance(request, dict):
            try:
                request = ScheduleCreate.model_validate(request)
            except pydantic.ValidationError as exc:
                raise ValidationError("Invalid schedule", details=exc.errors()) from exc

        manual = request.schedule_type == ScheduleType.MANUAL
        next_run_at = as_utc(calculate_next_run(
            request.schedule_type, request.config, request.timezone, now=self.clock()
        ))

        async with self.session_factory() as session:
            if await RepositoryRepository(session).get(request.repository_id) is None:
                raise NotFoundError("Repository", request.repository_id)
            row = await ScheduleRepository(session).create(
                repository_id=request.repository_id,
                schedule_type=request.schedule_type,
                schedule_config=request.config.model_dump(exclude_none=True),
                timezone=request.timezone,
                is_enabled=not manual,
                next_run_at=next_run_at,
            )
            await session.commit()
            schedule = _to_definition(row)

        logger.info(
            "Scheduled scan %s created (repository=%s, type=%s, next_run_at=%s)",
            schedule.schedule_id, schedule.repository_id, schedule.schedule_type, schedule.next_run_at,
        )
        self._arm(schedule)
        return schedule

    async def update_schedule(self, schedule_id: str, update: ScheduleUpdate | dict) -> ScheduleDefinition:
        if isinstance(update, dict):
            try:
                update = ScheduleUpdate.model_validate(update)
            except pydantic.ValidationError as exc:
                raise ValidationError("Invalid schedule update", details=exc.errors()) from exc

        async with self.session_factory() as session:
            repo = ScheduleRepository(session)
            row = await repo.get(schedule_id)
            if row is None:
                raise NotFoundError("Schedule", schedule_id)

            changes: dict[str, Any] = {}
            config_changes = update.config_changes()
            if config_changes:
                merged = ScheduleConfig.model_validate({**(row.schedule_config or {}), **config_changes})
                changes["schedule_config"] = merged.model_dump(exclude_none=True)
                changes["next_run_at"] = as_utc(calculate_next_run(
                    row.schedule_type, merged, row.timezone, now=self.clock()
                ))
            if update.is_enabled is not None:
                changes["is_enabled"] = update.is_enabled

            if changes:
                await repo.update(row, **changes)
                await session.commit()
            schedule = _to_definition(row)

        logger.info("Scheduled scan %s updated: %s", schedule_id, sorted(changes))
        self._disarm(schedule_id)
        self._arm(schedule)
        return schedule

    async def delete_schedule(self, schedule_id: str) -> None:
        async with self.session_factory() as session:
            repo = ScheduleRepository(session)
            row = await repo.get(schedule_id)
            if row is None:
                raise NotFoundError("Schedule", schedule_id)
            await repo.delete(row)
            await session.commit()
        self._disarm(schedule_id)
        logger.info("Scheduled scan %s deleted", schedule_id)

    async def list_schedules(self, enabled_only: bool = False) -> list[ScheduleDefinition]:
        async with self.session_factory() as session:
            rows = await ScheduleRepository(session).list_all(enabled_only=enabled_only)
            return [_to_definition(row) for row in rows]

    async def get_schedule(self, schedule_id: str) -> ScheduleDefinition:
        async with self.session_factory() as session:
            row = await ScheduleRepository(session).get(schedule_id)
            if row is None:
                raise NotFoundError("Schedule", schedule_id)
            return _to_definition(row)

    # ----- execution -----

    async def execute_now(self, schedule_id: str) -> Any:
        """Run a schedule immediately. Manual schedules may only run this way."""
        return await self._execute(schedule_id)

    async def process_overdue(self) -> int:
        """Run every overdue schedule in turn. Returns how many succeeded."""
        now = self.clock()
        async with self.session_factory() as session:
            overdue = [row.schedule_id for row in await ScheduleRepository(session).list_overdue(now)]

        if not overdue:
            logger.debug("No overdue scheduled scans found")
            return 0

        logger.info("Found %d overdue scheduled scans", len(overdue))
        succeeded = 0
        for schedule_id in overdue:
            try:
                await self._execute(schedule_id)
                succeeded += 1
            except ConflictError as exc:
                logger.info("Skipping overdue scan %s: %s", schedule_id, exc.message)
            except Exception as exc:
                logger.error("Failed to process overdue scan %s: %s", schedule_id, exc)
        return succeeded

    async def _execute(self, schedule_id: str) -> Any:
        if schedule_id in self._in_flight:
            raise ConflictError(f"A scan for schedule {schedule_id} is already running")
        self._in_flight.add(schedule_id)
        tokens = bind_scan_context(schedule_id=schedule_id)
        try:
            async with self.session_factory() as session:
                row = await ScheduleRepository(session).get(schedule_id)
                if row is None:
                    raise NotFoundError("Schedule", schedule_id)
                if not row.is_enabled and row.schedule_type != ScheduleType.MANUAL:
                    raise ConflictError(f"Schedule {schedule_id} is disabled")
                repository = await RepositoryRepository(session).get(row.repository_id)
                if repository is None:
                    raise NotFoundError("Repository", row.repository_id)
                schedule = _to_definition(row)
                repository_url = repository.url

            logger.info("Executing scheduled scan %s for %s", schedule_id, repository_url)
            try:
                result = await self.runner(schedule, repository_url)
            except Exception as exc:
                logger.error("Scheduled scan %s failed: %s", schedule_id, exc)
                await self._stamp(schedule_id, last_run_at=self.clock())
                await self.notifier.notify(build_event(SCHEDULE_FAILED, {
                    "schedule_id": schedule_id,
                    "repository_id": schedule.repository_id,
                    "error": str(exc),
                }))
                raise

            finished = self.clock()
            next_run_at = as_utc(calculate_next_run(
                schedule.schedule_type, schedule.config, schedule.timezone, now=finished
            ))
            updated = await self._stamp(schedule_id, last_run_at=finished, next_run_at=next_run_at)
            logger.info("Scheduled scan %s completed, next run at %s", schedule_id, next_run_at)
            if updated is not None:
                self._disarm(schedule_id)
                self._arm(updated)
            return result
        finally:
            self._in_flight.discard(schedule_id)
            clear_scan_context(tokens)

    async def _stamp(self, schedule_id: str, **changes: Any) -> ScheduleDefinition | None:
        async with self.session_factory() as session:
            repo = ScheduleRepository(session)
            row = await repo.get(schedule_id)
            if row is None:
                # deleted while running
                return None
            await repo.update(row, **changes)
            await session.commit()
            return _to_definition(row)

    # ----- timers -----

    def _arm(self, schedule: ScheduleDefinition) -> None:
        """Start a timer for ``schedule`` if it should have one.

        Past-due schedules are left to the catch-up sweep.
        """
        if not self._running:
            return
        if not schedule.is_enabled or schedule.schedule_type == ScheduleType.MANUAL:
            return
        if schedule.next_run_at is None:
            return
        delay = (schedule.next_run_at - self.clock()).total_seconds()
        if delay <= 0:
            return

        self._disarm(schedule.schedule_id)
        self._timers[schedule.schedule_id] = asyncio.create_task(
            self._timer(schedule.schedule_id, delay),
            name=f"secgate-schedule-{schedule.schedule_id}",
        )
        logger.debug("Armed schedule %s in %.0fs", schedule.schedule_id, delay)

    def _disarm(self, schedule_id: str) -> None:
        task = self._timers.pop(schedule_id, None)
        if task is not None:
            task.cancel()
            logger.debug("Disarmed schedule %s", schedule_id)

    async def _timer(self, schedule_id: str, delay: float) -> None:
        await asyncio.sleep(delay)

        task = asyncio.current_task()
        if self._timers.get(schedule_id) is task:
            del self._timers[schedule_id]
        self._firing.add(task)
        try:
            await self._execute(schedule_id)
        except ConflictError as exc:
            logger.info("Timer for schedule %s skipped: %s", schedule_id, exc.message)
        except Exception as exc:
            logger.error("Failed to execute scheduled scan %s: %s", schedule_id, exc)
        finally:
            self._firing.discard(task)

    async def _catch_up_loop(self) -> None:
        logger.info("Catch-up sweep started (interval=%ss)", self.catch_up_interval)
        while True:
            try:
                await self.process_overdue()
                await asyncio.sleep(self.catch_up_interval)
            except asyncio.CancelledError:
                logger.info("Catch-up sweep stopped")
                raise
            except Exception as exc:
                logger.exception("Catch-up sweep error: %s", exc)
                await asyncio.sleep(self.catch_up_interval)
