"""Date reminder scheduler: periodic scan of freight record dates"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Set

import config
from app.core.feature_flags import get_feature_flags
from app.core.structured_logger import log_event
from app.services.ledger import SentNotificationLedger
from app.services.notifications import (
    ConfigurationMissingError,
    LedgerPersistenceError,
    Notifier,
    RecordSourceUnavailableError,
    SettingsSource,
    build_reminder_message,
    iter_due_candidates,
)
from app.services.records import RecordKind, RecordSource
from app.utils.date_utils import now_local
from app.utils.logging_helpers import (
    log_worker_iteration_start,
    log_worker_iteration_end,
    classify_error,
)

WORKER_NAME = "date_reminders"

logger = logging.getLogger(__name__)


@dataclass
class CycleResult:
    """Outcome of one tick: success | skipped | degraded | failed"""
    outcome: str
    started_at: datetime
    reason: Optional[str] = None
    sent: int = 0
    already_sent: int = 0
    delivery_failures: int = 0
    unavailable_kinds: List[str] = field(default_factory=list)
    error_type: Optional[str] = None
    duration_ms: Optional[int] = None

    def as_dict(self) -> dict:
        return {
            "outcome": self.outcome,
            "started_at": self.started_at.isoformat(),
            "reason": self.reason,
            "sent": self.sent,
            "already_sent": self.already_sent,
            "delivery_failures": self.delivery_failures,
            "unavailable_kinds": list(self.unavailable_kinds),
            "duration_ms": self.duration_ms,
        }


class DateReminderScheduler:
    """
    Drives the reminder scan on a fixed period.

    States: Idle (waiting for the next tick) and Scanning (scan lock held).
    Each tick passes through three gates before scanning:
      1. FEATURE_DATE_REMINDERS_ENABLED kill switch
      2. firing hour: local wall-clock hour must equal firing_hour
      3. coalescing: a tick arriving while a scan runs is skipped

    Within a scan, a dedup key is written to the ledger right after its
    notification is delivered, before the next candidate is looked at.
    """

    def __init__(
        self,
        *,
        settings_source: SettingsSource,
        record_source: RecordSource,
        ledger: SentNotificationLedger,
        notifier: Notifier,
        firing_hour: Optional[int] = None,
        check_interval: Optional[float] = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self.settings_source = settings_source
        self.record_source = record_source
        self.ledger = ledger
        self.notifier = notifier
        self.firing_hour = config.REMINDER_FIRING_HOUR if firing_hour is None else firing_hour
        self.check_interval = float(
            config.REMINDER_CHECK_INTERVAL_SECONDS if check_interval is None else check_interval
        )
        self.clock = clock

        self.last_cycle: Optional[CycleResult] = None
        self._scan_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._retired_tasks: Set[asyncio.Task] = set()
        self._iteration = 0

    # ================================================================================
    # Lifecycle
    # ================================================================================

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_scanning(self) -> bool:
        return self._scan_lock.locked()

    def start(self) -> None:
        """
        Start the periodic loop: one tick right away, then one per check_interval.

        Calling start() on a running scheduler retires the current loop and arms
        a new one; there is never more than one live timer. If a scan is in
        progress, the new loop's first tick waits for it instead of being
        coalesced. Must be called from a running event loop.
        """
        restarted = self.is_running
        self._retire_current_loop()

        stop_event = asyncio.Event()
        self._stop_event = stop_event
        self._task = asyncio.create_task(self._run_loop(stop_event), name=WORKER_NAME)

        log_event(
            logger,
            component="scheduler",
            operation="scheduler_restart" if restarted else "scheduler_start",
            outcome="success",
            firing_hour=self.firing_hour,
            interval_s=int(self.check_interval),
        )

    def stop(self) -> None:
        """
        Stop the periodic loop. Idempotent.

        No new scan starts after this returns; a scan already in progress is
        allowed to finish. Use wait_closed() to wait for it.
        """
        if self._task is None:
            return
        self._retire_current_loop()
        log_event(logger, component="scheduler", operation="scheduler_stop", outcome="success")

    async def wait_closed(self) -> None:
        """Wait until every retired loop (and its in-flight scan) has finished."""
        pending = [task for task in self._retired_tasks if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _retire_current_loop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        task = self._task
        if task is not None and not task.done():
            self._retired_tasks.add(task)
            task.add_done_callback(self._retired_tasks.discard)
        self._task = None
        self._stop_event = None

    async def _wait_for_current_scan(self) -> None:
        async with self._scan_lock:
            pass

    async def _run_loop(self, stop_event: asyncio.Event) -> None:
        # After a restart during a scan, the first tick runs once that scan is over
        if self._scan_lock.locked():
            await self._wait_for_current_scan()

        while not stop_event.is_set():
            try:
                await self.tick()
            except Exception as e:
                # tick() logs its own failures; anything reaching here is a bug
                logger.exception(f"{WORKER_NAME}: unexpected error in tick: {type(e).__name__}")

            if stop_event.is_set():
                break
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.check_interval)
            except asyncio.TimeoutError:
                pass

    # ================================================================================
    # Ticks
    # ================================================================================

    async def tick(self, now: Optional[datetime] = None) -> CycleResult:
        """
        Run one timer tick: apply the gates, then scan.

        Never raises for engine failures; the returned CycleResult says what happened.
        """
        now = now or self.clock()

        if not get_feature_flags().date_reminders_enabled:
            logger.info(f"{WORKER_NAME}: skipped (FEATURE_DATE_REMINDERS_ENABLED=false)")
            return CycleResult(outcome="skipped", started_at=now, reason="disabled")

        if now.hour != self.firing_hour:
            logger.debug(f"{WORKER_NAME}: hour {now.hour} != firing hour {self.firing_hour}, skipping")
            return CycleResult(outcome="skipped", started_at=now, reason="outside_firing_hour")

        if self._scan_lock.locked():
            logger.info(f"{WORKER_NAME}: scan already in progress, tick coalesced")
            return CycleResult(outcome="skipped", started_at=now, reason="scan_in_progress")

        return await self.run_cycle(now)

    async def run_cycle(self, now: Optional[datetime] = None) -> CycleResult:
        """
        Scan once, ignoring the firing-hour gate. Waits for an in-flight scan to finish first.
        """
        now = now or self.clock()
        async with self._scan_lock:
            self._iteration += 1
            started = time.monotonic()
            log_worker_iteration_start(worker_name=WORKER_NAME, iteration_number=self._iteration)

            try:
                result = await self._scan(now)
            except Exception as e:
                logger.exception(f"{WORKER_NAME}: scan crashed: {type(e).__name__}: {str(e)[:100]}")
                result = CycleResult(
                    outcome="failed",
                    started_at=now,
                    reason="unexpected_error",
                    error_type=classify_error(e),
                )

            result.duration_ms = int((time.monotonic() - started) * 1000)
            log_worker_iteration_end(
                worker_name=WORKER_NAME,
                outcome=result.outcome,
                items_processed=result.sent,
                error_type=result.error_type,
                duration_ms=result.duration_ms,
                reason=result.reason,
                already_sent=result.already_sent,
                delivery_failures=result.delivery_failures,
                unavailable_kinds=result.unavailable_kinds,
            )
            self.last_cycle = result
            return result

    async def _scan(self, now: datetime) -> CycleResult:
        result = CycleResult(outcome="success", started_at=now)
        today = now.date()

        try:
            configuration = await self.settings_source.load()
        except ConfigurationMissingError:
            logger.info(f"{WORKER_NAME}: no notification settings, nothing to monitor")
            result.outcome = "skipped"
            result.reason = "no_configuration"
            return result
        except Exception as e:
            logger.error(f"{WORKER_NAME}: settings unavailable: {type(e).__name__}: {str(e)[:100]}")
            result.outcome = "failed"
            result.reason = "settings_unavailable"
            result.error_type = classify_error(e)
            return result

        if not configuration.has_monitoring():
            result.outcome = "skipped"
            result.reason = "nothing_monitored"
            return result

        try:
            await self.ledger.load_compacted()
        except LedgerPersistenceError as e:
            logger.error(f"{WORKER_NAME}: ledger unavailable, aborting cycle: {e}")
            result.outcome = "failed"
            result.reason = "ledger_unavailable"
            result.error_type = classify_error(e)
            return result

        for kind in RecordKind:
            if not configuration.fields_for(kind):
                continue

            try:
                records = await self.record_source.load(kind)
            except RecordSourceUnavailableError as e:
                logger.warning(f"{WORKER_NAME}: skipping {kind.value} this cycle: {e}")
                result.unavailable_kinds.append(kind.value)
                continue
            except Exception as e:
                logger.warning(
                    f"{WORKER_NAME}: skipping {kind.value} this cycle: "
                    f"{type(e).__name__}: {str(e)[:100]}"
                )
                result.unavailable_kinds.append(kind.value)
                continue

            for candidate in iter_due_candidates(records, configuration, today):
                key = candidate.dedup_key
                if self.ledger.contains(*key):
                    result.already_sent += 1
                    continue

                message = build_reminder_message(candidate)
                try:
                    await self.notifier.notify(message.title, message.body)
                except Exception as e:
                    result.delivery_failures += 1
                    logger.warning(
                        f"{WORKER_NAME}: delivery failed for record={key.record_id} "
                        f"field={key.date_field} offset={key.offset_days}: "
                        f"{type(e).__name__}: {str(e)[:100]}"
                    )
                    continue

                try:
                    await self.ledger.record(*key)
                except LedgerPersistenceError as e:
                    result.sent += 1
                    logger.error(
                        f"{WORKER_NAME}: ledger write failed for record={key.record_id} "
                        f"field={key.date_field} offset={key.offset_days}, aborting cycle: {e}"
                    )
                    result.outcome = "failed"
                    result.reason = "ledger_write_failed"
                    result.error_type = classify_error(e)
                    return result

                result.sent += 1

        if result.unavailable_kinds or result.delivery_failures:
            result.outcome = "degraded"
        return result
