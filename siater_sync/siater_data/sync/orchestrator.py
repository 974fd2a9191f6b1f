import gc
import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from siater_api.client import FeedClient
from siater_api.config import settings
from siater_api.config.sections import Sync
from siater_api.exceptions import ConfigurationError, FetchError, LockContentionError
from siater_api.feed import FeedParser, FeedRecord, ParsedPage
from siater_data.sync.catalog import Catalog, FailureReason, SyncResult
from siater_data.sync.reconciler import ProductReconciler
from siater_data.sync.state import SyncState
from siater_data.sync.store import RunStatus

logger = logging.getLogger(__name__)


class RunOutcome(str, Enum):
    SKIPPED_LOCKED = "skipped_locked"
    SKIPPED_TOO_SOON = "skipped_too_soon"
    PAGE_PROCESSED = "page_processed"
    COMPLETED = "completed"
    FAILED = "failed"


_RUN_STATUS = {
    RunOutcome.SKIPPED_TOO_SOON: RunStatus.SKIPPED,
    RunOutcome.PAGE_PROCESSED: RunStatus.SUCCESS,
    RunOutcome.COMPLETED: RunStatus.SUCCESS,
    RunOutcome.FAILED: RunStatus.FAILED,
}


class Deadline:
    """Cooperative wall-clock budget, polled between records."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.expires_at = clock() + seconds

    @property
    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    def expired(self) -> bool:
        return self._clock() >= self.expires_at


@dataclass
class SyncReport:
    outcome: RunOutcome
    offset: int = 0
    next_offset: int | None = None
    fetched: int = 0
    processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    interrupted: bool = False
    error: str | None = None
    elapsed_seconds: float = 0.0
    failures: list[tuple[str, FailureReason]] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)


class SyncOrchestrator:
    """Processes one feed page per invocation and moves the cursor.

    The page is re-fetched from the same offset when the time budget runs out
    before every record was handled; reconciliation is upsert-by-SKU so the
    records already applied are simply applied again.
    """

    def __init__(
        self,
        state: SyncState,
        client: FeedClient,
        parser: FeedParser,
        reconciler: ProductReconciler,
        catalog: Catalog,
        sync: Sync | None = None,
        output: Callable[[str], None] | None = None,
        verbose: bool | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.state = state
        self.client = client
        self.parser = parser
        self.reconciler = reconciler
        self.catalog = catalog
        self.sync = sync or settings.sync
        self.feed = parser.feed
        self._output = output
        self.verbose = self.sync.verbose_output if verbose is None else verbose
        self._monotonic = monotonic

    def output(self, message: str) -> None:
        if self.verbose and self._output is not None:
            self._output(message)

    def run(self) -> SyncReport:
        started_at = self._monotonic()
        offset = self.state.get_offset()
        report = SyncReport(outcome=RunOutcome.FAILED, offset=offset)
        logger.info("SYNC_RUN start=%s offset=%s", self.state.clock().isoformat(), offset)

        try:
            with self.state.locked():
                report = self._run_locked(Deadline(self.sync.time_budget_seconds, self._monotonic))
        except LockContentionError:
            logger.info("Sync already running, skipping this trigger")
            self.output("Sync already running.")
            report.outcome = RunOutcome.SKIPPED_LOCKED
        except Exception as exc:
            report.error = str(exc)
            self.state.record_outcome(RunStatus.FAILED, error=str(exc), records=report.processed)
            self._log_done(report, started_at)
            raise

        self._log_done(report, started_at)
        return report

    def _run_locked(self, deadline: Deadline) -> SyncReport:
        offset = self.state.get_offset()
        report = SyncReport(outcome=RunOutcome.FAILED, offset=offset)

        hours_since_last = self.state.hours_since_last_sync()
        if offset == 0 and hours_since_last < self.sync.min_interval_hours:
            remaining = self.sync.min_interval_hours - hours_since_last
            logger.info("Last sync %.1f hours ago, next cycle in %.1f hours", hours_since_last, remaining)
            self.output(
                f"Last sync was {hours_since_last:.1f} hours ago. Next sync in {remaining:.1f} hours."
            )
            self.state.set_syncing(False)
            return self._finish(report, RunOutcome.SKIPPED_TOO_SOON)

        logger.info("Starting sync from offset: %s", offset)
        self.output(f"Processing from offset: {offset}")

        try:
            page = self.parser.parse(self.client.fetch_page(offset))
        except (FetchError, ConfigurationError) as exc:
            logger.error("Feed fetch failed at offset %s: %s", offset, exc)
            self.output(f"Error: {exc}")
            report.error = str(exc)
            return self._finish(report, RunOutcome.FAILED)

        report.fetched = page.raw_count
        logger.info("Fetched %s products (%s usable)", page.raw_count, len(page))
        self.output(f"Found {len(page)} products")

        self._process_page(page, report, deadline)

        if report.interrupted:
            logger.warning(
                "Time limit reached after %s of %s records, offset %s will be retried",
                report.processed,
                len(page),
                offset,
            )
            self.output(f"Time limit reached. Processed {report.processed} products, retrying offset {offset}.")
            report.next_offset = offset
            return self._finish(report, RunOutcome.PAGE_PROCESSED)

        if page.raw_count < self.feed.page_size:
            self.state.mark_completed()
            report.next_offset = 0
            self.output("Sync completed!")
            return self._finish(report, RunOutcome.COMPLETED)

        next_offset = offset + self.feed.page_size
        self.state.set_offset(next_offset)
        report.next_offset = next_offset
        self.output(f"Batch complete. Processed {report.processed} products. Next offset: {next_offset}")
        return self._finish(report, RunOutcome.PAGE_PROCESSED)

    def _process_page(self, page: ParsedPage, report: SyncReport, deadline: Deadline) -> None:
        variation_mode = bool(self.feed.variations)
        parents: dict[str, int] = {}

        for record in page:
            if deadline.expired():
                report.interrupted = True
                break

            if variation_mode and self.feed.only_with_variation_images and not record.has_variation_images:
                logger.debug("Skipping product %s - no variation images", record.code)
                report.skipped += 1
            else:
                result = self._sync_record(record, parents, variation_mode)
                if result.ok:
                    report.succeeded += 1
                else:
                    report.failures.append((record.code, result.reason or FailureReason.CATALOG_ERROR))

            report.processed += 1
            if report.processed % self.sync.heartbeat_every == 0:
                self._checkpoint(report.processed)

        for parent_id in parents.values():
            self.reconciler.sync_parent_stock(parent_id)

    def _sync_record(self, record: FeedRecord, parents: dict[str, int], variation_mode: bool) -> SyncResult:
        if not (variation_mode and record.is_variation):
            return self.reconciler.sync_simple(record)

        parent_sku = record.group_code or record.code
        if parent_sku not in parents:
            parent = self.reconciler.sync_variable(record)
            if not parent.ok:
                return parent
            parents[parent_sku] = parent.item_id
        return self.reconciler.sync_variation(parents[parent_sku], record)

    def _checkpoint(self, processed: int) -> None:
        self.catalog.release_memory()
        gc.collect()
        logger.info("Processed %s products", processed)
        self.state.heartbeat()

    def _finish(self, report: SyncReport, outcome: RunOutcome) -> SyncReport:
        report.outcome = outcome
        self.state.record_outcome(_RUN_STATUS[outcome], error=report.error, records=report.processed)
        return report

    def _log_done(self, report: SyncReport, started_at: float) -> None:
        report.elapsed_seconds = round(self._monotonic() - started_at, 3)
        logger.info(
            "SYNC_RUN done outcome=%s offset=%s next_offset=%s processed=%s failed=%s elapsed_seconds=%s",
            report.outcome.value,
            report.offset,
            report.next_offset,
            report.processed,
            report.failed,
            report.elapsed_seconds,
        )

    def get_status(self) -> dict[str, object]:
        cursor = self.state.get()
        hours_since_last = self.state.hours_since_last_sync()
        return {
            "is_running": self.state.is_locked(),
            "is_syncing": cursor.is_syncing,
            "current_offset": cursor.offset,
            "last_sync": cursor.last_sync_start,
            "hours_since_last": None if math.isinf(hours_since_last) else round(hours_since_last, 1),
        }

    def reset(self) -> None:
        self.state.reset()
