"""Mark-and-sweep removal of catalog items the supplier no longer lists.

One call of ``CleanupStateMachine.run`` does one bounded step of the cycle
and persists where it got to:

    none -> fetch -> compare -> delete -> none

``fetch`` pages through the SKU-only feed and accumulates supplier codes,
``compare`` turns them into the list of local SKUs to drop, and ``delete``
trashes that list a batch at a time. Any step that cannot continue collapses
the cycle back to ``none`` and discards what was accumulated.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from django.utils import timezone

from siater_api.client import FeedClient
from siater_api.config import settings
from siater_api.config.sections import Cleanup
from siater_api.exceptions import CatalogError, CleanupAborted, ConfigurationError, FetchError
from siater_api.feed import parse_sku_batch
from siater_data.sync.catalog import Catalog
from siater_data.sync.store import CleanupPhase, CleanupState, StateStore

logger = logging.getLogger(__name__)

MIN_INTERVAL_HOURS = 1


def _idle_changes() -> dict[str, object]:
    return {
        "phase": CleanupPhase.NONE,
        "fetch_offset": 0,
        "supplier_skus": set(),
        "skus_to_delete": [],
    }


@dataclass
class CleanupStep:
    started_phase: CleanupPhase
    phase: CleanupPhase
    fetched: int = 0
    trashed: int = 0
    completed: bool = False
    aborted: bool = False
    message: str = ""


class CleanupStateMachine:
    def __init__(
        self,
        store: StateStore,
        client: FeedClient,
        catalog: Catalog,
        cleanup: Cleanup | None = None,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.store = store
        self.client = client
        self.catalog = catalog
        self.cleanup = cleanup or settings.cleanup
        self.clock = clock

    def run(self) -> CleanupStep:
        state = self.store.load_cleanup()
        step = CleanupStep(started_phase=state.phase, phase=state.phase)

        if state.phase is CleanupPhase.NONE:
            if not self._should_start(state):
                step.message = "Waiting for next cycle"
                return step
            state = self.store.save_cleanup(**{**_idle_changes(), "phase": CleanupPhase.FETCH})
            logger.info("Product cleaner: starting new cycle")

        logger.info("CLEANUP_RUN phase=%s", state.phase.value)
        try:
            if state.phase is CleanupPhase.FETCH:
                self._fetch(state, step)
            elif state.phase is CleanupPhase.COMPARE:
                self._compare(state, step)
            elif state.phase is CleanupPhase.DELETE:
                self._delete(state, step)
        except CleanupAborted as exc:
            logger.error("Cleaner: %s, aborting cycle", exc)
            self._abort()
            step.aborted = True
            step.message = str(exc)

        step.phase = self.store.load_cleanup().phase
        return step

    def _should_start(self, state: CleanupState) -> bool:
        if state.last_cycle_completed_at is None:
            return True
        return self._hours_since(state.last_cycle_completed_at) >= self.interval_hours

    def _fetch(self, state: CleanupState, step: CleanupStep) -> None:
        batch_size = self.cleanup.fetch_batch_size
        logger.info("Cleaner phase 1: fetching SKUs (offset: %s)", state.fetch_offset)
        try:
            raw = self.client.fetch_sku_page(state.fetch_offset, batch_size)
        except ConfigurationError as exc:
            raise CleanupAborted(f"No usable feed URL ({exc})") from exc
        except FetchError as exc:
            logger.error("Cleaner: failed to fetch feed, retrying on next run: %s", exc)
            step.message = str(exc)
            return

        batch = parse_sku_batch(raw)
        step.fetched = len(batch.codes)
        if batch.row_count == 0 and not state.supplier_skus:
            raise CleanupAborted("No SKUs found in feed")

        supplier_skus = state.supplier_skus | set(batch.codes)
        if batch.row_count < batch_size:
            self.store.save_cleanup(phase=CleanupPhase.COMPARE, fetch_offset=0, supplier_skus=supplier_skus)
            logger.info("Cleaner: fetched %s SKUs (last batch). Total: %s", len(batch.codes), len(supplier_skus))
            step.message = f"Fetch complete, {len(supplier_skus)} supplier SKUs"
            return

        next_offset = state.fetch_offset + batch_size
        self.store.save_cleanup(fetch_offset=next_offset, supplier_skus=supplier_skus)
        logger.info(
            "Cleaner: fetched %s SKUs. Total: %s. Next offset: %s",
            len(batch.codes),
            len(supplier_skus),
            next_offset,
        )
        step.message = f"Fetched {len(batch.codes)} SKUs, next offset {next_offset}"

    def _compare(self, state: CleanupState, step: CleanupStep) -> None:
        logger.info("Cleaner phase 2: comparing products")
        if not state.supplier_skus:
            raise CleanupAborted("No cached supplier SKUs")

        try:
            local_skus = self.catalog.list_published_skus()
        except CatalogError as exc:
            raise CleanupAborted(f"Cannot list catalog SKUs ({exc})") from exc

        logger.info("Cleaner: supplier %s SKUs | catalog %s products", len(state.supplier_skus), len(local_skus))
        skus_to_delete = [sku for sku in dict.fromkeys(local_skus) if sku not in state.supplier_skus]

        if not skus_to_delete:
            self._complete(step)
            logger.info("Cleaner: all products are in sync")
            return

        self.store.save_cleanup(phase=CleanupPhase.DELETE, supplier_skus=set(), skus_to_delete=skus_to_delete)
        logger.info("Cleaner: found %s products to trash", len(skus_to_delete))
        step.message = f"{len(skus_to_delete)} products to trash"

    def _delete(self, state: CleanupState, step: CleanupStep) -> None:
        if not state.skus_to_delete:
            self._complete(step)
            return

        logger.info("Cleaner phase 3: trashing products (%s remaining)", len(state.skus_to_delete))
        batch_size = self.cleanup.delete_batch_size
        batch, remaining = state.skus_to_delete[:batch_size], state.skus_to_delete[batch_size:]
        try:
            step.trashed = self.catalog.trash(self.catalog.ids_for_skus(batch))
        except CatalogError as exc:
            raise CleanupAborted(f"Cannot trash products ({exc})") from exc

        if remaining:
            self.store.save_cleanup(skus_to_delete=remaining)
            logger.info("Cleaner: trashed %s. %s remaining.", step.trashed, len(remaining))
            step.message = f"Trashed {step.trashed}, {len(remaining)} remaining"
            return

        self._complete(step)
        self.catalog.clear_caches()
        logger.info("Cleaner: trashed %s products. Cycle complete.", step.trashed)

    def _complete(self, step: CleanupStep) -> None:
        self.store.save_cleanup(**_idle_changes(), last_cycle_completed_at=self.clock())
        step.completed = True
        step.message = "Cycle complete"

    def _abort(self) -> None:
        self.store.save_cleanup(**_idle_changes())

    def _hours_since(self, moment: datetime) -> float:
        return (self.clock() - moment) / timedelta(hours=1)

    @property
    def interval_hours(self) -> float:
        return max(MIN_INTERVAL_HOURS, self.cleanup.interval_hours)

    def get_status(self) -> dict[str, object]:
        state = self.store.load_cleanup()
        if state.last_cycle_completed_at is None:
            hours_until_next = 0.0
        else:
            hours_until_next = max(0.0, self.interval_hours - self._hours_since(state.last_cycle_completed_at))
        return {
            "phase": "idle" if state.phase is CleanupPhase.NONE else state.phase.value,
            "last_complete": state.last_cycle_completed_at,
            "pending_deletions": len(state.skus_to_delete),
            "hours_until_next": round(hours_until_next, 1),
        }

    def force_start(self) -> None:
        self.store.save_cleanup(**_idle_changes(), last_cycle_completed_at=None)
        logger.info("Cleaner: forced restart, next run starts a new cycle")

    def set_interval(self, hours: float) -> None:
        self.cleanup.interval_hours = max(MIN_INTERVAL_HOURS, hours)
