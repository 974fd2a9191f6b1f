import logging
import math
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Iterator

from django.utils import timezone

from siater_api.exceptions import LockContentionError
from siater_data.sync.store import CursorState, RunStatus, StateStore

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_SECONDS = 600


class SyncState:
    """Paging cursor plus the stale-aware run lock.

    Every operation is one atomic read-modify-write on the store, so the lock
    check and the lock grab cannot interleave with another process.
    """

    def __init__(
        self,
        store: StateStore,
        clock: Callable[[], datetime] = timezone.now,
        lock_timeout_seconds: int = DEFAULT_LOCK_TIMEOUT_SECONDS,
    ) -> None:
        self.store = store
        self.clock = clock
        self.lock_timeout = timedelta(seconds=lock_timeout_seconds)

    def get(self) -> CursorState:
        return self.store.load_cursor()

    def _is_stale(self, cursor: CursorState, current_time: datetime) -> bool:
        if cursor.lock_acquired_at is None:
            return True
        return current_time - cursor.lock_acquired_at >= self.lock_timeout

    def acquire_lock(self) -> bool:
        acquired = False

        def grab(cursor: CursorState) -> dict[str, object] | None:
            nonlocal acquired
            current_time = self.clock()
            if cursor.lock_held and not self._is_stale(cursor, current_time):
                return None
            if cursor.lock_held:
                logger.warning(
                    "Taking over stale sync lock acquired at %s",
                    cursor.lock_acquired_at.isoformat() if cursor.lock_acquired_at else None,
                )
            acquired = True
            return {"lock_held": True, "lock_acquired_at": current_time, "is_syncing": True}

        self.store.modify_cursor(grab)
        return acquired

    def release_lock(self) -> None:
        self.store.modify_cursor(lambda _cursor: {"lock_held": False, "lock_acquired_at": None})

    @contextmanager
    def locked(self) -> Iterator[None]:
        if not self.acquire_lock():
            raise LockContentionError("Sync already running")
        try:
            yield
        finally:
            self.release_lock()

    def heartbeat(self) -> None:
        self.store.modify_cursor(lambda _cursor: {"lock_acquired_at": self.clock()})

    def is_locked(self) -> bool:
        cursor = self.get()
        return cursor.lock_held and not self._is_stale(cursor, self.clock())

    def is_syncing(self) -> bool:
        return self.get().is_syncing

    def set_syncing(self, syncing: bool) -> None:
        self.store.modify_cursor(lambda _cursor: {"is_syncing": syncing})

    def get_offset(self) -> int:
        return self.get().offset

    def set_offset(self, offset: int) -> None:
        if offset < 0:
            raise ValueError(f"Offset must be >= 0, got {offset}")
        self.store.modify_cursor(lambda _cursor: {"offset": offset})

    def get_last_sync(self) -> datetime | None:
        return self.get().last_sync_start

    def hours_since_last_sync(self) -> float:
        last_sync = self.get_last_sync()
        if last_sync is None:
            return math.inf
        return (self.clock() - last_sync).total_seconds() / 3600

    def mark_completed(self) -> None:
        self.store.modify_cursor(
            lambda _cursor: {
                "offset": 0,
                "is_syncing": False,
                "lock_held": False,
                "lock_acquired_at": None,
                "last_sync_start": self.clock(),
            }
        )
        logger.info("Sync cycle completed, cursor reset to offset 0")

    def record_outcome(self, status: RunStatus, *, error: str | None = None, records: int = 0) -> None:
        self.store.modify_cursor(
            lambda _cursor: {
                "last_run_status": status.value,
                "last_error": error,
                "last_run_finished_at": self.clock(),
                "records_processed": records,
            }
        )

    def reset(self) -> None:
        self.store.modify_cursor(
            lambda _cursor: {
                "offset": 0,
                "last_sync_start": None,
                "is_syncing": False,
                "lock_held": False,
                "lock_acquired_at": None,
                "last_run_status": RunStatus.IDLE.value,
                "last_run_finished_at": None,
                "last_error": None,
                "records_processed": 0,
            }
        )
        logger.info("Sync state reset")
