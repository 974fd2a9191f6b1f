"""Persisted singletons of the sync engine and the stores that hold them.

Two singleton records are kept: the paging cursor with its lock, and the
cleanup cycle. Stores hand out detached snapshots; every write goes through
the store so the persisted row stays the only source of truth between runs.
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Mapping, Protocol


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class CleanupPhase(str, Enum):
    NONE = "none"
    FETCH = "fetch"
    COMPARE = "compare"
    DELETE = "delete"


@dataclass
class CursorState:
    offset: int = 0
    last_sync_start: datetime | None = None
    is_syncing: bool = False
    lock_held: bool = False
    lock_acquired_at: datetime | None = None
    last_run_status: str = RunStatus.IDLE.value
    last_run_finished_at: datetime | None = None
    last_error: str | None = None
    records_processed: int = 0


@dataclass
class CleanupState:
    phase: CleanupPhase = CleanupPhase.NONE
    fetch_offset: int = 0
    supplier_skus: set[str] = field(default_factory=set)
    skus_to_delete: list[str] = field(default_factory=list)
    last_cycle_completed_at: datetime | None = None


CURSOR_FIELDS = frozenset(f.name for f in fields(CursorState))
CLEANUP_FIELDS = frozenset(f.name for f in fields(CleanupState))

CursorMutation = Callable[[CursorState], Mapping[str, object] | None]


def _check_fields(changes: Mapping[str, object], allowed: frozenset[str], record: str) -> None:
    unknown = set(changes) - allowed
    if unknown:
        raise KeyError(f"Unknown {record} fields: {', '.join(sorted(unknown))}")


class StateStore(Protocol):
    def load_cursor(self) -> CursorState:
        ...

    def modify_cursor(self, mutate: CursorMutation) -> CursorState:
        """Atomically read the cursor, apply ``mutate``'s changes, return the result.

        ``mutate`` returns the changed fields, or ``None`` to leave the row as is.
        """
        ...

    def load_cleanup(self) -> CleanupState:
        ...

    def save_cleanup(self, **changes: object) -> CleanupState:
        ...


class InMemoryStateStore:
    """Process-local store, used for dry runs and tests."""

    def __init__(self, cursor: CursorState | None = None, cleanup: CleanupState | None = None) -> None:
        self._cursor = cursor or CursorState()
        self._cleanup = cleanup or CleanupState()
        self._lock = threading.Lock()

    def load_cursor(self) -> CursorState:
        with self._lock:
            return replace(self._cursor)

    def modify_cursor(self, mutate: CursorMutation) -> CursorState:
        with self._lock:
            changes = mutate(replace(self._cursor))
            if changes:
                _check_fields(changes, CURSOR_FIELDS, "cursor")
                self._cursor = replace(self._cursor, **changes)
            return replace(self._cursor)

    def load_cleanup(self) -> CleanupState:
        with self._lock:
            return copy.deepcopy(self._cleanup)

    def save_cleanup(self, **changes: object) -> CleanupState:
        _check_fields(changes, CLEANUP_FIELDS, "cleanup")
        with self._lock:
            self._cleanup = replace(self._cleanup, **copy.deepcopy(changes))
            return copy.deepcopy(self._cleanup)
