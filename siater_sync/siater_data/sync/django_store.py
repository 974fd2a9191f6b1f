from __future__ import annotations

from django.db import transaction

from siater_data.models import CleanupCycleState, SyncCursor
from siater_data.sync.store import (
    CLEANUP_FIELDS,
    CURSOR_FIELDS,
    CleanupPhase,
    CleanupState,
    CursorMutation,
    CursorState,
    _check_fields,
)

SINGLETON_ID = 1


def _cursor_from_row(row: SyncCursor) -> CursorState:
    return CursorState(**{name: getattr(row, name) for name in CURSOR_FIELDS})


def _cleanup_from_row(row: CleanupCycleState) -> CleanupState:
    return CleanupState(
        phase=CleanupPhase(row.phase or CleanupPhase.NONE.value),
        fetch_offset=row.fetch_offset or 0,
        supplier_skus=set(row.supplier_skus or []),
        skus_to_delete=list(row.skus_to_delete or []),
        last_cycle_completed_at=row.last_cycle_completed_at,
    )


def _cleanup_column(name: str, value: object) -> object:
    if name == "phase":
        return CleanupPhase(value).value
    if name == "supplier_skus":
        return sorted(value or [])
    if name == "skus_to_delete":
        return list(value or [])
    return value


class DjangoStateStore:
    """Keeps both singletons in the database, one row each with id=1.

    Cursor updates lock the row for the length of the read-modify-write, so two
    overlapping runs cannot both win the lock.
    """

    def load_cursor(self) -> CursorState:
        row, _ = SyncCursor.objects.get_or_create(id=SINGLETON_ID)
        return _cursor_from_row(row)

    def modify_cursor(self, mutate: CursorMutation) -> CursorState:
        with transaction.atomic():
            SyncCursor.objects.get_or_create(id=SINGLETON_ID)
            row = SyncCursor.objects.select_for_update().get(id=SINGLETON_ID)
            changes = mutate(_cursor_from_row(row))
            if changes:
                _check_fields(changes, CURSOR_FIELDS, "cursor")
                for name, value in changes.items():
                    setattr(row, name, value)
                row.save()
            return _cursor_from_row(row)

    def load_cleanup(self) -> CleanupState:
        row, _ = CleanupCycleState.objects.get_or_create(id=SINGLETON_ID)
        return _cleanup_from_row(row)

    def save_cleanup(self, **changes: object) -> CleanupState:
        _check_fields(changes, CLEANUP_FIELDS, "cleanup")
        with transaction.atomic():
            CleanupCycleState.objects.get_or_create(id=SINGLETON_ID)
            row = CleanupCycleState.objects.select_for_update().get(id=SINGLETON_ID)
            for name, value in changes.items():
                setattr(row, name, _cleanup_column(name, value))
            row.save()
            return _cleanup_from_row(row)
