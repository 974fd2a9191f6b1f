import json
from datetime import datetime
from typing import Any

from django.core.management.base import BaseCommand
from django.utils.timezone import now

from siater_api.config import settings
from siater_data.models import CleanupCycleState, SyncCursor
from siater_data.sync.store import CleanupPhase


class Command(BaseCommand):
    help = "Emit feed sync and cleanup status as single-line JSON"

    def add_arguments(self, parser) -> None:  # type: ignore[no-untyped-def]
        parser.add_argument(
            "--stale-threshold-seconds",
            type=int,
            default=0,
            help="Mark a held lock stale when it was last refreshed longer ago than this threshold.",
        )
        parser.add_argument(
            "--fail-on-stale",
            action="store_true",
            help="Exit with status code 2 when the held lock is stale.",
        )

    @staticmethod
    def _isoformat(value: datetime | None) -> str | None:
        if value is None:
            return None
        return value.isoformat()

    @staticmethod
    def _age_seconds(value: datetime | None, current_time: datetime) -> int | None:
        if value is None:
            return None
        return max(0, int((current_time - value).total_seconds()))

    def _cursor_payload(self, stale_threshold_seconds: int, current_time: datetime) -> dict[str, Any]:
        cursor = SyncCursor.objects.filter(id=1).first()
        if cursor is None:
            return {
                "status": "unknown",
                "offset": 0,
                "is_syncing": False,
                "lock_held": False,
                "lock_acquired_at": None,
                "lock_age_seconds": None,
                "last_sync_start": None,
                "hours_since_last_sync": None,
                "last_run_finished_at": None,
                "last_error": None,
                "records_processed": 0,
                "is_stale": False,
                "updated_at": None,
            }

        lock_age_seconds = self._age_seconds(cursor.lock_acquired_at, current_time) if cursor.lock_held else None
        last_sync_age = self._age_seconds(cursor.last_sync_start, current_time)
        is_stale = bool(
            cursor.lock_held
            and lock_age_seconds is not None
            and 0 < stale_threshold_seconds < lock_age_seconds
        )

        return {
            "status": cursor.last_run_status,
            "offset": cursor.offset,
            "is_syncing": cursor.is_syncing,
            "lock_held": cursor.lock_held,
            "lock_acquired_at": self._isoformat(cursor.lock_acquired_at),
            "lock_age_seconds": lock_age_seconds,
            "last_sync_start": self._isoformat(cursor.last_sync_start),
            "hours_since_last_sync": None if last_sync_age is None else round(last_sync_age / 3600, 1),
            "last_run_finished_at": self._isoformat(cursor.last_run_finished_at),
            "last_error": cursor.last_error,
            "records_processed": cursor.records_processed,
            "is_stale": is_stale,
            "updated_at": self._isoformat(cursor.updated_at),
        }

    def _cleanup_payload(self, current_time: datetime) -> dict[str, Any]:
        interval_hours = max(1.0, float(settings.cleanup.interval_hours))
        state = CleanupCycleState.objects.filter(id=1).first()
        if state is None:
            return {
                "phase": "idle",
                "fetch_offset": 0,
                "supplier_skus": 0,
                "pending_deletions": 0,
                "last_cycle_completed_at": None,
                "hours_until_next": 0.0,
            }

        hours_until_next = 0.0
        completed_age = self._age_seconds(state.last_cycle_completed_at, current_time)
        if completed_age is not None:
            hours_until_next = round(max(0.0, interval_hours - completed_age / 3600), 1)

        return {
            "phase": "idle" if state.phase == CleanupPhase.NONE.value else state.phase,
            "fetch_offset": state.fetch_offset,
            "supplier_skus": len(state.supplier_skus or []),
            "pending_deletions": len(state.skus_to_delete or []),
            "last_cycle_completed_at": self._isoformat(state.last_cycle_completed_at),
            "hours_until_next": hours_until_next,
        }

    def _build_payload(self, stale_threshold_seconds: int) -> dict[str, Any]:
        current_time = now()
        cursor = self._cursor_payload(stale_threshold_seconds, current_time)
        return {
            **cursor,
            "cleanup": self._cleanup_payload(current_time),
        }

    def handle(self, *args, **options) -> None:
        _ = args
        stale_threshold_seconds = max(0, int(options["stale_threshold_seconds"]))
        fail_on_stale = bool(options["fail_on_stale"])

        payload = self._build_payload(stale_threshold_seconds)
        self.stdout.write(json.dumps(payload, sort_keys=True, separators=(",", ":")))

        if fail_on_stale and payload.get("is_stale"):
            raise SystemExit(2)
