from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from siater_api.config import settings
from siater_data.management.commands import sync_status as sync_status_module

CURRENT_TIME = datetime(2026, 2, 12, 18, tzinfo=timezone.utc)


def _row_manager(row: object) -> SimpleNamespace:
    return SimpleNamespace(
        filter=lambda **_kwargs: SimpleNamespace(first=lambda: row)
    )


def _cursor_row(**overrides: object) -> SimpleNamespace:
    values = {
        "offset": 600,
        "is_syncing": True,
        "lock_held": True,
        "lock_acquired_at": CURRENT_TIME - timedelta(seconds=20),
        "last_sync_start": CURRENT_TIME - timedelta(hours=5),
        "last_run_status": "success",
        "last_run_finished_at": CURRENT_TIME - timedelta(minutes=5),
        "last_error": None,
        "records_processed": 300,
        "updated_at": CURRENT_TIME - timedelta(seconds=4),
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _patch_rows(monkeypatch: pytest.MonkeyPatch, cursor_row: object, cleanup_row: object) -> None:
    monkeypatch.setattr(sync_status_module, "now", lambda: CURRENT_TIME)
    monkeypatch.setattr(sync_status_module, "SyncCursor", SimpleNamespace(objects=_row_manager(cursor_row)))
    monkeypatch.setattr(
        sync_status_module,
        "CleanupCycleState",
        SimpleNamespace(objects=_row_manager(cleanup_row)),
    )
    monkeypatch.setattr(settings.cleanup, "interval_hours", 6)


def test_sync_status_outputs_single_line_json(monkeypatch: pytest.MonkeyPatch) -> None:
    cleanup_row = SimpleNamespace(
        phase="delete",
        fetch_offset=0,
        supplier_skus=[],
        skus_to_delete=["A", "B", "C"],
        last_cycle_completed_at=CURRENT_TIME - timedelta(hours=2),
    )
    _patch_rows(monkeypatch, _cursor_row(), cleanup_row)

    command = sync_status_module.Command()
    output_lines: list[str] = []
    monkeypatch.setattr(command.stdout, "write", output_lines.append)

    command.handle(stale_threshold_seconds=60, fail_on_stale=False)

    assert len(output_lines) == 1
    payload = json.loads(output_lines[0])
    assert payload["status"] == "success"
    assert payload["offset"] == 600
    assert payload["lock_age_seconds"] == 20
    assert payload["hours_since_last_sync"] == 5.0
    assert payload["is_stale"] is False
    assert payload["cleanup"] == {
        "phase": "delete",
        "fetch_offset": 0,
        "supplier_skus": 0,
        "pending_deletions": 3,
        "last_cycle_completed_at": (CURRENT_TIME - timedelta(hours=2)).isoformat(),
        "hours_until_next": 4.0,
    }


def test_sync_status_without_rows(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_rows(monkeypatch, None, None)

    command = sync_status_module.Command()
    output_lines: list[str] = []
    monkeypatch.setattr(command.stdout, "write", output_lines.append)

    command.handle(stale_threshold_seconds=0, fail_on_stale=True)

    payload = json.loads(output_lines[0])
    assert payload["status"] == "unknown"
    assert payload["lock_held"] is False
    assert payload["cleanup"]["phase"] == "idle"


def test_released_lock_is_never_stale(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_rows(monkeypatch, _cursor_row(lock_held=False, lock_acquired_at=None), None)

    command = sync_status_module.Command()
    output_lines: list[str] = []
    monkeypatch.setattr(command.stdout, "write", output_lines.append)

    command.handle(stale_threshold_seconds=1, fail_on_stale=True)

    payload = json.loads(output_lines[0])
    assert payload["lock_age_seconds"] is None
    assert payload["is_stale"] is False


def test_sync_status_exits_when_fail_on_stale(monkeypatch: pytest.MonkeyPatch) -> None:
    cursor_row = _cursor_row(lock_acquired_at=CURRENT_TIME - timedelta(minutes=15))
    _patch_rows(monkeypatch, cursor_row, None)

    command = sync_status_module.Command()
    monkeypatch.setattr(command.stdout, "write", lambda _line: None)

    with pytest.raises(SystemExit) as exit_info:
        command.handle(stale_threshold_seconds=600, fail_on_stale=True)

    assert exit_info.value.code == 2
