from __future__ import annotations

import subprocess

import pytest

from siater_api import run_django


def _fake_runner(calls: list[list[str]], failing: dict[str, int]):
    def fake_run(argv: list[str]) -> subprocess.CompletedProcess[list[str]]:
        calls.append(list(argv))
        return subprocess.CompletedProcess(args=argv, returncode=failing.get(argv[2], 0))

    return fake_run


@pytest.mark.scripts
def test_sync_feed_migrates_first_and_forwards_arguments(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[list[str]] = []
    manage_script = "/tmp/manage.py"

    monkeypatch.setattr(run_django.subprocess, "run", _fake_runner(calls, {}))
    monkeypatch.setattr(run_django, "_manage_script", lambda: manage_script)
    monkeypatch.setattr(run_django.sys, "argv", ["siater-sync", "--verbose"])

    exit_code = run_django.sync_feed()

    assert exit_code == 0
    assert calls == [
        [run_django.sys.executable, manage_script, "migrate"],
        [run_django.sys.executable, manage_script, "sync_feed", "--verbose"],
    ]


@pytest.mark.scripts
def test_cleanup_propagates_migrate_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[list[str]] = []
    manage_script = "/tmp/manage.py"

    monkeypatch.setattr(run_django.subprocess, "run", _fake_runner(calls, {"migrate": 2}))
    monkeypatch.setattr(run_django, "_manage_script", lambda: manage_script)
    monkeypatch.setattr(run_django.sys, "argv", ["siater-cleanup", "--force"])

    exit_code = run_django.cleanup_catalog()

    assert exit_code == 2
    assert calls == [
        [run_django.sys.executable, manage_script, "migrate"],
    ]


@pytest.mark.scripts
def test_sync_status_returns_stale_exit_code(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[list[str]] = []
    manage_script = "/tmp/manage.py"

    monkeypatch.setattr(run_django.subprocess, "run", _fake_runner(calls, {"sync_status": 2}))
    monkeypatch.setattr(run_django, "_manage_script", lambda: manage_script)
    monkeypatch.setattr(run_django.sys, "argv", ["siater-status", "--fail-on-stale"])

    exit_code = run_django.sync_status()

    assert exit_code == 2
    assert calls == [
        [run_django.sys.executable, manage_script, "sync_status", "--fail-on-stale"],
    ]
