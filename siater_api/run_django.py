import subprocess
import sys
from importlib.util import find_spec
from pathlib import Path
from collections.abc import Sequence


def _manage_script() -> str:
    spec = find_spec("siater_sync.manage")
    if spec is None or spec.origin is None:
        raise RuntimeError("Could not locate siater_sync.manage")
    return str(Path(spec.origin).resolve())


def _run_manage(args: Sequence[str]) -> int:
    completed = subprocess.run([sys.executable, _manage_script(), *args])
    return completed.returncode


def _migrated(*command: str) -> int:
    exit_code = migrate()
    if exit_code != 0:
        return exit_code

    return _run_manage(command)


def migrate() -> int:
    return _run_manage(["migrate"])


def sync_feed() -> int:
    return _migrated("sync_feed", *sys.argv[1:])


def cleanup_catalog() -> int:
    return _migrated("cleanup_catalog", *sys.argv[1:])


def sync_status() -> int:
    return _run_manage(["sync_status", *sys.argv[1:]])
