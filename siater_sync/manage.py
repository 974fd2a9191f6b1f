#!/usr/bin/env python
import os
import sys
from pathlib import Path

SYNC_ROOT = Path(__file__).resolve().parent


def main() -> None:
    for path in (SYNC_ROOT.parent, SYNC_ROOT):
        if str(path) not in sys.path:
            sys.path.insert(0, str(path))
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "siater_sync.settings")

    from django.core.management import execute_from_command_line

    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
