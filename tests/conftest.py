from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SYNC_ROOT = ROOT / "siater_sync"

if str(SYNC_ROOT) not in sys.path:
    sys.path.insert(0, str(SYNC_ROOT))

# siater_api.config loads (and creates) its file on import; keep tests off the user's config.
os.environ.setdefault(
    "SIATER_CONFIG_FILE",
    str(Path(tempfile.mkdtemp(prefix="siater-tests-")) / "config.toml"),
)
