from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
SANDBOX_HOME = Path(os.environ.get("PYTEST_DEBUG_TEMPROOT", "/tmp/taskpicker-pytest")).resolve() / "home"
os.environ.setdefault("TASKPICKER_HOME", str(SANDBOX_HOME))
SANDBOX_HOME.mkdir(parents=True, exist_ok=True)
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
