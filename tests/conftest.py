"""Pytest configuration.

Tests may run without the project installed in editable mode; make the
repository root importable so `import feed_core...` works either way.
"""

from __future__ import annotations

import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
