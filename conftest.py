"""Pytest configuration.

Makes the flat top-level modules (``app``, ``models``, ...) importable during
test collection without an install.
"""

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))
