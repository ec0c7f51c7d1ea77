"""Pytest configuration and shared fixtures.

Loads .env for all tests so integration tests pick up Firestore credentials.
"""

import sys
from pathlib import Path

# Project root on the path so `src.` imports resolve without installation
root_path = Path(__file__).parent.parent
sys.path.insert(0, str(root_path))

from src.common.env import load_env  # noqa: E402

load_env()
