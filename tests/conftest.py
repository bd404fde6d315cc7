"""Pytest configuration - put the project root on sys.path for src.abtesting imports."""
import sys
from pathlib import Path

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))
