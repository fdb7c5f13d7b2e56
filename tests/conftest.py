"""
Pytest configuration for repository-level bid analysis tests.
"""
import sys
from pathlib import Path

# Add backend to path for imports
BACKEND_DIR = Path(__file__).parent.parent / "backend"
sys.path.insert(0, str(BACKEND_DIR))

import pytest


# ============================================================
# Generator Output Fixtures
# ============================================================

@pytest.fixture
def missing_separator_text():
    """Two map entries with the separator between them dropped."""
    return '{"total":100,"map":{"01":{"cost":10}"02":{"cost":20}}}'


@pytest.fixture
def legacy_mechanical_text():
    """A bid whose only division is legacy Division 15."""
    return """Analysis complete.
{
  "contractor_name": "Harbor Mechanical",
  "total_amount": 100000,
  "csi_divisions": {
    "15": {"cost": 100000, "items": ["mechanical", "fire sprinkler system", "plumbing fixtures"]}
  }
}"""
