"""
Pytest fixtures for reconciliation tests.
"""
import json
from decimal import Decimal

import pytest

from bid_analysis.reconciliation.config import build_default_config
from bid_analysis.reconciliation.taxonomy import load_taxonomy
from bid_analysis.reconciliation.types import (
    ClassificationEntry,
    CostPool,
    Record,
    ResponsibleParty,
)


@pytest.fixture
def taxonomy():
    """Bundled MasterFormat 2018 taxonomy."""
    return load_taxonomy()


@pytest.fixture
def config():
    """Default thresholds and split shares."""
    return build_default_config()


@pytest.fixture
def make_entry():
    """Factory for classification entries with Decimal costs."""

    def _make(code, cost, items=None, **kwargs):
        return ClassificationEntry(
            code=code,
            cost=Decimal(str(cost)),
            items=list(items) if items else [f"division {code} work"],
            **kwargs,
        )

    return _make


@pytest.fixture
def make_party():
    """Factory for subcontractors."""

    def _make(name, codes, amount, trade="General"):
        return ResponsibleParty(
            name=name,
            trade=trade,
            codes=list(codes),
            aggregate_amount=Decimal(str(amount)),
        )

    return _make


@pytest.fixture
def make_record(make_entry):
    """
    Factory for records.

    `entries` maps code -> cost (or a ready ClassificationEntry); pools
    are plain totals.
    """

    def _make(
        target,
        entries=None,
        parties=None,
        overhead=0,
        allowances=0,
        uncategorized=0,
        name="Summit Builders",
    ):
        built = {}
        for code, value in (entries or {}).items():
            built[code] = value if isinstance(value, ClassificationEntry) else make_entry(code, value)
        return Record(
            source_name=name,
            target_total=Decimal(str(target)),
            entries=built,
            parties=list(parties or []),
            overhead=CostPool("overhead", Decimal(str(overhead))),
            allowances=CostPool("allowances", Decimal(str(allowances))),
            uncategorized=CostPool("uncategorized", Decimal(str(uncategorized))),
        )

    return _make


@pytest.fixture
def bid_object():
    """A well-formed generator object using legacy Divisions 15 and 16."""
    return {
        "contractor_name": "Summit Builders",
        "total_amount": 1000000,
        "project_name": "Riverside Clinic",
        "csi_divisions": {
            "03": {"cost": 380000, "items": ["foundations", "slab on grade"]},
            "09": {"cost": 150000, "items": ["drywall", "paint, trim, and {accent} walls"]},
            "15": {"cost": 200000, "items": ["mechanical", "fire sprinkler system", "plumbing fixtures"]},
            "16": {"cost": 120000, "items": ["electrical service"]},
        },
        "subcontractors": [
            {"name": "Bright Electric", "trade": "Electrical", "divisions": ["16"], "total_amount": 120000},
            {"name": "Acme Plumbing", "trade": "Plumbing", "divisions": ["22"], "total_amount": 68000},
        ],
        "project_overhead": {"general_conditions": 80000, "total_overhead": 80000},
        "allowances": [{"description": "Owner contingency", "amount": 50000, "type": "contingency"}],
        "allowances_total": 50000,
        "uncategorizedCosts": [{"description": "Permit fees", "cost": 20000}],
        "uncategorizedTotal": 20000,
    }


@pytest.fixture
def broken_bid_text():
    """
    Generator output wrapped in prose and a code fence, with a missing
    comma between two division entries and a trailing comma.
    """
    return """Here is the cost breakdown you asked for:

```json
{
  "contractor_name": "Summit Builders",
  "total_amount": 1000000,
  "project_name": "Riverside Clinic",
  "csi_divisions": {
    "03": {"cost": 380000, "items": ["foundations", "slab on grade"]}
    "09": {"cost": 150000, "items": ["drywall", "paint, trim, and {accent} walls"]},
    "15": {"cost": 200000, "items": ["mechanical", "fire sprinkler system", "plumbing fixtures"]},
    "16": {"cost": 120000, "items": ["electrical service"]},
  },
  "subcontractors": [
    {"name": "Bright Electric", "trade": "Electrical", "divisions": ["16"], "total_amount": 120000},
    {"name": "Acme Plumbing", "trade": "Plumbing", "divisions": ["22"], "total_amount": 68000}
  ],
  "project_overhead": {"general_conditions": 80000, "total_overhead": 80000},
  "allowances": [{"description": "Owner contingency", "amount": 50000, "type": "contingency"}],
  "allowances_total": 50000,
  "uncategorizedCosts": [{"description": "Permit fees", "cost": 20000}],
  "uncategorizedTotal": 20000
}
```

Let me know if you need anything else."""


@pytest.fixture
def bid_text(bid_object):
    """The same object as strict JSON."""
    return json.dumps(bid_object)
