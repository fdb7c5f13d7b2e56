"""
Tests for the entity reconciler.
"""
from decimal import Decimal

import pytest

from bid_analysis.reconciliation.config import ReconcileConfig
from bid_analysis.reconciliation.reconciler import reconcile
from bid_analysis.reconciliation.types import CostPoolItem, Severity


class TestGapSynthesis:
    """Tests for creating missing critical divisions from subcontractor data."""

    def test_missing_plumbing_synthesized(self, make_record, make_party):
        """A plumbing subcontractor vouches for a missing Division 22."""
        record = make_record(
            200000,
            entries={"03": 150000},
            parties=[make_party("Acme Plumbing", ["22"], 50000, trade="Plumbing")],
        )

        record, report = reconcile(record)

        plumbing = record.entries["22"]
        assert plumbing.cost == Decimal(50000)
        assert plumbing.items == ["plumbing"]
        assert plumbing.unit == "LS"
        assert plumbing.quantity == Decimal(1)
        assert plumbing.unit_cost == Decimal(50000)
        assert plumbing.responsible_party == "Acme Plumbing"
        assert plumbing.scope_notes == "Auto-generated from subcontractor data: Acme Plumbing"
        assert plumbing.provenance[0].rule_id == "synthesize_from_party"
        assert plumbing.provenance[0].source == "Acme Plumbing"
        assert "synthesized_entry" in report.kinds()
        assert record.coverage_percentage == 100.0

    def test_amount_split_over_party_codes(self, make_record, make_party):
        """Each missing code gets an even share of the subcontractor's total."""
        record = make_record(
            300000,
            entries={"03": 210000},
            parties=[make_party("Delta Mechanical", ["22", "23", "21"], 90000)],
        )

        record, _ = reconcile(record)

        assert record.entries["22"].cost == Decimal(30000)
        assert record.entries["23"].cost == Decimal(30000)
        assert "21" not in record.entries

    def test_share_truncated_to_cents(self, make_record, make_party):
        record = make_record(100000, parties=[make_party("Bright Electric", ["26", "27", "28"], 100000)])

        record, _ = reconcile(record)

        assert record.entries["26"].cost == Decimal("33333.33")

    def test_zero_cost_entry_filled_not_replaced(self, make_record, make_entry, make_party):
        """A zero-cost critical entry keeps its data and gains the estimate."""
        record = make_record(
            100000,
            entries={"26": make_entry("26", 0, ["lighting"], scope_notes="By owner?")},
            parties=[make_party("Bright Electric", ["26"], 40000)],
        )

        record, _ = reconcile(record)

        electrical = record.entries["26"]
        assert electrical.cost == Decimal(40000)
        assert electrical.items == ["lighting"]
        assert electrical.scope_notes == "By owner? (Auto-generated from subcontractor data: Bright Electric)"

    def test_positive_cost_never_overwritten(self, make_record, make_party):
        record = make_record(100000, entries={"22": 30000}, parties=[make_party("Acme Plumbing", ["22"], 50000)])

        record, report = reconcile(record)

        assert record.entries["22"].cost == Decimal(30000)
        assert "synthesized_entry" not in report.kinds()

    def test_non_critical_code_not_synthesized(self, make_record, make_party):
        record = make_record(100000, parties=[make_party("Finish Co", ["09"], 40000)])

        record, _ = reconcile(record)

        assert "09" not in record.entries

    def test_first_party_wins(self, make_record, make_party):
        record = make_record(100000, parties=[
            make_party("Acme Plumbing", ["22"], 50000),
            make_party("Beta Plumbing", ["22"], 70000),
        ])

        record, _ = reconcile(record)

        assert record.entries["22"].cost == Decimal(50000)
        assert record.entries["22"].responsible_party == "Acme Plumbing"

    def test_zero_amount_party_skipped(self, make_record, make_party):
        """Nothing to allocate means no entry, only a warning."""
        record = make_record(100000, parties=[make_party("Acme Plumbing", ["22"], 0)])

        record, report = reconcile(record)

        assert "22" not in record.entries
        assert "synthesis_skipped" in report.kinds()

    def test_never_deletes_entries(self, make_record, make_party):
        record = make_record(
            100000,
            entries={"03": 1, "09": 0, "22": 0},
            parties=[make_party("Acme Plumbing", ["22", "23"], 20000)],
        )
        before = set(record.entries)

        record, _ = reconcile(record)

        assert before <= set(record.entries)


class TestDiscrepancies:
    """Tests for the discrepancy checks."""

    def test_low_identified_coverage(self, make_record):
        """Classified, overhead and allowance costs cover only 70% of the total."""
        record = make_record(1000000, entries={"03": 500000}, overhead=100000, allowances=100000)

        _, report = reconcile(record)

        flagged = [d for d in report.warnings if d.kind == "low_identified_coverage"]
        assert len(flagged) == 1
        assert flagged[0].context["coverage"] == 70.0
        assert flagged[0].message.startswith("Low cost coverage: 70.0%")

    def test_identified_coverage_at_threshold_not_flagged(self, make_record):
        """Uncategorized costs do not count toward identified coverage."""
        record = make_record(1000000, entries={"03": 600000}, overhead=150000, uncategorized=250000)

        _, report = reconcile(record)

        assert "low_identified_coverage" not in report.kinds()

    def test_identified_coverage_configurable(self, make_record):
        record = make_record(1000000, entries={"03": 600000}, uncategorized=400000)

        _, default = reconcile(record)
        _, relaxed = reconcile(record, config=ReconcileConfig(min_identified_coverage=50.0))

        assert "low_identified_coverage" in default.kinds()
        assert "low_identified_coverage" not in relaxed.kinds()

    def test_party_discrepancy_flagged(self, make_record, make_party):
        """Gap above both 20% of the subcontractor total and the floor."""
        record = make_record(
            100000,
            entries={"22": 30000, "03": 70000},
            parties=[make_party("Acme Plumbing", ["22"], 50000)],
        )

        _, report = reconcile(record)

        flagged = [d for d in report.warnings if d.kind == "party_discrepancy"]
        assert len(flagged) == 1
        assert flagged[0].context["party"] == "Acme Plumbing"
        assert flagged[0].context["discrepancy"] == 20000.0

    def test_small_party_gap_below_floor_ignored(self, make_record, make_party):
        """A 50% gap of only 10,000 stays under the absolute floor."""
        record = make_record(
            100000,
            entries={"22": 10000, "03": 90000},
            parties=[make_party("Acme Plumbing", ["22"], 20000)],
        )

        _, report = reconcile(record)

        assert "party_discrepancy" not in report.kinds()

    def test_large_party_small_relative_gap_ignored(self, make_record, make_party):
        record = make_record(
            1000000,
            entries={"23": 450000, "03": 550000},
            parties=[make_party("Delta Mechanical", ["23"], 500000)],
        )

        _, report = reconcile(record)

        assert "party_discrepancy" not in report.kinds()

    def test_global_discrepancy(self, make_record):
        """More than 5% of the target unaccounted for."""
        record = make_record(1000000, entries={"03": 900000})

        _, report = reconcile(record)

        assert "total_discrepancy" in report.kinds()

    def test_global_within_threshold(self, make_record):
        record = make_record(1000000, entries={"03": 900000}, overhead=60000)

        _, report = reconcile(record)

        assert "total_discrepancy" not in report.kinds()

    def test_high_uncategorized(self, make_record):
        record = make_record(1000000, entries={"03": 750000}, uncategorized=250000)

        _, report = reconcile(record)

        assert "high_uncategorized" in report.kinds()
        assert report.uncategorized_percentage == 25.0

    def test_pool_mismatch(self, make_record):
        """Itemized allowances that do not add up to the pool total."""
        record = make_record(100000, entries={"03": 50000}, allowances=50000)
        record.allowances.items = [CostPoolItem("Hardware", Decimal(30000)), CostPoolItem("Signage", Decimal(10000))]

        _, report = reconcile(record)

        assert "pool_mismatch" in report.kinds()

    def test_pool_within_tolerance(self, make_record):
        record = make_record(100000, entries={"03": 50000}, allowances=50000)
        record.allowances.items = [CostPoolItem("Hardware", Decimal("49999.50"))]

        _, report = reconcile(record)

        assert "pool_mismatch" not in report.kinds()

    def test_thresholds_configurable(self, make_record):
        record = make_record(1000000, entries={"03": 970000})

        _, strict = reconcile(record, config=ReconcileConfig(global_discrepancy_threshold=Decimal("0.01")))
        _, loose = reconcile(record)

        assert "total_discrepancy" in strict.kinds()
        assert "total_discrepancy" not in loose.kinds()

    def test_findings_are_warnings(self, make_record):
        record = make_record(1000000, entries={"03": 500000})

        _, report = reconcile(record)

        assert all(d.severity == Severity.WARNING for d in report.diagnostics)


class TestCoverage:
    """Tests for the record's coverage percentage."""

    @pytest.mark.parametrize("target,classified,expected", [
        (1000000, 700000, 70.0),
        (3, 1, 33.33),
        (3, 2, 66.67),
        (1000, 1500, 100.0),
        (1000, 0, 0.0),
    ])
    def test_coverage_percentage(self, make_record, target, classified, expected):
        """Classification-only coverage, clamped and rounded to 2 decimals."""
        record = make_record(target, entries={"03": classified}, overhead=target)

        record, report = reconcile(record)

        assert record.coverage_percentage == expected
        assert report.classification_coverage == expected

    def test_zero_target_does_not_raise(self, make_record):
        record = make_record(0, entries={"03": 100})

        record, _ = reconcile(record)

        assert record.coverage_percentage == 0.0

    @pytest.mark.parametrize("target,classified", [
        (Decimal("1e-20"), Decimal(1000000)),
        (Decimal("0.001"), Decimal("1e40")),
        (Decimal("1e-400"), Decimal("1e400")),
    ])
    def test_extreme_ratio_does_not_raise(self, make_record, target, classified):
        """Ratios beyond the default decimal precision still produce a report."""
        record = make_record(target, entries={"03": classified})

        record, report = reconcile(record)

        assert record.coverage_percentage == 100.0
        assert "total_discrepancy" in report.kinds()

    def test_huge_party_amount_split(self, make_record, make_party):
        """Cent truncation works past the default decimal precision."""
        amount = Decimal("123456789012345678901234567890.789")
        record = make_record(amount, parties=[make_party("Acme Plumbing", ["22"], amount)])

        record, _ = reconcile(record)

        assert record.entries["22"].cost == Decimal("123456789012345678901234567890.78")
