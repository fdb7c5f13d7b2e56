"""
Reconciliation thresholds and split shares.

These are business heuristics, not derived constants. Defaults come from
the environment so a deployment can tune them without a code change.
"""
import os
from dataclasses import dataclass
from decimal import Decimal

# Legacy mechanical split
FIRE_SUPPRESSION_SHARE = Decimal(os.getenv("RECON_FIRE_SHARE", "0.15"))
PLUMBING_SHARE = Decimal(os.getenv("RECON_PLUMBING_SHARE", "0.40"))

# Entity reconciler
PARTY_RELATIVE_THRESHOLD = Decimal(os.getenv("RECON_PARTY_RELATIVE_THRESHOLD", "0.20"))
PARTY_ABSOLUTE_FLOOR = Decimal(os.getenv("RECON_PARTY_ABSOLUTE_FLOOR", "10000"))
GLOBAL_DISCREPANCY_THRESHOLD = Decimal(os.getenv("RECON_GLOBAL_THRESHOLD", "0.05"))
RECONCILE_UNCATEGORIZED_THRESHOLD = Decimal(os.getenv("RECON_UNCATEGORIZED_THRESHOLD", "0.20"))
POOL_TOLERANCE = Decimal(os.getenv("RECON_POOL_TOLERANCE", "1.00"))
MIN_IDENTIFIED_COVERAGE = float(os.getenv("RECON_MIN_IDENTIFIED_COVERAGE", "75.0"))

# Completeness auditor (percentages)
MIN_TOTAL_COVERAGE = float(os.getenv("AUDIT_MIN_TOTAL_COVERAGE", "99.0"))
MIN_CLASSIFICATION_COVERAGE = float(os.getenv("AUDIT_MIN_CLASSIFICATION_COVERAGE", "85.0"))
AUDIT_UNCATEGORIZED_THRESHOLD = Decimal(os.getenv("AUDIT_UNCATEGORIZED_THRESHOLD", "0.25"))

# Parse failure diagnostics
CONTEXT_WINDOW = int(os.getenv("SANITIZE_CONTEXT_WINDOW", "100"))


@dataclass(frozen=True)
class ReconcileConfig:
    """Every tunable the engine consults, passed explicitly to each stage."""
    fire_suppression_share: Decimal = FIRE_SUPPRESSION_SHARE
    plumbing_share: Decimal = PLUMBING_SHARE
    party_relative_threshold: Decimal = PARTY_RELATIVE_THRESHOLD
    party_absolute_floor: Decimal = PARTY_ABSOLUTE_FLOOR
    global_discrepancy_threshold: Decimal = GLOBAL_DISCREPANCY_THRESHOLD
    reconcile_uncategorized_threshold: Decimal = RECONCILE_UNCATEGORIZED_THRESHOLD
    pool_tolerance: Decimal = POOL_TOLERANCE
    min_identified_coverage: float = MIN_IDENTIFIED_COVERAGE
    min_total_coverage: float = MIN_TOTAL_COVERAGE
    min_classification_coverage: float = MIN_CLASSIFICATION_COVERAGE
    audit_uncategorized_threshold: Decimal = AUDIT_UNCATEGORIZED_THRESHOLD
    context_window: int = CONTEXT_WINDOW


def build_default_config() -> ReconcileConfig:
    """Configuration from environment defaults."""
    return ReconcileConfig()
