"""
Reconciler — cross-check classification entries against subcontractors.

reconcile(record) -> (record, DiagnosticReport)

1. Gap synthesis: a subcontractor listing a critical code that the
   breakdown is missing (or prices at zero) vouches for it; an entry is
   created from the subcontractor's amount split evenly over its codes.
2. Per-subcontractor check: its amount against the entries it covers.
3. Global checks: identified coverage (classification, overhead and
   allowances) and target total against everything accounted for.
4. Uncategorized share and pool itemization checks.
5. Coverage percentage recomputed on the record.

Only ever adds entries or annotates zero-cost ones; never deletes.
"""
import logging
from decimal import Decimal
from typing import Optional

from bid_analysis.reconciliation.amounts import (
    ZERO,
    clamp_percent,
    format_money,
    percent_of,
    split_evenly,
)
from bid_analysis.reconciliation.config import ReconcileConfig, build_default_config
from bid_analysis.reconciliation.taxonomy import Taxonomy, load_taxonomy
from bid_analysis.reconciliation.types import (
    ClassificationEntry,
    DiagnosticReport,
    Provenance,
    Record,
    ResponsibleParty,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# GAP SYNTHESIS
# ═══════════════════════════════════════════════════════════════════════════════

def _synthesize_entry(
    record: Record,
    code: str,
    party: ResponsibleParty,
    taxonomy: Taxonomy,
) -> Optional[ClassificationEntry]:
    estimated = split_evenly(party.aggregate_amount, len(party.codes))
    if estimated <= ZERO:
        return None

    note = f"Auto-generated from subcontractor data: {party.name}"
    provenance = Provenance.create(
        rule_id="synthesize_from_party",
        description=f"Share of {party.name} total across {len(party.codes)} divisions",
        source=party.name,
        original=party.aggregate_amount,
        transformed=estimated,
    )

    existing = record.entries.get(code)
    if existing is not None:
        # Zero-cost entry: keep what the generator wrote, fill in the cost
        existing.cost = estimated
        existing.unit_cost = None
        existing.quantity = None
        existing.unit = None
        existing.responsible_party = existing.responsible_party or party.name
        existing.add_note(note)
        existing.provenance.append(provenance)
        return existing

    entry = ClassificationEntry(
        code=code,
        cost=estimated,
        items=[taxonomy.name_for(code).lower()],
        responsible_party=party.name,
        unit="LS",
        quantity=Decimal(1),
        unit_cost=estimated,
        scope_notes=note,
        provenance=[provenance],
    )
    record.entries[code] = entry
    return entry


def synthesize_missing(
    record: Record,
    taxonomy: Taxonomy,
    report: DiagnosticReport,
) -> list[ClassificationEntry]:
    """Create entries for critical codes vouched for only by a subcontractor."""
    created = []
    for party in record.parties:
        for code in party.codes:
            if code not in taxonomy.critical:
                continue
            existing = record.entries.get(code)
            if existing is not None and existing.cost > ZERO:
                continue
            entry = _synthesize_entry(record, code, party, taxonomy)
            if entry is None:
                report.warning(
                    "synthesis_skipped",
                    f"Division {code} ({taxonomy.name_for(code)}) is missing but "
                    f"{party.name} reports no amount to allocate",
                    code=code,
                    party=party.name,
                )
                continue
            created.append(entry)
            report.info(
                "synthesized_entry",
                f"Created missing Division {code} ({taxonomy.name_for(code)}) - "
                f"{format_money(entry.cost)} from {party.name}",
                code=code,
                party=party.name,
                cost=float(entry.cost),
            )
    return created


# ═══════════════════════════════════════════════════════════════════════════════
# DISCREPANCY CHECKS
# ═══════════════════════════════════════════════════════════════════════════════

def check_parties(record: Record, config: ReconcileConfig, report: DiagnosticReport) -> None:
    """Flag subcontractors whose amount the linked entries do not explain."""
    for party in record.parties:
        linked = record.linked_cost(party)
        discrepancy = abs(party.aggregate_amount - linked)
        relative_limit = party.aggregate_amount * config.party_relative_threshold
        if discrepancy > relative_limit and discrepancy > config.party_absolute_floor:
            report.warning(
                "party_discrepancy",
                f"Large cost discrepancy for {party.name}: subcontractor total "
                f"{format_money(party.aggregate_amount)} vs division total {format_money(linked)}",
                party=party.name,
                party_total=float(party.aggregate_amount),
                linked_total=float(linked),
                discrepancy=float(discrepancy),
            )


def check_global(record: Record, config: ReconcileConfig, report: DiagnosticReport) -> None:
    """Flag when the target total and the accounted total diverge."""
    if record.target_total <= ZERO:
        return
    accounted = record.accounted_total()
    discrepancy = abs(record.target_total - accounted)
    if discrepancy / record.target_total > config.global_discrepancy_threshold:
        report.warning(
            "total_discrepancy",
            f"Total cost discrepancy: project total {format_money(record.target_total)} vs "
            f"accounted {format_money(accounted)} "
            f"({percent_of(discrepancy, record.target_total):.1f}% difference)",
            target_total=float(record.target_total),
            accounted_total=float(accounted),
        )


def check_identified(record: Record, config: ReconcileConfig, report: DiagnosticReport) -> None:
    """Flag when classified, overhead and allowance costs explain too little of the target."""
    if record.target_total <= ZERO:
        return
    identified = record.classification_total() + record.overhead.total + record.allowances.total
    coverage = percent_of(identified, record.target_total)
    if coverage < config.min_identified_coverage:
        report.warning(
            "low_identified_coverage",
            f"Low cost coverage: {coverage:.1f}% - potential data loss or incomplete extraction",
            identified_total=float(identified),
            coverage=coverage,
        )


def check_uncategorized(record: Record, config: ReconcileConfig, report: DiagnosticReport) -> None:
    if record.target_total <= ZERO:
        return
    uncategorized = record.uncategorized.total
    if uncategorized / record.target_total > config.reconcile_uncategorized_threshold:
        report.warning(
            "high_uncategorized",
            f"High uncategorized costs: {percent_of(uncategorized, record.target_total):.1f}% "
            f"may indicate incomplete data extraction",
            uncategorized_total=float(uncategorized),
        )


def check_pools(record: Record, config: ReconcileConfig, report: DiagnosticReport) -> None:
    """Flag pools whose itemized entries do not add up to their total."""
    for pool in (record.overhead, record.allowances, record.uncategorized):
        if not pool.items:
            continue
        itemized = pool.itemized_total()
        if abs(itemized - pool.total) > config.pool_tolerance:
            report.warning(
                "pool_mismatch",
                f"{pool.name.capitalize()} items sum to {format_money(itemized)} "
                f"but the reported total is {format_money(pool.total)}",
                pool=pool.name,
                itemized_total=float(itemized),
                pool_total=float(pool.total),
            )


# ═══════════════════════════════════════════════════════════════════════════════
# MAIN RECONCILE FUNCTION
# ═══════════════════════════════════════════════════════════════════════════════

def reconcile(
    record: Record,
    taxonomy: Optional[Taxonomy] = None,
    config: Optional[ReconcileConfig] = None,
) -> tuple[Record, DiagnosticReport]:
    """
    Fill gaps from subcontractor data and report inconsistencies.

    Args:
        record: Migrated record (mutated in place)
        taxonomy: Taxonomy table (default: load_taxonomy())
        config: Thresholds (default: build_default_config())

    Returns:
        (record, DiagnosticReport)
    """
    taxonomy = taxonomy or load_taxonomy()
    config = config or build_default_config()
    report = DiagnosticReport()

    created = synthesize_missing(record, taxonomy, report)
    if created:
        logger.info(f"RECONCILE: Synthesized divisions {[e.code for e in created]}")

    check_identified(record, config, report)
    check_parties(record, config, report)
    check_global(record, config, report)
    check_uncategorized(record, config, report)
    check_pools(record, config, report)

    classification_total = record.classification_total()
    record.coverage_percentage = clamp_percent(percent_of(classification_total, record.target_total))

    report.classification_coverage = record.coverage_percentage
    report.uncategorized_percentage = percent_of(record.uncategorized.total, record.target_total)

    logger.info(
        f"RECONCILE: {record.source_name} - classification {format_money(classification_total)} "
        f"({record.coverage_percentage:.1f}%), overhead {format_money(record.overhead.total)}, "
        f"allowances {format_money(record.allowances.total)}, "
        f"uncategorized {format_money(record.uncategorized.total)}, "
        f"{len(report.warnings)} issues"
    )
    return record, report
