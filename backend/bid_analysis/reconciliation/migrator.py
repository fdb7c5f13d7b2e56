"""
Migrator — rewrite obsolete classification codes into the current taxonomy.

migrate(record) -> record                       (mutates in place)
migrate_with_report(record) -> MigrationResult

- Composite codes (legacy Division 15 Mechanical) are split by keyword
  families: each matched family takes its configured share of what is
  left, in table order, and the remainder code takes the rest. The parts
  always add back to the original cost.
- Rename codes (legacy Division 16 Electrical) move to their target with
  every field preserved.
- Codes unknown to the taxonomy are moved to the uncategorized pool.
- Subcontractor code sets are rewritten to match, and entries without a
  subcontractor are linked to one that lists their code.

Deterministic, no I/O.
"""
import logging
from decimal import Decimal
from typing import Optional

from bid_analysis.reconciliation.amounts import ZERO, format_money, share_of
from bid_analysis.reconciliation.config import ReconcileConfig, build_default_config
from bid_analysis.reconciliation.taxonomy import ObsoleteCode, Taxonomy, load_taxonomy
from bid_analysis.reconciliation.types import (
    ClassificationEntry,
    CostPoolItem,
    LineItem,
    MigrationResult,
    Provenance,
    Record,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# COMPOSITE SPLIT
# ═══════════════════════════════════════════════════════════════════════════════

def entry_text(entry: ClassificationEntry) -> str:
    """Lower-cased union of item and sub-item descriptions."""
    parts = [i.lower() for i in entry.items]
    parts.extend(s.description.lower() for s in entry.sub_items)
    return " ".join(parts)


def split_composite(
    entry: ClassificationEntry,
    obsolete: ObsoleteCode,
    taxonomy: Taxonomy,
    config: ReconcileConfig,
) -> list[ClassificationEntry]:
    """
    Split a composite entry into current-code entries.

    Items and sub-items go to the first matching family; whatever no family
    claims goes to the remainder code. Returns entries whose costs sum to
    exactly entry.cost.
    """
    text = entry_text(entry)
    note = f"Migrated from Division {obsolete.code} ({obsolete.name})"
    remaining = entry.cost
    unclaimed_items = list(entry.items)
    unclaimed_subs: list[LineItem] = list(entry.sub_items)
    parts: list[ClassificationEntry] = []

    for family in obsolete.families:
        if not family.matches(text):
            continue
        share: Decimal = getattr(config, family.share)
        amount = share_of(remaining, share)

        items = [i for i in unclaimed_items if family.matches(i)]
        subs = [s for s in unclaimed_subs if family.matches(s.description)]
        unclaimed_items = [i for i in unclaimed_items if i not in items]
        unclaimed_subs = [s for s in unclaimed_subs if s not in subs]

        parts.append(ClassificationEntry(
            code=family.code,
            cost=amount,
            items=items or [taxonomy.name_for(family.code).lower()],
            responsible_party=entry.responsible_party,
            sub_items=subs,
            scope_notes=note,
            provenance=[Provenance.create(
                rule_id="split_composite",
                description=f"{(share * 100).normalize():f}% of remaining Division {obsolete.code} cost by keyword match",
                source=obsolete.code,
                original=entry.cost,
                transformed=amount,
            )],
        ))
        remaining -= amount

    remainder = ClassificationEntry(
        code=obsolete.remainder,
        cost=remaining,
        items=unclaimed_items or list(obsolete.remainder_default_items) or [taxonomy.name_for(obsolete.remainder).lower()],
        responsible_party=entry.responsible_party,
        sub_items=unclaimed_subs,
        scope_notes=entry.scope_notes,
        provenance=[Provenance.create(
            rule_id="split_composite",
            description=f"Remainder of Division {obsolete.code} cost",
            source=obsolete.code,
            original=entry.cost,
            transformed=remaining,
        )],
    )
    if not parts:
        # Nothing split off, so unit pricing still describes the cost
        remainder.unit = entry.unit
        remainder.quantity = entry.quantity
        remainder.unit_cost = entry.unit_cost
    remainder.add_note(note)
    parts.append(remainder)
    return parts


def rename_entry(entry: ClassificationEntry, obsolete: ObsoleteCode) -> ClassificationEntry:
    """Move an entry to its obsolete code's target, keeping every field."""
    entry.code = obsolete.target
    entry.add_note(f"Migrated from Division {obsolete.code} ({obsolete.name})")
    entry.provenance.append(Provenance.create(
        rule_id="rename_obsolete",
        description=f"Division {obsolete.code} renamed to Division {obsolete.target}",
        source=obsolete.code,
        original=obsolete.code,
        transformed=obsolete.target,
    ))
    return entry


def _place(record: Record, entry: ClassificationEntry) -> None:
    existing = record.entries.get(entry.code)
    if existing is None:
        record.entries[entry.code] = entry
    else:
        logger.info(f"MIGRATE: Merging into existing Division {entry.code}")
        existing.absorb(entry)


# ═══════════════════════════════════════════════════════════════════════════════
# RECORD-LEVEL PASSES
# ═══════════════════════════════════════════════════════════════════════════════

def _reclassify_unknown(record: Record, taxonomy: Taxonomy) -> list[str]:
    """Move entries whose code the taxonomy does not know into the uncategorized pool."""
    moved = []
    for code in list(record.entries):
        if taxonomy.is_current(code):
            continue
        entry = record.entries.pop(code)
        record.uncategorized.items.append(CostPoolItem(
            description=f"Division {code}: {', '.join(entry.items)}",
            cost=entry.cost,
            kind="reclassified",
        ))
        record.uncategorized.total += entry.cost
        moved.append(code)
        logger.warning(f"MIGRATE: Unknown Division {code} moved to uncategorized ({format_money(entry.cost)})")
    return moved


def _update_parties(record: Record, taxonomy: Taxonomy, produced: dict[str, list[str]]) -> None:
    for party in record.parties:
        if not any(taxonomy.is_obsolete(c) for c in party.codes):
            continue
        codes: list[str] = []
        for code in party.codes:
            if taxonomy.is_obsolete(code):
                codes.extend(produced.get(code) or taxonomy.expansion(code))
            else:
                codes.append(code)
        party.codes = list(dict.fromkeys(codes))

        linked = record.linked_cost(party)
        if linked > ZERO:
            party.aggregate_amount = linked
        logger.info(f"MIGRATE: {party.name} divisions now {party.codes}")


def _backfill_parties(record: Record) -> None:
    for code, entry in record.entries.items():
        if entry.responsible_party:
            continue
        for party in record.parties:
            if code in party.codes:
                entry.responsible_party = party.name
                break


def migrate_with_report(
    record: Record,
    taxonomy: Optional[Taxonomy] = None,
    config: Optional[ReconcileConfig] = None,
) -> MigrationResult:
    """
    Migrate a record to the current taxonomy in place.

    Args:
        record: Record to migrate (mutated)
        taxonomy: Taxonomy table (default: load_taxonomy())
        config: Split shares (default: build_default_config())

    Returns:
        MigrationResult describing what changed
    """
    taxonomy = taxonomy or load_taxonomy()
    config = config or build_default_config()

    migrations: list[str] = []
    provenance: list[Provenance] = []
    produced: dict[str, list[str]] = {}
    original_cost = ZERO
    migrated_cost = ZERO

    for code, obsolete in taxonomy.obsolete.items():
        entry = record.entries.pop(code, None)
        if entry is None:
            continue
        original_cost += entry.cost

        if obsolete.kind == "composite":
            parts = split_composite(entry, obsolete, taxonomy, config)
            migrations.append(
                f"Division {code} ({obsolete.name}) → Split into {', '.join(p.code for p in parts)}"
            )
        else:
            parts = [rename_entry(entry, obsolete)]
            migrations.append(
                f"Division {code} ({obsolete.name}) → Division {obsolete.target}"
            )

        for part in parts:
            provenance.extend(part.provenance)
            migrated_cost += part.cost
            _place(record, part)
        produced[code] = [p.code for p in parts]

    reclassified = _reclassify_unknown(record, taxonomy)
    _update_parties(record, taxonomy, produced)
    _backfill_parties(record)

    if migrations:
        logger.info(f"MIGRATE: Applied {migrations}")
        logger.info(f"MIGRATE: Cost {format_money(original_cost)} → {format_money(migrated_cost)}")
    else:
        logger.info(f"MIGRATE: {taxonomy.version} compliance validated - no migration needed")

    return MigrationResult(
        migrations=migrations,
        original_cost=original_cost,
        migrated_cost=migrated_cost,
        reclassified=reclassified,
        provenance=provenance,
    )


def migrate(
    record: Record,
    taxonomy: Optional[Taxonomy] = None,
    config: Optional[ReconcileConfig] = None,
) -> Record:
    """Migrate in place and return the same record."""
    migrate_with_report(record, taxonomy, config)
    return record
