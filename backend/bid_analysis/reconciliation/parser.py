"""
Parser — the deserialization boundary.

parse_record(data: dict, taxonomy) -> Record

Turns the generator's loosely-typed object into a Record. Mandatory
fields (contractor_name, total_amount) raise ValidationError; everything
else is coerced where possible and noted in the report where not.
"""
import logging
from decimal import Decimal
from typing import Any, Optional

from bid_analysis.reconciliation.amounts import ZERO, plain_json, to_decimal
from bid_analysis.reconciliation.errors import ValidationError
from bid_analysis.reconciliation.taxonomy import Taxonomy, normalize_code
from bid_analysis.reconciliation.types import (
    ClassificationEntry,
    CostPool,
    CostPoolItem,
    DiagnosticReport,
    LineItem,
    Record,
    ResponsibleParty,
)

logger = logging.getLogger(__name__)

KNOWN_KEYS = frozenset({
    "contractor_name",
    "total_amount",
    "csi_divisions",
    "subcontractors",
    "project_overhead",
    "allowances",
    "allowances_total",
    "uncategorizedCosts",
    "uncategorizedTotal",
    "categorizationPercentage",
})


# ═══════════════════════════════════════════════════════════════════════════════
# FIELD COERCION
# ═══════════════════════════════════════════════════════════════════════════════

def _amount(value: Any, path: str, report: DiagnosticReport) -> Decimal:
    """Non-negative amount; unparseable or negative values become 0 and are noted."""
    if value is None:
        return ZERO
    amount = to_decimal(value)
    if amount is None:
        report.info("parse_amount", f"Unreadable amount at {path} treated as 0", path=path, value=str(value)[:50])
        return ZERO
    if amount < ZERO:
        report.info("parse_amount", f"Negative amount at {path} treated as 0", path=path, value=str(value)[:50])
        return ZERO
    return amount


def _optional_amount(value: Any) -> Optional[Decimal]:
    amount = to_decimal(value)
    if amount is None or amount < ZERO:
        return None
    return amount


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _text_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


# ═══════════════════════════════════════════════════════════════════════════════
# SECTIONS
# ═══════════════════════════════════════════════════════════════════════════════

def _parse_line_item(raw: dict, path: str, report: DiagnosticReport) -> LineItem:
    return LineItem(
        description=_optional_text(raw.get("description")) or "",
        cost=_amount(raw.get("cost"), f"{path}.cost", report),
        unit=_optional_text(raw.get("unit")),
        quantity=_optional_amount(raw.get("quantity")),
        unit_cost=_optional_amount(raw.get("unit_cost")),
        subcontractor=_optional_text(raw.get("subcontractor")),
        notes=_optional_text(raw.get("notes")),
    )


def _parse_entry(code: str, raw: Any, taxonomy: Taxonomy, report: DiagnosticReport) -> Optional[ClassificationEntry]:
    path = f"csi_divisions.{code}"
    default_items = [taxonomy.name_for(code).lower()]

    # A bare number is a cost with no detail
    if not isinstance(raw, dict):
        if to_decimal(raw) is None:
            report.warning("parse_entry", f"Dropped unreadable entry at {path}", path=path, value=str(raw)[:50])
            return None
        return ClassificationEntry(code=code, cost=_amount(raw, path, report), items=default_items)

    sub_items = [
        _parse_line_item(s, f"{path}.sub_items[{i}]", report)
        for i, s in enumerate(raw.get("sub_items") or [])
        if isinstance(s, dict)
    ]
    return ClassificationEntry(
        code=code,
        cost=_amount(raw.get("cost"), f"{path}.cost", report),
        items=_text_list(raw.get("items")) or default_items,
        responsible_party=_optional_text(raw.get("subcontractor")),
        sub_items=sub_items,
        unit=_optional_text(raw.get("unit")),
        quantity=_optional_amount(raw.get("quantity")),
        unit_cost=_optional_amount(raw.get("unit_cost")),
        scope_notes=_optional_text(raw.get("scope_notes")),
    )


def _parse_entries(raw: Any, taxonomy: Taxonomy, report: DiagnosticReport) -> dict[str, ClassificationEntry]:
    entries: dict[str, ClassificationEntry] = {}
    for raw_code, raw_entry in raw.items():
        code = normalize_code(raw_code)
        entry = _parse_entry(code, raw_entry, taxonomy, report)
        if entry is None:
            continue
        if code in entries:
            report.info(
                "parse_duplicate_code",
                f"Merged duplicate entries for code {code}",
                code=code,
                raw_code=str(raw_code),
            )
            entries[code].absorb(entry)
        else:
            entries[code] = entry
    return entries


def _parse_parties(raw: Any, report: DiagnosticReport) -> list[ResponsibleParty]:
    if not isinstance(raw, list):
        return []
    parties = []
    for i, item in enumerate(raw):
        path = f"subcontractors[{i}]"
        if not isinstance(item, dict):
            continue
        name = _optional_text(item.get("name"))
        codes = list(dict.fromkeys(normalize_code(c) for c in _text_list(item.get("divisions"))))
        if not name or not codes:
            report.warning(
                "parse_party",
                f"Dropped subcontractor at {path} without a name or divisions",
                path=path,
                name=name,
            )
            continue
        parties.append(ResponsibleParty(
            name=name,
            trade=_optional_text(item.get("trade")) or "",
            codes=codes,
            aggregate_amount=_amount(item.get("total_amount"), f"{path}.total_amount", report),
            scope_description=_optional_text(item.get("scope_description")),
        ))
    return parties


def _parse_overhead(raw: Any, report: DiagnosticReport) -> CostPool:
    pool = CostPool("overhead")
    if raw is None:
        return pool
    if not isinstance(raw, dict):
        pool.total = _amount(raw, "project_overhead", report)
        return pool
    for key, value in raw.items():
        if key == "total_overhead":
            continue
        amount = to_decimal(value)
        if amount is not None and amount > ZERO:
            pool.items.append(CostPoolItem(description=str(key), cost=amount))
    if raw.get("total_overhead") is not None:
        pool.total = _amount(raw.get("total_overhead"), "project_overhead.total_overhead", report)
    else:
        pool.total = pool.itemized_total()
    return pool


def _parse_itemized_pool(
    name: str,
    raw_items: Any,
    raw_total: Any,
    amount_key: str,
    path: str,
    report: DiagnosticReport,
) -> CostPool:
    pool = CostPool(name)
    if isinstance(raw_items, list):
        for i, item in enumerate(raw_items):
            if not isinstance(item, dict):
                continue
            pool.items.append(CostPoolItem(
                description=_optional_text(item.get("description")) or "",
                cost=_amount(item.get(amount_key), f"{path}[{i}].{amount_key}", report),
                kind=_optional_text(item.get("type")),
            ))
    if raw_total is not None:
        pool.total = _amount(raw_total, f"{path}_total", report)
    else:
        pool.total = pool.itemized_total()
    return pool


# ═══════════════════════════════════════════════════════════════════════════════
# ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════════

def validate_required(data: dict) -> tuple[str, Decimal]:
    """
    Check the fields nothing else can be derived from.

    Raises:
        ValidationError: If contractor_name or a positive total_amount is missing
    """
    missing: list[str] = []
    invalid: dict[str, Any] = {}

    name = _optional_text(data.get("contractor_name"))
    if name is None:
        missing.append("contractor_name")

    raw_total = data.get("total_amount")
    total = to_decimal(raw_total)
    if raw_total is None:
        missing.append("total_amount")
    elif total is None or total <= ZERO:
        invalid["total_amount"] = raw_total

    raw_entries = data.get("csi_divisions")
    if raw_entries is not None and not isinstance(raw_entries, dict):
        invalid["csi_divisions"] = raw_entries

    if missing or invalid:
        problems = missing + list(invalid)
        raise ValidationError(
            f"Missing or invalid required fields in analysis result: {', '.join(problems)}",
            missing_fields=missing,
            invalid_fields=invalid,
        )
    return name, total


def parse_record(
    data: dict,
    taxonomy: Taxonomy,
    report: Optional[DiagnosticReport] = None,
) -> Record:
    """
    Build a Record from parsed generator output.

    Args:
        data: Parsed JSON object
        taxonomy: Taxonomy used for code defaults
        report: Optional report collecting parse notes

    Returns:
        Record ready for migration

    Raises:
        ValidationError: If a mandatory field is missing or malformed
    """
    report = report if report is not None else DiagnosticReport()
    name, total = validate_required(data)

    record = Record(
        source_name=name,
        target_total=total,
        entries=_parse_entries(data.get("csi_divisions") or {}, taxonomy, report),
        parties=_parse_parties(data.get("subcontractors"), report),
        overhead=_parse_overhead(data.get("project_overhead"), report),
        allowances=_parse_itemized_pool(
            "allowances",
            data.get("allowances"),
            data.get("allowances_total"),
            "amount",
            "allowances",
            report,
        ),
        uncategorized=_parse_itemized_pool(
            "uncategorized",
            data.get("uncategorizedCosts"),
            data.get("uncategorizedTotal"),
            "cost",
            "uncategorizedCosts",
            report,
        ),
        extras={k: plain_json(v) for k, v in data.items() if k not in KNOWN_KEYS},
    )
    logger.info(
        f"PARSE: {record.source_name} - {len(record.entries)} entries, "
        f"{len(record.parties)} subcontractors, total {record.target_total}"
    )
    return record
