"""
Type definitions for the bid reconciliation engine.

The Record is the aggregate root: one per incoming raw text, mutated in
place by the migrator and reconciler, then read (never written) by the
auditor. DiagnosticReport is a plain value returned alongside it.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
import hashlib

from bid_analysis.reconciliation.amounts import ZERO, json_number


# ═══════════════════════════════════════════════════════════════════════════════
# PROVENANCE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class Provenance:
    """
    Provenance note for a migrated or synthesized field.

    Attached to the entry it describes so downstream readers can tell
    generator data apart from data the engine produced.
    """
    rule_id: str
    description: str
    source: str
    original_value_snippet: str
    transformed_value_snippet: str
    proof_token: str

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "description": self.description,
            "source": self.source,
            "original_value_snippet": self.original_value_snippet,
            "transformed_value_snippet": self.transformed_value_snippet,
            "proof_token": self.proof_token,
        }

    @staticmethod
    def create(
        rule_id: str,
        description: str,
        source: str,
        original: Any,
        transformed: Any,
    ) -> "Provenance":
        """Factory method with a deterministic proof token."""
        original_str = str(original)[:100]
        transformed_str = str(transformed)[:100]

        proof_data = f"{original_str}|{transformed_str}|{rule_id}|{source}"
        proof_token = hashlib.sha256(proof_data.encode()).hexdigest()[:16]

        return Provenance(
            rule_id=rule_id,
            description=description,
            source=source,
            original_value_snippet=original_str,
            transformed_value_snippet=transformed_str,
            proof_token=proof_token,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# COST RECORD
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class LineItem:
    """A priced sub-item of a classification entry."""
    description: str
    cost: Decimal
    unit: Optional[str] = None
    quantity: Optional[Decimal] = None
    unit_cost: Optional[Decimal] = None
    subcontractor: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        d = {"description": self.description, "cost": json_number(self.cost)}
        if self.unit is not None:
            d["unit"] = self.unit
        if self.quantity is not None:
            d["quantity"] = json_number(self.quantity)
        if self.unit_cost is not None:
            d["unit_cost"] = json_number(self.unit_cost)
        if self.subcontractor is not None:
            d["subcontractor"] = self.subcontractor
        if self.notes is not None:
            d["notes"] = self.notes
        return d


@dataclass
class ClassificationEntry:
    """Cost bucket for one classification code."""
    code: str
    cost: Decimal
    items: list[str]
    responsible_party: Optional[str] = None
    sub_items: list[LineItem] = field(default_factory=list)
    unit: Optional[str] = None
    quantity: Optional[Decimal] = None
    unit_cost: Optional[Decimal] = None
    scope_notes: Optional[str] = None
    provenance: list[Provenance] = field(default_factory=list)

    def absorb(self, other: "ClassificationEntry") -> None:
        """Merge another entry for the same code into this one, keeping both costs."""
        if self.cost > ZERO and other.cost > ZERO:
            # Unit pricing no longer describes the combined cost
            self.unit_cost = None
            self.quantity = None
            self.unit = None
        elif other.cost > ZERO:
            self.unit_cost = other.unit_cost
            self.quantity = other.quantity
            self.unit = other.unit
        self.cost += other.cost
        self.items.extend(i for i in other.items if i not in self.items)
        self.sub_items.extend(other.sub_items)
        self.provenance.extend(other.provenance)
        if self.responsible_party is None:
            self.responsible_party = other.responsible_party

    def add_note(self, note: str) -> None:
        """Append a provenance note to scope_notes."""
        if self.scope_notes:
            self.scope_notes = f"{self.scope_notes} ({note})"
        else:
            self.scope_notes = note

    def to_dict(self) -> dict:
        d = {
            "cost": json_number(self.cost),
            "items": list(self.items),
        }
        if self.unit_cost is not None:
            d["unit_cost"] = json_number(self.unit_cost)
        if self.quantity is not None:
            d["quantity"] = json_number(self.quantity)
        if self.unit is not None:
            d["unit"] = self.unit
        if self.sub_items:
            d["sub_items"] = [s.to_dict() for s in self.sub_items]
        if self.responsible_party is not None:
            d["subcontractor"] = self.responsible_party
        if self.scope_notes is not None:
            d["scope_notes"] = self.scope_notes
        if self.provenance:
            d["provenance"] = [p.to_dict() for p in self.provenance]
        return d


@dataclass
class ResponsibleParty:
    """Subcontractor or trade firm carrying one or more classification codes."""
    name: str
    trade: str
    codes: list[str]
    aggregate_amount: Decimal
    scope_description: Optional[str] = None

    def to_dict(self) -> dict:
        d = {
            "name": self.name,
            "trade": self.trade,
            "divisions": list(self.codes),
            "total_amount": json_number(self.aggregate_amount),
        }
        if self.scope_description is not None:
            d["scope_description"] = self.scope_description
        return d


@dataclass
class CostPoolItem:
    description: str
    cost: Decimal
    kind: Optional[str] = None


@dataclass
class CostPool:
    """Named total not tied to a classification code (overhead, allowances, uncategorized)."""
    name: str
    total: Decimal = ZERO
    items: list[CostPoolItem] = field(default_factory=list)

    def itemized_total(self) -> Decimal:
        return sum((i.cost for i in self.items), ZERO)


@dataclass
class Record:
    """
    Aggregate root for one analysed cost breakdown.

    `entries` has map semantics: one ClassificationEntry per code.
    Unknown top-level fields from the generator are kept in `extras`.
    """
    source_name: str
    target_total: Decimal
    entries: dict[str, ClassificationEntry] = field(default_factory=dict)
    parties: list[ResponsibleParty] = field(default_factory=list)
    overhead: CostPool = field(default_factory=lambda: CostPool("overhead"))
    allowances: CostPool = field(default_factory=lambda: CostPool("allowances"))
    uncategorized: CostPool = field(default_factory=lambda: CostPool("uncategorized"))
    coverage_percentage: float = 0.0
    extras: dict[str, Any] = field(default_factory=dict)

    def classification_total(self) -> Decimal:
        return sum((e.cost for e in self.entries.values()), ZERO)

    def aux_total(self) -> Decimal:
        return self.overhead.total + self.allowances.total + self.uncategorized.total

    def accounted_total(self) -> Decimal:
        return self.classification_total() + self.aux_total()

    def linked_cost(self, party: ResponsibleParty) -> Decimal:
        """Sum of positive entry costs for the codes a party is responsible for."""
        total = ZERO
        for code in dict.fromkeys(party.codes):
            entry = self.entries.get(code)
            if entry is not None and entry.cost > ZERO:
                total += entry.cost
        return total

    def to_dict(self) -> dict:
        d = dict(self.extras)
        d.update({
            "contractor_name": self.source_name,
            "total_amount": json_number(self.target_total),
            "csi_divisions": {code: e.to_dict() for code, e in self.entries.items()},
            "subcontractors": [p.to_dict() for p in self.parties],
            "project_overhead": self._overhead_dict(),
            "allowances": [
                {
                    "description": i.description,
                    "amount": json_number(i.cost),
                    "type": i.kind or "allowance",
                }
                for i in self.allowances.items
            ],
            "allowances_total": json_number(self.allowances.total),
            "uncategorizedCosts": [
                {"description": i.description, "cost": json_number(i.cost)}
                for i in self.uncategorized.items
            ],
            "uncategorizedTotal": json_number(self.uncategorized.total),
            "categorizationPercentage": self.coverage_percentage,
        })
        return d

    def _overhead_dict(self) -> dict:
        d = {i.description: json_number(i.cost) for i in self.overhead.items}
        d["total_overhead"] = json_number(self.overhead.total)
        return d


# ═══════════════════════════════════════════════════════════════════════════════
# DIAGNOSTICS
# ═══════════════════════════════════════════════════════════════════════════════

class Severity(Enum):
    INFO = "info"
    WARNING = "warning"


@dataclass
class Diagnostic:
    """A single finding: what was noticed and why it matters."""
    severity: Severity
    kind: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "kind": self.kind,
            "message": self.message,
            "context": self.context,
        }


@dataclass
class DiagnosticReport:
    """
    Coverage metrics plus the findings of a stage.

    Value object: holds no reference to the Record it describes.
    """
    classification_coverage: Optional[float] = None
    total_coverage: Optional[float] = None
    uncategorized_percentage: Optional[float] = None
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def add(self, severity: Severity, kind: str, message: str, **context: Any) -> Diagnostic:
        diagnostic = Diagnostic(severity=severity, kind=kind, message=message, context=context)
        self.diagnostics.append(diagnostic)
        return diagnostic

    def info(self, kind: str, message: str, **context: Any) -> Diagnostic:
        return self.add(Severity.INFO, kind, message, **context)

    def warning(self, kind: str, message: str, **context: Any) -> Diagnostic:
        return self.add(Severity.WARNING, kind, message, **context)

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    def kinds(self) -> list[str]:
        return [d.kind for d in self.diagnostics]

    def merge(self, other: "DiagnosticReport") -> "DiagnosticReport":
        """New report with other's findings appended; other's metrics win when set."""
        return DiagnosticReport(
            classification_coverage=(
                other.classification_coverage
                if other.classification_coverage is not None
                else self.classification_coverage
            ),
            total_coverage=(
                other.total_coverage if other.total_coverage is not None else self.total_coverage
            ),
            uncategorized_percentage=(
                other.uncategorized_percentage
                if other.uncategorized_percentage is not None
                else self.uncategorized_percentage
            ),
            diagnostics=self.diagnostics + other.diagnostics,
        )

    def to_dict(self) -> dict:
        return {
            "classification_coverage": self.classification_coverage,
            "total_coverage": self.total_coverage,
            "uncategorized_percentage": self.uncategorized_percentage,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


# ═══════════════════════════════════════════════════════════════════════════════
# STAGE RESULTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class SanitizeResult:
    """Valid JSON text plus the strategy that produced it."""
    text: str
    strategy: str
    attempted: list[str]


@dataclass
class MigrationResult:
    """What the classification migrator changed."""
    migrations: list[str]
    original_cost: Decimal
    migrated_cost: Decimal
    reclassified: list[str]
    provenance: list[Provenance]

    def to_dict(self) -> dict:
        return {
            "migrations": self.migrations,
            "original_cost": json_number(self.original_cost),
            "migrated_cost": json_number(self.migrated_cost),
            "reclassified": self.reclassified,
            "provenance": [p.to_dict() for p in self.provenance],
        }


@dataclass
class PipelineResult:
    """
    Final result of the analysis pipeline.

    The record is always fully populated; the report says how far to trust it.
    """
    record: Record
    report: DiagnosticReport
    sanitize_strategy: str
    migration: MigrationResult

    def to_dict(self) -> dict:
        return {
            "record": self.record.to_dict(),
            "report": self.report.to_dict(),
            "sanitize_strategy": self.sanitize_strategy,
            "migration": self.migration.to_dict(),
        }
