"""
Repair and reconciliation engine for generated bid cost breakdowns.

Pipeline: raw text → sanitize → parse → migrate → reconcile → audit

GUARANTEES:
1. Output is a fully populated record or a ParseFailure / ValidationError
2. Quoted content is never altered by syntax repair
3. Migration conserves cost exactly
4. Migrated and synthesized entries carry provenance
"""
from bid_analysis.reconciliation.types import (
    ClassificationEntry,
    CostPool,
    CostPoolItem,
    Diagnostic,
    DiagnosticReport,
    LineItem,
    MigrationResult,
    PipelineResult,
    Provenance,
    Record,
    ResponsibleParty,
    SanitizeResult,
    Severity,
)
from bid_analysis.reconciliation.errors import (
    ReconcileError,
    ParseFailure,
    ValidationError,
)
from bid_analysis.reconciliation.config import ReconcileConfig, build_default_config
from bid_analysis.reconciliation.taxonomy import Taxonomy, load_taxonomy, normalize_code
from bid_analysis.reconciliation.masking import mask, unmask
from bid_analysis.reconciliation.repair import repair_structure
from bid_analysis.reconciliation.sanitizer import extract_candidate, load_object, sanitize
from bid_analysis.reconciliation.parser import parse_record
from bid_analysis.reconciliation.migrator import migrate, migrate_with_report
from bid_analysis.reconciliation.reconciler import reconcile
from bid_analysis.reconciliation.audit import audit, log_report
from bid_analysis.reconciliation.pipeline import AnalysisPipeline, analyze

__all__ = [
    "AnalysisPipeline",
    "analyze",
    "mask",
    "unmask",
    "repair_structure",
    "extract_candidate",
    "sanitize",
    "load_object",
    "parse_record",
    "migrate",
    "migrate_with_report",
    "reconcile",
    "audit",
    "log_report",
    "ReconcileConfig",
    "build_default_config",
    "Taxonomy",
    "load_taxonomy",
    "normalize_code",
    "ClassificationEntry",
    "CostPool",
    "CostPoolItem",
    "Diagnostic",
    "DiagnosticReport",
    "LineItem",
    "MigrationResult",
    "PipelineResult",
    "Provenance",
    "Record",
    "ResponsibleParty",
    "SanitizeResult",
    "Severity",
    "ReconcileError",
    "ParseFailure",
    "ValidationError",
]
