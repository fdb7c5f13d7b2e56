"""
Pipeline — raw generator text to a reconciled cost breakdown.

raw text → extract → sanitize → parse → migrate → reconcile → audit

This is the main entry point for the reconciliation engine.

Two outcomes only: a PipelineResult carrying a fully populated record
plus its diagnostic report, or a ParseFailure / ValidationError. Every
other problem is a diagnostic.
"""
import logging
from typing import Optional

from bid_analysis.reconciliation.audit import audit, log_report
from bid_analysis.reconciliation.config import ReconcileConfig, build_default_config
from bid_analysis.reconciliation.migrator import migrate_with_report
from bid_analysis.reconciliation.parser import parse_record
from bid_analysis.reconciliation.reconciler import reconcile
from bid_analysis.reconciliation.sanitizer import load_object
from bid_analysis.reconciliation.taxonomy import Taxonomy, load_taxonomy
from bid_analysis.reconciliation.types import DiagnosticReport, PipelineResult

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# PIPELINE CLASS
# ═══════════════════════════════════════════════════════════════════════════════

class AnalysisPipeline:
    """
    Complete repair-and-reconciliation pipeline.

    Usage:
        pipeline = AnalysisPipeline()
        result = pipeline.process(llm_text)

        result.record.to_dict()   # reconciled breakdown
        result.report.warnings    # what to review

    Stateless between calls; one instance may serve concurrent callers.
    """

    def __init__(
        self,
        config: Optional[ReconcileConfig] = None,
        taxonomy: Optional[Taxonomy] = None,
        log_diagnostics: bool = True,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Thresholds and split shares (default: from environment)
            taxonomy: Classification table (default: bundled taxonomy.yaml)
            log_diagnostics: Write the final report to logging after each run
        """
        self.config = config or build_default_config()
        self.taxonomy = taxonomy or load_taxonomy()
        self.log_diagnostics = log_diagnostics

    def process(self, raw_text: str) -> PipelineResult:
        """
        Process generator output through every stage.

        Pipeline stages:
        1. SANITIZE - Extract the object and repair its syntax
        2. PARSE - Build a Record, checking mandatory fields
        3. MIGRATE - Rewrite obsolete classification codes
        4. RECONCILE - Fill gaps from subcontractor data, flag discrepancies
        5. AUDIT - Coverage metrics and traceability

        Args:
            raw_text: Free-form generator output containing one JSON object

        Returns:
            PipelineResult with the record and merged diagnostics

        Raises:
            ParseFailure: If no JSON object can be recovered
            ValidationError: If contractor_name or total_amount is missing
        """
        # ═══════════════════════════════════════════════════════════════
        # STAGE 1: SANITIZE
        # ═══════════════════════════════════════════════════════════════
        logger.info("PIPELINE: Stage 1 - Sanitize")
        data, sanitized = load_object(raw_text, self.config)

        # ═══════════════════════════════════════════════════════════════
        # STAGE 2: PARSE
        # ═══════════════════════════════════════════════════════════════
        parse_report = DiagnosticReport()
        record = parse_record(data, self.taxonomy, parse_report)
        source = record.source_name
        logger.info(f"PIPELINE [{source}]: Stage 2 - Parsed ({sanitized.strategy})")

        # ═══════════════════════════════════════════════════════════════
        # STAGE 3: MIGRATE
        # ═══════════════════════════════════════════════════════════════
        logger.info(f"PIPELINE [{source}]: Stage 3 - Migrate")
        migration = migrate_with_report(record, self.taxonomy, self.config)
        for code in migration.reclassified:
            parse_report.info(
                "reclassified_code",
                f"Division {code} is not in {self.taxonomy.version}; moved to uncategorized",
                code=code,
            )

        # ═══════════════════════════════════════════════════════════════
        # STAGE 4: RECONCILE
        # ═══════════════════════════════════════════════════════════════
        logger.info(f"PIPELINE [{source}]: Stage 4 - Reconcile")
        record, reconcile_report = reconcile(record, self.taxonomy, self.config)

        # ═══════════════════════════════════════════════════════════════
        # STAGE 5: AUDIT
        # ═══════════════════════════════════════════════════════════════
        logger.info(f"PIPELINE [{source}]: Stage 5 - Audit")
        audit_report = audit(record, self.config, self.taxonomy)

        report = parse_report.merge(reconcile_report).merge(audit_report)
        logger.info(
            f"PIPELINE [{source}]: Complete - "
            f"coverage={report.total_coverage}%, warnings={len(report.warnings)}"
        )
        if self.log_diagnostics:
            log_report(report, source_name=source)

        return PipelineResult(
            record=record,
            report=report,
            sanitize_strategy=sanitized.strategy,
            migration=migration,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# CONVENIENCE FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════════════

def analyze(
    raw_text: str,
    config: Optional[ReconcileConfig] = None,
    taxonomy: Optional[Taxonomy] = None,
) -> PipelineResult:
    """
    Run the full pipeline once.

    Convenience function for single-shot use.
    """
    return AnalysisPipeline(config=config, taxonomy=taxonomy).process(raw_text)
