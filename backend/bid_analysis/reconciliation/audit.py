"""
Audit — completeness metrics and report sinks.

audit(record) -> DiagnosticReport

Read-only pass over the final record: recomputes coverage, flags low
coverage and a large uncategorized share, and writes one traceability
line per classification code and per uncategorized item.

Reports are delivered to sinks:
- LoggingReportSink: Python logging (default)
- MemoryReportSink: in-memory, for tests
"""
import logging
import threading
from typing import Optional

from bid_analysis.reconciliation.amounts import ZERO, clamp_percent, format_money, percent_of
from bid_analysis.reconciliation.config import ReconcileConfig, build_default_config
from bid_analysis.reconciliation.taxonomy import Taxonomy, load_taxonomy
from bid_analysis.reconciliation.types import DiagnosticReport, Record, Severity

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# COMPLETENESS AUDIT
# ═══════════════════════════════════════════════════════════════════════════════

def _item_summary(items: list[str], limit: int = 3) -> str:
    summary = ", ".join(items[:limit])
    if len(items) > limit:
        summary += f" (+{len(items) - limit} more)"
    return summary


def audit(
    record: Record,
    config: Optional[ReconcileConfig] = None,
    taxonomy: Optional[Taxonomy] = None,
) -> DiagnosticReport:
    """
    Compute coverage metrics and threshold diagnostics for a record.

    Never mutates the record and never raises: a non-positive target
    total yields zero coverage and a warning.

    Args:
        record: Reconciled record
        config: Audit thresholds (default: build_default_config())
        taxonomy: Used for code names in trace lines (default: load_taxonomy())

    Returns:
        DiagnosticReport with classification/total coverage and findings
    """
    config = config or build_default_config()
    taxonomy = taxonomy or load_taxonomy()
    report = DiagnosticReport()
    target = record.target_total

    classification_total = record.classification_total()
    accounted = record.accounted_total()
    uncategorized = record.uncategorized.total

    report.classification_coverage = percent_of(classification_total, target)
    report.total_coverage = clamp_percent(percent_of(accounted, target))
    report.uncategorized_percentage = percent_of(uncategorized, target)

    if target <= ZERO:
        report.warning(
            "invalid_target_total",
            f"Target total {format_money(target)} is not positive; coverage cannot be computed",
            target_total=float(target),
        )

    logger.info(f"AUDIT: {record.source_name} - target {format_money(target)}")
    logger.info(
        f"AUDIT: classification {format_money(classification_total)} "
        f"({report.classification_coverage:.1f}%), accounted {format_money(accounted)} "
        f"({report.total_coverage:.1f}%)"
    )

    if report.total_coverage < config.min_total_coverage:
        report.warning(
            "low_total_coverage",
            f"Analysis accounts for only {report.total_coverage:.1f}% of the total cost "
            f"({format_money(accounted)} of {format_money(target)})",
            total_coverage=report.total_coverage,
            threshold=config.min_total_coverage,
        )

    if report.classification_coverage < config.min_classification_coverage:
        report.warning(
            "low_classification_coverage",
            f"Only {report.classification_coverage:.1f}% of the total cost is assigned "
            f"to classification codes",
            classification_coverage=report.classification_coverage,
            threshold=config.min_classification_coverage,
        )

    if target > ZERO and uncategorized / target > config.audit_uncategorized_threshold:
        report.warning(
            "high_uncategorized",
            f"High uncategorized costs ({report.uncategorized_percentage:.1f}%) "
            f"may indicate incomplete classification",
            uncategorized_percentage=report.uncategorized_percentage,
            threshold=float(config.audit_uncategorized_threshold),
        )

    for code in sorted(record.entries):
        entry = record.entries[code]
        share = percent_of(entry.cost, target)
        report.info(
            "code_summary",
            f"Division {code} ({taxonomy.name_for(code)}): {format_money(entry.cost)} "
            f"({share:.1f}%) - {_item_summary(entry.items)}",
            code=code,
            cost=float(entry.cost),
            percentage=share,
        )

    for item in record.uncategorized.items:
        share = percent_of(item.cost, target)
        report.info(
            "uncategorized_item",
            f"Uncategorized: {item.description}: {format_money(item.cost)} ({share:.1f}%)",
            description=item.description,
            cost=float(item.cost),
            percentage=share,
        )

    return report


# ═══════════════════════════════════════════════════════════════════════════════
# REPORT SINKS
# ═══════════════════════════════════════════════════════════════════════════════

class ReportSink:
    """Abstract interface for report sinks."""

    def write_report(self, source_name: str, report: DiagnosticReport) -> None:
        raise NotImplementedError


class LoggingReportSink(ReportSink):
    """Report sink that writes to Python logging."""

    def __init__(self, logger_name: str = "bid_analysis.audit"):
        self.logger = logging.getLogger(logger_name)

    def write_report(self, source_name: str, report: DiagnosticReport) -> None:
        self.logger.info(
            "AUDIT: %s classification=%s%% total=%s%% warnings=%d",
            source_name,
            report.classification_coverage,
            report.total_coverage,
            len(report.warnings),
        )
        for d in report.diagnostics:
            level = logging.WARNING if d.severity == Severity.WARNING else logging.INFO
            self.logger.log(level, "  %s: %s", d.kind, d.message)


class MemoryReportSink(ReportSink):
    """In-memory report sink for testing."""

    def __init__(self):
        self.reports: list[tuple[str, DiagnosticReport]] = []
        self._lock = threading.Lock()

    def write_report(self, source_name: str, report: DiagnosticReport) -> None:
        with self._lock:
            self.reports.append((source_name, report))

    def clear(self) -> None:
        with self._lock:
            self.reports.clear()


def log_report(
    report: DiagnosticReport,
    logger_name: str = "bid_analysis.audit",
    source_name: str = "",
) -> None:
    """Write a report to Python logging at INFO / WARNING per diagnostic."""
    LoggingReportSink(logger_name).write_report(source_name, report)
