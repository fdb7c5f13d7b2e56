"""
Sanitizer — turn near-valid generator output into strict JSON.

extract_candidate(raw_text) -> str
sanitize(candidate) -> str
load_object(raw_text) -> (dict, SanitizeResult)

Strategies, in order, stopping at the first that parses:
1. passthrough          — already valid, returned byte-identical
2. trailing_separator   — trim and drop ",}" / ",]"
3. structural_repair    — mask literals, insert missing separators, unmask
Anything still invalid raises ParseFailure with a window around the
offending offset.

Every rewrite runs on masked text, so quoted content is never touched.
"""
import json
import logging
import re
from decimal import Decimal
from typing import Optional

from bid_analysis.reconciliation.config import ReconcileConfig, build_default_config
from bid_analysis.reconciliation.errors import ParseFailure
from bid_analysis.reconciliation.masking import mask, unmask
from bid_analysis.reconciliation.repair import count_repairs, repair_structure
from bid_analysis.reconciliation.types import SanitizeResult

logger = logging.getLogger(__name__)

_OBJECT_CANDIDATE = re.compile(r"\{[\s\S]*\}")
_TRAILING_SEPARATOR = re.compile(r",(\s*[}\]])")


# ═══════════════════════════════════════════════════════════════════════════════
# EXTRACTION
# ═══════════════════════════════════════════════════════════════════════════════

def extract_candidate(raw_text: str) -> str:
    """
    Take the largest brace-delimited span out of free-form text.

    Prose and Markdown code fences before the first "{" and after the
    last "}" are dropped. The span itself is returned untouched.
    """
    text = raw_text or ""
    match = _OBJECT_CANDIDATE.search(text)
    if not match:
        raise ParseFailure(
            "No JSON object found in generator output",
            context=text[:200],
        )
    return match.group(0)


# ═══════════════════════════════════════════════════════════════════════════════
# STRATEGIES
# ═══════════════════════════════════════════════════════════════════════════════

def _try_parse(text: str) -> Optional[json.JSONDecodeError]:
    # strict=False: raw newlines and tabs inside literals are accepted as-is
    try:
        json.loads(text, strict=False)
        return None
    except json.JSONDecodeError as e:
        return e


def strip_trailing_separators(text: str) -> str:
    """Trim and remove separators directly before a closing delimiter."""
    masked = mask(text.strip())
    stripped = _TRAILING_SEPARATOR.sub(r"\1", masked.masked)
    return unmask(stripped, masked.literals)


def repair_separators(text: str) -> str:
    """Insert missing separators between sibling values, outside literals."""
    masked = mask(text)
    counts = count_repairs(masked.masked)
    logger.debug(f"SANITIZE: Structural repair insertions {counts}")
    return unmask(repair_structure(masked.masked), masked.literals)


def _failure_context(text: str, position: Optional[int], window: int) -> str:
    if position is None:
        return text[: window * 2]
    start = max(0, position - window)
    return text[start: position + window]


# ═══════════════════════════════════════════════════════════════════════════════
# ORCHESTRATION
# ═══════════════════════════════════════════════════════════════════════════════

def sanitize_with_report(
    candidate: str,
    config: Optional[ReconcileConfig] = None,
) -> SanitizeResult:
    """
    Run the repair strategies in order and report which one succeeded.

    Raises:
        ParseFailure: If no strategy yields valid JSON
    """
    config = config or build_default_config()
    attempted = ["passthrough"]

    if _try_parse(candidate) is None:
        logger.debug("SANITIZE: JSON already valid, no sanitization needed")
        return SanitizeResult(text=candidate, strategy="passthrough", attempted=attempted)

    attempted.append("trailing_separator")
    current = strip_trailing_separators(candidate)
    if _try_parse(current) is None:
        logger.info("SANITIZE: Fixed by trailing separator removal")
        return SanitizeResult(text=current, strategy="trailing_separator", attempted=attempted)

    attempted.append("structural_repair")
    current = repair_separators(current)
    error = _try_parse(current)
    if error is None:
        logger.info("SANITIZE: Fixed by structural repair")
        return SanitizeResult(text=current, strategy="structural_repair", attempted=attempted)

    logger.error(f"SANITIZE: All strategies failed - {error.msg} at offset {error.pos}")
    raise ParseFailure(
        f"JSON parsing failed after sanitization: {error.msg}",
        position=error.pos,
        line=error.lineno,
        column=error.colno,
        context=_failure_context(current, error.pos, config.context_window),
        attempted_fixes=attempted,
    )


def sanitize(candidate: str, config: Optional[ReconcileConfig] = None) -> str:
    """Return strictly valid JSON text for `candidate` or raise ParseFailure."""
    return sanitize_with_report(candidate, config).text


def load_object(
    raw_text: str,
    config: Optional[ReconcileConfig] = None,
) -> tuple[dict, SanitizeResult]:
    """
    Extract, sanitize and parse the generator's object.

    Amounts with a fractional part are parsed as Decimal.

    Raises:
        ParseFailure: If there is no object or it cannot be repaired
    """
    candidate = extract_candidate(raw_text)
    result = sanitize_with_report(candidate, config)
    data = json.loads(result.text, parse_float=Decimal, strict=False)
    if not isinstance(data, dict):
        raise ParseFailure(
            f"Expected a JSON object, got {type(data).__name__}",
            context=result.text[:200],
            attempted_fixes=result.attempted,
        )
    return data, result
