"""
Structural repair — insert missing separators between sibling values.

repair_structure(masked: str) -> str

Operates on masked text only (see masking.py), so the patterns below can
never match characters that came from inside a quoted literal. The rules
are not grammar-aware; they only restore a dropped comma between two
sibling values.
"""
import re
from dataclasses import dataclass

from bid_analysis.reconciliation.masking import PLACEHOLDER_OPEN


@dataclass(frozen=True)
class RepairRule:
    rule_id: str
    description: str
    pattern: re.Pattern
    replacement: str

    def apply(self, text: str) -> tuple[str, int]:
        return self.pattern.subn(self.replacement, text)


# A value may start with an object, array, literal placeholder, digit or minus sign.
_VALUE_START = f"[{{\\[{PLACEHOLDER_OPEN}0-9-]"

REPAIR_RULES: list[RepairRule] = [
    RepairRule(
        rule_id="object_separator",
        description="Insert comma between a closing brace and the next value",
        pattern=re.compile(f"}}(\\s*)(?={_VALUE_START})"),
        replacement=r"},\1",
    ),
    RepairRule(
        rule_id="array_separator",
        description="Insert comma between a closing bracket and the next value",
        pattern=re.compile(f"\\](\\s*)(?={_VALUE_START})"),
        replacement=r"],\1",
    ),
]


def repair_structure(masked: str) -> str:
    """Apply every repair rule to masked text."""
    repaired = masked
    for rule in REPAIR_RULES:
        repaired, _ = rule.apply(repaired)
    return repaired


def count_repairs(masked: str) -> dict[str, int]:
    """How many insertions each rule would make (for diagnostics)."""
    counts = {}
    for rule in REPAIR_RULES:
        _, n = rule.apply(masked)
        counts[rule.rule_id] = n
    return counts
