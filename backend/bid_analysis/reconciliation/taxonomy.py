"""
Taxonomy — versioned table of classification codes.

Loaded from taxonomy.yaml (or a file named by RECON_TAXONOMY_PATH) and
treated as read-only configuration. Knows which codes are current, which
are obsolete and what they migrate to, and which are critical trade
systems for gap synthesis.
"""
import logging
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml

from bid_analysis.reconciliation.errors import ReconcileError

logger = logging.getLogger(__name__)

DEFAULT_TAXONOMY_PATH = Path(__file__).resolve().parent / "taxonomy.yaml"
TAXONOMY_PATH = os.getenv("RECON_TAXONOMY_PATH", str(DEFAULT_TAXONOMY_PATH))

_DIVISION_PREFIX = re.compile(r"^\s*(?:csi\s+)?(?:division|div\.?)\s*", re.IGNORECASE)
_LEADING_DIGITS = re.compile(r"^(\d+)")


# ═══════════════════════════════════════════════════════════════════════════════
# TABLE TYPES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class KeywordFamily:
    """Keywords that claim part of a composite code's cost for a target code."""
    code: str
    keywords: tuple[str, ...]
    share: str  # attribute name on ReconcileConfig

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        return any(k in lowered for k in self.keywords)


@dataclass(frozen=True)
class ObsoleteCode:
    code: str
    name: str
    kind: str  # "composite" or "rename"
    target: Optional[str] = None
    families: tuple[KeywordFamily, ...] = ()
    remainder: Optional[str] = None
    remainder_default_items: tuple[str, ...] = ()

    @property
    def targets(self) -> tuple[str, ...]:
        """Every current code this obsolete code can expand into."""
        if self.kind == "rename":
            return (self.target,)
        return tuple(f.code for f in self.families) + (self.remainder,)


@dataclass(frozen=True)
class Taxonomy:
    version: str
    current: dict[str, str]
    obsolete: dict[str, ObsoleteCode]
    critical: tuple[str, ...]

    def is_current(self, code: str) -> bool:
        return code in self.current

    def is_obsolete(self, code: str) -> bool:
        return code in self.obsolete

    def name_for(self, code: str) -> str:
        if code in self.current:
            return self.current[code]
        if code in self.obsolete:
            return self.obsolete[code].name
        return f"Division {code}"

    def expansion(self, code: str) -> tuple[str, ...]:
        """Current codes for `code`: itself if current, its targets if obsolete."""
        if code in self.obsolete:
            return self.obsolete[code].targets
        return (code,)


# ═══════════════════════════════════════════════════════════════════════════════
# CODE NORMALIZATION
# ═══════════════════════════════════════════════════════════════════════════════

def normalize_code(raw: object) -> str:
    """
    Normalize a generator-supplied code to its two-digit division form.

    "3" → "03", "Division 22" → "22", "22 05 00" → "22", "230500" → "23".
    Codes with no leading digits are returned stripped, unchanged.
    """
    text = _DIVISION_PREFIX.sub("", str(raw).strip())
    match = _LEADING_DIGITS.match(text)
    if not match:
        return text
    digits = match.group(1)
    if len(digits) == 1:
        return digits.zfill(2)
    if len(digits) in (4, 6):
        # MasterFormat section number written without spaces
        return digits[:2]
    return digits


# ═══════════════════════════════════════════════════════════════════════════════
# LOADING
# ═══════════════════════════════════════════════════════════════════════════════

def _parse_obsolete(code: str, entry: dict) -> ObsoleteCode:
    kind = entry.get("kind")
    if kind == "rename":
        if not entry.get("target"):
            raise ReconcileError(f"Obsolete code {code} has no target", field_path=f"obsolete.{code}")
        return ObsoleteCode(code=code, name=entry.get("name", code), kind=kind, target=str(entry["target"]))
    if kind == "composite":
        families = tuple(
            KeywordFamily(
                code=str(f["code"]),
                keywords=tuple(k.lower() for k in f.get("keywords", [])),
                share=f["share"],
            )
            for f in entry.get("families", [])
        )
        if not entry.get("remainder"):
            raise ReconcileError(f"Composite code {code} has no remainder", field_path=f"obsolete.{code}")
        return ObsoleteCode(
            code=code,
            name=entry.get("name", code),
            kind=kind,
            families=families,
            remainder=str(entry["remainder"]),
            remainder_default_items=tuple(entry.get("remainder_default_items", [])),
        )
    raise ReconcileError(f"Unknown obsolete kind '{kind}'", field_path=f"obsolete.{code}")


def parse_taxonomy(data: dict) -> Taxonomy:
    """Build a Taxonomy from its YAML document."""
    current = {str(code): str(name) for code, name in (data.get("current") or {}).items()}
    obsolete = {
        str(code): _parse_obsolete(str(code), entry)
        for code, entry in (data.get("obsolete") or {}).items()
    }
    for old in obsolete.values():
        for target in old.targets:
            if target not in current:
                raise ReconcileError(
                    f"Obsolete code {old.code} targets unknown code {target}",
                    field_path=f"obsolete.{old.code}",
                )
    critical = tuple(str(c) for c in data.get("critical", []))
    return Taxonomy(
        version=str(data.get("version", "unversioned")),
        current=current,
        obsolete=obsolete,
        critical=critical,
    )


@lru_cache(maxsize=8)
def load_taxonomy(path: Optional[str] = None) -> Taxonomy:
    """Load and cache a taxonomy file (default: RECON_TAXONOMY_PATH)."""
    source = Path(path or TAXONOMY_PATH)
    with open(source, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    taxonomy = parse_taxonomy(data)
    logger.info(
        f"TAXONOMY: Loaded {taxonomy.version} - "
        f"{len(taxonomy.current)} current, {len(taxonomy.obsolete)} obsolete codes"
    )
    return taxonomy
