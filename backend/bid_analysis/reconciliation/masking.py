"""
Literal masking — hide quoted strings from structural repair.

mask(text) -> MaskedText(masked, literals)
unmask(masked, literals) -> text

Every double-quoted literal (quotes included) is swapped for a placeholder
token carrying its index, so regex-based repairs only ever see structure.
The round trip is lossless for any input: stray sentinel characters outside
a literal are captured the same way a literal is.
"""
import re
from typing import NamedTuple

# Private-use code points; never produced by JSON structure.
PLACEHOLDER_OPEN = "\ue000"
PLACEHOLDER_CLOSE = "\ue001"

_PLACEHOLDER = re.compile(f"{PLACEHOLDER_OPEN}(\\d+){PLACEHOLDER_CLOSE}")


class MaskedText(NamedTuple):
    masked: str
    literals: list[str]


def placeholder(index: int) -> str:
    return f"{PLACEHOLDER_OPEN}{index}{PLACEHOLDER_CLOSE}"


def mask(text: str) -> MaskedText:
    """
    Replace each quoted literal with a placeholder token.

    Tracks an inside-literal flag and a pending-escape flag so that \\" and
    \\\\ inside a literal are handled. An unterminated literal at the end of
    input is still captured.
    """
    out: list[str] = []
    literals: list[str] = []
    buffer: list[str] = []
    in_literal = False
    escape_next = False

    for ch in text:
        if in_literal:
            buffer.append(ch)
            if escape_next:
                escape_next = False
            elif ch == "\\":
                escape_next = True
            elif ch == '"':
                in_literal = False
                out.append(placeholder(len(literals)))
                literals.append("".join(buffer))
                buffer = []
            continue

        if ch == '"':
            in_literal = True
            buffer = [ch]
        elif ch in (PLACEHOLDER_OPEN, PLACEHOLDER_CLOSE):
            out.append(placeholder(len(literals)))
            literals.append(ch)
        else:
            out.append(ch)

    if in_literal:
        out.append(placeholder(len(literals)))
        literals.append("".join(buffer))

    return MaskedText("".join(out), literals)


def unmask(masked: str, literals: list[str]) -> str:
    """Restore literals in a single substitution pass."""

    def restore(match: re.Match) -> str:
        index = int(match.group(1))
        if index < len(literals):
            return literals[index]
        return match.group(0)

    return _PLACEHOLDER.sub(restore, masked)
