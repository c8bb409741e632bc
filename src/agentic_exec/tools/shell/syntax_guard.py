"""Lexical guard against shell constructs in command strings.

Commands run as literal argv lists, so shell syntax inside a command or an
argument is never interpreted. A model that emits it either misunderstands
the tool or is trying to smuggle something past approval. Both are
rejected.

The scanner makes a single left-to-right pass tracking quote state:

- Inside single quotes nothing is special.
- Inside double quotes a backslash escapes the next character, ``$(`` is
  command substitution, and a backtick is substitution when an unescaped
  closing backtick follows.
- Unquoted text may not contain ``| & ; < > `` `` ` `` or ``$(``, nor their
  full-width look-alikes.
- Newline, NUL, ``<<``, ``$'`` and U+200B are rejected regardless of
  quoting.
- Text that cannot be encoded as UTF-8 (lone surrogates) is rejected.
- Input that ends inside quotes is unbalanced.

Unquoted backslashes are not honored: ``\\|`` is still a pipe. The guard
errs towards rejection; it is not a shell parser.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from agentic_exec.constants import COMMAND_LOG_PREVIEW_LENGTH, truncate
from agentic_exec.logging import Loggers

logger = Loggers.tools()


class Verdict(Enum):
    """Final classification of a string."""

    SAFE = "safe"
    DANGEROUS = "dangerous"


class ScanOutcome(Enum):
    """Detailed scanner outcome."""

    SAFE = "safe"
    DANGEROUS = "dangerous"
    UNBALANCED = "unbalanced"


@dataclass(frozen=True)
class ScanResult:
    """Outcome of scanning one string.

    Attributes:
        outcome: What the scanner found.
        reason: Human-readable description of the first hit.
        position: Code point index of the first hit, if any.
    """

    outcome: ScanOutcome
    reason: str | None = None
    position: int | None = None

    @property
    def verdict(self) -> Verdict:
        if self.outcome is ScanOutcome.SAFE:
            return Verdict.SAFE
        return Verdict.DANGEROUS

    @property
    def is_safe(self) -> bool:
        return self.outcome is ScanOutcome.SAFE


SAFE_RESULT = ScanResult(ScanOutcome.SAFE)

# Rejected wherever they appear, quoted or not
_ALWAYS_DANGEROUS: tuple[tuple[str, str], ...] = (
    ("\n", "newline"),
    ("\0", "NUL byte"),
    ("<<", "here-document"),
    ("$'", "ANSI-C quoting"),
    ("\u200b", "zero-width space"),
)

_UNQUOTED_METACHARACTERS = {
    "|": "pipe or logical operator",
    "&": "background or logical operator",
    ";": "command separator",
    "<": "redirection or process substitution",
    ">": "redirection or process substitution",
    "`": "backtick substitution",
}

_HOMOGLYPHS = {
    "；": "full-width semicolon",
    "｜": "full-width vertical bar",
    "＆": "full-width ampersand",
    "＞": "full-width greater-than sign",
    "＜": "full-width less-than sign",
}

_UNQUOTED = 0
_SINGLE_QUOTED = 1
_DOUBLE_QUOTED = 2


def scan(text: str) -> ScanResult:
    """Scan ``text`` and report the first dangerous construct.

    Args:
        text: A command name or a single argument.

    Returns:
        ScanResult with SAFE, DANGEROUS or UNBALANCED outcome.
    """
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as e:
        return ScanResult(ScanOutcome.DANGEROUS, "malformed encoding", e.start)

    for token, reason in _ALWAYS_DANGEROUS:
        index = text.find(token)
        if index >= 0:
            return ScanResult(ScanOutcome.DANGEROUS, reason, index)

    state = _UNQUOTED
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]

        if state == _SINGLE_QUOTED:
            if ch == "'":
                state = _UNQUOTED

        elif state == _DOUBLE_QUOTED:
            if ch == "\\":
                i += 2
                continue
            if ch == '"':
                state = _UNQUOTED
            elif ch == "$" and text.startswith("(", i + 1):
                return ScanResult(
                    ScanOutcome.DANGEROUS, "command substitution in double quotes", i
                )
            elif ch == "`" and _has_closing_backtick(text, i + 1):
                return ScanResult(
                    ScanOutcome.DANGEROUS, "backtick substitution in double quotes", i
                )

        else:
            if ch == "'":
                state = _SINGLE_QUOTED
            elif ch == '"':
                state = _DOUBLE_QUOTED
            elif ch in _UNQUOTED_METACHARACTERS:
                return ScanResult(
                    ScanOutcome.DANGEROUS, _UNQUOTED_METACHARACTERS[ch], i
                )
            elif ch == "$" and text.startswith("(", i + 1):
                return ScanResult(ScanOutcome.DANGEROUS, "command substitution", i)
            elif ch in _HOMOGLYPHS:
                return ScanResult(ScanOutcome.DANGEROUS, _HOMOGLYPHS[ch], i)

        i += 1

    if state != _UNQUOTED:
        return ScanResult(ScanOutcome.UNBALANCED, "unbalanced quotes", length)
    return SAFE_RESULT


def _has_closing_backtick(text: str, start: int) -> bool:
    i = start
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == "`":
            return True
        i += 1
    return False


def classify(text: str) -> Verdict:
    """Classify ``text`` as SAFE or DANGEROUS.

    Fails closed: non-string input or any scanner error is DANGEROUS.
    """
    if not isinstance(text, str):
        return Verdict.DANGEROUS
    try:
        return scan(text).verdict
    except Exception as e:
        logger.warning(
            "syntax_guard_error",
            text=truncate(repr(text), COMMAND_LOG_PREVIEW_LENGTH),
            error=str(e),
        )
        return Verdict.DANGEROUS


def is_dangerous(text: str) -> bool:
    """Convenience wrapper around ``classify``."""
    return classify(text) is Verdict.DANGEROUS


def first_dangerous(texts: Iterable[str]) -> tuple[str, ScanResult] | None:
    """Return the first dangerous string with its scan result, or None."""
    for text in texts:
        if not isinstance(text, str):
            return repr(text), ScanResult(ScanOutcome.DANGEROUS, "non-string value")
        try:
            result = scan(text)
        except Exception as e:
            return text, ScanResult(ScanOutcome.DANGEROUS, f"scanner error: {e}")
        if not result.is_safe:
            return text, result
    return None
