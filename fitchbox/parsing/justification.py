"""
Justification Parser for Fitchbox.

A justification is a rule label followed by citations:

    →E 1, 2
    ->I 3-4
    vE 1 3-4 5-6

Single numbers cite lines; `a-b` ranges cite the subproof spanning lines
a through b. Citations always refer to positions, never to content.
Separators may be commas, semicolons or whitespace.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


# Placeholder written for a citation whose target line was removed
DANGLING = "?"

_SEPARATOR = re.compile(r"[;,\s]+")
_RANGE_DASH = re.compile(r"(?<=\d)\s*[-–—]\s*(?=\d)")
_CITATION = re.compile(r"^(\d+)(?:-(\d+))?$")


class JustificationErrorKind(Enum):
    MISSING_RULE = "missing_rule"
    BAD_CITATION = "bad_citation"


class JustificationError(Exception):
    """Raised when justification text is malformed."""

    def __init__(
        self,
        kind: JustificationErrorKind,
        message: str,
        index: Optional[int] = None,
    ):
        self.kind = kind
        self.message = message
        self.index = index
        super().__init__(f"[{kind.value}] {message}")


@dataclass(frozen=True)
class Citation:
    """A reference to one line, or (with `end`) to a whole subproof."""
    start: int
    end: Optional[int] = None

    @property
    def is_range(self) -> bool:
        return self.end is not None

    def numbers(self) -> tuple[int, ...]:
        if self.end is None:
            return (self.start,)
        return (self.start, self.end)

    def __str__(self) -> str:
        if self.end is None:
            return str(self.start)
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class Justification:
    """Rule label as written plus its ordered citations."""
    rule: str
    citations: tuple[Citation, ...] = ()

    def __str__(self) -> str:
        if not self.citations:
            return self.rule
        return f"{self.rule} " + ", ".join(str(c) for c in self.citations)


def parse_citation(text: str, index: int) -> Citation:
    """
    Parse one citation token.

    Raises:
        JustificationError: If the token is not a line number or an
            ascending range (BAD_CITATION).
    """
    match = _CITATION.match(text)
    if not match:
        raise JustificationError(
            JustificationErrorKind.BAD_CITATION,
            f"Citation {index + 1} ({text!r}) is not a line number or range",
            index,
        )

    start = int(match.group(1))
    if match.group(2) is None:
        return Citation(start)

    end = int(match.group(2))
    if end < start:
        raise JustificationError(
            JustificationErrorKind.BAD_CITATION,
            f"Citation {index + 1} ({text!r}) runs backwards",
            index,
        )
    return Citation(start, end)


def parse_justification(text: str) -> Justification:
    """
    Parse justification text into a rule label and citations.

    The rule label is kept as written; resolving it against the rule
    catalog happens during verification.

    Raises:
        JustificationError: On empty text or malformed citations.
    """
    text = _RANGE_DASH.sub("-", text.strip())
    pieces = [piece for piece in _SEPARATOR.split(text) if piece]

    if not pieces:
        raise JustificationError(
            JustificationErrorKind.MISSING_RULE,
            "Justification names no rule",
        )

    rule, *raw_citations = pieces
    citations = tuple(
        parse_citation(raw, index) for index, raw in enumerate(raw_citations)
    )
    return Justification(rule=rule, citations=citations)


def renumber_justification(
    text: str,
    shift: Callable[[int], Optional[int]],
) -> Optional[str]:
    """
    Rewrite the citations in justification text through `shift`.

    Works on the raw text, so a malformed token elsewhere in the
    justification does not stop well-formed citations from moving with
    their lines. Targets that `shift` maps to None become DANGLING; tokens
    that are not citations are kept as written.

    Returns:
        The rewritten text, or None if no citation changed.
    """
    pieces = [piece for piece in _SEPARATOR.split(_RANGE_DASH.sub("-", text.strip())) if piece]
    if len(pieces) < 2:
        return None

    rule, *tokens = pieces
    rewritten = []
    changed = False
    for token in tokens:
        match = _CITATION.match(token)
        if not match:
            rewritten.append(token)
            continue

        numbers = [int(group) for group in match.groups() if group is not None]
        mapped = [shift(n) for n in numbers]
        if any(n is None for n in mapped):
            rewritten.append(DANGLING)
            changed = True
            continue

        renumbered = "-".join(str(n) for n in mapped)
        changed = changed or renumbered != token
        rewritten.append(renumbered)

    if not changed:
        return None
    return f"{rule} " + ", ".join(rewritten)
