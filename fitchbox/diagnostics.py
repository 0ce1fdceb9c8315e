"""
Line Diagnostics for Fitchbox.

Every line of a verified proof receives exactly one diagnostic. An
invalid line always carries a specific reason code; there is no
generic "invalid" verdict.

Domain Objects:
    ReasonCode     — Why a line failed
    LineStatus     — Unchecked, Valid or Invalid
    CheckError     — Raised inside a line check, converted at the line boundary
    LineDiagnostic — The auditable per-line verdict
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


# =============================================================================
# REASON CODES
# =============================================================================

class ReasonCode(Enum):
    """
    Error taxonomy for a single line.

    PARSE_ERROR:           Sentence text is malformed
    UNRESOLVED_CITATION:   Citation names a line or subproof that does not exist
    OUT_OF_SCOPE:          Citation exists but is not visible from the line
    NO_MATCHING_RULE:      No enabled rule fits the cited material
    CONCLUSION_MISMATCH:   Premises fit, but the rule yields another sentence
    MODAL_SCOPE_VIOLATION: Accessibility or world-closure requirement failed
    DEPENDS_ON_INVALID:    A cited line or subproof is itself invalid
    """
    PARSE_ERROR = "parse_error"
    UNRESOLVED_CITATION = "unresolved_citation"
    OUT_OF_SCOPE = "out_of_scope"
    NO_MATCHING_RULE = "no_matching_rule"
    CONCLUSION_MISMATCH = "conclusion_mismatch"
    MODAL_SCOPE_VIOLATION = "modal_scope_violation"
    DEPENDS_ON_INVALID = "depends_on_invalid"


class LineStatus(Enum):
    UNCHECKED = "unchecked"
    VALID = "valid"
    INVALID = "invalid"


class CheckError(Exception):
    """Raised when a line fails verification. Never escapes the pass."""

    def __init__(
        self,
        reason: ReasonCode,
        message: str,
        citation_index: Optional[int] = None,
    ):
        self.reason = reason
        self.message = message
        self.citation_index = citation_index
        super().__init__(f"[{reason.value}] {message}")


# =============================================================================
# LINE DIAGNOSTIC
# =============================================================================

@dataclass(frozen=True)
class LineDiagnostic:
    """
    The verdict for one line.

    `citation_index` is zero-based and points at the offending citation
    when the failure can be pinned to one.
    """
    number: int
    status: LineStatus
    rule: Optional[str] = None
    reason: Optional[ReasonCode] = None
    message: str = ""
    citation_index: Optional[int] = None

    @classmethod
    def valid(cls, number: int, rule: Optional[str]) -> LineDiagnostic:
        return cls(number=number, status=LineStatus.VALID, rule=rule)

    @classmethod
    def unchecked(cls, number: int) -> LineDiagnostic:
        return cls(number=number, status=LineStatus.UNCHECKED)

    @classmethod
    def from_error(
        cls,
        number: int,
        error: CheckError,
        rule: Optional[str] = None,
    ) -> LineDiagnostic:
        """Create an INVALID diagnostic from a CheckError."""
        return cls(
            number=number,
            status=LineStatus.INVALID,
            rule=rule,
            reason=error.reason,
            message=error.message,
            citation_index=error.citation_index,
        )

    @property
    def is_valid(self) -> bool:
        return self.status == LineStatus.VALID

    @property
    def is_invalid(self) -> bool:
        return self.status == LineStatus.INVALID

    def to_dict(self) -> dict[str, Any]:
        return {
            "line": self.number,
            "status": self.status.value,
            "rule": self.rule,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "citation_index": self.citation_index,
        }
