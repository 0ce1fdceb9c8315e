"""
Verification Engine for Fitchbox.

Checks every line of a proof snapshot in document order. Each line's
check only reads earlier, already-decided lines, so one forward pass
decides the whole proof.

Per-line check order:
    1. Sentence parses
    2. Justification parses and names a known rule
    3. Rule is enabled under the configuration
    4. Every citation resolves and is visible (with world accessibility
       for rules that move sentences between worlds)
    5. No cited line, and no line inside a cited subproof, is invalid
    6. Cited material matches one of the rule's schemas
    7. World-closure for rules discharging a modal subproof

A failure at any step raises CheckError, which becomes the line's
INVALID diagnostic. The pass itself never aborts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from ..config import VerifierConfig
from ..diagnostics import CheckError, LineDiagnostic, LineStatus, ReasonCode
from ..modal.worlds import WorldTree
from ..parsing.justification import Citation, JustificationErrorKind
from ..proof import Line, Proof, ProofStructure, ScopeKind
from ..rules.catalog import (
    Material,
    RuleDefinition,
    RuleId,
    Transfer,
    apply_rule,
    definitions_for,
)
from ..sentence import Sentence

logger = logging.getLogger(__name__)


# =============================================================================
# REPORT
# =============================================================================

@dataclass(frozen=True)
class VerificationReport:
    """
    Result of one verification pass: exactly one diagnostic per line.

    `reaches_goal` and `proves_goal` are None when the proof carries no
    goal. A proof that reaches its goal while still leaning on placeholder
    lines reaches it without proving it.
    """
    diagnostics: tuple[LineDiagnostic, ...]
    config: VerifierConfig
    revision: int = 0
    goal: Optional[Sentence] = None
    reaches_goal: Optional[bool] = None
    placeholders: tuple[int, ...] = ()

    def by_line(self, number: int) -> LineDiagnostic:
        if not 1 <= number <= len(self.diagnostics):
            raise KeyError(f"No line {number}")
        return self.diagnostics[number - 1]

    @property
    def proves_goal(self) -> Optional[bool]:
        if self.reaches_goal is None:
            return None
        return self.reaches_goal and not self.placeholders

    @property
    def is_valid(self) -> bool:
        return all(d.is_valid for d in self.diagnostics)

    @property
    def invalid_lines(self) -> list[LineDiagnostic]:
        return [d for d in self.diagnostics if d.is_invalid]

    def counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in LineStatus}
        for diagnostic in self.diagnostics:
            counts[diagnostic.status.value] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "revision": self.revision,
            "valid": self.is_valid,
            "goal": str(self.goal) if self.goal is not None else None,
            "reaches_goal": self.reaches_goal,
            "proves_goal": self.proves_goal,
            "placeholders": list(self.placeholders),
            "lines": [d.to_dict() for d in self.diagnostics],
        }


# =============================================================================
# LINE CHECKER
# =============================================================================

class LineChecker:
    """
    One verification pass over one snapshot.

    Owns its world tree and the verdicts reached so far; nothing is shared
    between passes.
    """

    def __init__(self, structure: ProofStructure, config: VerifierConfig):
        self.structure = structure
        self.config = config
        self.worlds = WorldTree.from_structure(structure)
        self.results: dict[int, LineDiagnostic] = {}

    def run(self) -> list[LineDiagnostic]:
        return [self.check(number) for number in self.structure.numbers()]

    def check(self, number: int) -> LineDiagnostic:
        line = self.structure.line(number)
        try:
            rule = self._check(number, line)
            diagnostic = LineDiagnostic.valid(number, rule)
        except CheckError as e:
            diagnostic = LineDiagnostic.from_error(number, e, rule=line.rule_label)

        self.results[number] = diagnostic
        logger.debug(
            "Line %d: %s%s",
            number,
            diagnostic.status.value,
            f" ({diagnostic.reason.value})" if diagnostic.reason else "",
        )
        return diagnostic

    def _check(self, number: int, line: Line) -> Optional[str]:
        if line.parse_error is not None:
            raise CheckError(ReasonCode.PARSE_ERROR, line.parse_error.message)

        if line.is_marker:
            return self._check_marker(line)

        error = line.justification_error
        if error is not None:
            if error.kind == JustificationErrorKind.MISSING_RULE:
                if line.opens is not None:
                    return RuleId.PREMISE.value
                raise CheckError(ReasonCode.NO_MATCHING_RULE, error.message)
            raise CheckError(ReasonCode.UNRESOLVED_CITATION, error.message, error.index)

        rule_id = RuleId.lookup(line.rule_label)
        if rule_id is None:
            raise CheckError(ReasonCode.NO_MATCHING_RULE, f"Unknown rule {line.rule_label!r}")

        if rule_id == RuleId.PREMISE:
            self._check_premise(number, line)
            return rule_id.value

        if line.opens is not None:
            raise CheckError(
                ReasonCode.NO_MATCHING_RULE,
                f"An assumption must be justified as PR, not {rule_id.value}",
            )

        # Citations on a placeholder are left unchecked
        if rule_id == RuleId.PLACEHOLDER:
            return rule_id.value

        definitions = definitions_for(rule_id, self.config.rulesets)
        if not definitions:
            raise CheckError(
                ReasonCode.NO_MATCHING_RULE,
                f"{rule_id.value} is not available in {self.config.name}",
            )

        failures: list[CheckError] = []
        for definition in definitions:
            try:
                self._apply(number, line, definition)
                return definition.label
            except CheckError as e:
                failures.append(e)
        raise failures[0]

    def _check_marker(self, line: Line) -> Optional[str]:
        if line.opens != ScopeKind.MODAL:
            raise CheckError(
                ReasonCode.NO_MATCHING_RULE,
                "A bare □ may only open a strict subproof",
            )

        error = line.justification_error
        if error is not None:
            if error.kind == JustificationErrorKind.MISSING_RULE:
                return None
            raise CheckError(ReasonCode.UNRESOLVED_CITATION, error.message, error.index)

        if RuleId.lookup(line.rule_label) != RuleId.PREMISE:
            raise CheckError(
                ReasonCode.NO_MATCHING_RULE,
                f"A strict subproof opens with □ alone or PR, not {line.rule_label}",
            )
        if line.citations:
            raise CheckError(ReasonCode.NO_MATCHING_RULE, "PR takes no citations", 0)
        return RuleId.PREMISE.value

    def _check_premise(self, number: int, line: Line) -> None:
        if line.citations:
            raise CheckError(ReasonCode.NO_MATCHING_RULE, "PR takes no citations", 0)
        if line.opens is not None:
            return

        if line.depth == 0 and all(
            self.structure.line(n).depth == 0 and self.structure.line(n).is_premise_labelled()
            for n in range(1, number)
        ):
            return

        if line.depth == 0:
            message = "Premises must come before every other line of the main proof"
        else:
            message = "Inside a subproof only its first line may be PR"
        raise CheckError(ReasonCode.NO_MATCHING_RULE, message)

    def _apply(self, number: int, line: Line, definition: RuleDefinition) -> None:
        citations = line.citations
        materials = [
            self._resolve(number, index, citation, definition)
            for index, citation in enumerate(citations)
        ]
        self._check_dependencies(citations)
        apply_rule(definition, materials, line.sentence)
        if definition.world_closed:
            self._check_world_closure(citations)

    # -------------------------------------------------------------------------
    # Citation resolution
    # -------------------------------------------------------------------------

    def _resolve(
        self,
        number: int,
        index: int,
        citation: Citation,
        definition: RuleDefinition,
    ) -> Material:
        if citation.is_range:
            return self._resolve_subproof(number, index, citation)

        target = citation.start
        if not self.structure.has_line(target):
            raise CheckError(
                ReasonCode.UNRESOLVED_CITATION,
                f"Line {target} does not exist",
                index,
            )
        if target >= number:
            raise CheckError(
                ReasonCode.OUT_OF_SCOPE,
                f"Line {target} does not come before line {number}",
                index,
            )

        if definition.transfer == Transfer.IMPORT:
            self._resolve_import(number, index, target)
        else:
            self._resolve_local(number, index, target)
        return self.structure.line(target).sentence

    def _resolve_subproof(self, number: int, index: int, citation: Citation) -> Material:
        structure = self.structure
        scope = structure.subproof_at(citation.start, citation.end)
        if scope is None:
            raise CheckError(
                ReasonCode.UNRESOLVED_CITATION,
                f"Lines {citation} are not exactly one subproof",
                index,
            )
        if not structure.subproof_visible(number, scope):
            raise CheckError(
                ReasonCode.OUT_OF_SCOPE,
                f"Subproof {citation} is not available at line {number}",
                index,
            )

        parent_world = self.worlds.world_of_scope(structure.parent(scope))
        if parent_world != self.worlds.world_of_line(number):
            raise CheckError(
                ReasonCode.MODAL_SCOPE_VIOLATION,
                f"Subproof {citation} was opened in another world",
                index,
            )
        return structure.summary(scope)

    def _resolve_local(self, number: int, index: int, target: int) -> None:
        same_world = self.worlds.world_of_line(target) == self.worlds.world_of_line(number)

        if self.structure.line_visible(number, target):
            if same_world:
                return
            raise CheckError(
                ReasonCode.MODAL_SCOPE_VIOLATION,
                f"Line {target} lies outside the strict subproof; only modal rules carry it in",
                index,
            )

        if same_world:
            raise CheckError(
                ReasonCode.OUT_OF_SCOPE,
                f"Line {target} is inside a subproof that does not contain line {number}",
                index,
            )
        raise CheckError(
            ReasonCode.MODAL_SCOPE_VIOLATION,
            f"Line {target} belongs to another world",
            index,
        )

    def _resolve_import(self, number: int, index: int, target: int) -> None:
        structure = self.structure
        citing_scope = structure.scope_of(number)

        for scope in structure.hypotheses_over(target):
            if not structure.encloses(scope, citing_scope):
                raise CheckError(
                    ReasonCode.OUT_OF_SCOPE,
                    f"Line {target} depends on the assumption on line {scope.first}, "
                    f"which is not in force at line {number}",
                    index,
                )

        system = self.config.system
        if system is None:
            raise CheckError(
                ReasonCode.MODAL_SCOPE_VIOLATION,
                "No modal system is selected",
                index,
            )

        citing_world = self.worlds.world_of_line(number)
        target_world = self.worlds.world_of_line(target)
        if not self.worlds.can_import(system, citing_world, target_world):
            if citing_world == target_world:
                message = f"{system.value} is not reflexive: line {target} is in the same world"
            else:
                message = (
                    f"World w{target_world.world_id} is not accessible from "
                    f"w{citing_world.world_id} in {system.value}"
                )
            raise CheckError(ReasonCode.MODAL_SCOPE_VIOLATION, message, index)

    # -------------------------------------------------------------------------
    # Dependencies and world closure
    # -------------------------------------------------------------------------

    def _check_dependencies(self, citations: tuple[Citation, ...]) -> None:
        for index, citation in enumerate(citations):
            last = citation.end if citation.end is not None else citation.start
            for cited in range(citation.start, last + 1):
                if self.results[cited].is_invalid:
                    raise CheckError(
                        ReasonCode.DEPENDS_ON_INVALID,
                        f"Cited line {cited} is invalid",
                        index,
                    )

    def _check_world_closure(self, citations: tuple[Citation, ...]) -> None:
        """No line of a discharged modal subproof may draw on the outer world by a local rule."""
        for index, citation in enumerate(citations):
            if not citation.is_range:
                continue
            scope = self.structure.subproof_at(citation.start, citation.end)
            if scope is None or scope.kind != ScopeKind.MODAL:
                continue

            for inner in range(scope.first + 1, scope.last + 1):
                inner_line = self.structure.line(inner)
                rule_id = RuleId.lookup(inner_line.rule_label or "")
                importing = rule_id is not None and any(
                    d.transfer == Transfer.IMPORT
                    for d in definitions_for(rule_id, self.config.rulesets)
                )
                if importing or rule_id == RuleId.PLACEHOLDER:
                    continue
                for cited in inner_line.citations:
                    if not scope.contains_line(cited.start):
                        raise CheckError(
                            ReasonCode.MODAL_SCOPE_VIOLATION,
                            f"Line {inner} uses line {cited.start} from outside subproof {citation}",
                            index,
                        )


# =============================================================================
# ENTRY POINT
# =============================================================================

def verify_proof(
    proof: Union[Proof, ProofStructure],
    config: Optional[VerifierConfig] = None,
) -> VerificationReport:
    """
    Verify every line of a proof.

    Args:
        proof: A Proof (its current snapshot is used) or a snapshot.
        config: Logical system to check under; plain TFL by default.

    Returns:
        A VerificationReport with one diagnostic per line.
    """
    structure = proof.snapshot() if isinstance(proof, Proof) else proof
    config = config or VerifierConfig()

    diagnostics = tuple(LineChecker(structure, config).run())

    reaches_goal = None
    if structure.goal is not None:
        reaches_goal = all(d.is_valid for d in diagnostics) and any(
            line.depth == 0 and line.sentence == structure.goal
            for line in structure.lines
        )

    placeholders = tuple(
        d.number for d in diagnostics
        if d.is_valid and d.rule == RuleId.PLACEHOLDER.value
    )

    report = VerificationReport(
        diagnostics=diagnostics,
        config=config,
        revision=structure.revision,
        goal=structure.goal,
        reaches_goal=reaches_goal,
        placeholders=placeholders,
    )
    logger.info(
        "Verified %d line(s) under %s: %d invalid, %d placeholder(s)",
        len(diagnostics),
        config.name,
        len(report.invalid_lines),
        len(placeholders),
    )
    return report
