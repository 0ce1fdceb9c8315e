"""
Tests for Fitchbox — Verification Engine.

These tests verify that:
1. Correct proofs are valid line by line, for TFL and every modal system
2. Every failure carries its specific reason code and citation index
3. Invalid lines propagate DEPENDS_ON_INVALID to every line built on them
4. Validity is monotone from K to S5, and verification is deterministic
"""

import pytest

from fitchbox.config import VerifierConfig
from fitchbox.diagnostics import LineStatus, ReasonCode
from fitchbox.engine.verifier import verify_proof
from fitchbox.modal.worlds import ModalSystem
from fitchbox.proof import Proof


SYSTEMS = [ModalSystem.K, ModalSystem.T, ModalSystem.S4, ModalSystem.S5]


def check(rows, system=None, derived=True, goal=None):
    proof = Proof.from_rows(rows, goal=goal)
    return verify_proof(proof, VerifierConfig(system=system, derived=derived))


def reasons(report):
    return [d.reason for d in report.diagnostics]


# =============================================================================
# SAMPLE PROOFS
# =============================================================================

MODUS_PONENS = [
    (0, "P", "PR"),
    (0, "P → Q", "PR"),
    (0, "Q", "ConditionalElim 1, 2"),
]

CONDITIONAL_PROOF = [
    (0, "Q", "PR"),
    (1, "P", "PR"),
    (1, "Q", "R 1"),
    (0, "P → Q", "ConditionalIntro 2-3"),
]

# □(P → Q), □P ⊢ □Q
DISTRIBUTION = [
    (0, "□(P → Q)", "PR"),
    (0, "□P", "PR"),
    (1, "□", ""),
    (1, "P → Q", "□E 1"),
    (1, "P", "□E 2"),
    (1, "Q", "→E 4, 5"),
    (0, "□Q", "□I 3-6"),
]

# ◇P, □(P → Q) ⊢ ◇Q
POSSIBILITY = [
    (0, "◇P", "PR"),
    (0, "□(P → Q)", "PR"),
    (1, "P", "PR", "modal"),
    (1, "P → Q", "□E 2"),
    (1, "Q", "→E 4, 3"),
    (0, "◇Q", "◇E 1, 3-5"),
]


# =============================================================================
# SCENARIO TESTS
# =============================================================================

class TestScenarios:
    """End-to-end checks of representative proofs."""

    def test_modus_ponens(self):
        """Premises P and P → Q give Q by →E."""
        report = check(MODUS_PONENS)
        assert report.is_valid
        assert report.by_line(3).rule == "→E"

    def test_conditional_introduction(self):
        """A closed subproof discharges into a conditional."""
        assert check(CONDITIONAL_PROOF).is_valid

    def test_citing_into_closed_subproof(self):
        """Lines inside a closed subproof are out of scope afterwards."""
        report = check(CONDITIONAL_PROOF + [(0, "P", "R 2")])
        diagnostic = report.by_line(5)
        assert diagnostic.reason == ReasonCode.OUT_OF_SCOPE
        assert diagnostic.citation_index == 0

    def test_modal_line_cited_from_outside_in_k(self):
        """A strict subproof's line cannot be reiterated into the main proof."""
        rows = [
            (0, "□P", "PR"),
            (1, "□", ""),
            (1, "P", "□E 1"),
            (0, "P", "R 3"),
        ]
        report = check(rows, ModalSystem.K)
        assert reasons(report)[:3] == [None, None, None]
        assert report.by_line(4).reason == ReasonCode.MODAL_SCOPE_VIOLATION

    def test_sibling_world_in_s5(self):
        """In S5 a sibling world's possibility is available."""
        rows = [
            (0, "◇P", "PR"),
            (1, "□", ""),
            (1, "◇P", "R5 1"),
            (1, "□", ""),
            (1, "◇P", "R5 3"),
        ]
        assert check(rows, ModalSystem.S5).is_valid

        report = check(rows, ModalSystem.K)
        assert report.by_line(5).reason == ReasonCode.NO_MATCHING_RULE

    def test_sibling_world_reiteration(self):
        """Plain reiteration never crosses into a sibling world."""
        rows = [
            (0, "◇P", "PR"),
            (1, "□", ""),
            (1, "◇P", "R5 1"),
            (1, "□", ""),
            (1, "◇P", "R 3"),
        ]
        report = check(rows, ModalSystem.S5)
        assert report.by_line(5).reason == ReasonCode.MODAL_SCOPE_VIOLATION

    def test_wrong_connective(self):
        """∧E on a disjunction fails at the premise stage."""
        report = check([(0, "P ∨ Q", "PR"), (0, "P", "AndElim 1")])
        assert report.by_line(2).reason == ReasonCode.NO_MATCHING_RULE

    def test_wrong_conclusion(self):
        """∧E on a conjunction cannot yield a third sentence."""
        report = check([(0, "P ∧ Q", "PR"), (0, "R", "∧E 1")])
        assert report.by_line(2).reason == ReasonCode.CONCLUSION_MISMATCH


# =============================================================================
# TFL RULE TESTS
# =============================================================================

class TestTruthFunctionalRules:
    """Test complete proofs using each TFL rule."""

    def test_or_elimination(self):
        """Proof by cases, with citations in either order."""
        rows = [
            (0, "P ∨ Q", "PR"),
            (1, "P", "PR"),
            (1, "Q ∨ P", "∨I 2"),
            (1, "Q", "PR"),
            (1, "Q ∨ P", "∨I 4"),
            (0, "Q ∨ P", "∨E 1, 2-3, 4-5"),
            (0, "Q ∨ P", "vE 4-5 1 2-3"),
        ]
        assert check(rows).is_valid

    def test_biconditional_introduction(self):
        """↔I from two subproofs cited with whitespace separators."""
        rows = [
            (0, "P → Q", "PR"),
            (0, "Q → P", "PR"),
            (1, "P", "PR"),
            (1, "Q", "→E 1, 3"),
            (1, "Q", "PR"),
            (1, "P", "→E 2, 5"),
            (0, "P ↔ Q", "↔I 3-4 5-6"),
        ]
        assert check(rows).is_valid

    def test_biconditional_elimination(self):
        """↔E works from either side, citations in any order."""
        rows = [
            (0, "P ↔ Q", "PR"),
            (0, "Q", "PR"),
            (0, "P", "↔E 2, 1"),
            (0, "Q", "↔E 1, 3"),
        ]
        assert check(rows).is_valid

    def test_negation_rules(self):
        """¬E, ¬I and IP."""
        rows = [
            (0, "¬¬P", "PR"),
            (1, "¬P", "PR"),
            (1, "⊥", "¬E 1, 2"),
            (0, "P", "IP 2-3"),
            (1, "¬P", "PR"),
            (1, "⊥", "¬E 5, 4"),
            (0, "¬¬P", "¬I 5-6"),
        ]
        assert check(rows).is_valid

    def test_explosion(self):
        assert check([(0, "⊥", "PR"), (0, "Q ∧ ¬Q", "X 1")]).is_valid

    def test_single_line_subproof(self):
        """A one-line subproof is cited as n-n; an unlabelled assumption counts as PR."""
        assert check([(1, "P", ""), (0, "P → P", "→I 1-1")]).is_valid

    def test_ascii_labels(self):
        """Rule labels accept ASCII spellings."""
        rows = [
            (0, "P & Q", "PR"),
            (0, "P -> R", "PR"),
            (0, "P", "&E 1"),
            (0, "R", "->E 2, 3"),
        ]
        assert check(rows).is_valid

    def test_derived_rules(self):
        """DS, MT, DNE and DeM."""
        assert check([(0, "P ∨ Q", "PR"), (0, "¬P", "PR"), (0, "Q", "DS 2, 1")]).is_valid
        assert check([(0, "R → S", "PR"), (0, "¬S", "PR"), (0, "¬R", "MT 1, 2")]).is_valid
        assert check([(0, "¬¬P", "PR"), (0, "P", "DNE 1")]).is_valid
        assert check([(0, "¬(P ∧ Q)", "PR"), (0, "¬P ∨ ¬Q", "DeM 1")]).is_valid

    def test_excluded_middle(self):
        rows = [
            (1, "P", "PR"),
            (1, "P ∨ ¬P", "∨I 1"),
            (1, "¬P", "PR"),
            (1, "P ∨ ¬P", "∨I 3"),
            (0, "P ∨ ¬P", "LEM 1-2, 3-4"),
        ]
        assert check(rows).is_valid

    def test_derived_rules_can_be_disabled(self):
        """With derived rules off, MT is unavailable."""
        rows = [(0, "P → Q", "PR"), (0, "¬Q", "PR"), (0, "¬P", "MT 1, 2")]
        report = check(rows, derived=False)
        diagnostic = report.by_line(3)
        assert diagnostic.reason == ReasonCode.NO_MATCHING_RULE
        assert "not available" in diagnostic.message


# =============================================================================
# MODAL RULE TESTS
# =============================================================================

class TestModalRules:
    """Test modal proofs under each system."""

    def test_necessity_distribution(self):
        """□(P → Q), □P ⊢ □Q in K."""
        assert check(DISTRIBUTION, ModalSystem.K).is_valid

    def test_possibility_elimination(self):
        """◇P, □(P → Q) ⊢ ◇Q in K."""
        assert check(POSSIBILITY, ModalSystem.K).is_valid

    def test_modal_rules_need_a_system(self):
        """Without a modal system, □E is not available."""
        report = check(DISTRIBUTION)
        assert report.by_line(4).reason == ReasonCode.NO_MATCHING_RULE

    def test_possibility_definition_and_conversion(self):
        rows = [
            (0, "◇P", "PR"),
            (0, "¬□¬P", "Def◇ 1"),
            (0, "◇P", "Def<> 2"),
        ]
        assert check(rows, ModalSystem.K).is_valid
        assert check([(0, "¬□Q", "PR"), (0, "◇¬Q", "MC 1")], ModalSystem.K).is_valid

    def test_necessity_elim_in_same_world(self):
        """□E within one world needs reflexivity."""
        rows = [(0, "□P", "PR"), (0, "P", "□E 1")]
        report = check(rows, ModalSystem.K)
        assert report.by_line(2).reason == ReasonCode.MODAL_SCOPE_VIOLATION
        assert check(rows, ModalSystem.T).is_valid

    def test_reflexivity_rules_need_t(self):
        """RT and ◇I belong to T."""
        rt = [(0, "□P", "PR"), (0, "P", "RT 1")]
        possible = [(0, "P", "PR"), (0, "◇P", "◇I 1")]
        assert check(rt, ModalSystem.K).by_line(2).reason == ReasonCode.NO_MATCHING_RULE
        assert check(possible, ModalSystem.K).by_line(2).reason == ReasonCode.NO_MATCHING_RULE
        assert check(rt, ModalSystem.T).is_valid
        assert check(possible, ModalSystem.T).is_valid

    def test_nested_import_needs_s4(self):
        """Reaching past the parent world needs transitivity."""
        rows = [
            (0, "□P", "PR"),
            (1, "□", ""),
            (2, "□", ""),
            (2, "P", "□E 1"),
        ]
        assert check(rows, ModalSystem.K).by_line(4).reason == ReasonCode.MODAL_SCOPE_VIOLATION
        assert check(rows, ModalSystem.T).by_line(4).reason == ReasonCode.MODAL_SCOPE_VIOLATION
        assert check(rows, ModalSystem.S4).is_valid

    def test_r4_carries_necessity_inward(self):
        rows = [
            (0, "□P", "PR"),
            (1, "□", ""),
            (1, "□P", "R4 1"),
            (0, "□□P", "□I 2-3"),
        ]
        assert check(rows, ModalSystem.S4).is_valid
        assert check(rows, ModalSystem.T).by_line(3).reason == ReasonCode.NO_MATCHING_RULE

    def test_strict_subproof_cannot_reiterate_outer_lines(self):
        """Reiteration into a strict subproof breaks world closure."""
        rows = [
            (0, "P", "PR"),
            (1, "□", ""),
            (1, "P", "R 1"),
            (0, "□P", "□I 2-3"),
        ]
        report = check(rows, ModalSystem.S5)
        assert report.by_line(3).reason == ReasonCode.MODAL_SCOPE_VIOLATION
        assert report.by_line(4).reason == ReasonCode.DEPENDS_ON_INVALID

    def test_import_blocked_by_discharged_assumption(self):
        """A necessity proved under a closed assumption cannot be imported."""
        rows = [
            (1, "□P", "PR"),
            (1, "□P", "R 1"),
            (0, "□P → □P", "→I 1-2"),
            (1, "□", ""),
            (1, "P", "□E 1"),
        ]
        report = check(rows, ModalSystem.S5)
        assert report.by_line(5).reason == ReasonCode.OUT_OF_SCOPE

    def test_subproof_from_another_world(self):
        """A subproof opened in the main proof cannot be discharged inside a strict subproof."""
        rows = [
            (1, "P", "PR"),
            (1, "P", "R 1"),
            (1, "□", ""),
            (1, "P → P", "→I 1-2"),
        ]
        report = check(rows, ModalSystem.K)
        assert report.by_line(4).reason == ReasonCode.MODAL_SCOPE_VIOLATION

    def test_marker_outside_subproof(self):
        """A bare □ in the main proof is not a sentence."""
        report = check([(0, "□", "PR")], ModalSystem.K)
        assert report.by_line(1).reason == ReasonCode.NO_MATCHING_RULE

    @pytest.mark.parametrize("justification", ["", "PR", "AS"])
    def test_marker_justifications_accepted(self, justification):
        rows = [(0, "□P", "PR"), (1, "□", justification), (1, "P", "□E 1"), (0, "□P", "□I 2-3")]
        assert check(rows, ModalSystem.K).is_valid

    def test_marker_with_rule_justification(self):
        """A □ opener cannot claim to be derived by a rule."""
        rows = [(0, "P", "PR"), (0, "P → Q", "PR"), (1, "□", "→E 1, 2")]
        report = check(rows, ModalSystem.K)
        assert report.by_line(3).reason == ReasonCode.NO_MATCHING_RULE
        assert "□ alone or PR" in report.by_line(3).message

    def test_marker_with_premise_citations(self):
        rows = [(0, "P", "PR"), (1, "□", "PR 1")]
        report = check(rows, ModalSystem.K)
        assert report.by_line(2).reason == ReasonCode.NO_MATCHING_RULE
        assert report.by_line(2).citation_index == 0


# =============================================================================
# FAILURE REASON TESTS
# =============================================================================

class TestFailureReasons:
    """Test that each failure is reported with its own reason."""

    def test_parse_error(self):
        report = check([(0, "P ∧", "PR")])
        assert report.by_line(1).reason == ReasonCode.PARSE_ERROR

    def test_unknown_rule(self):
        report = check([(0, "P", "PR"), (0, "P", "Magic 1")])
        assert report.by_line(2).reason == ReasonCode.NO_MATCHING_RULE
        assert "Unknown rule" in report.by_line(2).message

    def test_missing_rule(self):
        report = check([(0, "P", "PR"), (0, "P", "")])
        assert report.by_line(2).reason == ReasonCode.NO_MATCHING_RULE

    def test_bad_citation_token(self):
        report = check([(0, "P", "PR"), (0, "P", "R 1, x")])
        diagnostic = report.by_line(2)
        assert diagnostic.reason == ReasonCode.UNRESOLVED_CITATION
        assert diagnostic.citation_index == 1

    def test_missing_line(self):
        report = check([(0, "P", "PR"), (0, "P", "R 9")])
        assert report.by_line(2).reason == ReasonCode.UNRESOLVED_CITATION

    def test_forward_citation(self):
        report = check([(0, "P", "PR"), (0, "P", "R 3"), (0, "P", "R 1")])
        assert report.by_line(2).reason == ReasonCode.OUT_OF_SCOPE

    def test_self_citation(self):
        report = check([(0, "P", "PR"), (0, "P", "R 2")])
        assert report.by_line(2).reason == ReasonCode.OUT_OF_SCOPE

    def test_range_that_is_not_a_subproof(self):
        report = check([(0, "P", "PR"), (0, "Q", "PR"), (0, "P → Q", "→I 1-2")])
        assert report.by_line(3).reason == ReasonCode.UNRESOLVED_CITATION

    def test_subproof_cited_from_inside(self):
        """A subproof is not available before it closes."""
        rows = [(1, "P", "PR"), (1, "P", "R 1"), (1, "P → P", "→I 1-2")]
        report = check(rows)
        assert report.by_line(3).reason == ReasonCode.UNRESOLVED_CITATION

    def test_sibling_subproof_lines(self):
        """Lines of a sibling subproof are out of scope."""
        report = check([(1, "P", "PR"), (1, "Q", "PR"), (1, "P", "R 1")])
        assert report.by_line(3).reason == ReasonCode.OUT_OF_SCOPE

    def test_late_premise(self):
        """Premises must precede every derived line."""
        report = check([(0, "P", "PR"), (0, "P", "R 1"), (0, "Q", "PR")])
        assert report.by_line(3).reason == ReasonCode.NO_MATCHING_RULE

    def test_assumption_needs_premise_label(self):
        """A subproof's first line is justified as PR."""
        report = check([(0, "P", "PR"), (1, "P", "R 1")])
        assert report.by_line(2).reason == ReasonCode.NO_MATCHING_RULE

    def test_dangling_citation_after_removal(self):
        """Removing a cited line leaves an unresolved citation."""
        proof = Proof.from_rows(MODUS_PONENS)
        proof.remove(1)
        report = verify_proof(proof)
        assert report.by_line(2).reason == ReasonCode.UNRESOLVED_CITATION
        assert report.by_line(2).citation_index == 0


# =============================================================================
# PROPERTY TESTS
# =============================================================================

class TestProperties:
    """Test cascade, monotonicity, determinism and goal checking."""

    def test_cascade_propagation(self):
        """Every line built on an invalid line is DEPENDS_ON_INVALID."""
        rows = [
            (0, "P", "PR"),
            (0, "Q", "R 1"),
            (0, "Q ∧ P", "∧I 2, 1"),
            (0, "P ∧ (Q ∧ P)", "∧I 1, 3"),
            (0, "P ∧ P", "∧I 1, 1"),
        ]
        report = check(rows)
        assert reasons(report) == [
            None,
            ReasonCode.CONCLUSION_MISMATCH,
            ReasonCode.DEPENDS_ON_INVALID,
            ReasonCode.DEPENDS_ON_INVALID,
            None,
        ]
        assert report.by_line(3).citation_index == 0
        assert report.by_line(4).citation_index == 1

    def test_cascade_from_parse_error(self):
        report = check([(0, "P ∧", "PR"), (0, "P", "∧E 1")])
        assert report.by_line(2).reason == ReasonCode.DEPENDS_ON_INVALID

    def test_cascade_through_subproof(self):
        """An invalid line inside a cited subproof invalidates the discharge."""
        rows = [
            (0, "Q", "PR"),
            (1, "P", "PR"),
            (1, "Q", "R 9"),
            (0, "P → Q", "→I 2-3"),
        ]
        report = check(rows)
        assert report.by_line(4).reason == ReasonCode.DEPENDS_ON_INVALID

    @pytest.mark.parametrize("rows", [DISTRIBUTION, POSSIBILITY])
    def test_monotone_across_systems(self, rows):
        """A proof valid in K stays valid in T, S4 and S5."""
        for system in SYSTEMS:
            assert check(rows, system).is_valid, system

    def test_determinism(self):
        """Verifying one snapshot twice gives identical results."""
        proof = Proof.from_rows(DISTRIBUTION + [(0, "Q", "R 6")])
        first = verify_proof(proof, VerifierConfig(system=ModalSystem.K))
        second = verify_proof(proof.snapshot(), VerifierConfig(system=ModalSystem.K))
        assert first.diagnostics == second.diagnostics

    def test_one_diagnostic_per_line(self):
        """No line is left without a verdict."""
        report = check(DISTRIBUTION + [(0, "Q", "R 6")], ModalSystem.K)
        assert len(report.diagnostics) == 8
        assert all(d.status != LineStatus.UNCHECKED for d in report.diagnostics)

    def test_goal_established(self):
        assert check(DISTRIBUTION, ModalSystem.K, goal="□Q").proves_goal is True

    def test_goal_not_established(self):
        assert check(DISTRIBUTION, ModalSystem.K, goal="□R").proves_goal is False

    def test_no_goal(self):
        assert check(MODUS_PONENS).proves_goal is None

    def test_report_to_dict(self):
        data = check(MODUS_PONENS).to_dict()
        assert data["valid"] is True
        assert data["lines"][2] == {
            "line": 3,
            "status": "valid",
            "rule": "→E",
            "reason": None,
            "message": "",
            "citation_index": None,
        }

    def test_by_line_out_of_range(self):
        """Line numbers start at 1 and end at the last line."""
        report = check(MODUS_PONENS)
        for number in (0, -1, 4):
            with pytest.raises(KeyError):
                report.by_line(number)

    def test_deeply_nested_line_stays_local(self):
        """An over-deep sentence fails its own line; the pass completes."""
        rows = [
            (0, "P", "PR"),
            (0, "¬" * 1500 + "P", "PR"),
            (0, "(" * 200 + "P" + ")" * 200, "R 1"),
            (0, "P", "R 1"),
        ]
        report = check(rows)
        assert reasons(report) == [
            None,
            ReasonCode.PARSE_ERROR,
            ReasonCode.PARSE_ERROR,
            None,
        ]
        assert "nested more than" in report.by_line(2).message


# =============================================================================
# PLACEHOLDER TESTS
# =============================================================================

class TestPlaceholders:
    """Test the placeholder rule that accepts a line unchecked."""

    def test_placeholder_validates_any_line(self):
        rows = [(0, "P", "PR"), (0, "Q ∧ R", "PH 1"), (0, "R", "∧E 2")]
        report = check(rows)
        assert report.is_valid
        assert report.by_line(2).rule == "PH"
        assert report.placeholders == (2,)

    def test_placeholder_ignores_citations(self):
        """Citations on a placeholder line are not resolved."""
        report = check([(0, "P", "PR"), (0, "Q", "Placeholder 9, 7-8")])
        assert report.is_valid

    def test_placeholder_inside_strict_subproof(self):
        """A placeholder may stand in for a modal step."""
        rows = [(0, "P", "PR"), (1, "□", ""), (1, "Q", "PH 1"), (0, "□Q", "□I 2-3")]
        report = check(rows, ModalSystem.K)
        assert report.is_valid
        assert report.placeholders == (3,)

    def test_placeholder_cannot_open_subproof(self):
        report = check([(0, "P", "PR"), (1, "Q", "PH", "ordinary")])
        assert report.by_line(2).reason == ReasonCode.NO_MATCHING_RULE

    def test_goal_reached_with_placeholders(self):
        """A goal reached through a placeholder is not proved."""
        report = check([(0, "P", "PR"), (0, "Q", "PH")], goal="Q")
        assert report.is_valid
        assert report.reaches_goal is True
        assert report.proves_goal is False

    def test_goal_proved_without_placeholders(self):
        report = check(DISTRIBUTION, ModalSystem.K, goal="□Q")
        assert report.reaches_goal is True
        assert report.placeholders == ()

    def test_to_dict_lists_placeholders(self):
        data = check([(0, "P", "PR"), (0, "Q", "PH")], goal="Q").to_dict()
        assert data["placeholders"] == [2]
        assert data["reaches_goal"] is True
        assert data["proves_goal"] is False
