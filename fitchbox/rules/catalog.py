"""
Rule Catalog for Fitchbox.

Every inference rule is declared as data: one or more schemas, each a
list of premise patterns (line patterns or subproof shapes) and a
conclusion pattern. A single matcher (`apply_rule`) serves every rule,
so derived rules are nothing but catalog entries in another ruleset.

The dispatch table maps each RuleSetName to its rules and is built once
at import time. Rule labels written in proofs are resolved through
`RuleId.lookup`, which accepts the displayed label, its ASCII spellings
and the long CamelCase names.

Rulesets:
    TFL_BASIC   — PR R ∧I ∧E ∨I ∨E →I →E ↔I ↔E ¬I ¬E IP X
    TFL_DERIVED — DS MT DNE LEM DeM
    MODAL_K     — □I □E Def◇ MC ◇E
    MODAL_T     — RT ◇I
    MODAL_S4    — R4
    MODAL_S5    — R5
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Union

from ..diagnostics import CheckError, ReasonCode
from ..parsing.sentence_parser import OPERATOR_SPELLINGS, parse_pattern
from ..proof import PREMISE_LABELS, ScopeKind, SubproofSummary
from ..sentence import Sentence, syntactic_variants
from .patterns import Bindings, SubproofPattern, instantiate, match, match_subproof


class CatalogError(Exception):
    """Raised when a rule schema is malformed."""
    pass


# =============================================================================
# IDENTIFIERS
# =============================================================================

class RuleSetName(Enum):
    TFL_BASIC = "tfl_basic"
    TFL_DERIVED = "tfl_derived"
    MODAL_K = "modal_k"
    MODAL_T = "modal_t"
    MODAL_S4 = "modal_s4"
    MODAL_S5 = "modal_s5"


class RuleId(Enum):
    """Closed enumeration of rules; values are the labels shown to users."""
    PREMISE = "PR"
    PLACEHOLDER = "PH"
    REITERATION = "R"
    AND_INTRO = "∧I"
    AND_ELIM = "∧E"
    OR_INTRO = "∨I"
    OR_ELIM = "∨E"
    CONDITIONAL_INTRO = "→I"
    CONDITIONAL_ELIM = "→E"
    BICONDITIONAL_INTRO = "↔I"
    BICONDITIONAL_ELIM = "↔E"
    NEG_INTRO = "¬I"
    NEG_ELIM = "¬E"
    INDIRECT_PROOF = "IP"
    EXPLOSION = "X"
    DISJUNCTIVE_SYLLOGISM = "DS"
    MODUS_TOLLENS = "MT"
    DOUBLE_NEGATION_ELIM = "DNE"
    EXCLUDED_MIDDLE = "LEM"
    DE_MORGAN = "DeM"
    NECESSITY_INTRO = "□I"
    NECESSITY_ELIM = "□E"
    POSSIBILITY_DEF = "Def◇"
    MODAL_CONVERSION = "MC"
    POSSIBILITY_INTRO = "◇I"
    POSSIBILITY_ELIM = "◇E"
    REFLEXIVITY = "RT"
    TRANSITIVITY = "R4"
    EUCLIDEAN = "R5"

    @classmethod
    def lookup(cls, label: str) -> Optional[RuleId]:
        """Resolve a label as written in a proof, or None if unknown."""
        return _ALIASES.get(_normalize(label))


def _normalize(label: str) -> str:
    return label.strip().casefold()


_LONG_NAMES: dict[RuleId, tuple[str, ...]] = {
    RuleId.PREMISE: tuple(PREMISE_LABELS),
    RuleId.PLACEHOLDER: ("Placeholder",),
    RuleId.REITERATION: ("Reiteration", "Reit"),
    RuleId.AND_INTRO: ("AndIntro",),
    RuleId.AND_ELIM: ("AndElim",),
    RuleId.OR_INTRO: ("OrIntro",),
    RuleId.OR_ELIM: ("OrElim",),
    RuleId.CONDITIONAL_INTRO: ("ConditionalIntro", "CP"),
    RuleId.CONDITIONAL_ELIM: ("ConditionalElim", "MP"),
    RuleId.BICONDITIONAL_INTRO: ("BiconditionalIntro",),
    RuleId.BICONDITIONAL_ELIM: ("BiconditionalElim",),
    RuleId.NEG_INTRO: ("NegIntro",),
    RuleId.NEG_ELIM: ("NegElim",),
    RuleId.INDIRECT_PROOF: ("IndirectProof",),
    RuleId.EXPLOSION: ("Explosion",),
    RuleId.DISJUNCTIVE_SYLLOGISM: ("DisjunctiveSyllogism",),
    RuleId.MODUS_TOLLENS: ("ModusTollens",),
    RuleId.DOUBLE_NEGATION_ELIM: ("DoubleNegationElim",),
    RuleId.EXCLUDED_MIDDLE: ("ExcludedMiddle",),
    RuleId.DE_MORGAN: ("DeMorgan",),
    RuleId.NECESSITY_INTRO: ("NecessityIntro",),
    RuleId.NECESSITY_ELIM: ("NecessityElim",),
    RuleId.POSSIBILITY_DEF: ("PossibilityDef",),
    RuleId.MODAL_CONVERSION: ("ModalConversion",),
    RuleId.POSSIBILITY_INTRO: ("PossibilityIntro",),
    RuleId.POSSIBILITY_ELIM: ("PossibilityElim",),
}

_GLYPH_KINDS = {"∧": "CON", "∨": "DIS", "→": "IMP", "↔": "BIC", "¬": "NEG", "□": "NEC", "◇": "POS"}


def _build_aliases() -> dict[str, RuleId]:
    aliases: dict[str, RuleId] = {}
    for rule_id in RuleId:
        label = rule_id.value
        names = {label, rule_id.name, *_LONG_NAMES.get(rule_id, ())}
        for glyph, kind in _GLYPH_KINDS.items():
            if glyph in label:
                names.update(label.replace(glyph, spelling) for spelling in OPERATOR_SPELLINGS[kind])
        for name in names:
            aliases[_normalize(name)] = rule_id
    return aliases


_ALIASES = _build_aliases()


# =============================================================================
# RULE DEFINITIONS
# =============================================================================

class Equivalence(Enum):
    """How a derived conclusion is compared with the line's sentence."""
    STRUCTURAL = "structural"
    COMMUTED = "commuted"


class Transfer(Enum):
    """
    How a rule's line citations are resolved.

    LOCAL:  ordinary Fitch visibility within one world
    IMPORT: may reach into another world if the modal system grants access
    """
    LOCAL = "local"
    IMPORT = "import"


Premise = Union[Sentence, SubproofPattern]
Material = Union[Sentence, SubproofSummary]


@dataclass(frozen=True)
class Schema:
    """
    One premise list plus conclusion.

    Metavariables listed in `free` may appear in the conclusion without
    being bound by a premise; they bind while matching the line itself.

    Raises:
        CatalogError: If the conclusion uses an unbound, undeclared
            metavariable.
    """
    premises: tuple[Premise, ...]
    conclusion: Sentence
    free: frozenset[str] = frozenset()

    def __post_init__(self):
        bound: set[str] = set()
        for premise in self.premises:
            bound |= premise.metavariables()
        unbound = self.conclusion.metavariables() - bound - self.free
        if unbound:
            raise CatalogError(
                f"Conclusion {self.conclusion} uses unbound metavariables {sorted(unbound)}"
            )

    def render(self) -> str:
        premises = ", ".join(
            p.render() if isinstance(p, SubproofPattern) else str(p)
            for p in self.premises
        )
        return f"{premises} ⊢ {self.conclusion}" if premises else f"⊢ {self.conclusion}"


@dataclass(frozen=True)
class RuleDefinition:
    rule_id: RuleId
    ruleset: RuleSetName
    description: str
    schemas: tuple[Schema, ...] = ()
    equivalence: Equivalence = Equivalence.STRUCTURAL
    unordered: bool = False
    transfer: Transfer = Transfer.LOCAL
    world_closed: bool = False

    @property
    def label(self) -> str:
        return self.rule_id.value

    @property
    def arities(self) -> set[int]:
        return {len(schema.premises) for schema in self.schemas}


# =============================================================================
# SCHEMA HELPERS
# =============================================================================

def _line(text: str) -> Sentence:
    return parse_pattern(text)


def _sub(assumption: str, result: str) -> SubproofPattern:
    return SubproofPattern(result=parse_pattern(result), assumption=parse_pattern(assumption))


def _strict(result: str) -> SubproofPattern:
    return SubproofPattern(result=parse_pattern(result), kind=ScopeKind.MODAL)


def _possible(assumption: str, result: str) -> SubproofPattern:
    return SubproofPattern(
        result=parse_pattern(result),
        assumption=parse_pattern(assumption),
        kind=ScopeKind.MODAL,
    )


def _schema(premises: Sequence[Premise], conclusion: str, free: str = "") -> Schema:
    return Schema(tuple(premises), parse_pattern(conclusion), frozenset(free.split()))


# =============================================================================
# DISPATCH TABLE
# =============================================================================

_DEFINITIONS: tuple[RuleDefinition, ...] = (
    # Basic truth-functional logic
    RuleDefinition(RuleId.PREMISE, RuleSetName.TFL_BASIC, "Premise, or assumption opening a subproof"),
    RuleDefinition(
        RuleId.PLACEHOLDER, RuleSetName.TFL_BASIC,
        "Accept the line unchecked while working elsewhere in the proof",
    ),
    RuleDefinition(
        RuleId.REITERATION, RuleSetName.TFL_BASIC, "Repeat an available line",
        (_schema([_line("A")], "A"),),
    ),
    RuleDefinition(
        RuleId.AND_INTRO, RuleSetName.TFL_BASIC, "Conjunction introduction",
        (_schema([_line("A"), _line("B")], "A ∧ B"),),
        unordered=True,
    ),
    RuleDefinition(
        RuleId.AND_ELIM, RuleSetName.TFL_BASIC, "Conjunction elimination",
        (_schema([_line("A ∧ B")], "A"), _schema([_line("A ∧ B")], "B")),
    ),
    RuleDefinition(
        RuleId.OR_INTRO, RuleSetName.TFL_BASIC, "Disjunction introduction",
        (_schema([_line("A")], "A ∨ B", free="B"),),
        equivalence=Equivalence.COMMUTED,
    ),
    RuleDefinition(
        RuleId.OR_ELIM, RuleSetName.TFL_BASIC, "Disjunction elimination (proof by cases)",
        (_schema([_line("A ∨ B"), _sub("A", "C"), _sub("B", "C")], "C"),),
        unordered=True,
    ),
    RuleDefinition(
        RuleId.CONDITIONAL_INTRO, RuleSetName.TFL_BASIC, "Conditional introduction",
        (_schema([_sub("A", "B")], "A → B"),),
    ),
    RuleDefinition(
        RuleId.CONDITIONAL_ELIM, RuleSetName.TFL_BASIC, "Conditional elimination (modus ponens)",
        (_schema([_line("A → B"), _line("A")], "B"),),
        unordered=True,
    ),
    RuleDefinition(
        RuleId.BICONDITIONAL_INTRO, RuleSetName.TFL_BASIC, "Biconditional introduction",
        (_schema([_sub("A", "B"), _sub("B", "A")], "A ↔ B"),),
        unordered=True,
    ),
    RuleDefinition(
        RuleId.BICONDITIONAL_ELIM, RuleSetName.TFL_BASIC, "Biconditional elimination",
        (
            _schema([_line("A ↔ B"), _line("A")], "B"),
            _schema([_line("A ↔ B"), _line("B")], "A"),
        ),
        unordered=True,
    ),
    RuleDefinition(
        RuleId.NEG_INTRO, RuleSetName.TFL_BASIC, "Negation introduction",
        (_schema([_sub("A", "⊥")], "¬A"),),
    ),
    RuleDefinition(
        RuleId.NEG_ELIM, RuleSetName.TFL_BASIC, "Negation elimination",
        (_schema([_line("¬A"), _line("A")], "⊥"),),
        unordered=True,
    ),
    RuleDefinition(
        RuleId.INDIRECT_PROOF, RuleSetName.TFL_BASIC, "Indirect proof",
        (_schema([_sub("¬A", "⊥")], "A"),),
    ),
    RuleDefinition(
        RuleId.EXPLOSION, RuleSetName.TFL_BASIC, "Explosion",
        (_schema([_line("⊥")], "A", free="A"),),
    ),

    # Derived truth-functional rules
    RuleDefinition(
        RuleId.DISJUNCTIVE_SYLLOGISM, RuleSetName.TFL_DERIVED, "Disjunctive syllogism",
        (
            _schema([_line("A ∨ B"), _line("¬A")], "B"),
            _schema([_line("A ∨ B"), _line("¬B")], "A"),
        ),
        unordered=True,
    ),
    RuleDefinition(
        RuleId.MODUS_TOLLENS, RuleSetName.TFL_DERIVED, "Modus tollens",
        (_schema([_line("A → B"), _line("¬B")], "¬A"),),
        unordered=True,
    ),
    RuleDefinition(
        RuleId.DOUBLE_NEGATION_ELIM, RuleSetName.TFL_DERIVED, "Double negation elimination",
        (_schema([_line("¬¬A")], "A"),),
    ),
    RuleDefinition(
        RuleId.EXCLUDED_MIDDLE, RuleSetName.TFL_DERIVED, "Tertium non datur",
        (_schema([_sub("A", "B"), _sub("¬A", "B")], "B"),),
        unordered=True,
    ),
    RuleDefinition(
        RuleId.DE_MORGAN, RuleSetName.TFL_DERIVED, "De Morgan's laws",
        (
            _schema([_line("¬(A ∨ B)")], "¬A ∧ ¬B"),
            _schema([_line("¬A ∧ ¬B")], "¬(A ∨ B)"),
            _schema([_line("¬(A ∧ B)")], "¬A ∨ ¬B"),
            _schema([_line("¬A ∨ ¬B")], "¬(A ∧ B)"),
        ),
    ),

    # System K
    RuleDefinition(
        RuleId.NECESSITY_INTRO, RuleSetName.MODAL_K, "Necessity introduction from a strict subproof",
        (_schema([_strict("A")], "□A"),),
        world_closed=True,
    ),
    RuleDefinition(
        RuleId.NECESSITY_ELIM, RuleSetName.MODAL_K, "Necessity elimination into an accessible world",
        (_schema([_line("□A")], "A"),),
        transfer=Transfer.IMPORT,
    ),
    RuleDefinition(
        RuleId.POSSIBILITY_DEF, RuleSetName.MODAL_K, "Definition of possibility",
        (
            _schema([_line("◇A")], "¬□¬A"),
            _schema([_line("¬□¬A")], "◇A"),
        ),
    ),
    RuleDefinition(
        RuleId.MODAL_CONVERSION, RuleSetName.MODAL_K, "Modal conversion",
        (
            _schema([_line("¬□A")], "◇¬A"),
            _schema([_line("◇¬A")], "¬□A"),
            _schema([_line("¬◇A")], "□¬A"),
            _schema([_line("□¬A")], "¬◇A"),
        ),
    ),
    RuleDefinition(
        RuleId.POSSIBILITY_ELIM, RuleSetName.MODAL_K, "Possibility elimination through a modal subproof",
        (_schema([_line("◇A"), _possible("A", "B")], "◇B"),),
        world_closed=True,
    ),

    # System T
    RuleDefinition(
        RuleId.REFLEXIVITY, RuleSetName.MODAL_T, "Necessity holds in the current world",
        (_schema([_line("□A")], "A"),),
    ),
    RuleDefinition(
        RuleId.POSSIBILITY_INTRO, RuleSetName.MODAL_T, "What is true is possible",
        (_schema([_line("A")], "◇A"),),
    ),

    # System S4
    RuleDefinition(
        RuleId.TRANSITIVITY, RuleSetName.MODAL_S4, "Carry a necessity into any accessible world",
        (_schema([_line("□A")], "□A"),),
        transfer=Transfer.IMPORT,
    ),

    # System S5
    RuleDefinition(
        RuleId.EUCLIDEAN, RuleSetName.MODAL_S5, "Carry a non-necessity or possibility into any world",
        (
            _schema([_line("¬□A")], "¬□A"),
            _schema([_line("◇A")], "◇A"),
        ),
        transfer=Transfer.IMPORT,
    ),
)

CATALOG: dict[RuleSetName, dict[RuleId, RuleDefinition]] = {name: {} for name in RuleSetName}
for _definition in _DEFINITIONS:
    CATALOG[_definition.ruleset][_definition.rule_id] = _definition


def rules_in(rulesets: Sequence[RuleSetName]) -> list[RuleDefinition]:
    """Every rule of the given rulesets, in catalog order."""
    enabled = set(rulesets)
    return [d for d in _DEFINITIONS if d.ruleset in enabled]


def definitions_for(rule_id: RuleId, rulesets: Sequence[RuleSetName]) -> list[RuleDefinition]:
    """The definitions of `rule_id` across the enabled rulesets."""
    return [CATALOG[name][rule_id] for name in rulesets if rule_id in CATALOG[name]]


def ruleset_of(rule_id: RuleId) -> RuleSetName:
    for definition in _DEFINITIONS:
        if definition.rule_id == rule_id:
            return definition.ruleset
    raise KeyError(rule_id)


# =============================================================================
# MATCHING
# =============================================================================

def _match_premise(premise: Premise, material: Material, bindings: Bindings) -> Optional[Bindings]:
    if isinstance(premise, SubproofPattern):
        if not isinstance(material, SubproofSummary):
            return None
        return match_subproof(premise, material, bindings)
    if not isinstance(material, Sentence):
        return None
    return match(premise, material, bindings)


def _match_premises(
    premises: Sequence[Premise],
    materials: Sequence[Material],
) -> tuple[Optional[Bindings], int]:
    """Match in order; returns bindings, or None plus the failing position."""
    bindings: Optional[Bindings] = {}
    for position, (premise, material) in enumerate(zip(premises, materials)):
        bindings = _match_premise(premise, material, bindings)
        if bindings is None:
            return None, position
    return bindings, -1


def _conclusion_matches(definition: RuleDefinition, schema: Schema, bindings: Bindings, sentence: Sentence) -> bool:
    candidates = (sentence,)
    if definition.equivalence == Equivalence.COMMUTED:
        candidates = syntactic_variants(sentence)
    return any(match(schema.conclusion, c, bindings) is not None for c in candidates)


def apply_rule(
    definition: RuleDefinition,
    materials: Sequence[Material],
    sentence: Sentence,
) -> Bindings:
    """
    Check that `sentence` follows from the cited material by `definition`.

    `materials` holds, per citation in order, the cited line's sentence or
    the cited subproof's summary. Unordered rules try every citation order.

    Returns:
        The binding map of the first schema that fits.

    Raises:
        CheckError: NO_MATCHING_RULE if no schema's premises fit,
            CONCLUSION_MISMATCH if premises fit but the conclusion differs.
    """
    if len(materials) not in definition.arities:
        expected = " or ".join(str(n) for n in sorted(definition.arities))
        raise CheckError(
            ReasonCode.NO_MATCHING_RULE,
            f"{definition.label} takes {expected} citation(s), got {len(materials)}",
        )

    expected_conclusion: Optional[Sentence] = None
    first_failure: Optional[int] = None

    for schema in definition.schemas:
        if len(schema.premises) != len(materials):
            continue

        orders = [tuple(range(len(materials)))]
        if definition.unordered:
            orders = list(itertools.permutations(range(len(materials))))

        for order in orders:
            bindings, failed_at = _match_premises(schema.premises, [materials[i] for i in order])
            if bindings is None:
                if first_failure is None:
                    first_failure = order[failed_at]
                continue
            if _conclusion_matches(definition, schema, bindings, sentence):
                return bindings
            if expected_conclusion is None:
                expected_conclusion = instantiate(schema.conclusion, bindings, partial=True)

    if expected_conclusion is not None:
        raise CheckError(
            ReasonCode.CONCLUSION_MISMATCH,
            f"{definition.label} yields {expected_conclusion}, not {sentence}",
        )

    citation_index = None if definition.unordered else first_failure
    raise CheckError(
        ReasonCode.NO_MATCHING_RULE,
        f"Cited material does not fit {definition.label} ({_describe(definition)})",
        citation_index,
    )


def _describe(definition: RuleDefinition) -> str:
    return " | ".join(schema.render() for schema in definition.schemas)
