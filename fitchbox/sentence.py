"""
Sentence AST — The canonical formula representation for Fitchbox.

Sentences are immutable trees. Two sentences are equal iff they are
structurally identical; frozen dataclasses give equality and hashing
for free, so subtrees can be shared between lines and rule bindings.

Node kinds:
    Atomic    — A named proposition (P, Q, R1)
    Bottom    — The contradiction constant ⊥
    Neg       — Negation ¬A
    Nec       — Necessity □A
    Pos       — Possibility ◇A
    Con       — Conjunction A ∧ B
    Dis       — Disjunction A ∨ B
    Imp       — Conditional A → B
    Bic       — Biconditional A ↔ B
    BoxMarker — The bare □ that opens a strict subproof
    Metavar   — Rule-pattern placeholder, never produced for proof lines
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Iterator, Mapping


# =============================================================================
# CANONICAL SYMBOLS
# =============================================================================

NEG = "¬"
CON = "∧"
DIS = "∨"
IMP = "→"
BIC = "↔"
BOT = "⊥"
NEC = "□"
POS = "◇"


# =============================================================================
# BASE CLASS
# =============================================================================

@dataclass(frozen=True)
class Sentence:
    """
    Base class for every AST node.

    Subclasses implement `render` and `evaluate`. Rendering wraps nested
    binary sentences in parentheses, so `parse(render(s)) == s` holds for
    every sentence regardless of the precedence table.
    """

    def __str__(self) -> str:
        return self.render()

    def render(self, nested: bool = False) -> str:
        raise NotImplementedError

    @property
    def children(self) -> tuple[Sentence, ...]:
        return ()

    def negated(self) -> Neg:
        return Neg(self)

    def walk(self) -> Iterator[Sentence]:
        """Yield this node and every descendant, pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def atoms(self) -> frozenset[str]:
        """Names of all atomic propositions occurring in the sentence."""
        return frozenset(n.name for n in self.walk() if isinstance(n, Atomic))

    def metavariables(self) -> frozenset[str]:
        return frozenset(n.name for n in self.walk() if isinstance(n, Metavar))

    def is_modal(self) -> bool:
        return any(isinstance(n, (Nec, Pos)) for n in self.walk())

    def evaluate(self, valuation: Mapping[str, bool]) -> bool:
        """
        Truth-functional value under a valuation of atom names.

        Raises:
            ValueError: If an atom has no value, or the sentence contains
                modal operators (no truth-functional meaning).
        """
        raise NotImplementedError


# =============================================================================
# LEAVES
# =============================================================================

@dataclass(frozen=True)
class Atomic(Sentence):
    name: str

    def render(self, nested: bool = False) -> str:
        return self.name

    def evaluate(self, valuation: Mapping[str, bool]) -> bool:
        if self.name not in valuation:
            raise ValueError(f"No truth value assigned to atom '{self.name}'")
        return bool(valuation[self.name])


@dataclass(frozen=True)
class Bottom(Sentence):
    def render(self, nested: bool = False) -> str:
        return BOT

    def evaluate(self, valuation: Mapping[str, bool]) -> bool:
        return False


@dataclass(frozen=True)
class BoxMarker(Sentence):
    """
    The lone □ written as the first line of a strict subproof.

    It names no proposition: it only marks that the subproof is a new
    possible world entered without any assumption.
    """

    def render(self, nested: bool = False) -> str:
        return NEC

    def evaluate(self, valuation: Mapping[str, bool]) -> bool:
        raise ValueError("The strict subproof marker has no truth value")


@dataclass(frozen=True)
class Metavar(Sentence):
    """Placeholder in a rule pattern, bound to a subtree during matching."""
    name: str

    def render(self, nested: bool = False) -> str:
        return self.name

    def evaluate(self, valuation: Mapping[str, bool]) -> bool:
        raise ValueError(f"Metavariable '{self.name}' has no truth value")


# =============================================================================
# UNARY OPERATORS
# =============================================================================

@dataclass(frozen=True)
class Unary(Sentence):
    inner: Sentence
    symbol: ClassVar[str] = ""

    @property
    def children(self) -> tuple[Sentence, ...]:
        return (self.inner,)

    def render(self, nested: bool = False) -> str:
        return f"{self.symbol}{self.inner.render(nested=True)}"


@dataclass(frozen=True)
class Neg(Unary):
    symbol: ClassVar[str] = NEG

    def evaluate(self, valuation: Mapping[str, bool]) -> bool:
        return not self.inner.evaluate(valuation)


@dataclass(frozen=True)
class Nec(Unary):
    symbol: ClassVar[str] = NEC

    def evaluate(self, valuation: Mapping[str, bool]) -> bool:
        raise ValueError("Modal sentences have no truth-functional value")


@dataclass(frozen=True)
class Pos(Unary):
    symbol: ClassVar[str] = POS

    def evaluate(self, valuation: Mapping[str, bool]) -> bool:
        raise ValueError("Modal sentences have no truth-functional value")


# =============================================================================
# BINARY CONNECTIVES
# =============================================================================

@dataclass(frozen=True)
class Binary(Sentence):
    left: Sentence
    right: Sentence
    symbol: ClassVar[str] = ""
    commutative: ClassVar[bool] = False

    @property
    def children(self) -> tuple[Sentence, ...]:
        return (self.left, self.right)

    def render(self, nested: bool = False) -> str:
        body = (
            f"{self.left.render(nested=True)} {self.symbol} "
            f"{self.right.render(nested=True)}"
        )
        return f"({body})" if nested else body

    def commuted(self) -> Binary:
        """Swap operands. Only meaningful for commutative connectives."""
        return type(self)(self.right, self.left)


@dataclass(frozen=True)
class Con(Binary):
    symbol: ClassVar[str] = CON
    commutative: ClassVar[bool] = True

    def evaluate(self, valuation: Mapping[str, bool]) -> bool:
        return self.left.evaluate(valuation) and self.right.evaluate(valuation)


@dataclass(frozen=True)
class Dis(Binary):
    symbol: ClassVar[str] = DIS
    commutative: ClassVar[bool] = True

    def evaluate(self, valuation: Mapping[str, bool]) -> bool:
        return self.left.evaluate(valuation) or self.right.evaluate(valuation)


@dataclass(frozen=True)
class Imp(Binary):
    symbol: ClassVar[str] = IMP

    def evaluate(self, valuation: Mapping[str, bool]) -> bool:
        return (not self.left.evaluate(valuation)) or self.right.evaluate(valuation)


@dataclass(frozen=True)
class Bic(Binary):
    symbol: ClassVar[str] = BIC
    commutative: ClassVar[bool] = True

    def evaluate(self, valuation: Mapping[str, bool]) -> bool:
        return self.left.evaluate(valuation) == self.right.evaluate(valuation)


def syntactic_variants(sentence: Sentence) -> tuple[Sentence, ...]:
    """
    The sentence plus its commuted form, when the main connective commutes.

    Used by rules that declare commuted-operand equivalence; plain
    equality never treats `A ∧ B` and `B ∧ A` as the same sentence.
    """
    if isinstance(sentence, Binary) and sentence.commutative:
        return (sentence, sentence.commuted())
    return (sentence,)
