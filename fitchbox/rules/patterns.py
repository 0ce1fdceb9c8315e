"""
Pattern matching over the Sentence AST.

Rule patterns are ordinary sentences whose leaves are metavariables.
Matching walks pattern and sentence together, binding each metavariable
to the subtree it meets. A binding map is never mutated: every
successful step returns a new map, so failed alternatives (other
citation orders, other schemas) cannot leak bindings into each other.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from ..proof import ScopeKind, SubproofSummary
from ..sentence import Binary, BoxMarker, Metavar, Sentence, Unary

Bindings = Mapping[str, Sentence]


class PatternError(Exception):
    """Raised when a pattern cannot be instantiated from a binding map."""
    pass


def match(pattern: Sentence, sentence: Sentence, bindings: Bindings) -> Optional[Bindings]:
    """
    Match `sentence` against `pattern` under existing bindings.

    Returns:
        The extended binding map, or None on a shape mismatch or a
        binding conflict.
    """
    if isinstance(pattern, Metavar):
        if isinstance(sentence, (BoxMarker, Metavar)):
            return None
        bound = bindings.get(pattern.name)
        if bound is None:
            extended = dict(bindings)
            extended[pattern.name] = sentence
            return extended
        return bindings if bound == sentence else None

    if type(pattern) is not type(sentence):
        return None

    if not pattern.children:
        return bindings if pattern == sentence else None

    result: Optional[Bindings] = bindings
    for sub_pattern, sub_sentence in zip(pattern.children, sentence.children):
        result = match(sub_pattern, sub_sentence, result)
        if result is None:
            return None
    return result


def instantiate(pattern: Sentence, bindings: Bindings, partial: bool = False) -> Sentence:
    """
    Substitute bound sentences for metavariables.

    With `partial`, unbound metavariables are left in place (used to show
    the expected shape of a conclusion with free metavariables).

    Raises:
        PatternError: If a metavariable is unbound and `partial` is False.
    """
    if isinstance(pattern, Metavar):
        if pattern.name in bindings:
            return bindings[pattern.name]
        if partial:
            return pattern
        raise PatternError(f"Metavariable '{pattern.name}' is unbound")

    if isinstance(pattern, Unary):
        return type(pattern)(instantiate(pattern.inner, bindings, partial))

    if isinstance(pattern, Binary):
        return type(pattern)(
            instantiate(pattern.left, bindings, partial),
            instantiate(pattern.right, bindings, partial),
        )

    return pattern


@dataclass(frozen=True)
class SubproofPattern:
    """
    Shape a cited subproof must have.

    An `assumption` of None requires a strict subproof opened by the bare
    marker; otherwise the subproof's assumption must match it.
    """
    result: Sentence
    assumption: Optional[Sentence] = None
    kind: ScopeKind = ScopeKind.ORDINARY

    def metavariables(self) -> frozenset[str]:
        names = self.result.metavariables()
        if self.assumption is not None:
            names |= self.assumption.metavariables()
        return names

    def render(self) -> str:
        opener = "□" if self.assumption is None else str(self.assumption)
        return f"[{opener} … {self.result}]"


def match_subproof(
    pattern: SubproofPattern,
    summary: SubproofSummary,
    bindings: Bindings,
) -> Optional[Bindings]:
    if summary.kind != pattern.kind:
        return None
    if (pattern.assumption is None) != (summary.assumption is None):
        return None
    if summary.result is None:
        return None

    result: Optional[Bindings] = bindings
    if pattern.assumption is not None:
        result = match(pattern.assumption, summary.assumption, result)
        if result is None:
            return None
    return match(pattern.result, summary.result, result)
