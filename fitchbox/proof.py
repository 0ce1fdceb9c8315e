"""
Proof Document Model for Fitchbox.

A proof is an ordered list of lines. Each line carries its own nesting
depth and, when it is the assumption of a subproof, the kind of subproof
it opens. The tree of scopes ("Fitch boxes") is derived from that list
on demand as an immutable ProofStructure snapshot, which is what the
verification engine reads.

Domain Objects:
    ScopeKind       — Root proof, ordinary subproof, or modal (strict) subproof
    Line            — One sentence plus its justification
    Scope           — One node of the scope tree, linked to its parent by id
    SubproofSummary — What a closed subproof exposes to the outside
    ProofStructure  — Read-only snapshot with scope and visibility queries
    Proof           — The editable document

Visibility (Fitch scoping):
    A line may cite an earlier line whose scope is its own scope or one of
    its enclosing scopes, and the summary (assumption, result) of a closed
    subproof whose parent is such a scope. Lines inside a closed subproof
    are never visible from outside it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Sequence, Union

from .parsing.justification import (
    Citation,
    Justification,
    JustificationError,
    parse_justification,
    renumber_justification,
)
from .parsing.sentence_parser import ParseError, parse_sentence
from .sentence import BoxMarker, Sentence

logger = logging.getLogger(__name__)


# Justification labels that mark a premise or an assumption
PREMISE_LABELS = frozenset({"PR", "AS", "PREMISE", "ASSUMPTION", "HYP"})


class ScopeKind(Enum):
    ROOT = "root"
    ORDINARY = "ordinary"
    MODAL = "modal"


class DocumentError(Exception):
    """Raised when an edit would leave the document structurally malformed."""
    pass


# =============================================================================
# LINE
# =============================================================================

@dataclass(frozen=True)
class Line:
    """
    One proof line.

    Lines are immutable: edits build a replacement through `Line.create`,
    which parses the sentence and justification once. Parse failures are
    kept on the line rather than raised, so a malformed line only
    invalidates itself.
    """
    sentence_text: str
    justification_text: str = ""
    depth: int = 0
    opens: Optional[ScopeKind] = None

    sentence: Optional[Sentence] = field(default=None, compare=False)
    parse_error: Optional[ParseError] = field(default=None, compare=False)
    justification: Optional[Justification] = field(default=None, compare=False)
    justification_error: Optional[JustificationError] = field(default=None, compare=False)

    @classmethod
    def create(
        cls,
        sentence_text: str,
        justification_text: str = "",
        depth: int = 0,
        opens: Optional[ScopeKind] = None,
    ) -> Line:
        sentence = None
        parse_error = None
        try:
            sentence = parse_sentence(sentence_text)
        except ParseError as e:
            parse_error = e

        justification = None
        justification_error = None
        try:
            justification = parse_justification(justification_text)
        except JustificationError as e:
            justification_error = e

        # The bare □ marker always opens a strict subproof
        if opens is not None and isinstance(sentence, BoxMarker):
            opens = ScopeKind.MODAL

        return cls(
            sentence_text=sentence_text,
            justification_text=justification_text,
            depth=depth,
            opens=opens,
            sentence=sentence,
            parse_error=parse_error,
            justification=justification,
            justification_error=justification_error,
        )

    def with_sentence(self, sentence_text: str) -> Line:
        line = Line.create(sentence_text, self.justification_text, self.depth, self.opens)
        # Replacing the □ marker turns a strict subproof into an ordinary one
        if self.is_marker and not line.is_marker and self.opens is not None:
            line = Line.create(sentence_text, self.justification_text, self.depth, ScopeKind.ORDINARY)
        return line

    def with_justification(self, justification_text: str) -> Line:
        return Line.create(self.sentence_text, justification_text, self.depth, self.opens)

    @property
    def is_marker(self) -> bool:
        return isinstance(self.sentence, BoxMarker)

    @property
    def rule_label(self) -> Optional[str]:
        return self.justification.rule if self.justification else None

    @property
    def citations(self) -> tuple[Citation, ...]:
        return self.justification.citations if self.justification else ()

    def is_premise_labelled(self) -> bool:
        label = self.rule_label
        return label is not None and label.upper() in PREMISE_LABELS


# =============================================================================
# SCOPE TREE
# =============================================================================

ScopeItem = Union[int, "Scope"]


@dataclass
class Scope:
    """
    A node of the scope tree.

    `items` holds line numbers and nested scopes in document order. The
    parent is referenced by id only; ProofStructure owns every scope.
    """
    scope_id: int
    parent_id: Optional[int]
    kind: ScopeKind
    depth: int
    first: int
    last: int = 0
    items: list[ScopeItem] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.kind == ScopeKind.ROOT

    def contains_line(self, number: int) -> bool:
        return self.first <= number <= self.last


@dataclass(frozen=True)
class SubproofSummary:
    """
    The outward face of a closed subproof.

    `assumption` is None for a strict subproof opened by the bare marker.
    `result` is the last line written directly in the subproof, or None
    when the subproof ends inside a nested subproof.
    """
    kind: ScopeKind
    first: int
    last: int
    assumption: Optional[Sentence]
    result: Optional[Sentence]


class ProofStructure:
    """
    Immutable snapshot of a proof with its derived scope tree.

    Raises:
        DocumentError: If depths do not form a valid nesting (a line deeper
            than its predecessor that does not open a subproof, a depth
            jump of more than one, or a subproof opened at depth 0).
    """

    def __init__(
        self,
        lines: Sequence[Line],
        goal: Optional[Sentence] = None,
        revision: int = 0,
    ):
        self.lines: tuple[Line, ...] = tuple(lines)
        self.goal = goal
        self.revision = revision
        self._scopes: dict[int, Scope] = {}
        self._scope_of_line: dict[int, int] = {}
        self._by_range: dict[tuple[int, int], Scope] = {}
        self._build()

    def _build(self) -> None:
        root = Scope(0, None, ScopeKind.ROOT, depth=0, first=1)
        self._scopes[0] = root
        stack = [root]

        for number, line in enumerate(self.lines, start=1):
            current = stack[-1]

            if line.depth < 0:
                raise DocumentError(f"Line {number} has negative depth {line.depth}")

            if line.opens is not None:
                if line.depth < 1:
                    raise DocumentError(
                        f"Line {number} opens a subproof at depth 0"
                    )
                if line.depth > current.depth + 1:
                    raise DocumentError(
                        f"Line {number} jumps from depth {current.depth} to {line.depth}"
                    )
                while stack[-1].depth >= line.depth:
                    stack.pop()
                parent = stack[-1]
                scope = Scope(
                    scope_id=len(self._scopes),
                    parent_id=parent.scope_id,
                    kind=line.opens,
                    depth=line.depth,
                    first=number,
                )
                self._scopes[scope.scope_id] = scope
                parent.items.append(scope)
                stack.append(scope)
            else:
                if line.depth > current.depth:
                    raise DocumentError(
                        f"Line {number} at depth {line.depth} does not open a subproof"
                    )
                while stack[-1].depth > line.depth:
                    stack.pop()

            stack[-1].items.append(number)
            self._scope_of_line[number] = stack[-1].scope_id
            for scope in stack:
                scope.last = number

        for scope in self._scopes.values():
            if not scope.is_root:
                self._by_range[(scope.first, scope.last)] = scope

    # -------------------------------------------------------------------------
    # Lines
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self.lines)

    def has_line(self, number: int) -> bool:
        return 1 <= number <= len(self.lines)

    def line(self, number: int) -> Line:
        if not self.has_line(number):
            raise KeyError(f"No line {number}")
        return self.lines[number - 1]

    def numbers(self) -> range:
        return range(1, len(self.lines) + 1)

    # -------------------------------------------------------------------------
    # Scopes
    # -------------------------------------------------------------------------

    @property
    def root(self) -> Scope:
        return self._scopes[0]

    def scope(self, scope_id: int) -> Scope:
        return self._scopes[scope_id]

    def scopes(self) -> list[Scope]:
        return list(self._scopes.values())

    def subproofs(self) -> list[Scope]:
        return [s for s in self._scopes.values() if not s.is_root]

    def scope_of(self, number: int) -> Scope:
        """The innermost scope containing the line (its own subproof for an assumption)."""
        return self._scopes[self._scope_of_line[number]]

    def depth_of(self, number: int) -> int:
        return self.scope_of(number).depth

    def index_of(self, number: int) -> int:
        """Position of the line among the items of its enclosing scope."""
        return self.scope_of(number).items.index(number)

    def parent(self, scope: Scope) -> Optional[Scope]:
        if scope.parent_id is None:
            return None
        return self._scopes[scope.parent_id]

    def ancestors(self, scope: Scope) -> list[Scope]:
        """The scope itself followed by every enclosing scope up to the root."""
        chain = []
        node: Optional[Scope] = scope
        while node is not None:
            chain.append(node)
            node = self.parent(node)
        return chain

    def encloses(self, outer: Scope, inner: Scope) -> bool:
        return any(s.scope_id == outer.scope_id for s in self.ancestors(inner))

    def subproof_at(self, first: int, last: int) -> Optional[Scope]:
        return self._by_range.get((first, last))

    def summary(self, scope: Scope) -> SubproofSummary:
        opener = self.line(scope.first)
        assumption = None if opener.is_marker else opener.sentence

        result = None
        tail = scope.items[-1]
        if isinstance(tail, int):
            result = self.line(tail).sentence
            if tail == scope.first and opener.is_marker:
                result = None

        return SubproofSummary(
            kind=scope.kind,
            first=scope.first,
            last=scope.last,
            assumption=assumption,
            result=result,
        )

    def has_assumption(self, scope: Scope) -> bool:
        """True for every subproof except a strict one opened by the bare marker."""
        if scope.is_root:
            return False
        return not self.line(scope.first).is_marker

    # -------------------------------------------------------------------------
    # Visibility
    # -------------------------------------------------------------------------

    def line_visible(self, citing: int, target: int) -> bool:
        """Ordinary Fitch visibility of one line from another."""
        if not (self.has_line(target) and target < citing):
            return False
        target_scope = self.scope_of(target)
        return self.encloses(target_scope, self.scope_of(citing))

    def subproof_visible(self, citing: int, scope: Scope) -> bool:
        """A subproof is visible once closed, from its parent scope or deeper."""
        if scope.is_root or scope.last >= citing:
            return False
        citing_scope = self.scope_of(citing)
        if self.encloses(scope, citing_scope):
            return False
        parent = self.parent(scope)
        return parent is not None and self.encloses(parent, citing_scope)

    def visible_from(self, citing: int) -> tuple[list[int], list[Scope]]:
        """
        Everything a line may cite by ordinary scoping.

        Returns:
            Line numbers of the current and enclosing scopes that precede
            the citing line, plus the closed subproofs of those scopes.
        """
        lines: list[int] = []
        closed: list[Scope] = []
        for scope in self.ancestors(self.scope_of(citing)):
            for item in scope.items:
                if isinstance(item, int):
                    if item < citing:
                        lines.append(item)
                elif item.last < citing:
                    closed.append(item)
        return sorted(lines), sorted(closed, key=lambda s: s.first)

    def hypotheses_over(self, number: int) -> list[Scope]:
        """Subproofs containing the line whose assumption is still in force there."""
        return [
            scope for scope in self.ancestors(self.scope_of(number))
            if self.has_assumption(scope)
        ]

    # -------------------------------------------------------------------------
    # Citation graph
    # -------------------------------------------------------------------------

    def cited_lines(self, number: int) -> set[int]:
        """Every line a justification reaches, ranges expanded."""
        cited: set[int] = set()
        for citation in self.line(number).citations:
            if citation.end is None:
                cited.add(citation.start)
            else:
                cited.update(range(citation.start, citation.end + 1))
        return cited

    def dependents(self, number: int) -> set[int]:
        """Lines whose justification reaches `number`, directly or transitively."""
        affected = {number}
        changed = True
        while changed:
            changed = False
            for candidate in self.numbers():
                if candidate in affected:
                    continue
                if self.cited_lines(candidate) & affected:
                    affected.add(candidate)
                    changed = True
        affected.discard(number)
        return affected


# =============================================================================
# EDITABLE DOCUMENT
# =============================================================================

class EditKind(Enum):
    INSERT = "insert"
    REMOVE = "remove"
    EDIT = "edit"


@dataclass(frozen=True)
class ProofEdit:
    """Notification sent to subscribers after every committed edit."""
    kind: EditKind
    numbers: tuple[int, ...]
    revision: int


RowLike = Union[Sequence[Any], dict[str, Any]]


class Proof:
    """
    The editable proof document.

    Every mutation validates the resulting structure before it is
    committed, bumps `revision`, and notifies subscribers. Citations in
    other lines are renumbered so they keep pointing at the same content;
    citations to removed lines become dangling.
    """

    def __init__(self, lines: Iterable[Line] = (), goal: Optional[Sentence] = None):
        self._lines: list[Line] = list(lines)
        self.goal = goal
        self.revision = 0
        self._listeners: list[Callable[[ProofEdit], None]] = []
        self._structure = ProofStructure(self._lines, goal, self.revision)

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[RowLike],
        goal: Optional[Union[str, Sentence]] = None,
    ) -> Proof:
        """
        Rebuild a document from rows.

        A row is `(depth, sentence, justification)`, optionally with a fourth
        `opens` element, or a dict with the same keys. When `opens` is not
        given, a row opens a subproof if it is deeper than the previous row,
        or if it sits at depth > 0 and is labelled as a premise or is the
        bare □ marker.

        Raises:
            DocumentError: If the rows do not nest correctly.
            ParseError: If `goal` is given as malformed text.
        """
        lines: list[Line] = []
        previous_depth = 0

        for row in rows:
            depth, sentence_text, justification_text, opens = _unpack_row(row)
            probe = Line.create(sentence_text, justification_text, depth)

            if opens is None and depth > 0:
                if depth > previous_depth or probe.is_premise_labelled() or probe.is_marker:
                    opens = ScopeKind.ORDINARY

            lines.append(Line.create(sentence_text, justification_text, depth, opens))
            previous_depth = depth

        if isinstance(goal, str):
            goal = parse_sentence(goal)
        return cls(lines, goal=goal)

    def to_rows(self) -> list[dict[str, Any]]:
        rows = []
        for line in self._lines:
            row: dict[str, Any] = {
                "depth": line.depth,
                "sentence": line.sentence_text,
                "justification": line.justification_text,
            }
            if line.opens is not None:
                row["opens"] = line.opens.value
            rows.append(row)
        return rows

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def lines(self) -> tuple[Line, ...]:
        return tuple(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def line(self, number: int) -> Line:
        return self._structure.line(number)

    def snapshot(self) -> ProofStructure:
        """The read-only structure for the current revision."""
        return self._structure

    def subscribe(self, listener: Callable[[ProofEdit], None]) -> None:
        self._listeners.append(listener)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def insert_line(
        self,
        position: int,
        sentence_text: str,
        justification_text: str = "",
        depth: Optional[int] = None,
    ) -> Line:
        """
        Insert a line so that it becomes line number `position`.

        Depth defaults to the depth of the line before it.
        """
        if depth is None:
            depth = self._previous_depth(position)
        line = Line.create(sentence_text, justification_text, depth)
        self._insert(position, line)
        return line

    def open_subproof(
        self,
        position: int,
        sentence_text: str,
        kind: ScopeKind = ScopeKind.ORDINARY,
        depth: Optional[int] = None,
        justification_text: str = "PR",
    ) -> Line:
        """
        Insert an assumption opening a new subproof at line `position`.

        Depth defaults to one deeper than the line before it.
        """
        if depth is None:
            depth = self._previous_depth(position) + 1
        line = Line.create(sentence_text, justification_text, depth, opens=kind)
        self._insert(position, line)
        return line

    def remove(self, number: int) -> tuple[int, ...]:
        """
        Remove a line; removing an assumption removes its whole subproof.

        Returns:
            The numbers (before removal) of every removed line.
        """
        structure = self._structure
        if not structure.has_line(number):
            raise DocumentError(f"Cannot remove line {number}: no such line")

        first, last = number, number
        if structure.line(number).opens is not None:
            scope = structure.scope_of(number)
            first, last = scope.first, scope.last

        count = last - first + 1

        def shift(n: int) -> Optional[int]:
            if n < first:
                return n
            if n > last:
                return n - count
            return None

        remaining = self._lines[: first - 1] + self._lines[last:]
        self._commit(
            [_renumber(line, shift) for line in remaining],
            EditKind.REMOVE,
            tuple(range(first, last + 1)),
        )
        return tuple(range(first, last + 1))

    def edit_sentence(self, number: int, sentence_text: str) -> Line:
        line = self.line(number).with_sentence(sentence_text)
        self._replace(number, line)
        return line

    def edit_justification(self, number: int, justification_text: str) -> Line:
        line = self.line(number).with_justification(justification_text)
        self._replace(number, line)
        return line

    def _check_position(self, position: int) -> None:
        if not 1 <= position <= len(self._lines) + 1:
            raise DocumentError(f"Cannot insert at line {position}")

    def _previous_depth(self, position: int) -> int:
        self._check_position(position)
        return self._lines[position - 2].depth if position > 1 else 0

    def _insert(self, position: int, line: Line) -> None:
        self._check_position(position)

        def shift(n: int) -> Optional[int]:
            return n + 1 if n >= position else n

        shifted = [_renumber(existing, shift) for existing in self._lines]
        shifted.insert(position - 1, line)
        self._commit(shifted, EditKind.INSERT, (position,))

    def _replace(self, number: int, line: Line) -> None:
        lines = list(self._lines)
        lines[number - 1] = line
        self._commit(lines, EditKind.EDIT, (number,))

    def _commit(self, lines: list[Line], kind: EditKind, numbers: tuple[int, ...]) -> None:
        structure = ProofStructure(lines, self.goal, self.revision + 1)

        self._lines = lines
        self._structure = structure
        self.revision += 1
        logger.debug("Proof %s lines %s (revision %d)", kind.value, numbers, self.revision)

        edit = ProofEdit(kind=kind, numbers=numbers, revision=self.revision)
        for listener in self._listeners:
            listener(edit)


# =============================================================================
# HELPERS
# =============================================================================

def _unpack_row(row: RowLike) -> tuple[int, str, str, Optional[ScopeKind]]:
    if isinstance(row, dict):
        depth = int(row.get("depth", 0))
        sentence_text = str(row.get("sentence", ""))
        justification_text = str(row.get("justification", ""))
        opens_value = row.get("opens")
    else:
        if len(row) not in (3, 4):
            raise DocumentError(f"Row {row!r} must have 3 or 4 elements")
        depth, sentence_text, justification_text = int(row[0]), str(row[1]), str(row[2])
        opens_value = row[3] if len(row) == 4 else None

    opens = None
    if opens_value:
        try:
            opens = ScopeKind(opens_value)
        except ValueError:
            raise DocumentError(f"Unknown subproof kind: {opens_value!r}")
        if opens == ScopeKind.ROOT:
            raise DocumentError("A row cannot open the root scope")

    return depth, sentence_text, justification_text, opens


def _renumber(line: Line, shift: Callable[[int], Optional[int]]) -> Line:
    """Rewrite a line's citations through `shift`; unmapped targets dangle."""
    text = renumber_justification(line.justification_text, shift)
    if text is None:
        return line
    return line.with_justification(text)
