"""
Sentence Parser for Fitchbox.

Turns the raw text of one proof line into a Sentence AST.

Grammar (loosest binding first):
    bic     := imp ( ↔ bic )?          right-associative
    imp     := dis ( → imp )?          right-associative
    dis     := con ( ∨ con )*          left-associative
    con     := unary ( ∧ unary )*      left-associative
    unary   := ( ¬ | □ | ◇ ) unary | primary
    primary := ATOM | ⊥ | ( bic )

A line consisting of nothing but □ is the strict subproof marker.

Every operator has several accepted spellings (Unicode and ASCII); they
all normalize to the same node kind. Parsing is all-or-nothing: on any
error a ParseError carrying the offending span is raised.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..sentence import (
    Atomic,
    Bic,
    Bottom,
    BoxMarker,
    Con,
    Dis,
    Imp,
    Metavar,
    Nec,
    Neg,
    Pos,
    Sentence,
)


# =============================================================================
# OPERATOR SPELLINGS
# =============================================================================

# Canonical symbol first. Longest spellings are matched first at each
# position, so "->" wins over "-" and "<->" over "<>".
OPERATOR_SPELLINGS: dict[str, tuple[str, ...]] = {
    "BIC": ("↔", "<->", "<=>", "≡"),
    "IMP": ("→", "->", "=>", "⇒", "⊃", ">"),
    "CON": ("∧", "&", "^", "·", "*", "."),
    "DIS": ("∨", "|", "v"),
    "NEG": ("¬", "~", "∼", "−", "-", "!"),
    "NEC": ("□", "[]", "◻"),
    "POS": ("◇", "<>", "◊"),
    "BOT": ("⊥", "#", "XX", "_|_"),
}

OPEN_BRACKETS = {"(": ")", "[": "]", "{": "}"}
CLOSE_BRACKETS = frozenset(OPEN_BRACKETS.values())

# Atoms: a letter, optionally followed by digits, primes or underscores.
# Lowercase "v" alone is reserved for disjunction.
ATOM_PATTERN = re.compile(r"(?:[A-Za-uw-z])[0-9_']*")

_SPELLINGS_LONGEST_FIRST: list[tuple[str, str]] = sorted(
    (
        (spelling, kind)
        for kind, spellings in OPERATOR_SPELLINGS.items()
        for spelling in spellings
    ),
    key=lambda pair: -len(pair[0]),
)

_UNARY_NODES = {"NEG": Neg, "NEC": Nec, "POS": Pos}

# Deepest operator nesting accepted in one sentence
MAX_NESTING = 64


# =============================================================================
# ERRORS
# =============================================================================

class ParseErrorKind(Enum):
    """Why a sentence failed to parse."""
    EMPTY_INPUT = "empty_input"
    UNEXPECTED_TOKEN = "unexpected_token"
    UNMATCHED_GROUP = "unmatched_group"
    UNKNOWN_OPERATOR = "unknown_operator"
    TOO_DEEP = "too_deep"


class ParseError(Exception):
    """Raised when sentence text is malformed. No partial AST is returned."""

    def __init__(self, kind: ParseErrorKind, message: str, span: tuple[int, int]):
        self.kind = kind
        self.message = message
        self.span = span
        super().__init__(f"[{kind.value}] {message} (at {span[0]}-{span[1]})")


# =============================================================================
# LEXER
# =============================================================================

@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    start: int
    end: int


def tokenize(text: str) -> list[Token]:
    """
    Split sentence text into tokens, normalizing operator spellings.

    Raises:
        ParseError: On a character that is neither an operator, a bracket,
            an atom nor whitespace (UNKNOWN_OPERATOR).
    """
    tokens: list[Token] = []
    pos = 0

    while pos < len(text):
        char = text[pos]

        if char.isspace():
            pos += 1
            continue

        # "[]" must be tried before "[" as a bracket
        for spelling, kind in _SPELLINGS_LONGEST_FIRST:
            if text.startswith(spelling, pos):
                tokens.append(Token(kind, spelling, pos, pos + len(spelling)))
                pos += len(spelling)
                break
        else:
            if char in OPEN_BRACKETS:
                tokens.append(Token("LPAREN", char, pos, pos + 1))
                pos += 1
                continue
            if char in CLOSE_BRACKETS:
                tokens.append(Token("RPAREN", char, pos, pos + 1))
                pos += 1
                continue

            match = ATOM_PATTERN.match(text, pos)
            if match:
                tokens.append(Token("ATOM", match.group(), pos, match.end()))
                pos = match.end()
                continue

            raise ParseError(
                ParseErrorKind.UNKNOWN_OPERATOR,
                f"Unknown symbol {char!r}",
                (pos, pos + 1),
            )

    return tokens


# =============================================================================
# PARSER
# =============================================================================

class SentenceParser:
    """Recursive descent parser over a token list."""

    def __init__(self, text: str, metavariables: bool = False):
        self.text = text
        self.metavariables = metavariables
        self.tokens = tokenize(text)
        self.pos = 0
        self.nesting = 0

    def current(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def match(self, *kinds: str) -> bool:
        token = self.current()
        return token is not None and token.kind in kinds

    def descend(self, token: Token) -> None:
        self.nesting += 1
        if self.nesting > MAX_NESTING:
            raise ParseError(
                ParseErrorKind.TOO_DEEP,
                f"Sentence nested more than {MAX_NESTING} levels deep",
                (token.start, token.end),
            )

    def parse(self) -> Sentence:
        if not self.tokens:
            raise ParseError(
                ParseErrorKind.EMPTY_INPUT,
                "Sentence is empty",
                (0, len(self.text)),
            )

        if len(self.tokens) == 1 and self.tokens[0].kind == "NEC":
            return BoxMarker()

        sentence = self.parse_bic()

        token = self.current()
        if token is not None:
            if token.kind == "RPAREN":
                raise ParseError(
                    ParseErrorKind.UNMATCHED_GROUP,
                    f"Closing {token.value!r} has no matching opening bracket",
                    (token.start, token.end),
                )
            raise ParseError(
                ParseErrorKind.UNEXPECTED_TOKEN,
                f"Unexpected {token.value!r} after complete sentence",
                (token.start, token.end),
            )

        # Long flat chains build deep trees without deep recursion here
        if _height(sentence) > MAX_NESTING:
            raise ParseError(
                ParseErrorKind.TOO_DEEP,
                f"Sentence nested more than {MAX_NESTING} levels deep",
                (0, len(self.text)),
            )
        return sentence

    def parse_bic(self) -> Sentence:
        left = self.parse_imp()
        if self.match("BIC"):
            self.descend(self.advance())
            right = self.parse_bic()
            self.nesting -= 1
            return Bic(left, right)
        return left

    def parse_imp(self) -> Sentence:
        left = self.parse_dis()
        if self.match("IMP"):
            self.descend(self.advance())
            right = self.parse_imp()
            self.nesting -= 1
            return Imp(left, right)
        return left

    def parse_dis(self) -> Sentence:
        sentence = self.parse_con()
        while self.match("DIS"):
            self.advance()
            sentence = Dis(sentence, self.parse_con())
        return sentence

    def parse_con(self) -> Sentence:
        sentence = self.parse_unary()
        while self.match("CON"):
            self.advance()
            sentence = Con(sentence, self.parse_unary())
        return sentence

    def parse_unary(self) -> Sentence:
        token = self.current()
        if token is not None and token.kind in _UNARY_NODES:
            self.descend(self.advance())
            operand = self.parse_unary()
            self.nesting -= 1
            return _UNARY_NODES[token.kind](operand)
        return self.parse_primary()

    def parse_primary(self) -> Sentence:
        token = self.current()

        if token is None:
            end = len(self.text)
            raise ParseError(
                ParseErrorKind.UNEXPECTED_TOKEN,
                "Unexpected end of sentence",
                (end, end),
            )

        if token.kind == "ATOM":
            self.advance()
            if self.metavariables:
                return Metavar(token.value)
            return Atomic(token.value)

        if token.kind == "BOT":
            self.advance()
            return Bottom()

        if token.kind == "LPAREN":
            opening = self.advance()
            self.descend(opening)
            inner = self.parse_bic()
            self.nesting -= 1
            closing = self.current()
            if closing is None or closing.kind != "RPAREN":
                raise ParseError(
                    ParseErrorKind.UNMATCHED_GROUP,
                    f"Opening {opening.value!r} is never closed",
                    (opening.start, opening.end),
                )
            if OPEN_BRACKETS[opening.value] != closing.value:
                raise ParseError(
                    ParseErrorKind.UNMATCHED_GROUP,
                    f"{opening.value!r} closed by {closing.value!r}",
                    (opening.start, closing.end),
                )
            self.advance()
            return inner

        if token.kind == "RPAREN":
            raise ParseError(
                ParseErrorKind.UNMATCHED_GROUP,
                f"Closing {token.value!r} has no matching opening bracket",
                (token.start, token.end),
            )

        raise ParseError(
            ParseErrorKind.UNEXPECTED_TOKEN,
            f"Expected a sentence, found {token.value!r}",
            (token.start, token.end),
        )


def _height(sentence: Sentence) -> int:
    height = 0
    stack = [(sentence, 1)]
    while stack:
        node, level = stack.pop()
        height = max(height, level)
        stack.extend((child, level + 1) for child in node.children)
    return height


def parse_sentence(text: str) -> Sentence:
    """
    Parse one sentence.

    Raises:
        ParseError: On empty input, unknown symbols, unbalanced brackets,
            tokens out of place, or nesting deeper than MAX_NESTING.
    """
    return SentenceParser(text).parse()


def parse_pattern(text: str) -> Sentence:
    """Parse a rule pattern: every atom becomes a metavariable."""
    return SentenceParser(text, metavariables=True).parse()
