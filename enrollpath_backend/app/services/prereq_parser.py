import re
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class CourseTerm:
    code: str


@dataclass(frozen=True)
class AllOf:
    terms: tuple


@dataclass(frozen=True)
class AnyOf:
    terms: tuple


@dataclass(frozen=True)
class EitherOf:
    """One of the listed alternatives, worded "either X or Y" in the catalog."""

    terms: tuple


@dataclass(frozen=True)
class RawRequirement:
    """Catalog text the grammar could not read, kept verbatim."""

    text: str


PrereqExpr = Union[CourseTerm, AllOf, AnyOf, EitherOf, RawRequirement]

NONE_VALUES = {"", "none", "none listed", "n/a", "na"}

# "CS301", "CS 301", "CS-301", "cs301a"
_CODE_RE = re.compile(r"^([A-Za-z]{2,4})[\s-]?(\d{3,4}[A-Za-z]?)$")

_TOKEN_RE = re.compile(
    r"\s*(?:"
    r"(?P<code>[A-Za-z]{2,4}[\s-]?\d{3,4}[A-Za-z]?)\b"
    r"|(?P<word>either|and|or)\b"
    r"|(?P<punct>[(),;&])"
    r")",
    re.IGNORECASE,
)


class _GrammarError(ValueError):
    pass


def normalize_code(raw: str) -> str | None:
    """'cs 301' -> 'CS301'. Returns None when the text is not a course code."""
    match = _CODE_RE.match(str(raw or "").strip())
    if not match:
        return None
    return f"{match.group(1)}{match.group(2)}".upper()


def parse_prereqs(prereq_str: str | None) -> PrereqExpr | None:
    """
    Parse a catalog prerequisite string.

    Grammar ("and" binds tighter than "or"):
      expr     := and_expr ("or" and_expr)*
      and_expr := atom (("and" | "," | ";" | "&") atom)*
      atom     := CODE | "(" expr ")" | "either" and_expr ("or" and_expr)+

    Returns None when the course has no prerequisites. Anything the grammar
    cannot consume entirely comes back as a single RawRequirement.
    """
    if prereq_str is None:
        return None
    s = str(prereq_str).strip().rstrip(".")
    if s.lower() in NONE_VALUES:
        return None
    try:
        tokens = _tokenize(s)
        parser = _Parser(tokens)
        expr = parser.parse_expr()
        if not parser.at_end():
            raise _GrammarError(f"unexpected {parser.peek()!r}")
    except _GrammarError:
        return RawRequirement(text=s)
    return expr


def prereq_course_codes(expr: PrereqExpr | None) -> list[str]:
    """Every course code referenced by ``expr``, left to right."""
    if expr is None or isinstance(expr, RawRequirement):
        return []
    if isinstance(expr, CourseTerm):
        return [expr.code]
    if isinstance(expr, (AllOf, AnyOf, EitherOf)):
        codes = []
        for term in expr.terms:
            codes.extend(prereq_course_codes(term))
        return codes
    raise TypeError(f"Unknown prerequisite expression: {expr!r}")


def expression_to_dict(expr: PrereqExpr | None) -> dict | None:
    if expr is None:
        return None
    if isinstance(expr, CourseTerm):
        return {"type": "course", "code": expr.code}
    if isinstance(expr, RawRequirement):
        return {"type": "raw", "text": expr.text}
    if isinstance(expr, AllOf):
        return {"type": "all", "terms": [expression_to_dict(t) for t in expr.terms]}
    if isinstance(expr, AnyOf):
        return {"type": "any", "terms": [expression_to_dict(t) for t in expr.terms]}
    if isinstance(expr, EitherOf):
        return {"type": "either", "terms": [expression_to_dict(t) for t in expr.terms]}
    raise TypeError(f"Unknown prerequisite expression: {expr!r}")


def _tokenize(s: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    while pos < len(s):
        if s[pos:].strip() == "":
            break
        match = _TOKEN_RE.match(s, pos)
        if not match or match.end() == pos:
            raise _GrammarError(f"unreadable text at {pos}")
        if match.group("code"):
            tokens.append(("code", normalize_code(match.group("code"))))
        elif match.group("word"):
            tokens.append(("word", match.group("word").lower()))
        else:
            punct = match.group("punct")
            tokens.append(("and", punct) if punct in ",;&" else ("paren", punct))
        pos = match.end()
    if not tokens:
        raise _GrammarError("empty")
    return tokens


class _Parser:
    def __init__(self, tokens: list[tuple[str, str]]):
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> tuple[str, str] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def _advance(self) -> tuple[str, str]:
        token = self.peek()
        if token is None:
            raise _GrammarError("unexpected end")
        self.pos += 1
        return token

    def _is_or(self) -> bool:
        return self.peek() == ("word", "or")

    def _is_and(self) -> bool:
        token = self.peek()
        return token is not None and (token == ("word", "and") or token[0] == "and")

    def parse_expr(self) -> PrereqExpr:
        terms = [self.parse_and()]
        while self._is_or():
            self._advance()
            terms.append(self.parse_and())
        return terms[0] if len(terms) == 1 else AnyOf(tuple(terms))

    def parse_and(self) -> PrereqExpr:
        terms = [self.parse_atom()]
        while self._is_and():
            self._advance()
            terms.append(self.parse_atom())
        return terms[0] if len(terms) == 1 else AllOf(tuple(terms))

    def parse_atom(self) -> PrereqExpr:
        kind, value = self._advance()
        if kind == "code":
            return CourseTerm(value)
        if (kind, value) == ("paren", "("):
            inner = self.parse_expr()
            if self._advance() != ("paren", ")"):
                raise _GrammarError("unbalanced parenthesis")
            return inner
        if (kind, value) == ("word", "either"):
            terms = [self.parse_and()]
            while self._is_or():
                self._advance()
                terms.append(self.parse_and())
            if len(terms) < 2:
                raise _GrammarError("'either' needs at least two alternatives")
            return EitherOf(tuple(terms))
        raise _GrammarError(f"unexpected {value!r}")
