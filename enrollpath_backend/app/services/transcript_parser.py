import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterator

from app.services.prereq_parser import normalize_code

LETTER_GRADES = {
    "A+", "A", "A-", "B+", "B", "B-", "C+", "C", "C-", "D+", "D", "D-", "F",
}
PASS_FAIL_GRADES = {"P", "NP"}
WITHDRAWAL_GRADES = {"W", "WP", "WF"}

_GRADE_POINTS = {
    "A+": 4.0,
    "A": 4.0,
    "A-": 3.7,
    "B+": 3.3,
    "B": 3.0,
    "B-": 2.7,
    "C+": 2.3,
    "C": 2.0,
    "C-": 1.7,
    "D+": 1.3,
    "D": 1.0,
    "D-": 0.7,
    "F": 0.0,
}

_MAX_CREDITS = Decimal("20")

# Term labels ("FALL 2022", "Spring-2023") are matched first so they never read as codes.
# Codes: "CS301", "CS 301", "CSCI-1230"
_TOKEN_RE = re.compile(
    r"(?P<term>\b(?i:FALL|SPRING|SUMMER|WINTER|AUTUMN|TERM)[ \t]?-?[ \t]?(?:19|20)\d{2}\b)"
    r"|(?P<code>\b[A-Z]{2,4}[ \t]?-?[ \t]?\d{3,4}\b)"
    r"|(?P<number>(?<![\w.])\d+(?:\.\d+)?(?![\w.]))"
    r"|(?P<word>\S+)"
)


@dataclass(frozen=True)
class Token:
    kind: str  # TERM / CODE / GRADE / NUMBER / WORD
    text: str


@dataclass(frozen=True)
class CandidateLine:
    line_number: int
    raw_text: str
    course_code: str
    course_title: str | None
    grade: str
    credits: Decimal


def grade_points(grade: str) -> float | None:
    return _GRADE_POINTS.get(grade.strip().upper())


def is_passing(grade: str) -> bool:
    normalized = grade.strip().upper()
    if normalized in LETTER_GRADES:
        return normalized != "F"
    return normalized == "P"


def tokenize(line: str) -> list[Token]:
    tokens = []
    for match in _TOKEN_RE.finditer(line):
        if match.group("term"):
            tokens.append(Token("TERM", match.group("term")))
        elif match.group("code"):
            compact = re.sub(r"[\s-]", "", match.group("code"))
            tokens.append(Token("CODE", normalize_code(compact)))
        elif match.group("number"):
            tokens.append(Token("NUMBER", match.group("number")))
        else:
            word = match.group("word")
            upper = word.upper()
            if word == upper and upper in LETTER_GRADES | PASS_FAIL_GRADES | WITHDRAWAL_GRADES:
                tokens.append(Token("GRADE", upper))
            else:
                tokens.append(Token("WORD", word))
    return tokens


def parse_line(line: str, line_number: int = 0) -> CandidateLine | None:
    """Read one transcript line as (code, grade, credits).

    The code is the first one on the line and the credit token is the first
    plausible number after it. Term labels are never codes, so both
    "FALL 2022 CS301 A 3" and "CS301 Algorithms FALL 2022 A 3" read as CS301.
    The grade must sit right before the credits, or else right after them.
    Anything else is not a course line.
    """
    tokens = tokenize(line)
    code_index = None
    credit_index = None
    credits = None
    for i, token in enumerate(tokens):
        if token.kind == "CODE":
            if code_index is None:
                code_index = i
            continue
        if token.kind != "NUMBER" or code_index is None:
            continue
        value = _to_decimal(token.text)
        if value is not None and Decimal(0) < value <= _MAX_CREDITS:
            credit_index, credits = i, value
            break
    if credit_index is None:
        return None

    grade_index = None
    if credit_index - 1 > code_index and tokens[credit_index - 1].kind == "GRADE":
        grade_index = credit_index - 1
    elif credit_index + 1 < len(tokens) and tokens[credit_index + 1].kind == "GRADE":
        grade_index = credit_index + 1
    if grade_index is None:
        return None

    title_end = min(grade_index, credit_index)
    title_words = [t.text for t in tokens[code_index + 1:title_end] if t.kind != "TERM"]
    title = " ".join(title_words).strip(" -–—") or None

    return CandidateLine(
        line_number=line_number,
        raw_text=line,
        course_code=tokens[code_index].text,
        course_title=title,
        grade=tokens[grade_index].text,
        credits=credits,
    )


def parse_transcript_lines(content: str) -> list[CandidateLine]:
    rows = []
    for number, line in _normalize_lines(content):
        candidate = parse_line(line, number)
        if candidate is not None:
            rows.append(candidate)
    return rows


def _normalize_lines(content: str) -> Iterator[tuple[int, str]]:
    for number, line in enumerate(content.splitlines(), start=1):
        clean = re.sub(r"\s+", " ", line).strip()
        if clean:
            yield number, clean


def _to_decimal(value: str) -> Decimal | None:
    try:
        return Decimal(value)
    except InvalidOperation:
        return None
