from dataclasses import dataclass, field
from datetime import time
from decimal import Decimal
from types import MappingProxyType
from typing import Iterable

from app.services.prereq_parser import PrereqExpr, normalize_code

WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

_DAY_ALIASES = {
    "m": "Mon", "mo": "Mon", "mon": "Mon", "monday": "Mon",
    "t": "Tue", "tu": "Tue", "tue": "Tue", "tues": "Tue", "tuesday": "Tue",
    "w": "Wed", "we": "Wed", "wed": "Wed", "wednesday": "Wed",
    "r": "Thu", "th": "Thu", "thu": "Thu", "thur": "Thu", "thurs": "Thu", "thursday": "Thu",
    "f": "Fri", "fr": "Fri", "fri": "Fri", "friday": "Fri",
    "s": "Sat", "sa": "Sat", "sat": "Sat", "saturday": "Sat",
    "u": "Sun", "su": "Sun", "sun": "Sun", "sunday": "Sun",
}


def parse_days(raw: str | Iterable[str] | None) -> frozenset[str]:
    """Accepts "Mon,Wed", ["mon", "Wednesday"] or "M/W/F". Raises ValueError on unknown days."""
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        parts = raw.replace("/", ",").replace(" ", ",").split(",")
    else:
        parts = list(raw)
    days = set()
    for part in parts:
        key = str(part).strip().lower()
        if not key:
            continue
        if key not in _DAY_ALIASES:
            raise ValueError(f"Unknown meeting day: {part!r}")
        days.add(_DAY_ALIASES[key])
    return frozenset(days)


def day_index(day: str) -> int:
    return WEEKDAYS.index(day)


@dataclass(frozen=True)
class Course:
    code: str
    title: str | None
    credits: Decimal
    prerequisites: PrereqExpr | None = None
    prerequisite_text: str | None = None
    requirement_note: str | None = None


@dataclass(frozen=True)
class Section:
    crn: str
    course_code: str
    label: str
    days: frozenset[str]
    start: time
    end: time
    location: str | None = None
    instructor: str | None = None
    capacity: int = 0
    enrollment: int = 0
    roster: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self):
        unknown = set(self.days) - set(WEEKDAYS)
        if unknown:
            raise ValueError(f"Section {self.crn}: unknown meeting days {sorted(unknown)}")
        if self.start >= self.end:
            raise ValueError(f"Section {self.crn}: start {self.start} must precede end {self.end}")
        if self.capacity < 0:
            raise ValueError(f"Section {self.crn}: capacity must be >= 0")
        if not 0 <= self.enrollment <= self.capacity:
            raise ValueError(
                f"Section {self.crn}: enrollment {self.enrollment} outside 0..{self.capacity}"
            )
        if len(self.roster) != self.enrollment:
            raise ValueError(
                f"Section {self.crn}: roster has {len(self.roster)} members, enrollment is {self.enrollment}"
            )

    @property
    def ordered_days(self) -> list[str]:
        return sorted(self.days, key=day_index)

    @property
    def seats_available(self) -> int:
        return self.capacity - self.enrollment


class Catalog:
    """Immutable snapshot of published courses and their sections."""

    def __init__(self, courses: Iterable[Course], sections: Iterable[Section] = ()):
        by_code: dict[str, Course] = {}
        for course in courses:
            by_code[course.code] = course
        grouped: dict[str, list[Section]] = {}
        by_crn: dict[str, Section] = {}
        for section in sections:
            grouped.setdefault(section.course_code, []).append(section)
            by_crn[section.crn] = section
        self._courses = MappingProxyType(by_code)
        self._sections = MappingProxyType(
            {
                code: tuple(sorted(items, key=lambda s: (s.label, s.crn)))
                for code, items in grouped.items()
            }
        )
        self._by_crn = MappingProxyType(by_crn)

    def __len__(self) -> int:
        return len(self._courses)

    def __contains__(self, code: str) -> bool:
        return self.get_course(code) is not None

    def get_course(self, code: str) -> Course | None:
        key = normalize_code(code)
        if key is None:
            return None
        return self._courses.get(key)

    def get_sections_for_course(self, code: str) -> list[Section]:
        key = normalize_code(code)
        if key is None:
            return []
        return list(self._sections.get(key, ()))

    def get_section(self, crn: str) -> Section | None:
        return self._by_crn.get(str(crn).strip())

    def find_courses(self, query: str | None, days: Iterable[str] | None = None) -> list[Course]:
        needle = (query or "").strip().lower()
        compact = needle.replace(" ", "").replace("-", "")
        day_filter = parse_days(days) if days else frozenset()
        results = []
        for code in sorted(self._courses):
            course = self._courses[code]
            if needle:
                title = (course.title or "").lower()
                if compact not in code.lower() and needle not in title:
                    continue
            if day_filter and not any(
                section.days & day_filter for section in self._sections.get(code, ())
            ):
                continue
            results.append(course)
        return results
