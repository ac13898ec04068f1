from dataclasses import dataclass, field
from datetime import time
from typing import Iterable

from app.services.catalog import WEEKDAYS, Section, day_index


@dataclass
class SectionConflict:
    first: Section  # the section that starts earlier
    second: Section
    days: list[str]
    overlap_start: time
    overlap_end: time


@dataclass
class ConflictReport:
    section_ids: list[str] = field(default_factory=list)
    conflicts: list[SectionConflict] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def conflicting_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for conflict in self.conflicts:
            seen.setdefault(conflict.first.crn)
            seen.setdefault(conflict.second.crn)
        return list(seen)


def overlaps(a: Section, b: Section) -> bool:
    # [start, end): touching boundaries do not overlap
    return a.start < b.end and b.start < a.end


def detect_conflicts(sections: Iterable[Section]) -> ConflictReport:
    unique: dict[str, Section] = {}
    for section in sections:
        unique.setdefault(section.crn, section)

    by_day: dict[str, list[Section]] = {day: [] for day in WEEKDAYS}
    for section in unique.values():
        for day in section.days:
            by_day[day].append(section)

    pairs: dict[tuple[str, str], SectionConflict] = {}
    for day in WEEKDAYS:
        group = sorted(by_day[day], key=_sort_key)
        for i, a in enumerate(group):
            for b in group[i + 1:]:
                if b.start >= a.end:
                    # sorted by start; nothing later in the group can reach a
                    break
                if not overlaps(a, b):
                    continue
                key = (a.crn, b.crn)
                conflict = pairs.get(key)
                if conflict is None:
                    pairs[key] = SectionConflict(
                        first=a,
                        second=b,
                        days=[day],
                        overlap_start=max(a.start, b.start),
                        overlap_end=min(a.end, b.end),
                    )
                else:
                    conflict.days.append(day)

    ordered = sorted(
        pairs.values(),
        key=lambda c: (day_index(c.days[0]), c.first.start, c.first.crn, c.second.crn),
    )
    return ConflictReport(section_ids=list(unique), conflicts=ordered)


def _sort_key(section: Section):
    return (section.start, section.end, section.crn)
