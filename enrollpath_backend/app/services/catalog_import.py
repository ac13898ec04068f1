import csv
import logging
from datetime import datetime, time
from decimal import Decimal, InvalidOperation
from io import StringIO

from sqlalchemy.orm import Session

from app.models.course import Course
from app.models.section import Section, SectionRoster
from app.services.catalog import day_index, parse_days
from app.services.prereq_parser import normalize_code

logger = logging.getLogger(__name__)


def parse_catalog_csv(content: str) -> list[dict]:
    reader = csv.DictReader(StringIO(content))
    rows = []
    for row in reader:
        code = normalize_code(row.get("course_code") or row.get("code") or row.get("course") or "")
        if not code:
            continue
        rows.append(
            {
                "code": code,
                "title": (row.get("course_title") or row.get("title") or "").strip() or None,
                "credits": _to_decimal(row.get("credits")) or Decimal("0"),
                "prerequisites": (row.get("prerequisites") or row.get("prereqs") or "").strip() or None,
                "requirement_note": (row.get("requirement_note") or row.get("note") or "").strip() or None,
            }
        )
    return rows


def parse_sections_csv(content: str) -> list[dict]:
    """Rows: crn, course_code, label, days, start_time, end_time, location,
    instructor, capacity, roster (";"-separated user ids)."""
    reader = csv.DictReader(StringIO(content))
    rows = []
    for number, row in enumerate(reader, start=2):
        crn = (row.get("crn") or "").strip()
        code = normalize_code(row.get("course_code") or row.get("code") or "")
        if not crn or not code:
            continue
        roster = [m.strip() for m in (row.get("roster") or "").split(";") if m.strip()]
        days = sorted(parse_days(row.get("days")), key=day_index)
        try:
            start = _to_time(row.get("start_time"))
            end = _to_time(row.get("end_time"))
        except ValueError as exc:
            raise ValueError(f"sections line {number}: {exc}") from exc
        rows.append(
            {
                "crn": crn,
                "course_code": code,
                "label": (row.get("label") or row.get("section") or "01").strip(),
                "days": ",".join(days),
                "start_time": start,
                "end_time": end,
                "location": (row.get("location") or "").strip() or None,
                "instructor": (row.get("instructor") or "").strip() or None,
                "capacity": int(row.get("capacity") or 0),
                "roster": list(dict.fromkeys(roster)),
            }
        )
    return rows


def import_catalog_csv(db: Session, courses_csv: str, sections_csv: str | None = None) -> dict:
    """Upsert courses (and optionally sections) from CSV text."""
    course_count = 0
    for row in parse_catalog_csv(courses_csv):
        _upsert_course(db, row)
        course_count += 1
    db.flush()

    section_count = 0
    if sections_csv:
        for row in parse_sections_csv(sections_csv):
            course = db.query(Course).filter(Course.code == row["course_code"]).first()
            if course is None:
                logger.warning("Section %s references unknown course %s", row["crn"], row["course_code"])
                continue
            _upsert_section(db, course, row)
            section_count += 1
    db.commit()
    logger.info("Imported %d courses and %d sections", course_count, section_count)
    return {"courses": course_count, "sections": section_count}


def _upsert_course(db: Session, row: dict) -> Course:
    existing = db.query(Course).filter(Course.code == row["code"]).first()
    if existing is None:
        existing = Course(code=row["code"])
        db.add(existing)
    existing.title = row["title"] or existing.title
    existing.credits = row["credits"]
    existing.prerequisites = row["prerequisites"]
    existing.requirement_note = row["requirement_note"]
    return existing


def _upsert_section(db: Session, course: Course, row: dict) -> Section:
    roster = row["roster"]
    if len(roster) > row["capacity"]:
        raise ValueError(f"Section {row['crn']}: roster exceeds capacity {row['capacity']}")
    section = db.query(Section).filter(Section.crn == row["crn"]).first()
    if section is None:
        section = Section(crn=row["crn"])
        db.add(section)
    section.course = course
    section.label = row["label"]
    section.days = row["days"]
    section.start_time = row["start_time"]
    section.end_time = row["end_time"]
    section.location = row["location"]
    section.instructor = row["instructor"]
    section.capacity = row["capacity"]
    current = {member.user_id: member for member in section.roster}
    section.roster = [current.get(member) or SectionRoster(user_id=member) for member in roster]
    section.enrollment = len(roster)
    return section


def _to_decimal(value: str | None) -> Decimal | None:
    if value is None or not str(value).strip():
        return None
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        return None


def _to_time(value: str | None) -> time:
    raw = (value or "").strip().upper()
    for fmt in ("%H:%M", "%H:%M:%S", "%I:%M %p", "%I:%M%p"):
        try:
            return datetime.strptime(raw, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"unreadable time {value!r}")
