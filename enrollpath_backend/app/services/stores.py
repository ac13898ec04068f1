"""Narrow store interfaces the engine reads and writes through, plus their
SQLAlchemy-backed implementations."""

from decimal import Decimal
from typing import Iterable, Protocol

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from app.core.errors import NotFoundError
from app.models.course import Course as CourseRow
from app.models.document import DocumentUpload
from app.models.section import Section as SectionRow
from app.models.transcript import Transcript, TranscriptLine
from app.services.catalog import Catalog, Course, Section, parse_days
from app.services.prereq_parser import normalize_code, parse_prereqs
from app.services.transcript_record import ParsedLine, TranscriptRecord


class CatalogStore(Protocol):
    def get_course(self, code: str) -> Course | None: ...

    def list_sections(self, code: str) -> list[Section]: ...

    def search(self, query: str | None, days: Iterable[str] | None = None) -> list[Course]: ...

    def snapshot(self) -> Catalog: ...


class TranscriptStore(Protocol):
    def load_record(self, record_id: int) -> TranscriptRecord | None: ...

    def save_record(self, record: TranscriptRecord) -> TranscriptRecord: ...

    def list_records(self, user_id: str) -> list[TranscriptRecord]: ...


class DocumentStore(Protocol):
    def fetch(self, upload_ref: int, user_id: str) -> tuple[bytes, str | None]: ...

    def put(self, user_id: str, filename: str | None, data: bytes) -> int: ...


class SqlCatalogStore:
    def __init__(self, db: Session):
        self.db = db

    def get_course(self, code: str) -> Course | None:
        key = normalize_code(code)
        if key is None:
            return None
        row = self.db.query(CourseRow).filter(CourseRow.code == key).first()
        return to_course(row) if row else None

    def list_sections(self, code: str) -> list[Section]:
        key = normalize_code(code)
        if key is None:
            return []
        rows = (
            self.db.query(SectionRow)
            .join(CourseRow, SectionRow.course_id == CourseRow.id)
            .filter(CourseRow.code == key)
            .options(selectinload(SectionRow.roster), selectinload(SectionRow.course))
            .order_by(SectionRow.label, SectionRow.crn)
            .all()
        )
        return [to_section(row) for row in rows]

    def search(self, query: str | None, days: Iterable[str] | None = None) -> list[Course]:
        q = self.db.query(CourseRow).options(selectinload(CourseRow.sections))
        needle = (query or "").strip()
        if needle:
            compact = needle.replace(" ", "").replace("-", "")
            q = q.filter(
                or_(
                    CourseRow.code.ilike(_contains(compact), escape="\\"),
                    CourseRow.title.ilike(_contains(needle), escape="\\"),
                )
            )
        day_filter = parse_days(days) if days else frozenset()
        results = []
        for row in q.order_by(CourseRow.code).all():
            if day_filter and not any(parse_days(s.days) & day_filter for s in row.sections):
                continue
            results.append(to_course(row))
        return results

    def snapshot(self) -> Catalog:
        rows = (
            self.db.query(CourseRow)
            .options(selectinload(CourseRow.sections).selectinload(SectionRow.roster))
            .all()
        )
        courses = [to_course(row) for row in rows]
        sections = [to_section(section, row.code) for row in rows for section in row.sections]
        return Catalog(courses, sections)


def _contains(text: str) -> str:
    # LIKE wildcards in user input match literally
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def to_course(row: CourseRow) -> Course:
    return Course(
        code=normalize_code(row.code) or row.code.upper(),
        title=row.title,
        credits=Decimal(row.credits or 0),
        prerequisites=parse_prereqs(row.prerequisites),
        prerequisite_text=row.prerequisites,
        requirement_note=row.requirement_note,
    )


def to_section(row: SectionRow, course_code: str | None = None) -> Section:
    code = course_code or row.course.code
    return Section(
        crn=row.crn,
        course_code=normalize_code(code) or code.upper(),
        label=row.label,
        days=parse_days(row.days),
        start=row.start_time,
        end=row.end_time,
        location=row.location,
        instructor=row.instructor,
        capacity=row.capacity,
        enrollment=row.enrollment,
        roster=frozenset(member.user_id for member in row.roster),
    )


class SqlTranscriptStore:
    def __init__(self, db: Session):
        self.db = db

    def load_record(self, record_id: int) -> TranscriptRecord | None:
        row = self.db.get(Transcript, record_id)
        return _to_record(row) if row else None

    def list_records(self, user_id: str) -> list[TranscriptRecord]:
        rows = (
            self.db.query(Transcript)
            .filter(Transcript.user_id == user_id)
            .order_by(Transcript.uploaded_at.desc(), Transcript.id.desc())
            .all()
        )
        return [_to_record(row) for row in rows]

    def save_record(self, record: TranscriptRecord) -> TranscriptRecord:
        if record.id is None:
            row = Transcript(user_id=record.user_id, upload_ref=record.upload_ref)
            self.db.add(row)
        else:
            row = self.db.get(Transcript, record.id)
            if row is None:
                raise NotFoundError("Transcript", record.id)
        row.status = record.status
        row.diagnostic = record.diagnostic
        row.gpa = record.gpa
        row.total_credits = record.total_credits
        row.processed_at = record.processed_at
        row.lines = [
            TranscriptLine(
                position=position,
                line_number=line.line_number,
                raw_text=line.raw_text,
                course_code=line.course_code,
                course_title=line.course_title,
                grade=line.grade,
                credits=line.credits,
                catalog_credits=line.catalog_credits,
                status=line.status,
            )
            for position, line in enumerate(record.lines)
        ]
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(row)
        record.id = row.id
        record.uploaded_at = row.uploaded_at
        return record


def _to_record(row: Transcript) -> TranscriptRecord:
    return TranscriptRecord(
        id=row.id,
        user_id=row.user_id,
        upload_ref=row.upload_ref,
        status=row.status,
        diagnostic=row.diagnostic,
        gpa=row.gpa,
        total_credits=Decimal(row.total_credits or 0),
        uploaded_at=row.uploaded_at,
        processed_at=row.processed_at,
        lines=[
            ParsedLine(
                line_number=line.line_number,
                raw_text=line.raw_text,
                course_code=line.course_code,
                course_title=line.course_title,
                grade=line.grade,
                credits=Decimal(line.credits),
                catalog_credits=(
                    Decimal(line.catalog_credits) if line.catalog_credits is not None else None
                ),
                status=line.status,
            )
            for line in row.lines
        ],
    )


class SqlDocumentStore:
    def __init__(self, db: Session):
        self.db = db

    def fetch(self, upload_ref: int, user_id: str) -> tuple[bytes, str | None]:
        """Bytes and filename of an upload owned by ``user_id``.

        Another user's upload is reported as missing rather than forbidden.
        """
        doc = self.db.get(DocumentUpload, upload_ref)
        if doc is None or doc.user_id != user_id:
            raise NotFoundError("Upload", upload_ref)
        return bytes(doc.data), doc.filename

    def put(self, user_id: str, filename: str | None, data: bytes) -> int:
        doc = DocumentUpload(user_id=user_id, filename=filename, data=data)
        self.db.add(doc)
        self.db.commit()
        self.db.refresh(doc)
        return doc.id
