from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.errors import NotFoundError
from app.schemas.course import CourseDetail, CourseOut, SectionOut
from app.schemas.document import DocumentUploadResponse
from app.schemas.prerequisite import EligibilityOut, PrerequisiteNodeOut
from app.schemas.schedule import ConflictOut, ConflictReportOut, ConflictRequest
from app.schemas.transcript import TranscriptIngestRequest, TranscriptRecordOut
from app.services.catalog import Catalog, Section, parse_days
from app.services.conflicts import detect_conflicts
from app.services.prereq_parser import expression_to_dict
from app.services.prerequisites import check_eligibility, resolve_prerequisites
from app.services.stores import SqlCatalogStore, SqlDocumentStore, SqlTranscriptStore
from app.services.transcripts import ingest_transcript

router = APIRouter(prefix="/api")


def get_catalog(db: Session = Depends(get_db)) -> Catalog:
    # one snapshot per request; later catalog writes are not seen mid-request
    return SqlCatalogStore(db).snapshot()


def _section_out(section: Section) -> SectionOut:
    return SectionOut(
        crn=section.crn,
        course_code=section.course_code,
        label=section.label,
        days=section.ordered_days,
        start=section.start,
        end=section.end,
        location=section.location,
        instructor=section.instructor,
        capacity=section.capacity,
        enrollment=section.enrollment,
        seats_available=section.seats_available,
    )


# ── Catalog ───────────────────────────────────────────────────────────────────

@router.get("/courses", response_model=list[CourseOut])
def search_courses_endpoint(
    q: str | None = Query(None, description="Substring of course code or title"),
    days: str | None = Query(None, description="Meeting days, e.g. Mon,Wed"),
    db: Session = Depends(get_db),
):
    try:
        day_filter = parse_days(days) if days else None
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return SqlCatalogStore(db).search(q, day_filter)


@router.get("/courses/{code}", response_model=CourseDetail)
def get_course_endpoint(code: str, catalog: Catalog = Depends(get_catalog)):
    course = catalog.get_course(code)
    if course is None:
        raise NotFoundError("Course", code)
    detail = CourseDetail.model_validate(course, from_attributes=True)
    detail.prerequisite_expression = expression_to_dict(course.prerequisites)
    detail.sections = [_section_out(s) for s in catalog.get_sections_for_course(course.code)]
    return detail


@router.get("/courses/{code}/prerequisites", response_model=PrerequisiteNodeOut)
def resolve_prerequisites_endpoint(
    code: str,
    max_depth: int | None = Query(None, ge=0, le=200),
    catalog: Catalog = Depends(get_catalog),
):
    depth = settings.resolver_max_depth if max_depth is None else max_depth
    return resolve_prerequisites(catalog, code, max_depth=depth)


@router.get("/courses/{code}/eligibility", response_model=EligibilityOut)
def eligibility_endpoint(
    code: str,
    completed: str = Query("", description="Comma-separated completed course codes"),
    catalog: Catalog = Depends(get_catalog),
):
    done = [c.strip() for c in completed.split(",") if c.strip()]
    return check_eligibility(catalog, code, done)


# ── Schedules ─────────────────────────────────────────────────────────────────

@router.post("/schedules/conflicts", response_model=ConflictReportOut)
def detect_conflicts_endpoint(
    payload: ConflictRequest,
    catalog: Catalog = Depends(get_catalog),
):
    sections = []
    for crn in payload.section_ids:
        section = catalog.get_section(crn)
        if section is None:
            raise NotFoundError("Section", crn)
        sections.append(section)
    report = detect_conflicts(sections)
    return ConflictReportOut(
        section_ids=report.section_ids,
        has_conflicts=report.has_conflicts,
        conflicts=[
            ConflictOut(
                first_crn=c.first.crn,
                first_course=c.first.course_code,
                second_crn=c.second.crn,
                second_course=c.second.course_code,
                days=c.days,
                overlap_start=c.overlap_start,
                overlap_end=c.overlap_end,
            )
            for c in report.conflicts
        ],
    )


# ── Documents ─────────────────────────────────────────────────────────────────

@router.post("/documents/upload", response_model=DocumentUploadResponse)
def upload_document_endpoint(
    user_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    limit = settings.max_upload_bytes
    data = file.file.read(limit + 1)
    if len(data) > limit:
        raise HTTPException(status_code=413, detail=f"File exceeds {limit // (1024 * 1024)} MB limit.")
    if not data:
        raise HTTPException(status_code=422, detail="Uploaded file is empty.")
    ref = SqlDocumentStore(db).put(user_id, file.filename, data)
    return DocumentUploadResponse(upload_ref=ref, user_id=user_id, filename=file.filename, size=len(data))


# ── Transcripts ───────────────────────────────────────────────────────────────

@router.post("/transcripts/ingest", response_model=TranscriptRecordOut)
def ingest_transcript_endpoint(
    payload: TranscriptIngestRequest,
    db: Session = Depends(get_db),
):
    return ingest_transcript(
        payload.upload_ref,
        payload.user_id,
        catalog=SqlCatalogStore(db).snapshot(),
        documents=SqlDocumentStore(db),
        transcripts=SqlTranscriptStore(db),
    )


@router.get("/transcripts/{record_id}", response_model=TranscriptRecordOut)
def get_transcript_endpoint(record_id: int, db: Session = Depends(get_db)):
    record = SqlTranscriptStore(db).load_record(record_id)
    if record is None:
        raise NotFoundError("Transcript", record_id)
    return record


@router.get("/users/{user_id}/transcripts", response_model=list[TranscriptRecordOut])
def list_transcripts_endpoint(user_id: str, db: Session = Depends(get_db)):
    return SqlTranscriptStore(db).list_records(user_id)
