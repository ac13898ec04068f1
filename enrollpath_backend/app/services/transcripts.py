import logging
from decimal import Decimal

from app.core.errors import ExtractionFailure
from app.services.catalog import Catalog
from app.services.pdf_parser import extract_text_with_timeout
from app.services.stores import DocumentStore, TranscriptStore
from app.services.transcript_parser import (
    LETTER_GRADES,
    CandidateLine,
    grade_points,
    is_passing,
    parse_transcript_lines,
)
from app.services.transcript_record import (
    AMBIGUOUS,
    MATCHED,
    PENDING,
    UNMATCHED,
    ParsedLine,
    TranscriptRecord,
)

logger = logging.getLogger(__name__)


def reconcile_lines(catalog: Catalog, candidates: list[CandidateLine]) -> list[ParsedLine]:
    """Match parsed lines against the catalog.

    One line is kept per course code: the last occurrence. It is flagged
    ambiguous when an earlier line for the same catalog course carried a
    different grade (a retake, or a misread).
    """
    grades_seen: dict[str, set[str]] = {}
    last_index: dict[str, int] = {}
    for index, candidate in enumerate(candidates):
        grades_seen.setdefault(candidate.course_code, set()).add(candidate.grade)
        last_index[candidate.course_code] = index

    lines: list[ParsedLine] = []
    for index, candidate in enumerate(candidates):
        if last_index[candidate.course_code] != index:
            continue
        line = ParsedLine(
            line_number=candidate.line_number,
            raw_text=candidate.raw_text,
            course_code=candidate.course_code,
            course_title=candidate.course_title,
            grade=candidate.grade,
            credits=candidate.credits,
        )
        course = catalog.get_course(candidate.course_code)
        if course is None:
            line.status = UNMATCHED
        else:
            line.catalog_credits = course.credits
            line.course_title = course.title or line.course_title
            if len(grades_seen[candidate.course_code]) > 1:
                line.status = AMBIGUOUS
            else:
                line.status = MATCHED
            if course.credits != candidate.credits:
                logger.debug(
                    "%s: document states %s credits, catalog has %s",
                    course.code, candidate.credits, course.credits,
                )
        lines.append(line)
    return lines


def aggregate(lines: list[ParsedLine]) -> tuple[float | None, Decimal]:
    """Credit-weighted GPA over letter grades and passed credit total, both
    computed from reconciled lines using catalog credits."""
    total_points = Decimal("0")
    gpa_credits = Decimal("0")
    total_credits = Decimal("0")
    for line in lines:
        if not line.reconciled:
            continue
        credits = line.effective_credits
        grade = line.grade.upper()
        if grade in LETTER_GRADES:
            total_points += Decimal(str(grade_points(grade))) * credits
            gpa_credits += credits
        if is_passing(grade):
            total_credits += credits
    if gpa_credits == 0:
        return None, total_credits
    return round(float(total_points / gpa_credits), 2), total_credits


def process_text(catalog: Catalog, text: str) -> tuple[list[ParsedLine], float | None, Decimal]:
    lines = reconcile_lines(catalog, parse_transcript_lines(text))
    gpa, credits = aggregate(lines)
    return lines, gpa, credits


def ingest_transcript(
    upload_ref: int,
    user_id: str,
    *,
    catalog: Catalog,
    documents: DocumentStore,
    transcripts: TranscriptStore,
    timeout: float | None = None,
) -> TranscriptRecord:
    """Run an uploaded document through extraction, parsing, reconciliation
    and aggregation.

    Only the owner of an upload may ingest it; anyone else gets NotFoundError
    and no record is created. The record is saved as pending before
    extraction and saved again in its terminal state. ExtractionFailure is
    re-raised with the failed record attached. Any other error also leaves
    the record in error before it propagates. Unmatched lines never fail the
    record.
    """
    data, filename = documents.fetch(upload_ref, user_id)
    record = transcripts.save_record(TranscriptRecord(user_id=user_id, upload_ref=upload_ref))
    logger.info("Transcript %s pending (upload %s, user %s)", record.id, upload_ref, user_id)

    try:
        text = extract_text_with_timeout(data, filename, timeout=timeout)
        lines, gpa, credits = process_text(catalog, text)
        record.mark_processed(lines, gpa, credits)
        transcripts.save_record(record)
    except ExtractionFailure as exc:
        record.mark_failed(exc.reason)
        transcripts.save_record(record)
        logger.warning("Transcript %s failed extraction: %s", record.id, exc.reason)
        exc.record = record
        raise
    except Exception as exc:
        _fail_unexpected(record, transcripts, exc)
        raise
    matched = sum(1 for line in lines if line.status == MATCHED)
    logger.info(
        "Transcript %s processed: %d lines, %d matched, gpa=%s, credits=%s",
        record.id, len(lines), matched, gpa, credits,
    )
    return record


def _fail_unexpected(record: TranscriptRecord, transcripts: TranscriptStore, exc: Exception) -> None:
    logger.exception("Transcript %s failed while processing", record.id)
    if record.status != PENDING:
        # saving the processed record is what failed; retry it once as error
        record = TranscriptRecord(
            user_id=record.user_id, upload_ref=record.upload_ref, id=record.id
        )
    record.mark_failed(f"Processing failed: {exc}")
    transcripts.save_record(record)
