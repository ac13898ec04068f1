import functools
from decimal import Decimal

import pytest

from app.core.errors import ExtractionFailure, InvalidTransitionError, NotFoundError
from app.services import pdf_parser
from app.services import transcripts as transcripts_service
from app.services.catalog import Catalog
from app.services.stores import SqlDocumentStore, SqlTranscriptStore
from app.services.transcript_parser import parse_transcript_lines
from app.services.transcript_record import TranscriptRecord
from app.services.transcripts import aggregate, ingest_transcript, reconcile_lines
from factories import make_course, slow_extract


@pytest.fixture
def cs_catalog():
    return Catalog([make_course("CS301", credits="3")])


def _ingest(db, catalog, data, filename="transcript.txt", **kwargs):
    documents = SqlDocumentStore(db)
    transcripts = SqlTranscriptStore(db)
    ref = documents.put("u-1", filename, data)
    return ingest_transcript(
        ref, "u-1", catalog=catalog, documents=documents, transcripts=transcripts, **kwargs
    ), transcripts


class TestReconcile:
    def test_matched_and_unmatched(self, cs_catalog):
        lines = reconcile_lines(cs_catalog, parse_transcript_lines("CS301 A 3\nXX999 B 3"))
        assert [(l.course_code, l.status) for l in lines] == [
            ("CS301", "matched"),
            ("XX999", "unmatched"),
        ]
        assert lines[0].catalog_credits == Decimal("3")
        assert lines[1].catalog_credits is None

    def test_catalog_credits_preferred_for_aggregates(self):
        catalog = Catalog([make_course("CS301", credits="4")])
        lines = reconcile_lines(catalog, parse_transcript_lines("CS301 B 3"))
        assert lines[0].credits == Decimal("3")
        assert lines[0].effective_credits == Decimal("4")
        assert aggregate(lines) == (3.0, Decimal("4"))

    def test_conflicting_grades_keep_last_and_flag(self, cs_catalog):
        lines = reconcile_lines(cs_catalog, parse_transcript_lines("CS301 C 3\nCS301 A 3"))
        assert len(lines) == 1
        assert lines[0].grade == "A"
        assert lines[0].status == "ambiguous"
        assert lines[0].line_number == 2

    def test_repeated_identical_line_is_collapsed(self, cs_catalog):
        lines = reconcile_lines(cs_catalog, parse_transcript_lines("CS301 A 3\nCS301 A 3"))
        assert [(l.status, l.line_number) for l in lines] == [("matched", 2)]


class TestAggregate:
    def test_pass_fail_and_withdrawal(self):
        catalog = Catalog(
            [
                make_course("CS101", credits="3"),
                make_course("CS102", credits="1"),
                make_course("CS103", credits="3"),
                make_course("CS104", credits="3"),
                make_course("CS105", credits="2"),
            ]
        )
        text = "CS101 B 3\nCS102 P 1\nCS103 W 3\nCS104 F 3\nCS105 NP 2"
        gpa, credits = aggregate(reconcile_lines(catalog, parse_transcript_lines(text)))
        # B (3cr) and F (3cr) are graded; B, P are passed
        assert gpa == 1.5
        assert credits == Decimal("4")

    def test_no_gradable_lines(self):
        catalog = Catalog([make_course("CS102", credits="1")])
        assert aggregate(reconcile_lines(catalog, parse_transcript_lines("CS102 P 1"))) == (
            None,
            Decimal("1"),
        )


class TestIngestTranscript:
    def test_processed_record(self, db, cs_catalog):
        record, store = _ingest(db, cs_catalog, b"Transcript\nCS301 A 3\nXX999 B 3\n")
        assert record.status == "processed"
        assert record.gpa == 4.0
        assert record.total_credits == Decimal("3")
        loaded = store.load_record(record.id)
        assert [(l.course_code, l.status) for l in loaded.lines] == [
            ("CS301", "matched"),
            ("XX999", "unmatched"),
        ]
        assert loaded.gpa == 4.0

    def test_no_course_lines_still_processed(self, db, cs_catalog):
        record, _ = _ingest(db, cs_catalog, b"Nothing to see here")
        assert record.status == "processed"
        assert record.lines == []
        assert record.gpa is None

    def test_unreadable_document(self, db, cs_catalog):
        with pytest.raises(ExtractionFailure) as info:
            _ingest(db, cs_catalog, b"%PDF-1.4 garbage", filename="t.pdf")
        record = info.value.record
        assert record.status == "error"
        assert record.lines == []
        loaded = SqlTranscriptStore(db).load_record(record.id)
        assert loaded.status == "error"
        assert loaded.lines == []
        assert loaded.diagnostic

    def test_extraction_timeout(self, db, cs_catalog, monkeypatch):
        slow = functools.partial(pdf_parser.extract_text_with_timeout, extractor=slow_extract)
        monkeypatch.setattr(transcripts_service, "extract_text_with_timeout", slow)
        with pytest.raises(ExtractionFailure) as info:
            _ingest(db, cs_catalog, b"CS301 A 3", timeout=0.2)
        assert info.value.record.status == "error"
        assert "timed out" in info.value.reason

    def test_unexpected_error_marks_record_failed(self, db, cs_catalog, monkeypatch):
        def broken(catalog, text):
            raise RuntimeError("reconciliation exploded")

        monkeypatch.setattr(transcripts_service, "process_text", broken)
        with pytest.raises(RuntimeError):
            _ingest(db, cs_catalog, b"CS301 A 3")
        (record,) = SqlTranscriptStore(db).list_records("u-1")
        assert record.status == "error"
        assert record.lines == []
        assert "reconciliation exploded" in record.diagnostic

    def test_upload_of_another_user_is_not_found(self, db, cs_catalog):
        documents = SqlDocumentStore(db)
        transcripts = SqlTranscriptStore(db)
        ref = documents.put("alice", "transcript.txt", b"CS301 A 3")
        with pytest.raises(NotFoundError):
            ingest_transcript(
                ref, "mallory", catalog=cs_catalog, documents=documents, transcripts=transcripts
            )
        assert transcripts.list_records("mallory") == []
        assert transcripts.list_records("alice") == []

    def test_unknown_upload(self, db, cs_catalog):
        with pytest.raises(NotFoundError):
            ingest_transcript(
                999,
                "u-1",
                catalog=cs_catalog,
                documents=SqlDocumentStore(db),
                transcripts=SqlTranscriptStore(db),
            )

    def test_list_records_for_user(self, db, cs_catalog):
        first, store = _ingest(db, cs_catalog, b"CS301 A 3")
        second, _ = _ingest(db, cs_catalog, b"CS301 B 3")
        assert {r.id for r in store.list_records("u-1")} == {first.id, second.id}
        assert store.list_records("someone-else") == []


class TestRecordStateMachine:
    def test_terminal_states_do_not_move(self):
        record = TranscriptRecord(user_id="u", upload_ref=1)
        record.mark_failed("bad bytes")
        with pytest.raises(InvalidTransitionError):
            record.mark_processed([], None, Decimal("0"))
        with pytest.raises(InvalidTransitionError):
            record.mark_failed("again")

    def test_processed_is_terminal(self):
        record = TranscriptRecord(user_id="u", upload_ref=1)
        record.mark_processed([], None, Decimal("0"))
        with pytest.raises(InvalidTransitionError):
            record.mark_failed("late failure")
