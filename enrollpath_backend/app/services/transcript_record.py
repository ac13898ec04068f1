from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from app.core.errors import InvalidTransitionError

PENDING = "pending"
PROCESSED = "processed"
ERROR = "error"

MATCHED = "matched"
UNMATCHED = "unmatched"
AMBIGUOUS = "ambiguous"


@dataclass
class ParsedLine:
    line_number: int
    raw_text: str
    course_code: str
    grade: str
    credits: Decimal  # as asserted by the document
    status: str = UNMATCHED
    course_title: str | None = None
    catalog_credits: Decimal | None = None

    @property
    def reconciled(self) -> bool:
        return self.status in (MATCHED, AMBIGUOUS)

    @property
    def effective_credits(self) -> Decimal:
        # catalog value wins for aggregates once the course is known
        return self.catalog_credits if self.catalog_credits is not None else self.credits


@dataclass
class TranscriptRecord:
    user_id: str
    upload_ref: int
    id: int | None = None
    status: str = PENDING
    diagnostic: str | None = None
    lines: list[ParsedLine] = field(default_factory=list)
    gpa: float | None = None
    total_credits: Decimal = Decimal("0")
    uploaded_at: datetime | None = None
    processed_at: datetime | None = None

    def mark_processed(self, lines: list[ParsedLine], gpa: float | None, total_credits: Decimal):
        self._leave_pending(PROCESSED)
        self.lines = list(lines)
        self.gpa = gpa
        self.total_credits = total_credits
        self.processed_at = datetime.utcnow()

    def mark_failed(self, diagnostic: str):
        self._leave_pending(ERROR)
        self.lines = []
        self.gpa = None
        self.total_credits = Decimal("0")
        self.diagnostic = diagnostic
        self.processed_at = datetime.utcnow()

    def _leave_pending(self, target: str):
        if self.status != PENDING:
            raise InvalidTransitionError(self.status, target)
        self.status = target
