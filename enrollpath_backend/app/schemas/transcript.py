from datetime import datetime

from pydantic import BaseModel


class TranscriptIngestRequest(BaseModel):
    upload_ref: int
    user_id: str


class ParsedLineOut(BaseModel):
    line_number: int
    raw_text: str
    course_code: str
    course_title: str | None = None
    grade: str
    credits: float
    catalog_credits: float | None = None
    # matched | unmatched | ambiguous
    status: str

    model_config = {"from_attributes": True}


class TranscriptRecordOut(BaseModel):
    id: int
    user_id: str
    upload_ref: int
    # pending | processed | error
    status: str
    diagnostic: str | None = None
    lines: list[ParsedLineOut] = []
    gpa: float | None = None
    total_credits: float
    uploaded_at: datetime | None = None
    processed_at: datetime | None = None

    model_config = {"from_attributes": True}
