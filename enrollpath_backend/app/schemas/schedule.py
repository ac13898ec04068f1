from datetime import time

from pydantic import BaseModel, Field


class ConflictRequest(BaseModel):
    section_ids: list[str] = Field(default_factory=list, description="CRNs of the candidate sections")


class ConflictOut(BaseModel):
    first_crn: str
    first_course: str
    second_crn: str
    second_course: str
    days: list[str]
    overlap_start: time
    overlap_end: time


class ConflictReportOut(BaseModel):
    section_ids: list[str]
    has_conflicts: bool
    conflicts: list[ConflictOut]
