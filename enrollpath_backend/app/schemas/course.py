from datetime import time

from pydantic import BaseModel


class CourseOut(BaseModel):
    code: str
    title: str | None = None
    credits: float
    prerequisite_text: str | None = None
    requirement_note: str | None = None

    model_config = {"from_attributes": True}


class SectionOut(BaseModel):
    crn: str
    course_code: str
    label: str
    days: list[str]
    start: time
    end: time
    location: str | None = None
    instructor: str | None = None
    capacity: int
    enrollment: int
    seats_available: int


class CourseDetail(CourseOut):
    prerequisite_expression: dict | None = None
    sections: list[SectionOut] = []
