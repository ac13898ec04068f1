from pydantic import BaseModel

from app.schemas.course import CourseOut


class PrerequisiteNodeOut(BaseModel):
    # course / all / any / either / raw
    kind: str
    code: str | None = None
    course: CourseOut | None = None
    found: bool = True
    requirement: str | None = None
    children: list["PrerequisiteNodeOut"] = []
    cycle: bool = False
    depth_limited: bool = False
    text: str | None = None

    model_config = {"from_attributes": True}


class EligibilityOut(BaseModel):
    course_code: str
    eligible: bool
    missing: list[str]
    needs_review: list[str]

    model_config = {"from_attributes": True}
