from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, Time, UniqueConstraint
from sqlalchemy.orm import relationship

from app.models.base import Base


class Section(Base):
    __tablename__ = "sections"
    __table_args__ = (
        CheckConstraint("capacity >= 0", name="ck_sections_capacity"),
        CheckConstraint("enrollment >= 0 AND enrollment <= capacity", name="ck_sections_enrollment"),
        CheckConstraint("start_time < end_time", name="ck_sections_times"),
    )

    id = Column(Integer, primary_key=True, index=True)
    crn = Column(String, nullable=False, unique=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    label = Column(String, nullable=False, default="01")
    days = Column(String, nullable=False, default="")  # e.g. "Mon,Wed,Fri"
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    location = Column(String, nullable=True)
    instructor = Column(String, nullable=True)
    capacity = Column(Integer, nullable=False, default=0)
    enrollment = Column(Integer, nullable=False, default=0)

    course = relationship("Course", back_populates="sections")
    roster = relationship("SectionRoster", back_populates="section", cascade="all, delete-orphan")


class SectionRoster(Base):
    __tablename__ = "section_roster"
    __table_args__ = (UniqueConstraint("section_id", "user_id", name="uq_roster_member"),)

    id = Column(Integer, primary_key=True, index=True)
    section_id = Column(Integer, ForeignKey("sections.id"), nullable=False, index=True)
    user_id = Column(String, nullable=False)

    section = relationship("Section", back_populates="roster")
