from sqlalchemy import Column, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from app.models.base import Base


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, nullable=False, unique=True, index=True)  # normalized, e.g. "CS301"
    title = Column(String, nullable=True)
    credits = Column(Numeric(4, 2), nullable=False, default=0)
    prerequisites = Column(String, nullable=True)  # e.g. "CS201 and (MATH210 or MATH220)"
    requirement_note = Column(Text, nullable=True)

    sections = relationship("Section", back_populates="course", order_by="Section.label")
