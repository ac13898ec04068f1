from datetime import datetime

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from app.models.base import Base


class Transcript(Base):
    __tablename__ = "transcripts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    upload_ref = Column(Integer, ForeignKey("document_uploads.id"), nullable=False)
    status = Column(String, nullable=False, default="pending")  # pending/processed/error
    diagnostic = Column(Text, nullable=True)
    gpa = Column(Float, nullable=True)
    total_credits = Column(Numeric(6, 2), nullable=False, default=0)
    uploaded_at = Column(DateTime, default=datetime.utcnow)
    processed_at = Column(DateTime, nullable=True)

    lines = relationship(
        "TranscriptLine",
        back_populates="transcript",
        order_by="TranscriptLine.position",
        cascade="all, delete-orphan",
    )


class TranscriptLine(Base):
    __tablename__ = "transcript_lines"

    id = Column(Integer, primary_key=True, index=True)
    transcript_id = Column(Integer, ForeignKey("transcripts.id"), nullable=False)
    position = Column(Integer, nullable=False)
    line_number = Column(Integer, nullable=False)
    raw_text = Column(Text, nullable=False)
    course_code = Column(String, nullable=False)
    course_title = Column(String, nullable=True)
    grade = Column(String, nullable=False)
    credits = Column(Numeric(4, 2), nullable=False)  # as stated on the document
    catalog_credits = Column(Numeric(4, 2), nullable=True)
    status = Column(String, nullable=False)  # matched/unmatched/ambiguous

    transcript = relationship("Transcript", back_populates="lines")
