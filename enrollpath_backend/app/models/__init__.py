from app.models.course import Course  # noqa: F401
from app.models.document import DocumentUpload  # noqa: F401
from app.models.section import Section, SectionRoster  # noqa: F401
from app.models.transcript import Transcript, TranscriptLine  # noqa: F401
