from pydantic import BaseModel


class DocumentUploadResponse(BaseModel):
    upload_ref: int
    user_id: str
    filename: str | None = None
    size: int
