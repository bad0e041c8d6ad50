from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SuccessfulMessage(BaseModel):
    status_code: int = 200
    detail: str
    timestamp: datetime = Field(default_factory=_utcnow)
    payload: Optional[dict] = None

class UnsuccessfulResponse(BaseModel):
    status_code: int
    detail: str
    timestamp: datetime = Field(default_factory=_utcnow)
    payload: Optional[dict] = None

class UploadResponse(BaseModel):
    """Body Fine Uploader expects back from every upload request."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    error: Optional[str] = None
    prevent_retry: bool = Field(default=False, alias="preventRetry")
