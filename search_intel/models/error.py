"""Error response models."""

from datetime import datetime

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Body returned for every failed request."""

    error: str
    detail: str
    timestamp: datetime
    request_id: str
    status_code: int | None = None
