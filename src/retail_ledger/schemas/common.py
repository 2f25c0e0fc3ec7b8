from typing import Optional

from pydantic import BaseModel


class ErrorRead(BaseModel):
    detail: str
    kind: str
    error: str
    retryable: bool
    field: Optional[str] = None
