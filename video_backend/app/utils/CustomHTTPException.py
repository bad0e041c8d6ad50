from fastapi import HTTPException
from typing import Optional


class CustomHTTPException(HTTPException):
    """HTTPException that also carries a structured payload for the client."""

    def __init__(self, status_code: int, detail: str, payload: Optional[dict] = None) -> None:
        super().__init__(status_code=status_code, detail=detail)
        self.payload = payload
