from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from typing import Optional


class MaxContentLengthMiddleware(BaseHTTPMiddleware):
    """Rejects requests whose declared body is larger than the limit for their path.

    ``path_limits`` overrides ``max_content_length`` for exact request paths,
    e.g. the upload route that also accepts whole files.
    """

    def __init__(self, app, max_content_length: int, path_limits: Optional[dict[str, int]] = None) -> None:
        super().__init__(app)
        self.max_content_length = max_content_length
        self.path_limits = path_limits or {}

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        limit = self.path_limits.get(request.url.path, self.max_content_length)

        if content_length and content_length.isdigit() and int(content_length) > limit:
            return JSONResponse(
                status_code=413,
                content={"detail": "Request payload too large", "success": False, "preventRetry": True}
            )

        return await call_next(request)
