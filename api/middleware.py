import os
import time
import logging
from collections import defaultdict, deque
from threading import Lock

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

# audits are CPU heavy, so only POSTs count against a client's budget
RATE_LIMIT_REQUESTS = int(os.getenv("RATE_LIMIT_REQUESTS", "30"))
RATE_LIMIT_WINDOW = 60  # seconds

# a corpus upload larger than this is refused before it is parsed
MAX_BODY_BYTES = int(os.getenv("MAX_AUDIT_BODY_BYTES", str(20 * 1024 * 1024)))


def client_id(request: Request) -> str:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding window of POST timestamps per client, kept in process memory."""

    def __init__(self, app, max_requests: int = RATE_LIMIT_REQUESTS, window_seconds: int = RATE_LIMIT_WINDOW):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._history: dict[str, deque] = defaultdict(deque)
        self._lock = Lock()

    def _retry_after(self, client: str, now: float) -> int:
        """0 if the request may proceed (and is recorded), else seconds to wait."""
        with self._lock:
            history = self._history[client]
            while history and history[0] <= now - self.window_seconds:
                history.popleft()
            if len(history) >= self.max_requests:
                return int(history[0] + self.window_seconds - now) + 1
            history.append(now)
            return 0

    async def dispatch(self, request: Request, call_next):
        if request.method != "POST":
            return await call_next(request)

        client = client_id(request)
        retry_after = self._retry_after(client, time.time())
        if retry_after:
            logger.warning("Audit rate limit reached for %s on %s", client, request.url.path)
            return JSONResponse(
                status_code=429,
                content={
                    "detail": f"At most {self.max_requests} audits per {self.window_seconds}s.",
                    "code": "rate_limit_exceeded",
                },
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_bytes: int = MAX_BODY_BYTES):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next):
        length = request.headers.get("Content-Length")
        if length and length.isdigit() and int(length) > self.max_bytes:
            logger.warning("Rejected %s body of %s bytes", request.url.path, length)
            return JSONResponse(
                status_code=413,
                content={"detail": f"Request body exceeds {self.max_bytes} bytes.", "code": "payload_too_large"},
            )
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        duration_ms = int((time.time() - start) * 1000)
        logger.info(
            "%s %s -> %d (%dms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response
