from __future__ import annotations

import logging
import time
import uuid
from collections import defaultdict, deque
from threading import Lock

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from lineage_api.core.config import settings

logger = logging.getLogger(__name__)

EXEMPT_PATHS = frozenset({"/health"})


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.debug(
            "%s %s -> %s in %.1fms request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
            request_id,
        )
        return response


class InMemoryRateLimiterMiddleware(BaseHTTPMiddleware):
    """Sliding-window request limit per client address.

    Paths carry serial numbers, so the window is shared by every path a
    client hits. Clients idle for a whole window are dropped.
    """

    def __init__(self, app):
        super().__init__(app)
        self._events: dict[str, deque[float]] = defaultdict(deque)
        self._lock = Lock()
        self._last_sweep = 0.0

    def _client_key(self, request: Request) -> str:
        return request.client.host if request.client else "unknown"

    def _sweep(self, cutoff: float) -> None:
        stale = [key for key, q in self._events.items() if not q or q[-1] < cutoff]
        for key in stale:
            del self._events[key]

    def _retry_after(self, key: str, now: float) -> int | None:
        window = settings.rate_limit_window_seconds
        cutoff = now - window
        with self._lock:
            if now - self._last_sweep >= window:
                self._sweep(cutoff)
                self._last_sweep = now
            q = self._events[key]
            while q and q[0] < cutoff:
                q.popleft()
            if len(q) >= settings.rate_limit_requests:
                return max(1, int(window - (now - q[0])))
            q.append(now)
        return None

    async def dispatch(self, request: Request, call_next) -> Response:
        if not settings.rate_limit_enabled or request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        key = self._client_key(request)
        retry_after = self._retry_after(key, time.time())
        if retry_after is None:
            return await call_next(request)

        logger.info("Rate limit exceeded for %s", key)
        return JSONResponse(
            status_code=429,
            content={
                "error": {
                    "code": "rate_limit_exceeded",
                    "message": "Too many requests. Retry later.",
                    "retry_after_seconds": retry_after,
                    "request_id": getattr(request.state, "request_id", None),
                }
            },
            headers={"Retry-After": str(retry_after)},
        )
