"""
MODULE OVERVIEW:
FastAPI middleware to track request timings.
Where it fits: Middleware runs on *every* HTTP request, wrapping our endpoints.

WHAT IS HAPPENING HERE:
We add an `X-Process-Time-Ms` header so clients can observe the server-side
overhead of a short poll versus a long poll that was held open for seconds.
This is wall-clock time inside the app, the same quantity the metrics record.
"""

import time

from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware


class TimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = await call_next(request)

        process_time_ms = (time.perf_counter() - start_time) * 1000
        response.headers["X-Process-Time-Ms"] = f"{process_time_ms:.2f}"

        # Polling endpoints are hit constantly; keep them out of the debug log
        if "/notifications" not in request.url.path:
            logger.debug(f"{request.method} {request.url.path} completed in {process_time_ms:.2f}ms")

        return response
