import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from utils.logger import get_logger

logger =  get_logger("Middleware")

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log line per request: method, path, status, duration."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        client = request.client.host if request.client else "-"
        logger.info(f"{client} {request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)")
        return response
