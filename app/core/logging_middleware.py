# core/logging_middleware.py
# One structured JSON event per request, kept when it fails, runs slow or falls in the sample.

import logging
import json
import time
import random
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.core.config import settings

# Wide request events go to their own logger (handlers configured in logging.ini)
structured_logger = logging.getLogger("api.structured_log")
structured_logger.propagate = False

# Fallback when logging.ini was not loaded (e.g. the app is imported by a script)
if not structured_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))  # Raw JSON line
    structured_logger.addHandler(handler)
    structured_logger.setLevel(logging.INFO)


def should_log(status_code: int, duration_ms: float) -> bool:
    """
    Tail sampling:
    1. Always log server errors (status >= 500)
    2. Always log slow requests (> LOG_SLOW_REQUEST_MS)
    3. Otherwise keep a random LOG_SAMPLE_RATE share of requests
    """
    if status_code >= 500:
        return True
    if duration_ms > settings.LOG_SLOW_REQUEST_MS:
        return True
    return random.random() < settings.LOG_SAMPLE_RATE


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Emits one JSON "wide event" per sampled request, including the authenticated
    caller when the auth dependency stored it on request.state.user.
    """

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = None
        error_details = None
        status_code = 500  # Unhandled exceptions count as server errors

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            error_details = str(e)
            raise
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000

            if should_log(status_code, duration_ms):
                user = getattr(request.state, "user", None)
                log_payload = {
                    "timestamp": time.time(),
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "duration_ms": round(duration_ms, 2),
                    "client_ip": request.client.host if request.client else None,
                    "user_agent": request.headers.get("user-agent"),
                    "query_params": dict(request.query_params),
                    "error": error_details,
                    "user_id": str(user.id) if user is not None else None,
                    "user_email": user.email if user is not None else None,
                    "user_name": user.name if user is not None else None,
                }
                structured_logger.info(json.dumps(log_payload))

        return response
