"""
Logging Middleware
Logs every HTTP request with its status and duration
"""

import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from cofounder_expenses.utils.logger import setup_logger

logger = setup_logger()


class LoggingMiddleware(BaseHTTPMiddleware):
    """Tags log lines with a request id and logs request/response pairs"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        start_time = time.perf_counter()

        with logger.contextualize(request_id=request_id):
            logger.info(
                f"Request: {request.method} {request.url.path} | "
                f"Client: {request.client.host if request.client else 'unknown'}"
            )

            try:
                response = await call_next(request)
            except Exception:
                # logger.exception keeps braces in the error text intact
                duration = time.perf_counter() - start_time
                logger.exception(
                    f"Error: {request.method} {request.url.path} | "
                    f"Duration: {duration:.3f}s"
                )
                raise

            duration = time.perf_counter() - start_time
            logger.info(
                f"Response: {request.method} {request.url.path} | "
                f"Status: {response.status_code} | "
                f"Duration: {duration:.3f}s"
            )

        response.headers["X-Request-ID"] = request_id
        return response
