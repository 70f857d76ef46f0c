import time

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.logging import logger
from ..utils.identifiers import generate_request_id


REQUEST_ID_HEADER = "X-Request-Id"


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    """
    Assigns a request id (the caller's ``X-Request-Id`` when present), logs
    the request and the response status, and echoes the id and the
    processing time back as response headers.
    """

    async def dispatch(self, request: Request, call_next):
        started = time.time()
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        request.state.request_id = request_id

        logger.request(
            operation="Incoming Request",
            request_id=request_id,
            method=request.method,
            path=request.url.path
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Unhandled error while serving {request.url.path}: {e}",
                request_id=request_id,
                http_status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
            raise

        elapsed = time.time() - started
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        response.headers[REQUEST_ID_HEADER] = request_id

        logger.response(
            operation="Outgoing Response",
            request_id=request_id,
            status_code=response.status_code,
            processing_time_ms=round(elapsed * 1000)
        )
        return response
