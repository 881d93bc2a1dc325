"""
Request Logging Middleware
Tags every request with an ID and logs method, path, status and duration
"""
import time
import uuid
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from loguru import logger

from kyc_onboarding.config import settings


class RequestLogMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log API requests and time their handling
    """

    # Paths to exclude from detailed logging
    EXCLUDE_PATHS = {"/health", "/", "/docs", "/redoc", "/openapi.json"}

    # Calls that reach an external backend are logged at INFO on completion
    UPSTREAM_PATH_SUFFIXES = ("/documents", "/submit")
    UPSTREAM_PATH_PREFIXES = ("/tasks",)

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        if request.url.path in self.EXCLUDE_PATHS:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        start_time = time.time()
        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": self._get_client_ip(request),
        }

        if settings.REQUEST_LOG_ENABLED:
            logger.info(f"API Request: {log_data}")

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(
                f"API Error: request_id={request_id} path={request.url.path} "
                f"error={str(e)} duration_ms={duration_ms}"
            )
            raise

        duration_ms = int((time.time() - start_time) * 1000)
        response_log = {
            "request_id": request_id,
            "status_code": response.status_code,
            "duration_ms": duration_ms
        }

        if self._is_upstream_call(request.url.path):
            logger.info(f"Upstream-backed API Response: {response_log}")
        elif settings.REQUEST_LOG_ENABLED:
            logger.debug(f"API Response: {response_log}")

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response

    def _is_upstream_call(self, path: str) -> bool:
        return path.endswith(self.UPSTREAM_PATH_SUFFIXES) or path.startswith(self.UPSTREAM_PATH_PREFIXES)

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP from request"""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"
