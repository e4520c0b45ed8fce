"""
FastAPI middleware for logging API requests and responses.

Uses pure ASGI middleware (not BaseHTTPMiddleware).

Logs method, path, status code and duration for every request; JSON
bodies are logged with sensitive keys filtered, multipart uploads only
by size.
"""

import json
import logging
import time
from typing import Optional
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.logging_config import filter_sensitive_data, truncate_large_data

logger = logging.getLogger(__name__)

MAX_BODY_LOG = 2000


def _sanitize_body(body: bytes, content_type: str) -> Optional[str]:
    """Filter sensitive data if payload is JSON; only report size otherwise."""
    if not body:
        return None
    if "application/json" not in content_type:
        return f"<{len(body)} bytes {content_type or 'unknown'}>"
    text = body.decode("utf-8", errors="ignore")
    try:
        payload = filter_sensitive_data(json.loads(text))
        return truncate_large_data(json.dumps(payload, ensure_ascii=False), max_length=MAX_BODY_LOG)
    except json.JSONDecodeError:
        return truncate_large_data(text, max_length=MAX_BODY_LOG)


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware:
    """Pure ASGI middleware to log all API requests and responses."""

    def __init__(self, app: ASGIApp, exclude_paths: Optional[list] = None):
        """
        Args:
            app: The ASGI application
            exclude_paths: Paths that are not logged (defaults to "/" and "/health")
        """
        self.app = app
        self.exclude_paths = exclude_paths or ["/health", "/"]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path", "") in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        request_fields = {
            "method": scope.get("method", "UNKNOWN"),
            "path": scope.get("path", ""),
            "client": (scope.get("client") or [None])[0],
        }
        content_type = ""
        for key, value in scope.get("headers", []):
            if key.lower() == b"content-type":
                content_type = value.decode("latin-1")
        body = bytearray()
        status_code = 0

        async def receive_and_capture() -> Message:
            message = await receive()
            if message["type"] == "http.request":
                body.extend(message.get("body", b""))
            return message

        async def send_and_capture(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
            await send(message)

        try:
            await self.app(scope, receive_and_capture, send_and_capture)
        except Exception as e:
            logger.error(
                f"Request failed: {request_fields['method']} {request_fields['path']} - {str(e)}",
                exc_info=True,
                extra={"extra_fields": {
                    **request_fields,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "error": str(e),
                }}
            )
            raise

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        request_body = _sanitize_body(bytes(body), content_type)
        logger.log(
            _level_for(status_code),
            f"{request_fields['method']} {request_fields['path']} -> {status_code} "
            f"({duration_ms}ms) body={request_body or '-'}",
            extra={"extra_fields": {
                **request_fields,
                "status_code": status_code,
                "duration_ms": duration_ms,
                "request_body": request_body,
            }}
        )
