"""Request-id propagation, request logging, and exception-to-response mapping."""

from __future__ import annotations

from time import perf_counter
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError, ResponseValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskdesk.core.config import settings
from taskdesk.core.errors import StoreFailureError, TaskNotFoundError, TaskValidationError
from taskdesk.core.logging import get_logger

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

REQUEST_ID_HEADER = "X-Request-Id"
_HEALTH_PATHS = frozenset({"/health", "/healthz", "/readyz"})
_LOCATION_PREFIXES = frozenset({"body", "query", "path", "header", "cookie"})

logger = get_logger(__name__)


def _json_safe(value: object) -> object:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _get_request_id(request: Request) -> str | None:
    request_id = getattr(request.state, "request_id", None)
    if not isinstance(request_id, str) or not request_id:
        return None
    return request_id


def _error_payload(
    *,
    detail: object,
    request_id: str | None,
    code: str | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"detail": detail}
    if code is not None:
        payload["code"] = code
    if request_id is not None:
        payload["request_id"] = request_id
    return payload


def _error_response(
    request: Request,
    *,
    status_code: int,
    detail: object,
    code: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    request_id = _get_request_id(request)
    response_headers = dict(headers or {})
    if request_id is not None:
        response_headers[REQUEST_ID_HEADER] = request_id
    return JSONResponse(
        status_code=status_code,
        content=_error_payload(detail=detail, request_id=request_id, code=code),
        headers=response_headers,
    )


def _field_name(loc: tuple[object, ...] | list[object]) -> str:
    parts = [str(_json_safe(part)) for part in loc]
    if len(parts) > 1 and parts[0] in _LOCATION_PREFIXES:
        parts = parts[1:]
    return ".".join(parts)


def _validation_detail(errors: list[dict[str, Any]]) -> list[dict[str, str]]:
    return [
        {
            "field": _field_name(error.get("loc", ())),
            "message": str(_json_safe(error.get("msg", "Invalid value"))),
        }
        for error in errors
    ]


async def _request_validation_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    if not isinstance(exc, RequestValidationError):
        msg = "Expected RequestValidationError"
        raise TypeError(msg)
    return _error_response(
        request,
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=_validation_detail(list(exc.errors())),
    )


async def _task_validation_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    if not isinstance(exc, TaskValidationError):
        msg = "Expected TaskValidationError"
        raise TypeError(msg)
    return _error_response(
        request,
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=[error.as_dict() for error in exc.errors],
    )


async def _task_not_found_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    if not isinstance(exc, TaskNotFoundError):
        msg = "Expected TaskNotFoundError"
        raise TypeError(msg)
    return _error_response(
        request,
        status_code=status.HTTP_404_NOT_FOUND,
        detail=exc.message,
    )


async def _store_failure_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    if not isinstance(exc, StoreFailureError):
        msg = "Expected StoreFailureError"
        raise TypeError(msg)
    logger.error(
        "store.failure operation=%s request_id=%s",
        exc.operation,
        _get_request_id(request),
        exc_info=exc.__cause__,
    )
    return _error_response(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Server error while accessing task storage",
        code="store_failure",
    )


async def _response_validation_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    if not isinstance(exc, ResponseValidationError):
        msg = "Expected ResponseValidationError"
        raise TypeError(msg)
    logger.error(
        "http.response.validation_failed path=%s request_id=%s errors=%s",
        request.url.path,
        _get_request_id(request),
        len(exc.errors()),
    )
    return _error_response(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal Server Error",
    )


async def _http_exception_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    if not isinstance(exc, StarletteHTTPException):
        msg = "Expected StarletteHTTPException"
        raise TypeError(msg)
    return _error_response(
        request,
        status_code=exc.status_code,
        detail=exc.detail,
        headers=dict(exc.headers) if exc.headers else None,
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "http.request.unhandled path=%s request_id=%s",
        request.url.path,
        _get_request_id(request),
        exc_info=exc,
    )
    return _error_response(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal Server Error",
    )


class RequestContextMiddleware:
    """Assign a request id, echo it in the response, and log each request."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = self._incoming_request_id(scope) or uuid4().hex
        scope.setdefault("state", {})["request_id"] = request_id
        header_value = request_id.encode("latin-1")
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

        async def send_with_request_id(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = [
                    (key, value)
                    for key, value in message.get("headers", [])
                    if key.lower() != REQUEST_ID_HEADER.lower().encode("latin-1")
                ]
                headers.append((REQUEST_ID_HEADER.lower().encode("latin-1"), header_value))
                message["headers"] = headers
            await send(message)

        started = perf_counter()
        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            self._log_request(scope, request_id, status_code, started)

    @staticmethod
    def _incoming_request_id(scope: Scope) -> str | None:
        wanted = REQUEST_ID_HEADER.lower().encode("latin-1")
        for key, value in scope.get("headers", []):
            if key.lower() == wanted:
                cleaned = value.decode("latin-1").strip()
                return cleaned or None
        return None

    @staticmethod
    def _log_request(scope: Scope, request_id: str, status_code: int, started: float) -> None:
        path = scope.get("path", "")
        if path in _HEALTH_PATHS and not settings.request_log_include_health:
            return
        duration_ms = round((perf_counter() - started) * 1000, 2)
        extra = {
            "request_id": request_id,
            "method": scope.get("method", ""),
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms,
        }
        logger.info(
            "http.request.complete method=%s path=%s status=%s duration_ms=%s",
            extra["method"],
            path,
            status_code,
            duration_ms,
            extra=extra,
        )
        if duration_ms >= settings.request_log_slow_ms:
            logger.warning(
                "http.request.slow",
                extra={**extra, "slow_threshold_ms": settings.request_log_slow_ms},
            )


def install_error_handling(app: FastAPI) -> None:
    """Register request-context middleware and exception handlers on ``app``."""
    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(RequestValidationError, _request_validation_exception_handler)
    app.add_exception_handler(ResponseValidationError, _response_validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_exception_handler)
    app.add_exception_handler(TaskValidationError, _task_validation_exception_handler)
    app.add_exception_handler(TaskNotFoundError, _task_not_found_exception_handler)
    app.add_exception_handler(StoreFailureError, _store_failure_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
