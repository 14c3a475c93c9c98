"""Endpoint wrapping: request ids, the auth gate, rate limiting and the response envelope."""

from __future__ import annotations

import time
import traceback
from functools import wraps
from secrets import token_hex
from typing import Any, Awaitable, Callable

from fastapi import Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from saveai.logging_config import bind_request_context, clear_request_context

from .auth import AuthenticationError, RateLimitExceeded, authenticate, enforce_rate_limit
from .bootstrap import LOG_ERROR, LOG_INFO, LOG_WARNING, METRICS
from .errors import ApiError

EndpointCallable = Callable[[Request], Awaitable[Any]]

UNAUTHORIZED_DETAILS = "Please sign in to continue"
INTERNAL_ERROR = "Internal Server Error"
PRODUCTION_ERROR_DETAILS = "An error occurred"

SECURITY_HEADERS = {
    "X-DNS-Prefetch-Control": "on",
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def generate_request_id() -> str:
    """Generate a unique, human-searchable request identifier."""

    return f"req_{int(time.time() * 1000)}_{token_hex(4)}"


def error_response(
    status_code: int,
    error: str,
    *,
    request_id: str,
    details: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload: dict[str, Any] = {"success": False, "error": error}
    if details is not None:
        payload["details"] = details
    response = JSONResponse(content=payload, status_code=status_code, headers=headers)
    response.headers["X-Request-ID"] = request_id
    return response


def internal_error_response(exc: Exception, *, request_id: str, production: bool) -> JSONResponse:
    details = PRODUCTION_ERROR_DETAILS if production else str(exc) or type(exc).__name__
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        INTERNAL_ERROR,
        request_id=request_id,
        details=details,
    )


def _build_response(result: Any, request_id: str) -> Response:
    """Wrap handler return values into the success envelope."""

    if isinstance(result, Response):
        result.headers.setdefault("X-Request-ID", request_id)
        return result

    if isinstance(result, tuple) and len(result) == 2:
        data, status_code = result
    else:
        data, status_code = result, status.HTTP_200_OK

    response = JSONResponse(content={"success": True, "data": jsonable_encoder(data)}, status_code=status_code)
    response.headers["X-Request-ID"] = request_id
    return response


def endpoint_wrapper(
    func: EndpointCallable | None = None,
    *,
    requires_auth: bool = True,
    rate_limited: bool = True,
) -> Any:
    """Decorator that layers logging, auth, rate limiting, metrics and error handling.

    Authentication always runs before the wrapped handler, so no parsing,
    validation or persistence can happen for an anonymous caller.
    """

    def decorator(fn: EndpointCallable) -> EndpointCallable:
        endpoint = fn.__name__

        @wraps(fn)
        async def wrapped_endpoint(request: Request) -> Response:
            request_id = generate_request_id()
            start_time = time.time()
            services = request.app.state.services
            settings = request.app.state.settings
            user_id = "anonymous"
            extra_headers: dict[str, str] = {}

            clear_request_context()
            bind_request_context(request_id=request_id, method=request.method, path=request.url.path, endpoint=endpoint)
            LOG_INFO("Request received")

            try:
                if requires_auth:
                    identity = await authenticate(request, services.identity_provider)
                    request.state.identity = identity
                    user_id = identity.user_id
                    bind_request_context(user_id=user_id)
                    if rate_limited:
                        extra_headers = await enforce_rate_limit(services.rate_limiter, user_id, endpoint)

                result = await fn(request)
                response = _build_response(result, request_id)
                response.headers.update(extra_headers)

            except AuthenticationError as exc:
                LOG_WARNING("Authentication failed", reason=str(exc))
                response = error_response(
                    status.HTTP_401_UNAUTHORIZED,
                    "Unauthorized",
                    request_id=request_id,
                    details=UNAUTHORIZED_DETAILS,
                )

            except RateLimitExceeded as exc:
                LOG_WARNING("Rate limit exceeded", retry_after=exc.retry_after)
                response = error_response(
                    status.HTTP_429_TOO_MANY_REQUESTS,
                    "Rate limit exceeded",
                    request_id=request_id,
                    headers={"Retry-After": str(exc.retry_after)},
                )

            except ApiError as exc:
                LOG_WARNING("Request rejected", status=exc.status_code, error_code=exc.error_code, error=exc.message)
                response = error_response(exc.status_code, exc.message, request_id=request_id, details=exc.details)

            except Exception as exc:
                LOG_ERROR("Request failed", error=str(exc), traceback=traceback.format_exc())
                response = internal_error_response(exc, request_id=request_id, production=settings.is_production)

            duration = time.time() - start_time
            LOG_INFO("Request completed", status=response.status_code, duration=duration, user_id=user_id)
            clear_request_context()
            METRICS.histogram("request.duration", duration, endpoint=endpoint)
            METRICS.increment("request.completed", endpoint=endpoint, status=str(response.status_code))
            return response

        return wrapped_endpoint

    if func is not None:
        return decorator(func)

    return decorator


async def security_headers_middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    response = await call_next(request)
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    return response


__all__ = [
    "SECURITY_HEADERS",
    "endpoint_wrapper",
    "error_response",
    "generate_request_id",
    "internal_error_response",
    "security_headers_middleware",
]
