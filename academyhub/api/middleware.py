"""Middleware for rate limiting and request logging."""

import logging
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from academyhub.core.config import get_settings
from academyhub.core.metrics import observe_http_request
from academyhub.core.request_context import new_request_id, request_id_context
from academyhub.core.security import decode_token
from academyhub.core.structured_logging import log_json

# Configure structured logging
logger = logging.getLogger(__name__)
settings = get_settings()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add basic security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault(
            "Permissions-Policy",
            "camera=(), microphone=(), geolocation=()",
        )

        if settings.environment == "production":
            forwarded_proto = request.headers.get("x-forwarded-proto")
            scheme = forwarded_proto or request.url.scheme
            if scheme == "https":
                response.headers.setdefault(
                    "Strict-Transport-Security",
                    "max-age=63072000; includeSubDomains",
                )

        return response


@dataclass(frozen=True)
class RateLimitRule:
    """Limit for POSTs to one path, counted per client IP or per user."""

    name: str
    window: timedelta
    limit_setting: str
    per_user: bool = False

    @property
    def limit(self) -> int:
        return getattr(settings, self.limit_setting)


RATE_LIMIT_RULES: dict[str, RateLimitRule] = {
    "/api/auth/login": RateLimitRule("login", timedelta(minutes=1), "rate_limit_login_per_minute"),
    "/api/auth/forgot-password": RateLimitRule("login", timedelta(minutes=1), "rate_limit_login_per_minute"),
    "/api/invitations": RateLimitRule(
        "invite", timedelta(hours=1), "rate_limit_invite_per_hour", per_user=True
    ),
    "/api/invitations/accept": RateLimitRule(
        "accept", timedelta(hours=1), "rate_limit_accept_invite_per_hour"
    ),
}


class SlidingWindowLimiter:
    """Counts hits per key over a trailing time window, in process memory."""

    def __init__(self) -> None:
        self._hits: dict[tuple[str, str], deque[datetime]] = defaultdict(deque)

    def hit(self, bucket: str, identifier: str, window: timedelta, limit: int, now: datetime | None = None) -> bool:
        """Record a hit unless the key is over ``limit``. Returns True when limited."""
        now = now or datetime.now(UTC)
        hits = self._hits[(bucket, identifier)]
        while hits and hits[0] <= now - window:
            hits.popleft()
        if len(hits) >= limit:
            return True
        hits.append(now)
        return False


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory rate limiting of credential and invitation endpoints.

    Only active in production. Invitation creation is counted per
    authenticated user, everything else per client IP.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.limiter = SlidingWindowLimiter()

    @staticmethod
    def _user_or_ip_identifier(request: Request, client_ip: str) -> str:
        """Prefer JWT subject for identification, fallback to client IP."""
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            payload = decode_token(auth_header.removeprefix("Bearer ").strip())
            if payload and payload.get("sub"):
                return str(payload["sub"])
        return client_ip

    async def dispatch(self, request: Request, call_next):
        rule = RATE_LIMIT_RULES.get(request.url.path)
        if settings.environment != "production" or request.method != "POST" or rule is None:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        identifier = self._user_or_ip_identifier(request, client_ip) if rule.per_user else client_ip

        if self.limiter.hit(rule.name, identifier, rule.window, rule.limit):
            log_json(
                logger,
                logging.WARNING,
                "rate_limited",
                path=request.url.path,
                bucket=rule.name,
                client_ip=client_ip,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limited",
                    "message": "Too many requests. Please try again later.",
                    "details": None,
                },
            )

        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One JSON log line and one metrics sample per HTTP request.

    Reuses a caller-supplied ``X-Request-ID`` (or ``X-Correlation-ID``) when
    it is sane, otherwise mints one, and echoes it on the response.
    """

    @staticmethod
    def _incoming_request_id(request: Request) -> str | None:
        value = request.headers.get("X-Request-ID") or request.headers.get("X-Correlation-ID")
        if not value:
            return None
        value = value.strip()
        if not value or len(value) > 128 or "\n" in value or "\r" in value:
            return None
        return value

    async def dispatch(self, request: Request, call_next):
        request_id = self._incoming_request_id(request) or new_request_id()

        request.state.request_id = request_id

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        path = request.url.path

        with request_id_context(request_id):
            # Process request
            try:
                response = await call_next(request)
            except Exception as exc:
                duration_ms = (time.perf_counter() - start_time) * 1000
                log_json(
                    logger,
                    logging.ERROR,
                    "request_error",
                    method=method,
                    path=path,
                    status_code=500,
                    duration_ms=round(duration_ms, 2),
                    client_ip=client_ip,
                    error=str(exc),
                    exception=exc.__class__.__name__,
                )
                raise

            response.headers.setdefault("X-Request-ID", request_id)

            # Calculate duration
            duration_ms = (time.perf_counter() - start_time) * 1000

            route_obj = request.scope.get("route")
            route_template = getattr(route_obj, "path", None) if route_obj else None
            if not route_template:
                route_template = "unmatched"

            observe_http_request(
                method=method,
                route=route_template,
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

            # Log at appropriate level
            if response.status_code >= 500:
                level = logging.ERROR
            elif response.status_code >= 400:
                level = logging.WARNING
            else:
                level = logging.INFO

            log_json(
                logger,
                level,
                "request",
                method=method,
                path=path,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
                client_ip=client_ip,
            )

            return response
