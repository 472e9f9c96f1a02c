"""Admission middleware: per-client fixed-window rate limiting.

Pipeline per request: key -> skip check -> account -> headers -> verdict.

Skipped requests never touch the store and get no rate limit headers.
Every other request is counted (rejections included) and carries
RateLimit-* headers; rejected ones are answered with 429 here and never
reach the downstream handler.
"""

import inspect

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.types import ASGIApp

from admission_gate.config.options import RateLimitOptions
from admission_gate.logging.audit import get_audit_logger
from admission_gate.security.ratelimit import RateLimitResult, check_rate_limit
from admission_gate.store.counter_store import (
    Clock,
    CounterStore,
    InMemoryCounterStore,
    wall_clock_ms,
)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window admission control for every request passing through.

    Each instance owns its counter store unless one is injected, so several
    independently configured policies can be stacked on one app.
    """

    def __init__(
        self,
        app: ASGIApp,
        options: RateLimitOptions | None = None,
        store: CounterStore | None = None,
        clock: Clock = wall_clock_ms,
    ):
        super().__init__(app)
        self.options = options or RateLimitOptions()
        self.clock = clock
        self.store = store if store is not None else InMemoryCounterStore(
            capacity=self.options.store_capacity,
            ttl_ms=self.options.store_ttl_ms,
            clock=clock,
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        opts = self.options
        key = opts.key_generator(request)

        skip = opts.skip(request, key)
        if inspect.isawaitable(skip):
            skip = await skip
        if skip:
            return await call_next(request)

        result = check_rate_limit(
            self.store,
            key,
            max_requests=opts.max_requests,
            window_ms=opts.window_ms,
            now_ms=self.clock(),
        )

        if not result.allowed:
            get_audit_logger().warning(
                "rate limit exceeded",
                extra={"audit_data": {
                    "key": key,
                    "rate_limit": result.limit,
                    "count": result.count,
                    "retry_after": result.retry_after,
                }},
            )
            return await self._rejection(request, result)

        get_audit_logger().debug(
            "Rate limit check passed",
            extra={"audit_data": {"key": key, "count": result.count, "rate_limit": result.limit}},
        )
        response = await call_next(request)
        for name, value in result.headers.items():
            response.headers[name] = value
        return response

    async def _rejection(self, request: Request, result: RateLimitResult) -> Response:
        body = self.options.error_response
        # Responses are ASGI callables themselves, so test for them first
        if callable(body) and not isinstance(body, Response):
            body = body(request)
            if inspect.isawaitable(body):
                body = await body

        if isinstance(body, Response):
            # Fresh copy per rejection; the configured instance may be shared
            response = Response(body.body, status_code=429)
            response.raw_headers.extend(
                (name, value) for name, value in body.raw_headers if name != b"content-length"
            )
        elif isinstance(body, str):
            response = PlainTextResponse(body, status_code=429)
        else:
            response = JSONResponse(body, status_code=429)

        for name, value in result.headers.items():
            response.headers[name] = value
        return response
