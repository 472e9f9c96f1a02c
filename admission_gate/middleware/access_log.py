"""Access logging middleware: one structured line per request."""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from admission_gate.logging.audit import (
    RequestTimer,
    generate_request_id,
    get_audit_logger,
    level_for_status,
    request_id_var,
)


class AccessLogMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        logger = get_audit_logger()
        rid = generate_request_id()
        token = request_id_var.set(rid)
        audit_data = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else "unknown",
        }

        try:
            timer = RequestTimer()
            try:
                with timer:
                    response = await call_next(request)
            except Exception:
                audit_data.update(status=500, latency_ms=timer.elapsed_ms)
                logger.exception("Request failed", extra={"audit_data": audit_data})
                raise

            audit_data.update(status=response.status_code, latency_ms=timer.elapsed_ms)
            logger.log(
                level_for_status(response.status_code),
                "Request completed",
                extra={"audit_data": audit_data},
            )
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-Id"] = rid
        return response
