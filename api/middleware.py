import time
import uuid
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Injects:
    - request_id (reuses an inbound X-Request-ID when the gateway set one)
    - api_latency_ms

    and logs one access line per request with the tenant it was scoped to.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = time.perf_counter()

        request.state.request_id = request_id

        response: Response = await call_next(request)

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-API-Latency-ms"] = str(latency_ms)

        if request.url.path not in ("/health", "/metrics"):
            tenant_id = request.headers.get("X-Tenant-ID", "-")
            logger.info(
                f"[{request_id}] {request.method} {request.url.path} "
                f"tenant={tenant_id} status={response.status_code} latency_ms={latency_ms}"
            )

        return response
