"""Rate limiting middleware for the image gateway.

Applies the :class:`RateGovernor` to every request before routing, so the
generation, save, test and status routes, as well as static uploads, all
draw from the same per-client allowance.
"""

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from imagegate.app.core.logging import get_log_context, get_logger
from imagegate.app.exceptions import RateLimitedError
from imagegate.app.services.rate_governor import AdmitResult, RateGovernor

logger = get_logger(__name__)


def get_client_identity(
    request: Request,
    trust_proxy: bool = True,
    proxy_hops: int = 1,
) -> str:
    """Get the rate limit identity for the request.

    Behind trusted proxies the address is read from X-Forwarded-For,
    counting ``proxy_hops`` entries in from the right. Each proxy appends
    the address it received the request from, so entries further left are
    supplied by the client and cannot be trusted. Without a trusted proxy
    the socket peer address is used.

    Args:
        request: FastAPI request object
        trust_proxy: Whether X-Forwarded-For may be trusted
        proxy_hops: Number of trusted proxies in front of the gateway

    Returns:
        Client address string, or "unknown"
    """
    if trust_proxy:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            entries = [entry.strip() for entry in forwarded.split(",") if entry.strip()]
            if entries:
                return entries[-min(max(proxy_hops, 1), len(entries))]
    return request.client.host if request.client else "unknown"


def rate_limit_headers(result: AdmitResult) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_time),
    }
    if result.retry_after is not None:
        headers["Retry-After"] = str(result.retry_after)
    return headers


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce the layered rate limits on every request.

    Rejected requests never reach a route handler; they get a 429 with the
    exhausted window's error and message.
    """

    def __init__(
        self,
        app,
        governor: RateGovernor,
        trust_proxy: bool = True,
        proxy_hops: int = 1,
    ):
        super().__init__(app)
        self.governor = governor
        self.trust_proxy = trust_proxy
        self.proxy_hops = proxy_hops

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        client_ip = get_client_identity(request, self.trust_proxy, self.proxy_hops)
        result = await self.governor.admit(client_ip)

        if not result.allowed:
            logger.warning(
                f"Rate limit exceeded for {client_ip}: {result.window.label} window",
                extra=get_log_context(
                    client_ip=client_ip,
                    path=request.url.path,
                    method=request.method,
                ),
            )
            error = RateLimitedError(
                error=result.window.error,
                message=result.window.message,
                retry_after=result.retry_after,
            )
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_response(),
                headers=rate_limit_headers(result),
            )

        logger.debug(
            f"Rate limit for {client_ip}: {result.remaining}/{result.limit} remaining",
            extra=get_log_context(client_ip=client_ip),
        )

        response = await call_next(request)
        response.headers.update(rate_limit_headers(result))
        return response
