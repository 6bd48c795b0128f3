"""Health and rate limit status endpoints."""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request

from imagegate.app.core.logging import get_log_context, get_logger
from imagegate.app.middleware.rate_limit import get_client_identity

logger = get_logger(__name__)
router = APIRouter()


def _isoformat(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


@router.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "healthy"}


@router.get("/rate-limit-status")
async def rate_limit_status(request: Request) -> Dict[str, Any]:
    """Report limits and remaining allowance for the calling client.

    The status request itself counts against the limits when rate limiting
    is enabled, so the figures already include it. With rate limiting
    disabled nothing is counted and every window reports its full allowance.
    """
    state = request.app.state
    app_settings = state.settings
    client_ip = get_client_identity(
        request, app_settings.trust_proxy, app_settings.trusted_proxy_hops
    )
    if app_settings.rate_limit_enabled:
        statuses = await state.rate_governor.snapshot(client_ip)
    else:
        statuses = state.rate_governor.idle_status()

    limits = {
        label: {
            "max": status.limit,
            "remaining": status.remaining,
            "windowMs": status.window_ms,
            "resetTime": _isoformat(status.reset_time),
        }
        for label, status in statuses.items()
    }
    earliest_reset = min(status.reset_time for status in statuses.values())

    logger.info(
        "Rate limit status check: "
        + ", ".join(f"{label} {s.remaining}/{s.limit}" for label, s in statuses.items()),
        extra=get_log_context(client_ip=client_ip),
    )

    return {
        "ip": client_ip,
        "enabled": state.settings.rate_limit_enabled,
        "limits": limits,
        "resetTime": _isoformat(earliest_reset),
    }
