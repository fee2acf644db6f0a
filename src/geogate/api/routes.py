"""API routes for geogate."""

import logging
import math
from typing import Any

from fastapi import APIRouter, Header, Query, Request
from fastapi.responses import JSONResponse

from geogate import __version__
from geogate.errors import (
    MalformedInputError,
    OriginUnavailableError,
    UnauthenticatedError,
    UpstreamError,
)
from geogate.lookup.base import GeoLookup
from geogate.network import client_ip, normalize_ip
from geogate.quota.engine import AdmissionEngine, Decision, DecisionStatus, RejectReason, ms_to_iso

logger = logging.getLogger(__name__)
router = APIRouter()


def _error(status_code: int, message: str, headers: dict[str, str] | None = None, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, **extra},
        headers=headers,
    )


def rate_limit_headers(decision: Decision) -> dict[str, str]:
    """Quota headers attached to every response that reached the engine."""
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
    }
    if decision.reset_at is not None:
        headers["X-RateLimit-Reset"] = ms_to_iso(decision.reset_at)
    return headers


@router.get("/look")
def look(
    request: Request,
    api_key: str | None = Header(default=None, alias="api-key"),
    ip: str | None = Query(default=None, description="Address to look up; defaults to the caller"),
) -> JSONResponse:
    """Admit the request against the caller's quota, then geolocate an address."""
    engine: AdmissionEngine = request.app.state.engine
    lookup: GeoLookup = request.app.state.lookup
    settings = request.app.state.settings

    if not api_key:
        return _error(401, "API key required")

    try:
        if ip is not None:
            target = normalize_ip(ip)
        else:
            target = client_ip(
                request.headers.get("x-forwarded-for"),
                request.client.host if request.client else None,
                trust_forwarded_for=settings.trust_forwarded_for,
            )
    except MalformedInputError as e:
        return _error(400, str(e))
    except OriginUnavailableError as e:
        return _error(422, f"{e}; pass the ip query parameter")

    try:
        decision = engine.admit(api_key)
    except UnauthenticatedError as e:
        return _error(401, str(e))

    if decision.status is DecisionStatus.ERROR:
        # Fail closed: an undecided admission is never treated as admitted
        return _error(500, "Error checking rate limit")

    if decision.status is DecisionStatus.REJECTED:
        if decision.reason is RejectReason.INVALID_KEY:
            return _error(401, "API key not found")
        headers = rate_limit_headers(decision)
        if decision.retry_after is not None:
            headers["Retry-After"] = str(math.ceil(decision.retry_after))
        return _error(
            429,
            "Rate limit exceeded",
            headers=headers,
            resetTime=ms_to_iso(decision.reset_at) if decision.reset_at is not None else None,
        )

    headers = rate_limit_headers(decision)
    logger.info(f"Client IP: {target}")

    # Quota is spent at this point whatever the lookup does
    try:
        data = lookup.lookup(target)
    except UpstreamError as e:
        return _error(500, str(e), headers=headers)

    if data is None:
        return _error(404, f"No data found for {target}", headers=headers)

    return JSONResponse(content=data, headers=headers)


@router.get("/health")
def health_check(request: Request) -> dict[str, Any]:
    """Report service and database health."""
    db_ok = request.app.state.db_manager.health_check()
    return {
        "status": "healthy" if db_ok else "degraded",
        "version": __version__,
        "database": "ok" if db_ok else "error",
    }
