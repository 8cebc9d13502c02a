"""Solarizer REST API.

Lets a trusted caller seed the Solar.web session cookie and proxies the
dashboard endpoints. Every route except /health requires a bearer token from
the configured allow-list.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import Response

from ..breaker import BreakerState
from ..errors import BreakerOpenError, SolarWebError
from ..models import EarningsAndSavings, GridBalance, PowerSnapshot, UnreadMessageCount
from ..solarweb_client import SolarWebClient
from .models import HealthStatus

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def verify_api_token(request: Request):
    """Check the Authorization header against the token allow-list.

    Raises:
        HTTPException: 401 for a missing or malformed header, 403 for an
            unknown token
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(BEARER_PREFIX):
        logger.warning("Error validating API token: empty or invalid authorization header")
        raise HTTPException(status_code=401, detail="Unauthorized")
    token = auth_header[len(BEARER_PREFIX):]
    if not token:
        logger.warning("Error validating API token: empty or invalid API key")
        raise HTTPException(status_code=401, detail="Unauthorized")
    if token not in request.app.state.api_tokens:
        logger.warning("Error validating API token: unknown API key")
        raise HTTPException(status_code=403, detail="Forbidden")


def _upstream_error(what: str, e: SolarWebError) -> HTTPException:
    logger.error(f"Error requesting {what} data: {e}")
    if isinstance(e, BreakerOpenError):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))


def create_app(
    client: SolarWebClient,
    api_tokens: Iterable[str],
    title: str = "Solarizer API",
    version: str = "1.0.0",
) -> FastAPI:
    """Build the API around a shared Solar.web client."""
    app = FastAPI(
        title=title,
        version=version,
        description="REST API for Fronius Solar.web PV data",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.client = client
    app.state.api_tokens = frozenset(api_tokens)

    # =========================================================================
    # Health
    # =========================================================================

    @app.get("/health", response_model=HealthStatus, tags=["Info"])
    async def health():
        """Check API health and Solar.web session status."""
        breaker = client.breaker.snapshot()
        if breaker.state is BreakerState.OPEN:
            status = "unavailable"
        elif client.ready and breaker.state is BreakerState.CLOSED:
            status = "healthy"
        else:
            status = "degraded"
        return HealthStatus(
            status=status,
            ready=client.ready,
            has_credential=bool(client.session_store.value),
            breaker_state=breaker.state.value,
            breaker_retry_in=breaker.retry_in,
            timestamp=datetime.now(timezone.utc),
            version=version,
        )

    # =========================================================================
    # Session
    # =========================================================================

    @app.put("/api/auth/cookie", status_code=202, tags=["Session"],
             dependencies=[Depends(verify_api_token)])
    async def put_auth_cookie(request: Request):
        """Replace the Solar.web session cookie with the raw request body."""
        logger.debug("Received putAuthCookie request")
        body = await request.body()
        try:
            value = body.decode("utf-8").strip()
        except UnicodeDecodeError:
            raise HTTPException(status_code=400, detail="Cookie must be UTF-8 text")
        if not value:
            raise HTTPException(status_code=400, detail="Empty cookie")
        client.set_auth_cookie(value)
        return Response(status_code=202)

    # =========================================================================
    # PV data
    # =========================================================================

    @app.get("/api/pv/power", response_model=PowerSnapshot, tags=["PV"],
             dependencies=[Depends(verify_api_token)])
    async def get_power_data():
        """Get the current power flow."""
        logger.debug("Received getPowerData request")
        try:
            return await client.get_power()
        except SolarWebError as e:
            raise _upstream_error("power", e)

    @app.get("/api/pv/production", response_model=EarningsAndSavings, tags=["PV"],
             dependencies=[Depends(verify_api_token)])
    async def get_productions_and_earnings():
        """Get productions, earnings and CO2 savings."""
        logger.debug("Received getProductionsAndEarnings request")
        try:
            return await client.get_earnings()
        except SolarWebError as e:
            raise _upstream_error("earnings", e)

    @app.get("/api/pv/balance", response_model=GridBalance, tags=["PV"],
             dependencies=[Depends(verify_api_token)])
    async def get_balance():
        """Get today's grid balance."""
        logger.debug("Received getBalance request")
        try:
            return await client.get_balance()
        except SolarWebError as e:
            raise _upstream_error("balance", e)

    @app.get("/api/pv/messages", response_model=UnreadMessageCount, tags=["PV"],
             dependencies=[Depends(verify_api_token)])
    async def get_unread_messages():
        """Get unread message counters of the Solar.web account."""
        logger.debug("Received getUnreadMessages request")
        try:
            return await client.get_unread_message_count()
        except SolarWebError as e:
            raise _upstream_error("messages", e)

    return app
