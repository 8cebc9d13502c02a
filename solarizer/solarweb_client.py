"""Fronius Solar.web dashboard client.

Solar.web has no public API for private PV systems; the dashboard itself
loads its widgets from JSON endpoints authenticated by the browser session
cookie. This client replays those calls with the cookie held by a
SessionStore, behind a circuit breaker.

Known endpoints:
    /ActualData/GetCompareDataForPvSystem?pvSystemId={id}
    /Chart/GetWidgetChart?PvSystemId={id}
    /Messages/GetUnreadMessageCountForUser
    /Messages/GetUnreadMessages
    /PvSystemImages/GetUrlForId?PvSystemId={id}
    /PvSystems/GetPvSystemEarningsAndSavings?pvSystemId={id}
    /PvSystems/GetWeatherWidgetData?pvSystemId={id}
"""

import aiohttp
import asyncio
import logging
from typing import Optional, Type, TypeVar
from urllib.parse import quote, urljoin, urlsplit

from pydantic import ValidationError

from .breaker import CircuitBreaker
from .errors import DecodeError, RemoteStatusError, TransportError
from .models import EarningsAndSavings, GridBalance, PowerSnapshot, SolarWebModel, UnreadMessageCount
from .session_store import SOLAR_WEB_DOMAIN, SessionStore

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/135.0.0.0 Safari/537.36"
)

REDIRECT_STATUSES = {301, 302, 303, 307, 308}
MAX_REDIRECTS = 10

ModelT = TypeVar("ModelT", bound=SolarWebModel)


class SolarWebClient:
    """Async client for the Solar.web dashboard endpoints."""

    BASE_URL = f"https://{SOLAR_WEB_DOMAIN}"

    ENDPOINTS = {
        "power": "/ActualData/GetCompareDataForPvSystem?pvSystemId={pv_system_id}",
        "earnings": "/PvSystems/GetPvSystemEarningsAndSavings?pvSystemId={pv_system_id}",
        "balance": "/Chart/GetWidgetChart?PvSystemId={pv_system_id}",
        "messages": "/Messages/GetUnreadMessageCountForUser",
    }

    def __init__(
        self,
        pv_system_id: str,
        session_store: SessionStore,
        breaker: Optional[CircuitBreaker] = None,
        timeout: int = 10,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize Solar.web client.

        Args:
            pv_system_id: Id of the PV system as shown in dashboard URLs
            session_store: Source of the auth cookie, notified of rotations
            breaker: Circuit breaker shared by all calls
            timeout: Request timeout in seconds
            session: Pre-built HTTP session (tests); owned by the caller
        """
        self.pv_system_id = pv_system_id
        self.session_store = session_store
        self.breaker = breaker or CircuitBreaker()
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None
        # Cleared on a rejected call, set again when a new cookie is applied
        self.ready = bool(session_store.value)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session.

        Cookies are attached explicitly from the session store, so the
        session runs without a cookie jar of its own.
        """
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                cookie_jar=aiohttp.DummyCookieJar(),
            )
            self._owns_session = True
        return self._session

    async def close(self):
        """Close the HTTP session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def set_auth_cookie(self, value: str):
        """Replace the session cookie, e.g. after a fresh browser login."""
        self.session_store.apply(value)
        self.ready = True

    def _headers(self, url: str) -> dict:
        headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        # The cookie is only sent to the host it belongs to
        if urlsplit(url).hostname == self.session_store.credential.host:
            cookie = self.session_store.cookie_header()
            if cookie:
                headers["Cookie"] = cookie
        return headers

    async def _request(self, url: str):
        """GET a URL, following redirects hop by hop.

        Every hop's Set-Cookie headers go through the session store before
        the next request is built, so a cookie rotated on a redirect is
        persisted and sent along with the redirected request.

        Returns:
            Tuple of (status, body) of the final response
        """
        session = await self._get_session()
        for _ in range(MAX_REDIRECTS + 1):
            async with session.get(url, headers=self._headers(url), allow_redirects=False) as response:
                body = await response.read()
                self.session_store.observe(str(response.url), response.cookies)
                location = response.headers.get("Location")
                if response.status not in REDIRECT_STATUSES or not location:
                    return response.status, body
                url = urljoin(str(response.url), location)
                logger.debug(f"Following redirect to {url}")
        raise aiohttp.TooManyRedirects(
            response.request_info, (), message=f"More than {MAX_REDIRECTS} redirects"
        )

    async def fetch_json(self, path: str) -> bytes:
        """GET a dashboard resource through the circuit breaker.

        Args:
            path: Path and query below the Solar.web host

        Returns:
            Raw response body of a 2xx response

        Raises:
            BreakerOpenError: Breaker is open, nothing was sent
            TransportError: Network failure or timeout
            RemoteStatusError: Response status outside 2xx
        """
        url = f"{self.BASE_URL}{path}"
        with self.breaker.guard() as call:
            try:
                status, body = await self._request(url)
            except asyncio.TimeoutError as e:
                call.failure()
                raise TransportError(f"Timeout fetching {path}") from e
            except aiohttp.ClientError as e:
                call.failure()
                raise TransportError(f"Error fetching {path}: {e}") from e

            if not 200 <= status < 300:
                call.failure()
                self.ready = False
                raise RemoteStatusError(status, body.decode("utf-8", errors="replace"))
            call.success()

        return body

    def _path(self, endpoint: str) -> str:
        return self.ENDPOINTS[endpoint].format(pv_system_id=quote(self.pv_system_id, safe=""))

    async def _get(self, endpoint: str, model: Type[ModelT]) -> ModelT:
        body = await self.fetch_json(self._path(endpoint))
        try:
            return model.model_validate_json(body)
        except ValidationError as e:
            raise DecodeError(f"Unexpected {endpoint} response: {e}") from e

    async def get_power(self) -> PowerSnapshot:
        """Fetch the current power flow."""
        return await self._get("power", PowerSnapshot)

    async def get_earnings(self) -> EarningsAndSavings:
        """Fetch productions and earnings."""
        return await self._get("earnings", EarningsAndSavings)

    async def get_balance(self) -> GridBalance:
        """Fetch today's grid balance."""
        return await self._get("balance", GridBalance)

    async def get_unread_message_count(self) -> UnreadMessageCount:
        """Fetch unread message counters of the account."""
        return await self._get("messages", UnreadMessageCount)
