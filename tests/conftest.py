"""Shared fakes for the Solar.web transport and InfluxDB."""

from __future__ import annotations

import json
from http.cookies import SimpleCookie
from types import SimpleNamespace
from typing import Any

import pytest

from solarizer.breaker import CircuitBreaker
from solarizer.session_store import SessionStore
from solarizer.solarweb_client import SolarWebClient


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse used as a context manager."""

    def __init__(
        self,
        status: int = 200,
        payload: Any = None,
        body: bytes | None = None,
        url: str = "https://www.solarweb.com/",
        set_cookies: dict[str, str] | None = None,
        location: str | None = None,
    ) -> None:
        self.status = status
        if body is None:
            body = json.dumps(payload if payload is not None else {}).encode()
        self._body = body
        self.url = url
        self.headers = {"Location": location} if location else {}
        self.cookies: SimpleCookie = SimpleCookie()
        for name, value in (set_cookies or {}).items():
            self.cookies[name] = value
            self.cookies[name]["expires"] = "Wed, 21 Oct 2026 07:28:00 GMT"

    @property
    def request_info(self) -> SimpleNamespace:
        return SimpleNamespace(real_url=self.url)

    async def read(self) -> bytes:
        return self._body


class _RequestContext:
    def __init__(self, outcome: FakeResponse | BaseException) -> None:
        self._outcome = outcome

    async def __aenter__(self) -> FakeResponse:
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        return self._outcome

    async def __aexit__(self, *exc: Any) -> bool:
        return False


class FakeSession:
    """Queue of canned responses; records every request made."""

    def __init__(self, *outcomes: FakeResponse | BaseException) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def queue(self, *outcomes: FakeResponse | BaseException) -> None:
        self.outcomes.extend(outcomes)

    def get(
        self, url: str, headers: dict[str, str] | None = None, allow_redirects: bool = True
    ) -> _RequestContext:
        if allow_redirects:
            raise AssertionError("redirects must be followed by the client")
        self.calls.append({"url": url, "headers": dict(headers or {})})
        if not self.outcomes:
            raise AssertionError(f"unexpected request to {url}")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, FakeResponse) and outcome.url == "https://www.solarweb.com/":
            outcome.url = url
        return _RequestContext(outcome)

    async def close(self) -> None:
        self.closed = True


class FakeWriteApi:
    def __init__(self, fail: bool = False) -> None:
        self.records: list[Any] = []
        self.fail = fail
        self.closed = False

    def write(self, bucket: str, org: str, record: Any) -> None:
        if self.fail:
            raise RuntimeError("influx down")
        self.records.append(record)

    def close(self) -> None:
        self.closed = True


class FakeInfluxClient:
    def __init__(self, fail: bool = False) -> None:
        self.write_api_instance = FakeWriteApi(fail=fail)
        self.closed = False

    def write_api(self, **_: Any) -> FakeWriteApi:
        return self.write_api_instance

    def close(self) -> None:
        self.closed = True


POWER_PAYLOAD = {
    "IsOnline": True,
    "AllOnline": False,
    "P_Grid": -1234.5,
    "P_Load": 812.0,
    "P_PV": 2046.5,
    "P_Batt": None,
    "SOC": 87.5,
    "BatMode": 1,
    "Ohmpilots": [],
}

EARNINGS_PAYLOAD = {
    "data": {
        "Earnings": {
            "IsoCurrency": "EUR",
            "Total": "1.012,4",
            "Month": "48,20",
            "Year": "311,07",
            "Today": "2,31",
            "TotalLabel": "Gesamt",
            "MonthLabel": "Oktober",
            "YearLabel": "2026",
            "TodayLabel": "Heute",
        },
        "TotalCo2Savings": {
            "DistanceUnit": "km",
            "DistanceValue": "25.310",
            "EmissionUnit": "t",
            "EmissionValue": "3,8",
            "Trees": "n/a",
        },
    }
}

BALANCE_PAYLOAD = {
    "hasMeter": True,
    "toGrid": "12,4 kWh",
    "fromGrid": "1.003,1 kWh",
    "chart": {
        "series": [
            {"type": "areaspline", "name": "Production", "data": [[1760000000000, 0.5]]},
            {"type": "bubble", "name": "Balance", "data": [{"x": 1, "y": 2, "z": 3}]},
        ]
    },
}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cookie_path(tmp_path):
    return tmp_path / "state" / "authcookie"


@pytest.fixture
def session_store(cookie_path) -> SessionStore:
    return SessionStore(cookie_path)


@pytest.fixture
def breaker(clock) -> CircuitBreaker:
    return CircuitBreaker(cooldown=60.0, clock=clock)


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def client(session_store, breaker, fake_session) -> SolarWebClient:
    session_store.apply("initial-token")
    return SolarWebClient("4711", session_store, breaker=breaker, session=fake_session)
