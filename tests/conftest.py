"""Shared test fixtures for licensefetch tests.

HTTP is never real: ledger and content servers are simulated with
httpx.MockTransport through the RecordingHandler below, which routes
requests by method and URL (query string ignored) and records every
request it sees.
"""

import json
from typing import Any, Callable

import httpx
import pytest

from licensefetch.config.settings import LedgerSettings
from licensefetch.infra.ledger_client import LedgerClient
from licensefetch.schemas.license import LedgerAcquireResponse
from licensefetch.services.license_service import LicenseService
from licensefetch.services.licensed_fetcher import LicensedFetcher
from licensefetch.utils.tokens import TokenEstimator


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
LEDGER_URL = "https://ledger.test"
LEDGER_KEY = "lk_test_0123456789abcdef"
LICENSES_ENDPOINT = f"{LEDGER_URL}/api/v1/licenses/"
ACQUIRE_ENDPOINT = f"{LEDGER_URL}/api/v1/licenses/acquire"
USAGE_ENDPOINT = f"{LEDGER_URL}/api/v1/usage/log"

ARTICLE_URL = "https://news.example.com/article"
PAYWALLED_URL = "https://paywalled.example.com/story"
LICENSED_URL = "https://paywalled.example.com/licensed/story?license=tok_abc"
LICENSED_ENDPOINT = "https://paywalled.example.com/licensed/story"
# An undecodable command-line byte surfaces as a lone surrogate
UNENCODABLE_URL = "https://news.example.com/caf\udce9"
UNENCODABLE_URL_ESCAPED = "https://news.example.com/caf\\udce9"


Route = Callable[[httpx.Request], Any]


class RecordingHandler:
    """MockTransport handler routing on (method, scheme://host/path).

    Route values are callables taking the request; they may be async
    and may raise httpx errors.
    Unrouted requests get a 404.
    """

    def __init__(self, routes: dict[tuple[str, str], Route] | None = None) -> None:
        self.routes = dict(routes or {})
        self.requests: list[httpx.Request] = []

    @staticmethod
    def _key(request: httpx.Request) -> tuple[str, str]:
        url = request.url
        return request.method, f"{url.scheme}://{url.host}{url.path}"

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        route = self.routes.get(self._key(request))
        if route is None:
            return httpx.Response(404, text="not routed")
        return route(request)

    def calls_to(self, method: str, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if self._key(r) == (method, url)]

    def json_bodies(self, method: str, url: str) -> list[dict]:
        return [json.loads(r.content) for r in self.calls_to(method, url)]


def json_response(body: Any, status: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status, json=body)


def text_response(
    text: str,
    status: int = 200,
    headers: dict[str, str] | None = None,
) -> Callable[[httpx.Request], httpx.Response]:
    base = {"content-type": "text/html; charset=utf-8"}
    base.update(headers or {})
    return lambda request: httpx.Response(status, text=text, headers=base)


def raising(exc_factory: Callable[[httpx.Request], Exception]) -> Callable[[httpx.Request], Any]:
    def _handler(request: httpx.Request):
        raise exc_factory(request)
    return _handler


def license_record(
    opt_in_status: str = "opt-in",
    license_type: str = "ai-license",
    record_id: int = 42,
    rate: float = 0.5,
    wallet: str = "wallet_abc",
) -> dict[str, Any]:
    """One record as returned by GET /api/v1/licenses/."""
    return {
        "id": record_id,
        "license_type": license_type,
        "opt_in_status": opt_in_status,
        "rate_per_token": rate,
        "wallet_id": wallet,
    }


def acquire_body(licensed_url: str = LICENSED_URL, **overrides: Any) -> dict[str, Any]:
    """Body as returned by POST /api/v1/licenses/acquire."""
    body = {
        "licensed_url": licensed_url,
        "license_version_id": 901,
        "license_sig": "sig_xyz",
        "expires_at": "2026-10-19T13:00:00Z",
        "cost": 0.75,
        "currency": "USD",
        "stage": "infer",
        "distribution": "private",
        "estimated_tokens": 1500,
        "license_status": "active",
        "rate_per_1k_tokens": 0.5,
    }
    body.update(overrides)
    return body


class FakeClock:
    """Manually advanced epoch clock for cache expiry tests."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def settings() -> LedgerSettings:
    """Tracking on, cache off, API key present, heuristic token counting."""
    return LedgerSettings(
        api_url=LEDGER_URL,
        api_key=LEDGER_KEY,
        license_check_timeout=1.0,
        license_acquire_timeout=1.0,
        usage_log_timeout=1.0,
        fetch_timeout=1.0,
        token_encoder_model="",
    )


@pytest.fixture
def estimator() -> TokenEstimator:
    return TokenEstimator(model=None)


@pytest.fixture
def ledger_handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def content_handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def make_service(ledger_handler: RecordingHandler, estimator: TokenEstimator):
    """Factory building a LicenseService over the recording ledger handler."""

    def _make(settings: LedgerSettings, clock: Callable[[], float] | None = None) -> LicenseService:
        ledger = LedgerClient(
            base_url=settings.api_url,
            api_key=settings.api_key,
            timeout=settings.license_check_timeout,
            transport=httpx.MockTransport(ledger_handler),
        )
        kwargs = {"clock": clock} if clock is not None else {}
        return LicenseService(settings, ledger=ledger, estimator=estimator, **kwargs)

    return _make


@pytest.fixture
def service(make_service, settings: LedgerSettings) -> LicenseService:
    return make_service(settings)


@pytest.fixture
def fetcher(service: LicenseService, content_handler: RecordingHandler) -> LicensedFetcher:
    return LicensedFetcher(service, transport=httpx.MockTransport(content_handler))


@pytest.fixture
def sample_acquire() -> LedgerAcquireResponse:
    return LedgerAcquireResponse.model_validate(acquire_body())
