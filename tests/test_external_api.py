from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
import requests

from fx_resolver.errors import ProviderError
from fx_resolver.models import Frequency, RateSource
from fx_resolver.providers.banks import BANKS, build_bank_provider, build_bank_providers
from fx_resolver.providers.external_api import BankApiClient, ExternalApiConfig
from fx_resolver.utils.date_range import DateRange

CONFIG = ExternalApiConfig(base_address="https://fx.example.test/", client_id="id", client_secret="pw")


class _DummyResponse:
    def __init__(self, payload=None, status_code: int = 200, text: str = "") -> None:
        self._payload = payload
        self.status_code = status_code
        self.reason = "OK" if status_code < 400 else "Server Error"
        self.text = text

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} {self.reason}")

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class _DummySession:
    def __init__(self, pages=None, token_payload=None) -> None:
        self.pages = pages or {}
        self.token_payload = token_payload or {"access_token": "tok", "expires_in": 3600}
        self.posts: list[tuple[str, dict]] = []
        self.gets: list[tuple[str, dict]] = []
        self.closed = False

    def post(self, url, data=None, timeout=None):
        self.posts.append((url, data))
        return _DummyResponse(self.token_payload)

    def get(self, url, headers=None, timeout=None):
        self.gets.append((url, headers))
        for suffix, response in self.pages.items():
            if url.endswith(suffix) or suffix in url:
                return response
        return _DummyResponse({"rates": {}})

    def close(self) -> None:
        self.closed = True


def _client(session: _DummySession, bank_id: str = "EUECB", source: RateSource = RateSource.ECB) -> BankApiClient:
    return BankApiClient(CONFIG, bank_id=bank_id, source=source, session=session)


def test_latest_daily_rates_are_parsed() -> None:
    payload = {
        "Rates": {
            "2024-01-15T00:00:00Z": {
                "USD": {"rate": 1.0856, "unitMultiplier": 0},
                "JPY": {"Rate": "16012", "UnitMultiplier": 2},
                "ZZZ": {"rate": 1, "unitMultiplier": 0},
            }
        }
    }
    session = _DummySession({"DailyRates/Latest": _DummyResponse(payload)})

    records = _client(session).daily_rates()

    assert [(r.rate_date, r.currency, r.rate) for r in records] == [
        (date(2024, 1, 15), "USD", Decimal("1.0856")),
        (date(2024, 1, 15), "JPY", Decimal("160.12")),
    ]
    assert all(r.source is RateSource.ECB and r.frequency is Frequency.DAILY for r in records)
    assert session.gets[0][0] == "https://fx.example.test/v1/Banks/EUECB/DailyRates/Latest"


def test_token_is_requested_once_and_sent_as_bearer() -> None:
    session = _DummySession()
    client = _client(session)

    client.daily_rates(DateRange(date(2024, 1, 1), date(2024, 1, 31)))
    client.periodic_rates(Frequency.MONTHLY, 2024, 1)

    assert len(session.posts) == 1
    url, data = session.posts[0]
    assert url == "https://fx.example.test/connect/token"
    assert data == {
        "grant_type": "client_credentials",
        "client_id": "id",
        "client_secret": "pw",
        "scope": "fx_api",
    }
    assert [headers["Authorization"] for _, headers in session.gets] == ["Bearer tok", "Bearer tok"]
    assert session.gets[0][0].endswith("DailyRates/TimeSeries?startDate=2024-01-01&endDate=2024-01-31")
    assert session.gets[1][0].endswith("/v1/Banks/EUECB/MonthlyRates/2024/1")


def test_token_without_lifetime_is_not_cached() -> None:
    session = _DummySession(token_payload={"access_token": "tok"})
    client = _client(session)

    client.daily_rates()
    client.daily_rates()

    assert len(session.posts) == 2


def test_http_error_carries_request_context() -> None:
    session = _DummySession({"Latest": _DummyResponse(status_code=500, text="boom")})

    with pytest.raises(ProviderError) as excinfo:
        _client(session, "GBHMRC", RateSource.HMRC).periodic_rates(Frequency.MONTHLY)

    message = str(excinfo.value)
    assert "BankId: GBHMRC" in message
    assert "StatusCode: 500" in message
    assert "ResponseBody: boom" in message


def test_malformed_rate_raises() -> None:
    payload = {"rates": {"2024-01-15T00:00:00": {"USD": {"unitMultiplier": 0}}}}
    session = _DummySession({"Latest": _DummyResponse(payload)})

    with pytest.raises(ProviderError, match="absolute rate for USD"):
        _client(session).daily_rates()


def test_daily_rates_are_not_periodic() -> None:
    with pytest.raises(ValueError):
        _client(_DummySession()).periodic_rates(Frequency.DAILY)


def test_config_from_env() -> None:
    config = ExternalApiConfig.from_env(
        {"FX_API_BASE_ADDRESS": "https://api.test", "FX_API_CLIENT_ID": "abc", "FX_API_TIMEOUT": "5"}
    )

    assert config.base_address == "https://api.test"
    assert config.client_id == "abc"
    assert config.client_secret == "secret"
    assert config.timeout == 5.0
    assert config.url("/v1/x") == "https://api.test/v1/x"
    assert config.url("https://other.test/token") == "https://other.test/token"


def test_daily_history_is_split_into_180_day_requests() -> None:
    session = _DummySession()
    ecb = next(bank for bank in BANKS if bank.source is RateSource.ECB)
    provider = build_bank_provider(ecb, CONFIG, session=session)

    provider.fetch_history(Frequency.DAILY, date(2023, 1, 1), date(2023, 12, 31))

    assert [url.split("TimeSeries?")[1] for url, _ in session.gets] == [
        "startDate=2023-01-01&endDate=2023-06-29",
        "startDate=2023-06-30&endDate=2023-12-26",
        "startDate=2023-12-27&endDate=2023-12-31",
    ]


def test_periodic_history_is_read_month_by_month() -> None:
    session = _DummySession()
    hmrc = next(bank for bank in BANKS if bank.source is RateSource.HMRC)
    provider = build_bank_provider(hmrc, CONFIG, session=session)

    provider.fetch_history(Frequency.MONTHLY, date(2023, 11, 15), date(2024, 1, 2))

    assert [url.rsplit("MonthlyRates/", 1)[1] for url, _ in session.gets] == ["2023/11", "2023/12", "2024/1"]


def test_daily_latest_rereads_a_short_window() -> None:
    session = _DummySession()
    ecb = next(bank for bank in BANKS if bank.source is RateSource.ECB)
    provider = build_bank_provider(ecb, CONFIG, session=session, today=lambda: date(2024, 1, 31))

    provider.fetch_latest(Frequency.DAILY)

    assert session.gets[0][0].endswith("startDate=2024-01-27&endDate=2024-01-31")


def test_bank_catalogue() -> None:
    providers = build_bank_providers(CONFIG, session=_DummySession())

    assert [p.source for p in providers] == list(RateSource)
    assert {p.source: p.currency for p in providers}[RateSource.MXCB] == "MXN"
    assert providers[0].frequencies == [Frequency.DAILY, Frequency.MONTHLY]
