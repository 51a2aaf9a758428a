"""HTTP client for the bank exchange-rate API."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Mapping

import requests

from fx_resolver.currencies import is_known_currency
from fx_resolver.errors import ProviderError
from fx_resolver.models import Frequency, RateRecord, RateSource
from fx_resolver.utils.logger import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported only for type checking
    from fx_resolver.utils.date_range import DateRange

LOGGER = get_logger(__name__)

TOKEN_SCOPE = "fx_api"
#: Seconds before the advertised expiry at which a cached token is renewed.
TOKEN_EXPIRY_MARGIN = 30.0

_PERIODIC_SEGMENTS = {
    Frequency.WEEKLY: "WeeklyRates",
    Frequency.BIWEEKLY: "BiweeklyRates",
    Frequency.MONTHLY: "MonthlyRates",
}


@dataclass(frozen=True, slots=True)
class ExternalApiConfig:
    """Connection settings shared by every bank provider."""

    base_address: str = "http://localhost"
    token_endpoint: str = "/connect/token"
    client_id: str = "client"
    client_secret: str = "secret"
    timeout: float = 30.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ExternalApiConfig":
        """Build a config from ``FX_API_*`` environment variables."""

        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            base_address=env.get("FX_API_BASE_ADDRESS", defaults.base_address),
            token_endpoint=env.get("FX_API_TOKEN_ENDPOINT", defaults.token_endpoint),
            client_id=env.get("FX_API_CLIENT_ID", defaults.client_id),
            client_secret=env.get("FX_API_CLIENT_SECRET", defaults.client_secret),
            timeout=float(env.get("FX_API_TIMEOUT", defaults.timeout)),
        )

    def url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_address.rstrip('/')}/{path.lstrip('/')}"


class BankApiClient:
    """Fetch one bank's rates, authenticating with OAuth client credentials."""

    def __init__(
        self,
        config: ExternalApiConfig,
        *,
        bank_id: str,
        source: RateSource,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config
        self.bank_id = bank_id
        self.source = source
        self.session = session or requests.Session()
        self._token: str | None = None
        self._token_expires_at = 0.0

    # ---------------------------------------------------------------- rates

    def daily_rates(self, period: "DateRange | None" = None) -> list[RateRecord]:
        """Return the latest daily batch, or the time series for ``period``."""

        path = f"/v1/Banks/{self.bank_id}/DailyRates/"
        if period is None:
            path += "Latest"
        else:
            path += (
                f"TimeSeries?startDate={period.start:%Y-%m-%d}&endDate={period.end:%Y-%m-%d}"
            )
        return self._parse_rates(self._get_json(path), Frequency.DAILY)

    def periodic_rates(
        self, frequency: Frequency, year: int | None = None, month: int | None = None
    ) -> list[RateRecord]:
        """Return weekly/biweekly/monthly rates, the latest ones when no month is given."""

        try:
            segment = _PERIODIC_SEGMENTS[frequency]
        except KeyError:
            raise ValueError(f"{frequency.value} rates are not published per month") from None
        path = f"/v1/Banks/{self.bank_id}/{segment}/"
        path += "Latest" if year is None or month is None else f"{year}/{month}"
        return self._parse_rates(self._get_json(path), frequency)

    # ----------------------------------------------------------------- http

    def _get_json(self, path: str) -> Any:
        url = self.config.url(path)
        headers = {"Authorization": f"Bearer {self._get_token()}", "Accept": "application/json"}
        try:
            response = self.session.get(url, headers=headers, timeout=self.config.timeout)
        except requests.RequestException as exc:
            raise ProviderError(
                f"Exchange rate API request failed. BankId: {self.bank_id}, "
                f"Source: {self.source.value}, RequestUri: {path}: {exc}"
            ) from exc
        self._raise_with_context(response, f"RequestUri: {path}", "Exchange rate API request")
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                f"Exchange rate API returned invalid JSON. BankId: {self.bank_id}, "
                f"Source: {self.source.value}, RequestUri: {path}"
            ) from exc

    def _get_token(self) -> str:
        if self._token is not None and time.monotonic() < self._token_expires_at:
            return self._token

        data = {
            "grant_type": "client_credentials",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "scope": TOKEN_SCOPE,
        }
        endpoint = self.config.url(self.config.token_endpoint)
        try:
            response = self.session.post(endpoint, data=data, timeout=self.config.timeout)
        except requests.RequestException as exc:
            raise ProviderError(
                f"Exchange rate API token request failed. BankId: {self.bank_id}, "
                f"Source: {self.source.value}, TokenEndpoint: {self.config.token_endpoint}: {exc}"
            ) from exc
        self._raise_with_context(
            response,
            f"TokenEndpoint: {self.config.token_endpoint}, ClientId: {self.config.client_id}",
            "Exchange rate API token request",
        )
        try:
            payload = response.json()
            token = payload["access_token"]
        except (ValueError, KeyError, TypeError) as exc:
            raise ProviderError(
                f"Token endpoint {self.config.token_endpoint} returned no access_token"
            ) from exc

        expires_in = payload.get("expires_in")
        if expires_in:
            self._token = token
            self._token_expires_at = time.monotonic() + float(expires_in) - TOKEN_EXPIRY_MARGIN
        else:
            # Without an advertised lifetime every request authenticates again.
            self._token = None
        return token

    def _raise_with_context(self, response: requests.Response, target: str, action: str) -> None:
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise ProviderError(
                f"{action} failed. BankId: {self.bank_id}, Source: {self.source.value}, "
                f"{target}, StatusCode: {response.status_code}, "
                f"ReasonPhrase: {response.reason}, ResponseBody: {response.text}"
            ) from exc

    # -------------------------------------------------------------- parsing

    def _parse_rates(self, payload: Any, frequency: Frequency) -> list[RateRecord]:
        """Flatten ``{"rates": {datetime: {CCY: {rate, unitMultiplier}}}}`` into records."""

        if not isinstance(payload, Mapping):
            raise ProviderError(f"Unexpected payload from bank {self.bank_id}: {payload!r}")
        rates = _get_ignore_case(payload, "rates") or {}
        records: list[RateRecord] = []
        skipped: set[str] = set()
        for stamp, currencies in rates.items():
            rate_date = _parse_stamp(stamp)
            for currency, quote in currencies.items():
                code = currency.strip().upper()
                if not is_known_currency(code):
                    skipped.add(code)
                    continue
                try:
                    value = _absolute_rate(quote)
                except (InvalidOperation, KeyError, TypeError, ValueError) as exc:
                    raise ProviderError(
                        f"Failed to get the absolute rate for {code} {quote!r} on {stamp}, "
                        f"{frequency.value} at {self.source.value}."
                    ) from exc
                records.append(RateRecord(rate_date, code, self.source, frequency, value))
        if skipped:
            LOGGER.debug(
                "Skipped unknown currencies from %s: %s", self.bank_id, ", ".join(sorted(skipped))
            )
        return records

    def close(self) -> None:
        self.session.close()


def _get_ignore_case(mapping: Mapping[str, Any], key: str) -> Any:
    for candidate, value in mapping.items():
        if candidate.lower() == key.lower():
            return value
    return None


def _parse_stamp(value: str) -> date:
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1]
    return datetime.fromisoformat(text).date()


def _absolute_rate(quote: Mapping[str, Any]) -> Decimal:
    value = Decimal(str(_get_ignore_case(quote, "rate")))
    multiplier = _get_ignore_case(quote, "unitMultiplier") or 0
    return value / (Decimal(10) ** int(multiplier))


__all__ = ["BankApiClient", "ExternalApiConfig", "TOKEN_SCOPE"]
