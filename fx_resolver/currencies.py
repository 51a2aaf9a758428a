"""ISO-4217 currency codes understood by fx_resolver."""

from __future__ import annotations

from typing import Final

from fx_resolver.errors import InvalidCurrencyCodeError

# Active ISO-4217 codes plus the legacy codes still present in historical
# bank series (HRK, BGN after euro adoption, ANG).
CURRENCY_CODES: Final[frozenset[str]] = frozenset(
    """
    AED AFN ALL AMD ANG AOA ARS AUD AWG AZN BAM BBD BDT BGN BHD BIF BMD BND BOB
    BRL BSD BTN BWP BYN BZD CAD CDF CHF CLP CNY COP CRC CUP CVE CZK DJF DKK DOP
    DZD EGP ERN ETB EUR FJD FKP GBP GEL GHS GIP GMD GNF GTQ GYD HKD HNL HRK HTG
    HUF IDR ILS INR IQD IRR ISK JMD JOD JPY KES KGS KHR KMF KPW KRW KWD KYD KZT
    LAK LBP LKR LRD LSL LYD MAD MDL MGA MKD MMK MNT MOP MRU MUR MVR MWK MXN MYR
    MZN NAD NGN NIO NOK NPR NZD OMR PAB PEN PGK PHP PKR PLN PYG QAR RON RSD RUB
    RWF SAR SBD SCR SDG SEK SGD SHP SLE SOS SRD SSP STN SYP SZL THB TJS TMT TND
    TOP TRY TTD TWD TZS UAH UGX USD UYU UZS VES VND VUV WST XAF XCD XDR XOF XPF
    YER ZAR ZMW ZWL
    """.split()
)


def is_known_currency(code: str) -> bool:
    return code.strip().upper() in CURRENCY_CODES


def normalise_currency(code: str | None) -> str:
    """Return the upper-case ISO code or raise :class:`InvalidCurrencyCodeError`."""

    if code is None or not str(code).strip():
        raise InvalidCurrencyCodeError("Null or empty currency code.")
    cleaned = str(code).strip().upper()
    if cleaned not in CURRENCY_CODES:
        raise InvalidCurrencyCodeError(f"Not supported currency code: {code}")
    return cleaned


__all__ = ["CURRENCY_CODES", "is_known_currency", "normalise_currency"]
