# accounting/services/exchange_rates.py

"""
EXCHANGE RATES (INJECTED CONFIGURATION)

Rates come from settings.ACCOUNTING_EXCHANGE_RATES (base-currency units per
one unit of foreign currency). Nothing here fetches market data.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings

from accounting.services.exceptions import ExchangeRateError

TWOPLACES = Decimal("0.01")
RATE_PLACES = Decimal("0.000001")


def base_currency() -> str:
    return getattr(settings, "ACCOUNTING_BASE_CURRENCY", "IDR")


def normalize_currency(currency: str | None) -> str:
    return (currency or base_currency()).strip().upper()


def get_rate(currency: str | None) -> Decimal:
    code = normalize_currency(currency)
    if code == base_currency():
        return Decimal("1")

    rates = getattr(settings, "ACCOUNTING_EXCHANGE_RATES", {}) or {}
    raw = rates.get(code)
    if raw is None:
        raise ExchangeRateError(f"No exchange rate configured for {code}")

    try:
        rate = Decimal(str(raw))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ExchangeRateError(f"Invalid exchange rate for {code}: {raw!r}") from exc

    if rate <= 0:
        raise ExchangeRateError(f"Exchange rate for {code} must be > 0")

    return rate.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def to_base(amount: Decimal, rate: Decimal) -> Decimal:
    return (Decimal(amount) * Decimal(rate)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
