from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from finance_tracker.log import logger

SUPPORTED_CURRENCIES = ("USD", "EUR", "INR")

DEFAULT_RATES: dict[str, dict[str, Decimal]] = {
    "USD": {
        "USD": Decimal("1"),
        "EUR": Decimal("0.92"),
        "INR": Decimal("83.15"),
    },
    "EUR": {
        "USD": Decimal("1.09"),
        "EUR": Decimal("1"),
        "INR": Decimal("90.43"),
    },
    "INR": {
        "USD": Decimal("0.012"),
        "EUR": Decimal("0.011"),
        "INR": Decimal("1"),
    },
}


@dataclass(frozen=True)
class StaticRateProvider:
    """Deterministic, in-memory FX rates.

    Rates are keyed by source currency, then target currency: one unit of
    the source buys ``rates[source][target]`` units of the target. The table
    is not reciprocal, so converting there and back only approximates the
    original amount.
    """

    rates: Mapping[str, Mapping[str, Decimal]] = None

    def __post_init__(self) -> None:
        table = self.rates or DEFAULT_RATES
        object.__setattr__(
            self,
            "rates",
            {source: dict(targets) for source, targets in table.items()},
        )

    def get_rate(self, source_currency: str, target_currency: str) -> Decimal:
        source = normalize_currency(source_currency)
        target = normalize_currency(target_currency)
        try:
            return self.rates[source][target]
        except KeyError as exc:
            raise ValueError(f"Unsupported currency pair: {source}->{target}") from exc


DEFAULT_PROVIDER = StaticRateProvider()


def convert_amount(
    amount: Decimal | int | float | str,
    source_currency: str,
    target_currency: str,
    rate_provider: StaticRateProvider | None = None,
) -> Decimal:
    """Convert a monetary amount between two currencies using static rates."""
    provider = rate_provider or DEFAULT_PROVIDER
    normalized_source = normalize_currency(source_currency)
    normalized_target = normalize_currency(target_currency)
    coerced_amount = coerce_amount(amount)

    if normalized_source == normalized_target:
        return coerced_amount

    return coerced_amount * provider.get_rate(normalized_source, normalized_target)


def convert_amount_safe(
    amount: Decimal | int | float | str,
    source_currency: str,
    target_currency: str,
    rate_provider: StaticRateProvider | None = None,
) -> Decimal:
    """Like ``convert_amount`` but never fails on a missing currency pair.

    A pair unknown to ``rate_provider`` is looked up in the default static
    table; when that also lacks it the amount is returned unconverted.
    """
    try:
        return _convert_with_fallback(amount, source_currency, target_currency, rate_provider)
    except ValueError:
        logger.warning(
            "No rate for %s->%s, keeping amount unconverted", source_currency, target_currency
        )
        return coerce_amount(amount)


def _convert_with_fallback(
    amount: Decimal,
    source_currency: str,
    target_currency: str,
    rate_provider: StaticRateProvider | None,
) -> Decimal:
    try:
        return convert_amount(amount, source_currency, target_currency, rate_provider)
    except ValueError:
        if rate_provider is None or rate_provider is DEFAULT_PROVIDER:
            raise
    return convert_amount(amount, source_currency, target_currency)


def normalize_amounts(
    records: Iterable[Mapping[str, Any]],
    target_currency: str,
    rate_provider: StaticRateProvider | None = None,
) -> list[dict[str, Any]]:
    """Annotate each record with its amount in ``target_currency``.

    Records without a usable amount or currency are dropped and logged, so
    the output can be shorter than the input. All other fields are copied
    through unchanged.
    """
    target = normalize_currency(target_currency)
    normalized: list[dict[str, Any]] = []
    for record in records:
        amount = record.get("amount") if record else None
        currency = record.get("currency") if record else None
        if amount is None or not isinstance(currency, str) or not currency.strip():
            logger.error("Skipping record without amount or currency: %r", record)
            continue
        try:
            coerced = coerce_amount(amount)
        except ValueError:
            logger.error("Skipping record with non-numeric amount: %r", record)
            continue

        data = dict(record)
        try:
            data["normalized_amount"] = _convert_with_fallback(
                coerced, currency, target, rate_provider
            )
            data["normalized_currency"] = target
        except ValueError:
            logger.warning(
                "Could not normalize record %s from %s to %s",
                record.get("id"),
                currency,
                target,
            )
        normalized.append(data)
    return normalized


def normalize_currency(value: str) -> str:
    normalized = value.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError("Currency must be a 3-letter ISO 4217 code.")
    return normalized


def coerce_amount(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, bool):
        raise ValueError("Amount must be numeric.")
    if isinstance(amount, Decimal):
        value = amount
    else:
        try:
            value = Decimal(str(amount).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Amount must be numeric: {amount!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Amount must be finite: {amount!r}")
    return value
