"""Decimal coercion and quantization shared by the ledger services."""

from decimal import ROUND_HALF_UP, Decimal

from app.core.config import settings


def to_decimal(value) -> Decimal:
    """Coerce None / int / float / str / Decimal to Decimal without float noise."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _quantize(value, places: int) -> Decimal:
    return to_decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def money(value) -> Decimal:
    return _quantize(value, settings.AMOUNT_PLACES)


def quantity(value) -> Decimal:
    return _quantize(value, settings.QUANTITY_PLACES)


def unit_cost(value) -> Decimal:
    return _quantize(value, settings.COST_PLACES)
