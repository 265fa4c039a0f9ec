# File: ublconv/parsing/money.py
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_CEILING, ROUND_HALF_UP

from ublconv.constants import TAX_CATEGORY_ZERO_RATED
from ublconv.errors import NumericParseError

HUNDRED = Decimal("100")


def normalize_numeric_string(value: str) -> str:
    """Trim whitespace and prefix a bare leading decimal point with ``0``.

    ``" .07 "`` becomes ``"0.07"``.
    """
    s = str(value).strip()
    if s.startswith("."):
        s = "0" + s
    return s


def _to_decimal(text: str, original) -> Decimal:
    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError):
        raise NumericParseError(original) from None
    if not value.is_finite():
        raise NumericParseError(original)
    return value


def parse_amount(value) -> Decimal:
    """Return ``value`` as a :class:`Decimal`, keeping its exponent."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        raise NumericParseError(value, "missing amount")
    return _to_decimal(normalize_numeric_string(value), value)


def parse_percent(value) -> Decimal:
    """Parse a percentage into percentage points (``"19%"`` -> ``19``).

    The trailing ``%`` is mandatory for the percentage grammar, so one is
    appended when the document omits it.
    """
    if isinstance(value, Decimal):
        return value
    if value is None:
        raise NumericParseError(value, "missing percentage")
    s = normalize_numeric_string(value)
    if not s.endswith("%"):
        s += "%"
    return _to_decimal(s[:-1].strip(), value)


def percent_or_none(percent: Decimal | None, category_id: str | None) -> Decimal | None:
    """Drop a zero rate unless the category is explicitly zero-rated."""
    if percent is None:
        return None
    if percent.is_zero() and category_id != TAX_CATEGORY_ZERO_RATED:
        return None
    return percent


def quantize_like(
    value: Decimal, reference: Decimal, rounding=ROUND_HALF_UP
) -> Decimal:
    """Quantize ``value`` with the same precision as ``reference``."""
    quant = Decimal("1").scaleb(reference.as_tuple().exponent)
    return value.quantize(quant, rounding=rounding)


def decimal_places(value: Decimal) -> int:
    exp = value.as_tuple().exponent
    return -exp if exp < 0 else 0


def rescale_up(value: Decimal, places: int) -> Decimal:
    """Add trailing zeros until ``value`` has at least ``places`` decimals."""
    if decimal_places(value) >= places:
        return value
    return value.quantize(Decimal("1").scaleb(-places))


def required_precision(price: Decimal, base_quantity: Decimal) -> int:
    """Decimals needed to divide ``price`` by ``base_quantity`` safely.

    price decimals + ceil(log10(|base quantity|)), no extra digits when the
    base quantity is 1 or less.
    """
    qty = abs(base_quantity.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    extra = 0
    if qty > 1:
        extra = int(qty.log10().to_integral_value(rounding=ROUND_CEILING))
    return decimal_places(price) + extra


def price_per_unit(price: Decimal, base_quantity: Decimal) -> Decimal:
    """Return the unit price for a price quoted per ``base_quantity`` units."""
    if base_quantity.is_zero():
        return price
    scaled = rescale_up(price, required_precision(price, base_quantity))
    return quantize_like(scaled / base_quantity, scaled)


def percent_of(percent: Decimal, base: Decimal) -> Decimal:
    """``percent`` of ``base`` rounded to the exponent of ``base``."""
    return quantize_like(base * percent / HUNDRED, base)


def fmt_amount(value: Decimal) -> str:
    """Plain positional notation, exponent preserved (``1800.00``)."""
    return format(value, "f")


def fmt_percent(value: Decimal) -> str:
    """Percentage points without the ``%`` symbol (``19``, ``21.0``)."""
    return format(value, "f")
