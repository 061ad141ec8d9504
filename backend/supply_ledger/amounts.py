"""Decimal parsing and display formatting for quantities and prices."""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .errors import ErrorKind, ServiceError
from .orm_models import UnitType

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")

_WHITESPACE_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")

DEFAULT_UNIT = UnitType.KG


def normalize_number_text(raw: str) -> str:
    return _WHITESPACE_RE.sub("", raw).replace(",", ".")


def parse_decimal(raw: str | int | Decimal | None, *, field: str = "value", allow_negative: bool = False) -> Decimal:
    """Parse a user-entered number such as ``"1 234,56"`` into a Decimal.

    Whitespace (including non-breaking spaces used as thousand separators) is
    dropped and ``,`` is accepted as the decimal separator.
    """
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, int) and not isinstance(raw, bool):
        value = Decimal(raw)
    elif isinstance(raw, str):
        text = normalize_number_text(raw)
        if not _NUMBER_RE.match(text):
            raise _invalid_number(field, raw)
        try:
            value = Decimal(text)
        except InvalidOperation as exc:
            raise _invalid_number(field, raw) from exc
    else:
        raise _invalid_number(field, raw)

    if not value.is_finite():
        raise _invalid_number(field, raw)
    if value < 0 and not allow_negative:
        raise ServiceError(
            ErrorKind.INVALID_NUMBER_FORMAT,
            "Значення не може бути від'ємним",
            {field: str(raw)},
        )
    return value


def _invalid_number(field: str, raw: object) -> ServiceError:
    return ServiceError(
        ErrorKind.INVALID_NUMBER_FORMAT,
        "Невірний формат кількості або ціни",
        {field: str(raw)},
    )


def quantize(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_price(value: Decimal | str | int) -> str:
    """Render a money amount as ``1 234,56``: two decimals, space grouping."""
    amount = quantize(parse_decimal(value, allow_negative=True))
    sign = "-" if amount < 0 else ""
    integer_part, fraction = f"{abs(amount):.2f}".split(".")
    groups = []
    while integer_part:
        groups.insert(0, integer_part[-3:])
        integer_part = integer_part[:-3]
    return f"{sign}{' '.join(groups)},{fraction}"


def format_quantity(value: Decimal | str) -> str:
    """Drop a zero fractional part: ``10.00`` -> ``10``, ``2.50`` -> ``2.50``."""
    amount = quantize(parse_decimal(value, allow_negative=True))
    text = f"{amount:.2f}"
    if text.endswith(".00"):
        return text[:-3]
    return text


def parse_unit(raw: str | UnitType | None) -> UnitType:
    if isinstance(raw, UnitType):
        return raw
    candidate = (raw or "").strip()
    try:
        return UnitType(candidate)
    except ValueError as exc:
        raise ServiceError(
            ErrorKind.INVALID_UNIT,
            "Невідома одиниця виміру",
            {"unit": str(raw)},
        ) from exc


def parse_unit_or_default(raw: str | UnitType | None, default: UnitType = DEFAULT_UNIT) -> UnitType:
    """Legacy rows may carry unknown units; callers opt in to the fallback here."""
    try:
        return parse_unit(raw)
    except ServiceError:
        return default
