from decimal import Decimal

import pytest

from backend.supply_ledger.amounts import (
    format_price,
    format_quantity,
    parse_decimal,
    parse_unit,
    parse_unit_or_default,
    quantize,
)
from backend.supply_ledger.dates import (
    extract_year,
    format_ukrainian_date,
    normalize_date,
    normalize_year,
    quarter_of,
    year_of,
)
from backend.supply_ledger.errors import ErrorKind, ServiceError
from backend.supply_ledger.orm_models import UnitType


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1 234,56", Decimal("1234.56")),
        ("1\u00a0234,56", Decimal("1234.56")),
        ("10", Decimal("10")),
        ("0.5", Decimal("0.5")),
        (" 7,25 ", Decimal("7.25")),
        (3, Decimal("3")),
    ],
)
def test_parse_decimal_accepts_user_formats(raw, expected):
    assert parse_decimal(raw) == expected


@pytest.mark.parametrize("raw", ["", "abc", "1,2,3", "12a", "NaN", None])
def test_parse_decimal_rejects_garbage(raw):
    with pytest.raises(ServiceError) as excinfo:
        parse_decimal(raw, field="quantity")
    assert excinfo.value.kind is ErrorKind.INVALID_NUMBER_FORMAT


def test_parse_decimal_rejects_negative_by_default():
    with pytest.raises(ServiceError) as excinfo:
        parse_decimal("-5")
    assert excinfo.value.kind is ErrorKind.INVALID_NUMBER_FORMAT
    assert parse_decimal("-5", allow_negative=True) == Decimal("-5")


def test_format_price_groups_thousands_and_pads_decimals():
    assert format_price(Decimal("1234.56")) == "1 234,56"
    assert format_price("1234,5") == "1 234,50"
    assert format_price(Decimal("1234567.891")) == "1 234 567,89"
    assert format_price(0) == "0,00"


def test_formatted_price_parses_back_to_the_same_amount():
    amount = Decimal("98765.43")
    assert parse_decimal(format_price(amount)) == amount


def test_quantize_rounds_half_up():
    assert quantize(Decimal("2.345")) == Decimal("2.35")
    assert quantize(Decimal("2.344")) == Decimal("2.34")


def test_format_quantity_drops_zero_fraction():
    assert format_quantity(Decimal("10.00")) == "10"
    assert format_quantity(Decimal("2.5")) == "2.50"


def test_parse_unit_accepts_known_units_only():
    assert parse_unit("кг") is UnitType.KG
    assert parse_unit(" шт ") is UnitType.PIECE
    with pytest.raises(ServiceError) as excinfo:
        parse_unit("ящик")
    assert excinfo.value.kind is ErrorKind.INVALID_UNIT


def test_parse_unit_or_default_falls_back_for_legacy_values():
    assert parse_unit_or_default("ящик") is UnitType.KG
    assert parse_unit_or_default("л") is UnitType.L


def test_dates_are_normalized_and_bucketed():
    assert normalize_date(" 05.03.2025 ") == "05.03.2025"
    assert year_of("15.03.2025") == "2025"
    assert quarter_of("15.03.2025") == 1
    assert quarter_of("01.10.2025") == 4
    assert year_of("березень") is None


@pytest.mark.parametrize("raw", ["2025-03-15", "15/03/2025", "", None, "32.01.2025"])
def test_invalid_dates_are_rejected(raw):
    with pytest.raises(ServiceError) as excinfo:
        normalize_date(raw)
    assert excinfo.value.kind is ErrorKind.INVALID_DATE_FORMAT


def test_extract_year_requires_date_shape():
    assert extract_year("31.12.2025") == "2025"
    with pytest.raises(ServiceError) as excinfo:
        extract_year("до кінця року")
    assert excinfo.value.kind is ErrorKind.INVALID_DATE_FORMAT


def test_normalize_year():
    assert normalize_year(2025) == "2025"
    assert normalize_year(" 2026 ") == "2026"
    with pytest.raises(ServiceError):
        normalize_year("25")


def test_ukrainian_date_uses_genitive_month():
    assert format_ukrainian_date("15.03.2025") == "15 березня 2025"
    assert format_ukrainian_date("01.12.2024") == "01 грудня 2024"
