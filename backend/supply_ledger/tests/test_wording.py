from decimal import Decimal

from backend.supply_ledger.orm_models import UnitType
from backend.supply_ledger.wording import amount_to_words, choose_form, number_to_words, quantity_to_words


def test_choose_form_follows_ukrainian_plural_rules():
    forms = ("гривня", "гривні", "гривень")
    assert choose_form(1, forms) == "гривня"
    assert choose_form(3, forms) == "гривні"
    assert choose_form(11, forms) == "гривень"
    assert choose_form(21, forms) == "гривня"
    assert choose_form(25, forms) == "гривень"


def test_number_to_words_handles_scales_and_gender():
    assert number_to_words(0) == "нуль"
    assert number_to_words(2, gender="fem") == "дві"
    assert number_to_words(2001, gender="fem") == "дві тисячі одна"
    assert number_to_words(1_000_000) == "один мільйон"


def test_amount_to_words():
    assert amount_to_words(Decimal("1234.56")) == "Одна тисяча двісті тридцять чотири гривні 56 копійок"
    assert amount_to_words(Decimal("255")) == "Двісті п’ятдесят п’ять гривень 00 копійок"
    assert amount_to_words(Decimal("1.01")) == "Одна гривня 01 копійка"


def test_quantity_to_words_splits_fraction_into_smaller_unit():
    assert quantity_to_words(Decimal("12"), UnitType.KG) == "Дванадцять кілограмів"
    assert quantity_to_words(Decimal("2.5"), UnitType.KG) == "Два кілограми п’ятсот грамів"
    assert quantity_to_words(Decimal("0.25"), UnitType.L) == "Двісті п’ятдесят мілілітрів"


def test_quantity_to_words_for_pieces_rounds_to_whole():
    assert quantity_to_words(Decimal("21"), UnitType.PIECE) == "Двадцять одна штука"
