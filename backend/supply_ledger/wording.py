"""Ukrainian amounts and quantities in words for printed documents."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from .orm_models import UnitType

_UNITS = {
    "masc": ["", "один", "два", "три", "чотири", "п’ять", "шість", "сім", "вісім", "дев’ять"],
    "fem": ["", "одна", "дві", "три", "чотири", "п’ять", "шість", "сім", "вісім", "дев’ять"],
}
_TEENS = [
    "десять",
    "одинадцять",
    "дванадцять",
    "тринадцять",
    "чотирнадцять",
    "п’ятнадцять",
    "шістнадцять",
    "сімнадцять",
    "вісімнадцять",
    "дев’ятнадцять",
]
_TENS = ["", "десять", "двадцять", "тридцять", "сорок", "п’ятдесят", "шістдесят", "сімдесят", "вісімдесят", "дев’яносто"]
_HUNDREDS = ["", "сто", "двісті", "триста", "чотириста", "п’ятсот", "шістсот", "сімсот", "вісімсот", "дев’ятсот"]
_SCALES = [
    (("тисяча", "тисячі", "тисяч"), "fem"),
    (("мільйон", "мільйони", "мільйонів"), "masc"),
    (("мільярд", "мільярди", "мільярдів"), "masc"),
]

HRYVNIA_FORMS = ("гривня", "гривні", "гривень")
KOPIYKA_FORMS = ("копійка", "копійки", "копійок")

# unit -> (whole forms, whole gender, fraction forms, fraction gender, fraction scale)
_QUANTITY_WORDS: dict[UnitType, tuple] = {
    UnitType.KG: (("кілограм", "кілограми", "кілограмів"), "masc", ("грам", "грами", "грамів"), "masc", 1000),
    UnitType.T: (("тонна", "тонни", "тонн"), "fem", ("кілограм", "кілограми", "кілограмів"), "masc", 1000),
    UnitType.L: (("літр", "літри", "літрів"), "masc", ("мілілітр", "мілілітри", "мілілітрів"), "masc", 1000),
    UnitType.G: (("грам", "грами", "грамів"), "masc", None, None, None),
    UnitType.PIECE: (("штука", "штуки", "штук"), "fem", None, None, None),
}


def choose_form(value: int, forms: tuple[str, str, str]) -> str:
    value = abs(value) % 100
    if 10 < value < 20:
        return forms[2]
    value = value % 10
    if value == 1:
        return forms[0]
    if 2 <= value <= 4:
        return forms[1]
    return forms[2]


def _triplet_words(triplet: int, gender: str) -> list[str]:
    words: list[str] = []
    hundreds, rest = divmod(triplet, 100)
    tens, units = divmod(rest, 10)
    if hundreds:
        words.append(_HUNDREDS[hundreds])
    if 10 <= rest <= 19:
        words.append(_TEENS[rest - 10])
    else:
        if tens:
            words.append(_TENS[tens])
        if units:
            words.append(_UNITS[gender][units])
    return words


def number_to_words(value: int, *, gender: str = "masc") -> str:
    if value == 0:
        return "нуль"

    groups: list[str] = []
    remainder = value
    index = 0
    while remainder > 0:
        remainder, triplet = divmod(remainder, 1000)
        if triplet:
            if index == 0:
                groups.insert(0, " ".join(_triplet_words(triplet, gender)))
            else:
                forms, scale_gender = _SCALES[min(index, len(_SCALES)) - 1]
                words = _triplet_words(triplet, scale_gender)
                words.append(choose_form(triplet, forms))
                groups.insert(0, " ".join(words))
        index += 1
    return " ".join(groups)


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def amount_to_words(value: Decimal) -> str:
    """``1234.56`` -> ``Одна тисяча двісті тридцять чотири гривні 56 копійок``."""
    quantized = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    hryvnias = int(quantized)
    kopiyky = int((quantized - hryvnias) * 100)
    words = number_to_words(hryvnias, gender="fem")
    return (
        f"{_capitalize(words)} {choose_form(hryvnias, HRYVNIA_FORMS)} "
        f"{kopiyky:02d} {choose_form(kopiyky, KOPIYKA_FORMS)}"
    )


def quantity_to_words(total: Decimal, unit: UnitType) -> str:
    whole_forms, whole_gender, part_forms, part_gender, scale = _QUANTITY_WORDS[unit]
    if part_forms is None:
        count = int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return _capitalize(f"{number_to_words(count, gender=whole_gender)} {choose_form(count, whole_forms)}")

    whole = int(total)
    part = int(((total - whole) * scale).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    pieces: list[str] = []
    if whole > 0:
        pieces.append(f"{number_to_words(whole, gender=whole_gender)} {choose_form(whole, whole_forms)}")
    if part > 0 or whole == 0:
        pieces.append(f"{number_to_words(part, gender=part_gender)} {choose_form(part, part_forms)}")
    return _capitalize(" ".join(pieces))
