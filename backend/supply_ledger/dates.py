from __future__ import annotations

import re
from datetime import date, datetime

from .errors import ErrorKind, ServiceError

DATE_FORMAT = "%d.%m.%Y"

_DATE_PARTS_RE = re.compile(r"(\d{2})\.(\d{2})\.(\d{4})")
_YEAR_RE = re.compile(r"^\d{4}$")

# Genitive month names, as printed in Ukrainian documents ("15 березня 2025").
_UK_MONTHS_GENITIVE = (
    "січня",
    "лютого",
    "березня",
    "квітня",
    "травня",
    "червня",
    "липня",
    "серпня",
    "вересня",
    "жовтня",
    "листопада",
    "грудня",
)


def parse_date(raw: str | None, *, field: str = "date") -> date:
    value = (raw or "").strip()
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError as exc:
        raise ServiceError(
            ErrorKind.INVALID_DATE_FORMAT,
            "Дата має бути у форматі дд.мм.рррр",
            {field: value},
        ) from exc


def normalize_date(raw: str | None, *, field: str = "date") -> str:
    return parse_date(raw, field=field).strftime(DATE_FORMAT)


def year_of(raw: str | None) -> str | None:
    """Year bucket of a ``dd.MM.yyyy`` string, or None when it has no such part."""
    match = _DATE_PARTS_RE.search(raw or "")
    return match.group(3) if match else None


def quarter_of(raw: str | None) -> int | None:
    match = _DATE_PARTS_RE.search(raw or "")
    if not match:
        return None
    month = int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return (month - 1) // 3 + 1


def extract_year(raw: str | None, *, field: str = "executionPeriod") -> str:
    year = year_of(raw)
    if year is None:
        raise ServiceError(
            ErrorKind.INVALID_DATE_FORMAT,
            "Невірний формат терміну виконання договору",
            {field: raw or ""},
        )
    return year


def format_ukrainian_date(raw: str) -> str:
    parsed = parse_date(raw)
    return f"{parsed.day:02d} {_UK_MONTHS_GENITIVE[parsed.month - 1]} {parsed.year}"


def normalize_year(raw: str | int | None) -> str:
    value = str(raw if raw is not None else "").strip()
    if not _YEAR_RE.match(value):
        raise ServiceError(
            ErrorKind.INVALID_DATE_FORMAT,
            "Рік має складатися з чотирьох цифр",
            {"year": value},
        )
    return value
