"""Filter query construction for the meteorite landings feed.

The feed is a Socrata GeoJSON resource. Filters are appended to the base
resource URL either as simple ``?column=value`` pairs or as a ``$query``
SoQL statement. The SoQL text is percent-encoded by hand (``%20`` spaces,
``%27`` quotes) and comparison operators are left bare; the backend expects
exactly this spelling, so nothing here goes through urllib.

Input is validated before any query is built; values that pass are
concatenated as typed, except that masses lose surrounding whitespace.
"""

from __future__ import annotations

import re

LATITUDE_MARGIN = 5
YEAR_LENGTH = 4

_SELECT = "/?$query=SELECT%20*%20WHERE%20"
_LEADING_INT = re.compile(r"\s*([+-]?\d+)", re.ASCII)
_NUMBER = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?", re.ASCII)
_YEAR = re.compile(r"\d{4}", re.ASCII)


class FilterInputError(ValueError):
    """Raised when search input cannot be turned into a feed query.

    The message is meant to be shown to the user as-is.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


def _range_clause(column: str, low: str, high: str) -> str:
    return (
        f"{_SELECT}{column}%20>=%20%27{low}%27"
        f"%20AND%20{column}%20<=%20%27{high}%27"
    )


def _require_text(field: str, raw: str | None, label: str) -> str:
    if raw is None or not raw.strip():
        raise FilterInputError(field, f"{label} is required")
    return raw


def parse_leading_int(field: str, raw: str | None, label: str) -> int:
    """Integer prefix of ``raw`` ("12.7" -> 12, "-3abc" -> -3)."""
    match = _LEADING_INT.match(raw or "")
    if match is None:
        raise FilterInputError(field, f"{label} must be a whole number")
    return int(match.group(1))


def _require_number(field: str, raw: str | None, label: str) -> str:
    value = (raw or "").strip()
    if not _NUMBER.fullmatch(value):
        raise FilterInputError(field, f"{label} must be a number")
    return value


def _year(field: str, raw: str | None, label: str) -> str:
    year = (raw or "")[:YEAR_LENGTH]
    if not _YEAR.fullmatch(year):
        raise FilterInputError(field, f"{label} must be a year, e.g. 1990")
    return year


def id_query(base_url: str, raw_id: str) -> str:
    """``<base>/?id=<raw>``"""
    return f"{base_url}/?id={_require_text('id', raw_id, 'Meteorite id')}"


def name_query(base_url: str, raw_name: str) -> str:
    """``<base>/?name=<raw>``"""
    return f"{base_url}/?name={_require_text('name', raw_name, 'Meteorite name')}"


def latitude_band(raw_latitude: str) -> tuple[int, int]:
    """Band bounds as the search page has always computed them.

    Returns ``(value + 5, value - 5)`` in that order; the first element is
    used as the lower bound of the query even though it is the larger one.
    """
    value = parse_leading_int("latitude", raw_latitude, "Latitude")
    return value + LATITUDE_MARGIN, value - LATITUDE_MARGIN


def latitude_query(base_url: str, raw_latitude: str) -> str:
    """Records whose ``reclong`` lies between the latitude band bounds."""
    reclat_min, reclat_max = latitude_band(raw_latitude)
    return base_url + _range_clause("reclong", str(reclat_min), str(reclat_max))


def time_range_query(base_url: str, start_text: str, end_text: str) -> str:
    """Records whose ``year`` timestamp falls between two January 1sts.

    Only the first four characters of each input are used.
    """
    start = _year("range-start", start_text, "Start year")
    end = _year("range-end", end_text, "End year")
    return base_url + _range_clause(
        "year",
        f"{start}-01-01T00:00:00.000",
        f"{end}-01-01T00:00:00.000",
    )


def mass_range_query(base_url: str, min_text: str, max_text: str) -> str:
    """Records whose ``mass`` (grams) falls between two bounds."""
    low = _require_number("mass-min", min_text, "Minimum mass")
    high = _require_number("mass-max", max_text, "Maximum mass")
    return base_url + _range_clause("mass", low, high)


def fall_query(base_url: str, fall: str) -> str:
    """``<base>/?fall=Found`` or ``<base>/?fall=Fell``."""
    return f"{base_url}/?fall={fall}"


def all_query(base_url: str) -> str:
    """The unfiltered feed."""
    return base_url
