from __future__ import annotations

import re
from dataclasses import dataclass

from ..config import settings

BRAZILIAN_STATE_CODES = frozenset(
    {
        "AC", "AL", "AP", "AM", "BA", "CE", "DF", "ES", "GO", "MA", "MT", "MS", "MG", "PA",
        "PB", "PR", "PE", "PI", "RJ", "RN", "RS", "RO", "RR", "SC", "SP", "SE", "TO",
    }
)
_STATE_CODE_PATTERN = re.compile(r"^[A-Z]{2}$")


@dataclass(frozen=True)
class ParsedAddress:
    city: str = ""
    state: str = ""
    country: str = ""
    # False when the positional fallback produced the values; treat them as guesses.
    confident: bool = False


def _match_city_state(segment: str) -> tuple[str, str] | None:
    if "-" not in segment:
        return None
    pieces = [piece.strip() for piece in segment.split("-")]
    if len(pieces) < 2:
        return None
    candidate = pieces[-1].upper()[:2]
    if candidate not in BRAZILIAN_STATE_CODES or not _STATE_CODE_PATTERN.match(candidate):
        return None
    return "-".join(pieces[:-1]), candidate


def parse_address(formatted_address: str | None, default_country: str | None = None) -> ParsedAddress:
    """Extract city, state and country from a Brazilian formatted address.

    ``"Street, Number - Neighborhood, City - ST, ZIP, Country"`` is scanned
    segment by segment in original order; the first ``<city> - <UF>`` segment
    wins. When nothing matches, the last segment becomes the country and, with
    at least three segments, the third- and second-from-last become city and
    state without validation.
    """
    if not formatted_address:
        return ParsedAddress()

    country = default_country or settings.default_country
    segments = [segment.strip() for segment in formatted_address.split(",")]

    # Forward scan: an earlier hyphenated segment ending in a valid-looking code
    # (e.g. "Rua X - Se") takes precedence over the real city segment.
    for segment in segments:
        if not segment:
            continue
        match = _match_city_state(segment)
        if match is not None:
            city, state = match
            return ParsedAddress(city=city, state=state, country=country, confident=True)

    fallback_country = segments[-1]
    if len(segments) >= 3:
        return ParsedAddress(city=segments[-3], state=segments[-2], country=fallback_country)
    return ParsedAddress(country=fallback_country)
