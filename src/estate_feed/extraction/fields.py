"""Extractors for area, rooms, floor, condition, address and property type.

Every extractor is a pure function returning a value or None. Where several
patterns compete, they are listed in priority order and the first match wins.
"""

import re

from estate_feed.extraction.normalizer import normalize_line, normalize_number
from estate_feed.extraction.price import is_price_per_area
from estate_feed.models.pydantic_models import (
    Condition,
    FloorResult,
    PropertyType,
    RoomsResult,
)

MIN_PLAUSIBLE_AREA = 10
MAX_PLAUSIBLE_AREA = 500
MAX_BUILDING_NAME_LENGTH = 60

AREA_RE = re.compile(
    r"(\d{1,4}(?:[.,]\d{1,2})?)\s*(?:m2|m²|sqm|sq\s?m|кв\.?\s?м|кв\s?м|м2|м²)",
    re.IGNORECASE,
)

_STUDIO_RE = re.compile(r"(studio|студия)", re.IGNORECASE)
_ROOMS_PLUS_RE = re.compile(r"(\d)\s*\+\s*(\d)")
_ROOMS_COUNT_RE = re.compile(r"(\d)\s*(?:комнат\w*|комн\.?|rooms?)", re.IGNORECASE)

# (pattern, floor group, total floors group or None)
FLOOR_RULES: list[tuple[re.Pattern[str], int, int | None]] = [
    # "5 из 9", "floor 5 of 9"
    (re.compile(r"(?:этаж|floor)?\s*(\d{1,2})\s*(?:из|of)\s*(\d{1,2})", re.IGNORECASE), 1, 2),
    # "Этаж: 5", "floor - 5/9"
    (
        re.compile(r"(?:этаж|floor)\s*[:\-]?\s*(\d{1,2})(?:\s*/\s*(\d{1,2}))?", re.IGNORECASE),
        1,
        2,
    ),
    # "floor 5/9"
    (re.compile(r"(?:этаж|floor)\s*(\d{1,2})\s*/\s*(\d{1,2})", re.IGNORECASE), 1, 2),
    # "floor 5"
    (re.compile(r"(?:этаж|floor)\s*(\d{1,2})", re.IGNORECASE), 1, None),
    # "5/9 этаж"
    (re.compile(r"(\d{1,2})\s*/\s*(\d{1,2})\s*этаж", re.IGNORECASE), 1, 2),
    # "5-й этаж", "5 этаж"
    (re.compile(r"(\d{1,2})\s*(?:-?\s*(?:й|ый|ой|ий))?\s*этаж", re.IGNORECASE), 1, None),
]

CONDITION_RULES: list[tuple[re.Pattern[str], Condition]] = [
    (re.compile(r"(white\s*frame|бел(?:ый|ом)\s*каркас)", re.IGNORECASE), Condition.WHITE_FRAME),
    (re.compile(r"(black\s*frame|ч[её]рн(?:ый|ом)\s*каркас)", re.IGNORECASE), Condition.BLACK_FRAME),
    (re.compile(r"(renovated|ремонт|ремонтирован)", re.IGNORECASE), Condition.RENOVATED),
    (re.compile(r"(furnished|мебель|меблирован)", re.IGNORECASE), Condition.FURNISHED),
    (re.compile(r"(under\s*construction|строится)", re.IGNORECASE), Condition.UNDER_CONSTRUCTION),
]

_ADDRESS_KEYWORD_RE = re.compile(
    r"(ул\.?|улица|street|st\.|просп\.?|проспект|ave\.|avenue|бульвар|пр-т|район)",
    re.IGNORECASE,
)
_ADDRESS_NUMBER_RE = re.compile(r",\s*\d{1,4}\b")

_LETTERS_RE = re.compile(r"[A-Za-zА-Яа-яЁё]")
_PRICE_TOKEN_RE = re.compile(r"(\$|usd|₾|gel|€|₽|руб|долл)", re.IGNORECASE)
_AREA_TOKEN_RE = re.compile(r"(m2|m²|sqm|кв\.?\s?м|м2|м²)", re.IGNORECASE)
_FLOOR_WORD_RE = re.compile(r"этаж|floor", re.IGNORECASE)


def _keyword_group(words: str) -> re.Pattern[str]:
    # Latin/Cyrillic letters on either side break the match
    return re.compile(rf"(^|[^a-zа-яё])({words})([^a-zа-яё]|$)", re.IGNORECASE)


PROPERTY_TYPE_RULES: list[tuple[re.Pattern[str], PropertyType]] = [
    (
        _keyword_group(r"квартир\w*|апартамент\w*|apartments?"),
        PropertyType.APARTMENT,
    ),
    (
        _keyword_group(
            r"коммерц\w*|коммерческ\w*|бизнес\w*|офис\w*|магазин\w*|кафе|ресторан\w*"
            r"|склад\w*|помещен\w*|торгов\w*|commercial|office|shop|retail|warehouse|business"
        ),
        PropertyType.COMMERCIAL,
    ),
    (
        _keyword_group(
            r"участ\w*|земл\w*|коттедж\w*|таунхаус\w*|частн\w*\s+дом\w*|дач\w*"
            r"|house|land|villa|townhouse|plot"
        ),
        PropertyType.HOUSE_LAND,
    ),
]


def extract_area(text: str) -> float | None:
    """Extract the living area in square meters.

    Lines quoting a price per square meter are skipped. Among line matches
    within [10, 500] the largest wins; without any, the first match in the
    whole text is used unfiltered.

    Args:
        text: Listing description.

    Returns:
        Area in m², or None.
    """
    candidates = []
    for line in text.splitlines():
        line = line.strip()
        if not line or is_price_per_area(line):
            continue
        match = AREA_RE.search(normalize_line(line))
        if match is None:
            continue
        value = normalize_number(match.group(1))
        if value is None or not MIN_PLAUSIBLE_AREA <= value <= MAX_PLAUSIBLE_AREA:
            continue
        candidates.append(value)

    if candidates:
        return max(candidates)

    match = AREA_RE.search(text)
    if match is None:
        return None
    return normalize_number(match.group(1))


def extract_rooms(text: str) -> RoomsResult | None:
    """Extract the room layout.

    "studio" maps to 0+1, "2+1" is taken literally and "N rooms" means
    N bedrooms plus one living room.

    Args:
        text: Listing description.

    Returns:
        RoomsResult or None.
    """
    if _STUDIO_RE.search(text):
        return RoomsResult(rooms_text="studio", bedrooms=0, living=1)

    plus_match = _ROOMS_PLUS_RE.search(text)
    if plus_match:
        bedrooms = int(plus_match.group(1))
        living = int(plus_match.group(2))
        return RoomsResult(rooms_text=f"{bedrooms}+{living}", bedrooms=bedrooms, living=living)

    count_match = _ROOMS_COUNT_RE.search(text)
    if count_match:
        bedrooms = int(count_match.group(1))
        return RoomsResult(rooms_text=f"{bedrooms}+1", bedrooms=bedrooms, living=1)

    return None


def extract_floor(text: str) -> FloorResult | None:
    """Extract floor and, when encoded, total floors using FLOOR_RULES."""
    for pattern, floor_group, total_group in FLOOR_RULES:
        match = pattern.search(text)
        if match is None:
            continue
        total = match.group(total_group) if total_group is not None else None
        return FloorResult(
            floor=int(match.group(floor_group)),
            total_floors=int(total) if total else None,
        )
    return None


def extract_condition(text: str) -> Condition | None:
    """Return the first condition in CONDITION_RULES order found in text."""
    for pattern, condition in CONDITION_RULES:
        if pattern.search(text):
            return condition
    return None


def pick_address_line(lines: list[str]) -> str | None:
    """First line with a street keyword or a ", <number>" suffix."""
    for line in lines:
        if _ADDRESS_KEYWORD_RE.search(line) or _ADDRESS_NUMBER_RE.search(line):
            return line
    return None


def pick_building_name(lines: list[str]) -> str | None:
    """First short line with letters and no price, area or floor tokens."""
    for line in lines:
        if (
            _LETTERS_RE.search(line)
            and not _PRICE_TOKEN_RE.search(line)
            and not _AREA_TOKEN_RE.search(line)
            and not _FLOOR_WORD_RE.search(line)
            and len(line) <= MAX_BUILDING_NAME_LENGTH
        ):
            return line
    return None


def classify_property_type(title: str | None, description: str | None) -> PropertyType:
    """Classify a listing by keyword groups, defaulting to apartment.

    Args:
        title: Listing title.
        description: Listing description.

    Returns:
        The first PropertyType in PROPERTY_TYPE_RULES whose keywords appear.
    """
    text = f"{title or ''} {description or ''}"
    for pattern, property_type in PROPERTY_TYPE_RULES:
        if pattern.search(text):
            return property_type
    return PropertyType.APARTMENT
