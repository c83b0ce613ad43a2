"""Rule-based extraction of typed listing fields from post text."""

from estate_feed.extraction.fields import (
    classify_property_type,
    extract_area,
    extract_condition,
    extract_floor,
    extract_rooms,
    pick_address_line,
    pick_building_name,
)
from estate_feed.extraction.normalizer import normalize_line, normalize_number, split_lines
from estate_feed.extraction.price import extract_price, is_price_per_area

__all__ = [
    "classify_property_type",
    "extract_area",
    "extract_condition",
    "extract_floor",
    "extract_price",
    "extract_rooms",
    "is_price_per_area",
    "normalize_line",
    "normalize_number",
    "pick_address_line",
    "pick_building_name",
    "split_lines",
]
