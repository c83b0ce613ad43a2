"""Text and number normalization for listing extraction."""

import math
import re

# Pre-compiled regex patterns for performance
_GROUPING_CHARS_RE = re.compile(r"[\s'’]")
_COMMA_GROUPS_RE = re.compile(r"^\d{1,3}(,\d{3})+$")
_DOT_GROUPS_RE = re.compile(r"^\d{1,3}(\.\d{3})+$")
_NON_NUMERIC_RE = re.compile(r"[^0-9.]")
# Emoji and dingbat blocks, plus the variation selector and zero-width joiner
_PICTOGRAPH_RANGES = ((0x1F000, 0x1FAFF), (0x2300, 0x23FF), (0x2600, 0x27BF), (0x2B00, 0x2BFF))
_PICTOGRAPH_RE = re.compile(
    "["
    + "".join(f"{chr(low)}-{chr(high)}" for low, high in _PICTOGRAPH_RANGES)
    + chr(0xFE0F)
    + chr(0x200D)
    + "]"
)
_HORIZONTAL_SPACE_RE = re.compile(r"[^\S\r\n]+")
_LINE_SPLIT_RE = re.compile(r"\r?\n")


def normalize_number(raw: str) -> float | None:
    """Parse a human-written number with mixed separators.

    Algorithm:
    1. Drop whitespace and apostrophes used as thousands separators
    2. Both comma and dot present: commas are thousands separators
    3. Only commas: "1,234,567" is grouping, anything else is a decimal comma
    4. Only dots: "1.234.567" is grouping, anything else is a decimal point
    5. Drop remaining non-numeric characters

    Args:
        raw: Matched number text.

    Returns:
        Parsed value, or None for empty or unparseable input.

    Examples:
        >>> normalize_number("1.234.567")
        1234567.0
        >>> normalize_number("1234,5")
        1234.5
        >>> normalize_number("165,000")
        165000.0
    """
    cleaned = _GROUPING_CHARS_RE.sub("", raw)
    if not cleaned:
        return None

    has_comma = "," in cleaned
    has_dot = "." in cleaned

    if has_comma and has_dot:
        cleaned = cleaned.replace(",", "")
    elif has_comma:
        if _COMMA_GROUPS_RE.match(cleaned):
            cleaned = cleaned.replace(",", "")
        else:
            cleaned = cleaned.replace(",", ".")
    elif has_dot and _DOT_GROUPS_RE.match(cleaned):
        cleaned = cleaned.replace(".", "")

    cleaned = _NON_NUMERIC_RE.sub("", cleaned)
    if not cleaned:
        return None

    try:
        value = float(cleaned)
    except ValueError:
        return None

    return value if math.isfinite(value) else None


def normalize_line(line: str) -> str:
    """Strip emoji, collapse horizontal whitespace and fold '²' to '2'."""
    result = _PICTOGRAPH_RE.sub("", line)
    result = _HORIZONTAL_SPACE_RE.sub(" ", result)
    return result.replace("²", "2")


def split_lines(text: str) -> list[str]:
    """Split text into trimmed, non-empty lines."""
    if not text:
        return []
    return [line.strip() for line in _LINE_SPLIT_RE.split(text) if line.strip()]
