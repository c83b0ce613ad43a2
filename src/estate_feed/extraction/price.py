"""Price extraction from free-text listing descriptions.

Prices are collected by an ordered list of passes. The first pass that
yields any candidate decides the result:

1. Labeled lines ("Цена", "Price"): explicit tier.
2. Lines with a currency token, a "k"/"к" marker or "тыс"/"thousand".
3. Lines with a bare currency symbol.
4. The first line with a currency symbol followed by 2-6 digits.

Lines quoting a price per square meter are never candidates.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

from estate_feed.extraction.normalizer import normalize_line, normalize_number, split_lines
from estate_feed.models.pydantic_models import PriceResult, PriceTier

DEFAULT_CURRENCY = "USD"

# Order matters: the first matching currency wins for a line
CURRENCY_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"(\$|usd|\bus\s?d\b|\bдолл\b|\bдоллар\w*|\bдол\b\.?)", re.IGNORECASE), "USD"),
    (re.compile(r"(₾|\bgel\b|\bлари\b)", re.IGNORECASE), "GEL"),
    (re.compile(r"(€|\beur\b)", re.IGNORECASE), "EUR"),
    (re.compile(r"(₽|\bруб\w*|\brub\b)", re.IGNORECASE), "RUB"),
]

# Grouped thousands, plain runs, short decimals, "150k"
PRICE_NUMBER_RE = re.compile(
    r"\d{2,3}\s*[kк]\b|\d{1,3}(?:[.\s,'’]\d{3})+|\d{3,}|\d{2,3}[.,]\d{1,2}",
    re.IGNORECASE,
)
_K_SUFFIX_RE = re.compile(r"\s*[kк]\b", re.IGNORECASE)
_HAS_K_RE = re.compile(r"\b\d{2,3}\s*[kк]\b", re.IGNORECASE)
_THOUSAND_WORD_RE = re.compile(r"(тыс|thousand)", re.IGNORECASE)
_PRICE_LABEL_RE = re.compile(r"цена|price", re.IGNORECASE)
_CURRENCY_SYMBOL_RE = re.compile(r"[$€₾₽]")
_CURRENCY_AMOUNT_RE = re.compile(r"[$€₾₽]\s*(\d{2,6})")

_PER_AREA_PHRASE_RE = re.compile(
    r"(/\s?m2|/\s?м2|per\s?m2|per\s?sqm|за\s?м2|за\s?кв\.?\s?м)", re.IGNORECASE
)
_AREA_UNIT_RE = re.compile(r"(m2|м2|sqm|кв\.?\s?м)", re.IGNORECASE)


@dataclass(frozen=True)
class PriceCandidate:
    """A single amount found in one line."""

    value: float
    currency: str
    tier: PriceTier


def is_price_per_area(line: str) -> bool:
    """Check whether a line quotes a unit price such as "$1622 за м²".

    Args:
        line: Raw text line.

    Returns:
        True for a per-area phrase, or a currency symbol next to an area unit.
    """
    normalized = normalize_line(line)
    if _PER_AREA_PHRASE_RE.search(normalized):
        return True
    return bool(_CURRENCY_SYMBOL_RE.search(normalized) and _AREA_UNIT_RE.search(normalized))


def detect_currency(line: str) -> str | None:
    """Return the currency code of the first matching currency token."""
    for pattern, currency in CURRENCY_PATTERNS:
        if pattern.search(line):
            return currency
    return None


def _parse_amounts(line: str) -> list[float]:
    amounts = []
    for match in PRICE_NUMBER_RE.finditer(line):
        raw = match.group(0)
        multiplier = 1
        if _K_SUFFIX_RE.search(raw):
            multiplier = 1000
            raw = _K_SUFFIX_RE.sub("", raw)
        value = normalize_number(raw)
        if value is not None:
            amounts.append(value * multiplier)
    return amounts


def _explicit_pass(lines: list[str]) -> list[PriceCandidate]:
    candidates = []
    for line in lines:
        if not _PRICE_LABEL_RE.search(line):
            continue
        currency = detect_currency(line) or DEFAULT_CURRENCY
        candidates.extend(
            PriceCandidate(value, currency, PriceTier.EXPLICIT) for value in _parse_amounts(line)
        )
    return candidates


def _marked_line_pass(lines: list[str]) -> list[PriceCandidate]:
    candidates = []
    for line in lines:
        currency = detect_currency(line)
        if currency is None and not _HAS_K_RE.search(line) and not _THOUSAND_WORD_RE.search(line):
            continue
        amounts = _parse_amounts(line)
        if amounts:
            candidates.append(
                PriceCandidate(max(amounts), currency or DEFAULT_CURRENCY, PriceTier.NORMAL)
            )
    return candidates


def _bare_symbol_pass(lines: list[str]) -> list[PriceCandidate]:
    candidates = []
    for line in lines:
        if not _CURRENCY_SYMBOL_RE.search(line):
            continue
        amounts = _parse_amounts(line)
        if amounts:
            currency = detect_currency(line) or DEFAULT_CURRENCY
            candidates.append(PriceCandidate(max(amounts), currency, PriceTier.NORMAL))
    return candidates


def _currency_amount_pass(lines: list[str]) -> list[PriceCandidate]:
    for line in lines:
        match = _CURRENCY_AMOUNT_RE.search(line)
        if match is None:
            continue
        value = normalize_number(match.group(1))
        if value is None:
            return []
        currency = detect_currency(line) or DEFAULT_CURRENCY
        return [PriceCandidate(value, currency, PriceTier.NORMAL)]
    return []


PRICE_PASSES: list[Callable[[list[str]], list[PriceCandidate]]] = [
    _explicit_pass,
    _marked_line_pass,
    _bare_symbol_pass,
    _currency_amount_pass,
]


def select_price(candidates: list[PriceCandidate]) -> PriceCandidate | None:
    """Pick the highest explicit candidate, else the highest of all."""
    if not candidates:
        return None
    explicit = [c for c in candidates if c.tier == PriceTier.EXPLICIT]
    pool = explicit or candidates
    return max(pool, key=lambda c: c.value)


def extract_price(text: str) -> PriceResult | None:
    """Extract the total asking price from listing text.

    Args:
        text: Listing description.

    Returns:
        PriceResult carrying the candidate tier, or None when no amount is found.
        ``usd`` is only set for USD prices.

    Examples:
        >>> extract_price("Цена: $165,000").value
        165000.0
    """
    lines = [normalize_line(line) for line in split_lines(text) if not is_price_per_area(line)]

    best = None
    for price_pass in PRICE_PASSES:
        best = select_price(price_pass(lines))
        if best is not None:
            break

    if best is None:
        return None

    return PriceResult(
        value=best.value,
        currency=best.currency,
        usd=best.value if best.currency == "USD" else None,
        tier=best.tier,
    )
