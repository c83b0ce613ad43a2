"""Unit tests for number and line normalization."""

import pytest

from estate_feed.extraction.normalizer import normalize_line, normalize_number, split_lines


class TestNormalizeNumber:
    """Tests for separator handling in normalize_number."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("165,000", 165000.0),
            ("1,234,567", 1234567.0),
            ("1.234.567", 1234567.0),
            ("120 000", 120000.0),
            ("120'000", 120000.0),
            ("1,234.56", 1234.56),
            ("72,5", 72.5),
            ("1.5", 1.5),
            ("85", 85.0),
        ],
    )
    def test_separators(self, raw: str, expected: float) -> None:
        """Grouping separators are dropped and decimal marks kept."""
        assert normalize_number(raw) == expected

    def test_empty_returns_none(self) -> None:
        """Empty and whitespace-only input yields None."""
        assert normalize_number("") is None
        assert normalize_number("   ") is None

    def test_non_numeric_returns_none(self) -> None:
        """Text without digits yields None."""
        assert normalize_number("abc") is None


class TestNormalizeLine:
    """Tests for normalize_line."""

    def test_strips_emoji(self) -> None:
        """Pictographs and the variation selector are removed."""
        line = "\U0001F3E0 Квартира " + "☀️" + " центр"
        assert normalize_line(line).strip() == "Квартира центр"

    def test_collapses_whitespace(self) -> None:
        """Runs of spaces and tabs become one space."""
        assert normalize_line("Цена:\t  $100 000") == "Цена: $100 000"

    def test_superscript_two(self) -> None:
        """Square meter superscript folds to a plain digit."""
        assert normalize_line("85 м²") == "85 м2"


class TestSplitLines:
    """Tests for split_lines."""

    def test_trims_and_drops_empty(self) -> None:
        assert split_lines("a\r\n\n  b  \n") == ["a", "b"]

    def test_empty_text(self) -> None:
        assert split_lines("") == []
