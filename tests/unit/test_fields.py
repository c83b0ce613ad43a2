"""Unit tests for field extractors."""

import pytest

from estate_feed.extraction.fields import (
    classify_property_type,
    extract_area,
    extract_condition,
    extract_floor,
    extract_rooms,
    pick_address_line,
    pick_building_name,
)
from estate_feed.models.pydantic_models import Condition, PropertyType


class TestExtractArea:
    """Tests for extract_area."""

    def test_simple_area(self) -> None:
        assert extract_area("Площадь 85 м²") == 85.0

    def test_per_area_price_line_ignored(self) -> None:
        """A "$1622 за м²" line is not read as an area."""
        assert extract_area("Площадь: 85 м²\nЦена $1622 за м²") == 85.0

    def test_largest_plausible_line_wins(self) -> None:
        assert extract_area("Кухня 12 м2\nОбщая 85 м2") == 85.0

    def test_decimal_comma(self) -> None:
        assert extract_area("72,5 кв.м") == 72.5

    def test_implausible_falls_back_to_first_match(self) -> None:
        """Without plausible line matches, the first match is used as is."""
        assert extract_area("Участок 1200 m2") == 1200.0

    def test_no_area(self) -> None:
        assert extract_area("Квартира в центре") is None


class TestExtractRooms:
    """Tests for extract_rooms."""

    def test_studio(self) -> None:
        result = extract_rooms("Уютная студия у метро")

        assert result.rooms_text == "studio"
        assert result.bedrooms == 0
        assert result.living == 1

    def test_plus_notation(self) -> None:
        result = extract_rooms("Планировка 2+1")

        assert result.rooms_text == "2+1"
        assert result.bedrooms == 2
        assert result.living == 1

    @pytest.mark.parametrize("text", ["2 комнаты", "2 rooms", "2 комн."])
    def test_room_count_adds_living_room(self, text: str) -> None:
        """N rooms means N bedrooms plus a living room."""
        result = extract_rooms(text)

        assert result.rooms_text == "2+1"
        assert result.bedrooms == 2
        assert result.living == 1

    def test_no_rooms(self) -> None:
        assert extract_rooms("Продается участок") is None


class TestExtractFloor:
    """Tests for extract_floor."""

    @pytest.mark.parametrize(
        ("text", "floor", "total"),
        [
            ("Этаж: 5/9", 5, 9),
            ("5 из 12", 5, 12),
            ("floor 4 of 16", 4, 16),
            ("floor 3", 3, None),
            ("3/10 этаж", 3, 10),
            ("7 этаж", 7, None),
            ("7-й этаж", 7, None),
        ],
    )
    def test_floor_forms(self, text: str, floor: int, total: int | None) -> None:
        result = extract_floor(text)

        assert result is not None
        assert result.floor == floor
        assert result.total_floors == total

    def test_no_floor(self) -> None:
        assert extract_floor("Квартира у моря") is None


class TestExtractCondition:
    """Tests for extract_condition."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Белый каркас", Condition.WHITE_FRAME),
            ("black frame", Condition.BLACK_FRAME),
            ("Свежий ремонт", Condition.RENOVATED),
            ("Сдается с мебелью", Condition.FURNISHED),
            ("Дом строится", Condition.UNDER_CONSTRUCTION),
        ],
    )
    def test_conditions(self, text: str, expected: Condition) -> None:
        assert extract_condition(text) == expected

    def test_first_rule_wins(self) -> None:
        """Renovated is listed before furnished."""
        assert extract_condition("Новый ремонт, вся мебель") == Condition.RENOVATED

    def test_no_condition(self) -> None:
        assert extract_condition("3 комнаты") is None


class TestPickLines:
    """Tests for address and building name pickers."""

    def test_address_keyword(self) -> None:
        lines = ["Продается квартира", "ул. Руставели, 12", "Цена 100 000 $"]
        assert pick_address_line(lines) == "ул. Руставели, 12"

    def test_address_number_suffix(self) -> None:
        assert pick_address_line(["Сабуртало, 45"]) == "Сабуртало, 45"

    def test_no_address(self) -> None:
        assert pick_address_line(["Продается квартира"]) is None

    def test_building_name_skips_price_area_floor(self) -> None:
        lines = ["$120 000", "85 м2", "Этаж 5", "ЖК Sky Tower"]
        assert pick_building_name(lines) == "ЖК Sky Tower"

    def test_building_name_too_long(self) -> None:
        assert pick_building_name(["a" * 61]) is None


class TestClassifyPropertyType:
    """Tests for classify_property_type."""

    @pytest.mark.parametrize(
        ("description", "expected"),
        [
            ("Продам квартиру у парка", PropertyType.APARTMENT),
            ("Продается офис в центре", PropertyType.COMMERCIAL),
            ("Commercial space on the first line", PropertyType.COMMERCIAL),
            ("Дом с участком 6 соток", PropertyType.HOUSE_LAND),
            ("Villa with pool", PropertyType.HOUSE_LAND),
        ],
    )
    def test_keyword_groups(self, description: str, expected: PropertyType) -> None:
        assert classify_property_type(None, description) == expected

    def test_apartment_checked_first(self) -> None:
        assert classify_property_type("Apartment", "office nearby") == PropertyType.APARTMENT

    def test_default_apartment(self) -> None:
        assert classify_property_type(None, "Уютное жилье") == PropertyType.APARTMENT

    def test_keyword_inside_word_ignored(self) -> None:
        """Keywords must not be part of a longer word."""
        assert classify_property_type(None, "Near the landmark") == PropertyType.APARTMENT

    def test_title_is_considered(self) -> None:
        assert classify_property_type("Склад 500 м2", None) == PropertyType.COMMERCIAL
