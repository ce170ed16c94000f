"""Domain Types: closed enumerations and lenient sort-mode parsing."""

from uuid import uuid4

from placefeed.core.domain_types import (
    Category, Difficulty, ListingId, ReviewId, SortMode, Tag, UserId,
)


def test_identity_types_wrap_values():
    uid = uuid4()
    assert ListingId(uid) == uid
    assert ReviewId(uid) == uid
    assert UserId("user-1") == "user-1"


def test_categories_are_the_eight_wire_values():
    assert {c.value for c in Category} == {
        "Nature", "Adventure", "Culture", "Spiritual",
        "Wildlife", "Relaxation", "Lifestyle", "Themes",
    }


def test_tags_keep_display_strings():
    assert Tag("Food & Cuisine") is Tag.FOOD_AND_CUISINE
    assert Tag.WELLNESS_TRAVEL.value == "Wellness Travel"


def test_difficulty_has_four_levels():
    assert [d.value for d in Difficulty] == ["Easy", "Moderate", "Challenging", "Extreme"]


def test_sort_mode_parse_known_values():
    assert SortMode.parse("distance") is SortMode.DISTANCE
    assert SortMode.parse(SortMode.LIKES_ASC) is SortMode.LIKES_ASC


def test_sort_mode_parse_unknown_falls_back_to_newest():
    assert SortMode.parse("popular") is SortMode.NEWEST
    assert SortMode.parse(None) is SortMode.NEWEST
