"""Domain Types: rich types that replace bare primitives across the codebase.

Invariants:
    - ListingId, ReviewId wrap UUIDs; UserId wraps the opaque identity string from the auth gateway
    - Category, Tag, Difficulty are closed enumerations (values are the wire strings)
    - SortMode.parse never raises: unknown strings fall back to NEWEST

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

ListingId = NewType("ListingId", UUID)
ReviewId = NewType("ReviewId", UUID)
UserId = NewType("UserId", str)


# ─── Value Types ─────────────────────────────────────────────────

Rating = NewType("Rating", int)                 # 1–5
AverageRating = NewType("AverageRating", float)  # 0.0–5.0

MIN_RATING: int = 1
MAX_RATING: int = 5


# ─── Enums ───────────────────────────────────────────────────────

class Category(str, Enum):
    """Listing categories. A listing has at least one."""
    NATURE = "Nature"
    ADVENTURE = "Adventure"
    CULTURE = "Culture"
    SPIRITUAL = "Spiritual"
    WILDLIFE = "Wildlife"
    RELAXATION = "Relaxation"
    LIFESTYLE = "Lifestyle"
    THEMES = "Themes"


class Tag(str, Enum):
    """Listing tags."""
    MOUNTAINS = "Mountains"
    HILLS = "Hills"
    LAKES = "Lakes"
    RIVERS = "Rivers"
    WATERFALLS = "Waterfalls"
    FORESTS = "Forests"
    NATIONAL_PARKS = "National Parks"
    CAVES = "Caves"
    VIEWPOINTS = "Viewpoints"
    SUNRISE_SPOTS = "Sunrise Spots"
    TREKKING = "Trekking"
    HIKING = "Hiking"
    RAFTING = "Rafting"
    KAYAKING = "Kayaking"
    PARAGLIDING = "Paragliding"
    BUNGEE_JUMPING = "Bungee Jumping"
    ZIPLINE = "Zipline"
    ROCK_CLIMBING = "Rock Climbing"
    MOUNTAIN_BIKING = "Mountain Biking"
    CAMPING = "Camping"
    CANYONING = "Canyoning"
    HELI_TOUR = "Heli Tour"
    TEMPLES = "Temples"
    MONASTERIES = "Monasteries"
    STUPAS = "Stupas"
    HERITAGE_SITES = "Heritage Sites"
    MUSEUMS = "Museums"
    PALACES = "Palaces"
    FESTIVALS = "Festivals"
    LOCAL_VILLAGES = "Local Villages"
    TRADITIONS = "Traditions"
    CRAFTS = "Crafts"
    ARCHITECTURE = "Architecture"
    FOOD_AND_CUISINE = "Food & Cuisine"
    CULTURAL_SHOWS = "Cultural Shows"
    MEDITATION = "Meditation"
    YOGA_RETREATS = "Yoga Retreats"
    PILGRIMAGE = "Pilgrimage"
    SPIRITUAL_CENTERS = "Spiritual Centers"
    HOLY_SITES = "Holy Sites"
    PEACE_PAGODAS = "Peace Pagodas"
    MONASTIC_LIFE = "Monastic Life"
    SAFARI = "Safari"
    BIRD_WATCHING = "Bird Watching"
    NATURE_WALKS = "Nature Walks"
    CONSERVATION_AREAS = "Conservation Areas"
    ECO_TOURS = "Eco Tours"
    JUNGLE_WALK = "Jungle Walk"
    TIGER_SPOTTING = "Tiger Spotting"
    ELEPHANT_BREEDING_CENTER = "Elephant Breeding Center"
    RESORTS = "Resorts"
    SPA_AND_WELLNESS = "Spa & Wellness"
    HOT_SPRINGS = "Hot Springs"
    LAKESIDE_LEISURE = "Lakeside Leisure"
    LUXURY_LODGES = "Luxury Lodges"
    COUNTRYSIDE_RETREATS = "Countryside Retreats"
    RIVERSIDE_CAMPING = "Riverside Camping"
    SUNSET_VIEWS = "Sunset Views"
    HOMESTAYS = "Homestays"
    COOKING_CLASSES = "Cooking Classes"
    TEA_GARDENS = "Tea Gardens"
    LOCAL_MARKETS = "Local Markets"
    SHOPPING = "Shopping"
    NIGHTLIFE = "Nightlife"
    COMMUNITY_TOURISM = "Community Tourism"
    VOLUNTEERING = "Volunteering"
    FAMILY_TRAVEL = "Family Travel"
    SOLO_TRAVEL = "Solo Travel"
    HONEYMOON = "Honeymoon"
    LUXURY_TRAVEL = "Luxury Travel"
    BUDGET_TRAVEL = "Budget Travel"
    OFFBEAT_EXPERIENCES = "Offbeat Experiences"
    PHOTOGRAPHY = "Photography"
    FESTIVAL_TRAVEL = "Festival Travel"
    ECO_TOURISM = "Eco Tourism"
    ADVENTURE_SEEKERS = "Adventure Seekers"
    WELLNESS_TRAVEL = "Wellness Travel"


class Difficulty(str, Enum):
    """Trip difficulty."""
    EASY = "Easy"
    MODERATE = "Moderate"
    CHALLENGING = "Challenging"
    EXTREME = "Extreme"


class SortMode(str, Enum):
    """Listing feed orderings. Each mode has its own cursor shape."""
    NEWEST = "newest"
    RATING_DESC = "rating_desc"
    RATING_ASC = "rating_asc"
    LIKES_DESC = "likes_desc"
    LIKES_ASC = "likes_asc"
    DISTANCE = "distance"

    @classmethod
    def parse(cls, value: "str | SortMode | None") -> "SortMode":
        """Lenient lookup; anything unrecognised orders as NEWEST."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.NEWEST
