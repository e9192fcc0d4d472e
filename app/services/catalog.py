"""
Activity catalog: the eight known eco-activity categories and every fixed
lookup table the scoring components read.

All tables are keyed by the activity-type slug (or location tag) and each
consumer applies its own default for unknown keys. Nothing here is mutable
at runtime; tuning the economy means editing these tables.
"""
from __future__ import annotations

import enum


class ActivityType(str, enum.Enum):
    tree_planting = "tree-planting"
    waste_cleanup = "waste-cleanup"
    recycling = "recycling"
    water_conservation = "water-conservation"
    wildlife_conservation = "wildlife-conservation"
    sustainable_transport = "sustainable-transport"
    composting = "composting"
    clean_energy_usage = "clean-energy-usage"


KNOWN_ACTIVITY_TYPES: frozenset[str] = frozenset(t.value for t in ActivityType)


class LocationTag(str, enum.Enum):
    urban = "urban"
    suburban = "suburban"
    rural = "rural"
    protected_area = "protected_area"
    endangered_ecosystem = "endangered_ecosystem"


# ---------------------------------------------------------------------------
# Carbon / sustainability
# ---------------------------------------------------------------------------

# kg CO2 per unit; negative = net-positive environmental impact
CARBON_FACTORS: dict[str, float] = {
    "tree-planting": -21.77,       # absorbed per tree per year
    "recycling": -0.5,             # saved per kg recycled
    "clean-energy-usage": -2.3,    # saved per kWh
    "waste-cleanup": -0.3,
    "water-conservation": -0.1,    # per liter saved
    "sustainable-transport": -0.2, # per km
    "composting": -0.8,            # per kg composted
    "wildlife-conservation": -5.0,
}

SUSTAINABILITY_BASE_SCORES: dict[str, int] = {
    "tree-planting": 95,
    "recycling": 85,
    "clean-energy-usage": 90,
    "waste-cleanup": 80,
    "water-conservation": 85,
    "sustainable-transport": 75,
    "composting": 80,
    "wildlife-conservation": 95,
}
DEFAULT_SUSTAINABILITY_BASE = 50

LOCATION_IMPACT: dict[str, float] = {
    "urban": 1.0,
    "suburban": 1.05,
    "rural": 1.1,
    "protected_area": 1.2,
    "endangered_ecosystem": 1.25,
}

# (air, water, soil, biodiversity, waste) on a 0-100 scale
IMPACT_DIMENSIONS: dict[str, tuple[int, int, int, int, int]] = {
    "tree-planting": (90, 60, 85, 85, 20),
    "waste-cleanup": (40, 65, 60, 55, 95),
    "recycling": (50, 40, 35, 25, 90),
    "water-conservation": (20, 95, 45, 50, 30),
    "wildlife-conservation": (45, 60, 65, 98, 25),
    "sustainable-transport": (90, 30, 25, 30, 20),
    "composting": (35, 40, 90, 45, 85),
    "clean-energy-usage": (95, 45, 30, 35, 30),
}
DEFAULT_IMPACT_DIMENSIONS = (30, 30, 30, 30, 30)

# ---------------------------------------------------------------------------
# Tokenomics
# ---------------------------------------------------------------------------

ACTIVITY_MULTIPLIERS: dict[str, float] = {
    "tree-planting": 2.0,
    "waste-cleanup": 1.5,
    "recycling": 1.2,
    "water-conservation": 1.8,
    "wildlife-conservation": 2.2,
    "sustainable-transport": 1.3,
    "composting": 1.4,
    "clean-energy-usage": 1.9,
}

ACTIVITY_RARITY: dict[str, float] = {
    "wildlife-conservation": 1.3,
    "tree-planting": 1.1,
    "water-conservation": 1.2,
}

LOCATION_RARITY: dict[str, float] = {
    "urban": 1.0,
    "suburban": 1.1,
    "rural": 1.2,
    "protected_area": 1.4,
    "endangered_ecosystem": 1.5,
}

# ---------------------------------------------------------------------------
# Photo detection patterns
# ---------------------------------------------------------------------------

ACTIVITY_PATTERNS: dict[str, dict[str, tuple[str, ...]]] = {
    "tree-planting": {
        "keywords": ("tree", "sapling", "planting", "soil", "roots", "gardening"),
        "visual_cues": ("small_tree", "digging_tools", "hands_in_soil"),
        "context_clues": ("outdoor", "natural_environment", "vegetation"),
    },
    "waste-cleanup": {
        "keywords": ("trash", "litter", "cleaning", "garbage", "waste", "pickup"),
        "visual_cues": ("garbage_bags", "cleaning_tools", "litter"),
        "context_clues": ("public_spaces", "cleaning_activity", "environmental_restoration"),
    },
    "recycling": {
        "keywords": ("recycling", "bottles", "cans", "paper", "sorting"),
        "visual_cues": ("recycling_bins", "sorted_materials", "recyclable_items"),
        "context_clues": ("waste_management", "environmental_responsibility"),
    },
    "water-conservation": {
        "keywords": ("water", "conservation", "saving", "efficient", "system"),
        "visual_cues": ("water_systems", "conservation_equipment", "efficient_appliances"),
        "context_clues": ("water_management", "efficiency_improvements"),
    },
    "wildlife-conservation": {
        "keywords": ("wildlife", "animals", "habitat", "conservation", "protection"),
        "visual_cues": ("animals", "natural_habitat", "conservation_equipment"),
        "context_clues": ("nature_preservation", "wildlife_protection"),
    },
    "sustainable-transport": {
        "keywords": ("bicycle", "bike", "transit", "walking", "carpool"),
        "visual_cues": ("bicycle", "bus_stop", "ev_charger"),
        "context_clues": ("street", "commute"),
    },
    "composting": {
        "keywords": ("compost", "organic", "scraps", "bin", "mulch"),
        "visual_cues": ("compost_bin", "food_scraps", "soil_pile"),
        "context_clues": ("garden", "backyard"),
    },
    "clean-energy-usage": {
        "keywords": ("solar", "wind", "panel", "renewable", "meter"),
        "visual_cues": ("solar_panels", "wind_turbine", "energy_meter"),
        "context_clues": ("rooftop", "energy_installation"),
    },
}
