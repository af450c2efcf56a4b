"""Canonical taxonomy definitions for garments, style options and measurements.

This module centralises the enumerations the customization wizard offers:
product categories, the style option values allowed per category, the
physiological ranges for body measurements and the order statuses. Helper
functions keep validation consistent across the session, repositories and the
HTTP layer.
"""

from typing import Dict, List, Optional, Tuple


def _normalize_key(value: str) -> str:
    """Normalise a free-form string into a taxonomy key."""

    return value.strip().lower().replace(" ", "_")


PRODUCT_CATEGORIES: List[str] = ["shirt", "suit", "dress", "pants", "jacket"]

STYLE_OPTIONS: Dict[str, List[str]] = {
    "collar": ["Spread", "Point", "Button-down", "Cutaway", "Band"],
    "sleeve": ["Full Sleeve", "Half Sleeve", "3/4 Sleeve", "Sleeveless"],
    "fit": ["Slim Fit", "Regular Fit", "Relaxed Fit", "Tailored Fit"],
    "length": ["Regular", "Long", "Short", "Extra Long"],
    "buttons": ["Standard", "Horn", "Mother of Pearl", "Metal", "Wooden"],
    "stitching": ["Standard", "Contrast", "Decorative", "Hand-stitched"],
}

# Inclusive bounds in centimetres.
MEASUREMENT_RANGES: Dict[str, Tuple[float, float]] = {
    "neck": (10.0, 50.0),
    "chest": (50.0, 200.0),
    "waist": (50.0, 180.0),
    "hips": (60.0, 200.0),
    "arm_length": (40.0, 100.0),
    "height": (100.0, 220.0),
    "shoulder": (30.0, 80.0),
}

MEASUREMENT_FIELDS: List[str] = list(MEASUREMENT_RANGES)

SORT_OPTIONS = ["name", "price-low", "price-high"]


def validate_category(value: str) -> str:
    """Validate and normalise a product category.

    Raises a :class:`ValueError` if the category is not one the tailor makes.
    """

    key = _normalize_key(value)
    if key not in PRODUCT_CATEGORIES:
        raise ValueError(f"Unsupported category '{value}'. Allowed: {PRODUCT_CATEGORIES}")
    return key


def validate_style_category(value: str) -> str:
    key = _normalize_key(value)
    if key not in STYLE_OPTIONS:
        raise ValueError(f"Unsupported style category '{value}'. Allowed: {sorted(STYLE_OPTIONS)}")
    return key


def match_style_value(category: str, value: str) -> Optional[str]:
    """Return the canonical label for ``value`` within ``category`` or ``None``."""

    wanted = _normalize_key(value)
    for label in STYLE_OPTIONS[category]:
        if _normalize_key(label) == wanted:
            return label
    return None


def measurement_range_message(field_name: str) -> str:
    low, high = MEASUREMENT_RANGES[field_name]
    return f"must be between {low:g} and {high:g} cm"


__all__ = [
    "PRODUCT_CATEGORIES",
    "STYLE_OPTIONS",
    "MEASUREMENT_RANGES",
    "MEASUREMENT_FIELDS",
    "SORT_OPTIONS",
    "validate_category",
    "validate_style_category",
    "match_style_value",
    "measurement_range_message",
]
