"""
Drop rarity conversions.

Wiki pages express rarity as text ("1/128", "2 x 1/1,024", "Always",
"Rare"); the monster dataset stores it as a probability. These helpers move
between the forms:

    rarity_to_percent("1/128")        -> "0.781%"
    rarity_to_percent("2 x 1/1,024")  -> "0.195%"
    rarity_to_decimal("1/300")        -> 0.00333...
    rarity_to_fraction(1 / 300)       -> "1/300"
"""

from __future__ import annotations

import re

QUALITATIVE_BANDS = {
    "common": "~10-20%",
    "uncommon": "~5-10%",
    "rare": "~1-5%",
    "very rare": "<1%",
}

_MULTIPLIER = re.compile(r"^\s*(\d+)\s*[x×]\s*", re.IGNORECASE)
_FRACTION = re.compile(r"(\d+)\s*/\s*([\d,]+)")


def _parse_fraction(rarity: str) -> float | None:
    """Probability encoded by ``[K x] N/D``, or None if there is no fraction."""
    multiplier = 1
    multiplier_match = _MULTIPLIER.match(rarity)
    if multiplier_match:
        multiplier = int(multiplier_match.group(1))

    fraction_match = _FRACTION.search(rarity)
    if not fraction_match:
        return None

    numerator = int(fraction_match.group(1).replace(",", ""))
    denominator = int(fraction_match.group(2).replace(",", "") or "0")
    if denominator <= 0:
        return None
    return multiplier * numerator / denominator


def format_percent(percentage: float) -> str:
    """Format a percentage with more decimals as it gets smaller."""
    if percentage >= 1:
        return f"{percentage:.2f}%"
    if percentage >= 0.01:
        return f"{percentage:.3f}%"
    return f"{percentage:.4f}%"


def rarity_to_percent(rarity: str) -> str | None:
    """Convert a wiki rarity string to a percentage string.

    Returns None for formats that cannot be converted; callers must treat
    that as "unknown", never as zero.
    """
    cleaned = rarity.strip().lower()
    if cleaned == "always":
        return "100%"
    if cleaned in QUALITATIVE_BANDS:
        return QUALITATIVE_BANDS[cleaned]

    probability = _parse_fraction(rarity)
    if probability is None:
        return None
    return format_percent(probability * 100)


def rarity_to_decimal(rarity: str) -> float | None:
    """Convert a wiki rarity string to a probability in [0, 1] where possible."""
    cleaned = rarity.strip().lower()
    if cleaned == "always":
        return 1.0
    if cleaned == "never":
        return 0.0
    probability = _parse_fraction(rarity)
    if probability is None:
        return None
    return min(probability, 1.0)


def rarity_to_fraction(rarity: float) -> str:
    """Render a probability the way the wiki does (``1/5,000``)."""
    if rarity >= 1:
        return "Always"
    if rarity <= 0:
        return "Never"
    return f"1/{round(1 / rarity):,}"


__all__ = [
    "QUALITATIVE_BANDS",
    "format_percent",
    "rarity_to_percent",
    "rarity_to_decimal",
    "rarity_to_fraction",
]
