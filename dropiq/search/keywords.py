"""Brand and category detection for corrected search queries."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

# Triggers are plain substrings of the query. The query is padded with one
# space on each side, so a trigger wrapped in spaces only matches a whole word.
BRAND_KEYWORDS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "samsung": ("samsung", "galaxy"),
        "sony": ("sony", "wf-", "linkbuds"),
        "apple": ("apple", "airpods", "earpods"),
        "jbl": ("jbl",),
        "boat": ("boat",),
        "oneplus": ("oneplus", "one plus", "nord"),
        "realme": ("realme", "real me"),
        "noise": ("noise",),
        "ptron": ("ptron", "p-tron"),
        "mi": ("xiaomi", "redmi", " mi "),
    }
)

CATEGORY_KEYWORDS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "earbuds": (
            "earbuds", "ear buds", "earbud", "earpods", "ear pods",
            "truly wireless", "tws", "bluetooth earbuds",
        ),
        "headphones": ("headphones", "headphone", "over ear", "on ear", "wireless headphones"),
        "neckbands": ("neckband", "neck band", "neckbands", "neck bands"),
        "earphones": (
            "wired", "wired earphones", "wired earphone", "earphone", "earphones",
            "earphones with wire", "aux",
        ),
    }
)


@dataclass(frozen=True)
class Classification:
    """Tags detected in a query, in dictionary order."""

    brands: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()


def _detect(padded: str, table: Mapping[str, tuple[str, ...]]) -> tuple[str, ...]:
    return tuple(
        tag for tag, triggers in table.items() if any(trigger in padded for trigger in triggers)
    )


def classify(corrected_query: str) -> Classification:
    """Detect every brand and category whose triggers occur in the query."""
    if not corrected_query:
        return Classification()
    padded = f" {corrected_query.lower()} "
    return Classification(
        brands=_detect(padded, BRAND_KEYWORDS),
        categories=_detect(padded, CATEGORY_KEYWORDS),
    )
