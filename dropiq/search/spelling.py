"""
Search query spelling correction.

Two stages:
- A static table of canonical terms and their known misspellings, applied
  as substring replacement in a single left-to-right pass.
- An optional LLM fallback, tried only when the static table changed nothing
  and the query still contains a known-suspect fragment.

Correction never fails a search: every AI problem falls back to the
statically corrected (or normalized) query.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Literal, Mapping, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from dropiq import metrics
from dropiq.ai.prompts import SPELLING_CORRECTION_SCHEMA, SPELLING_CORRECTION_SYSTEM_PROMPT
from dropiq.config import settings

logger = logging.getLogger(__name__)

# Canonical term -> known variants. Order matters: when a variant appears under
# two terms ("earpods"), the earlier term wins.
SPELLING_CORRECTIONS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        # Product types
        "earbuds": (
            "earbuds", "ear buds", "earbud", "earpods", "earpod", "ear pods", "ear pod",
            "erbuds", "earbusd", "earbudd", "erbods", "eerbods", "airbuds", "earbufs",
        ),
        "headphones": (
            "headphones", "headphone", "headfones", "hedphones", "hadphones", "head phones",
            "headfons", "hedphons", "headfone", "headpohnes",
        ),
        "wireless": (
            "wireless", "wireles", "wirelss", "wirless", "wire less", "wirles", "wirelees",
        ),
        "bluetooth": (
            "bluetooth", "blutooth", "bluetoth", "bluethooth", "blue tooth", "blutoth",
            "bluetooh", "bluethoth",
        ),
        "neckband": (
            "neckband", "neckbands", "neck band", "neckbnd", "neckbnad", "nekband", "neckbad",
        ),
        "wired": ("wired", "wierd", "wire", "wird", "wir"),
        # Brands
        "samsung": (
            "samsung", "samsong", "samung", "smasung", "sumsung", "samsng", "samsuong",
            "samsun", "samasung",
        ),
        "sony": ("sony", "soni", "sonny", "soony", "soney", "sany", "sonu"),
        "apple": ("apple", "aple", "appl", "appel", "aplle", "applee"),
        "airpods": ("airpods", "airpod", "arpods", "air pods", "erpods", "airposd"),
        "jbl": ("jbl", "jebl", "jbll"),
        "boat": ("boat", "boaat", "bot", "boad"),
        "oneplus": ("oneplus", "one plus", "onepluse", "1plus", "oneplas"),
        "realme": ("realme", "real me", "relme", "reelme", "realeme"),
        "noise": ("noise", "nois", "noice", "noize"),
        "mi": ("mi", "xiaomi", "redmi", "xiomi", "shiaomi"),
    }
)

# Whole words that contain a short variant ("bot" in "robot") and must stay as typed
PROTECTED_WORDS: tuple[str, ...] = ("robot", "robotic")

# Fragments that suggest a misspelling worth an LLM call
SUSPECT_FRAGMENTS: tuple[str, ...] = (
    "erbuds", "earbusd", "erbods", "eerbods",
    "headfones", "hedphones", "headfons", "hedphons",
    "blutooth", "bluetoth", "blutoth", "bluethoth",
    "wireles", "wirelss", "wirles", "wirelees",
    "samsong", "samung", "sumsung", "samsng",
    "soni", "sonny", "soney", "soony",
    "aple", "appl", "appel", "aplle",
    "neckbnad", "neckbnd", "nekband", "neckbad",
)

_WHITESPACE = re.compile(r"\s+")

AICorrector = Callable[[str], Awaitable[Dict[str, Any]]]


def normalize_query(query: Optional[str]) -> str:
    """Trim, collapse internal whitespace and lowercase."""
    if not query:
        return ""
    return _WHITESPACE.sub(" ", query.strip()).lower()


def _build_variant_index(
    table: Mapping[str, Sequence[str]], protected: Sequence[str] = ()
) -> Dict[str, str]:
    index: Dict[str, str] = {word: word for word in protected}
    for canonical, variants in table.items():
        index.setdefault(canonical, canonical)
        for variant in variants:
            index.setdefault(variant, canonical)
    return index


def _build_pattern(index: Mapping[str, str]) -> re.Pattern:
    # Longest alternatives first so "wireless" wins over "wire" at the same offset
    alternatives = sorted(index, key=lambda v: (-len(v), v))
    return re.compile("|".join(re.escape(v) for v in alternatives))


_VARIANT_INDEX = MappingProxyType(_build_variant_index(SPELLING_CORRECTIONS, PROTECTED_WORDS))
_VARIANT_PATTERN = _build_pattern(_VARIANT_INDEX)


def apply_static_corrections(normalized: str) -> tuple[str, bool]:
    """
    Replace known misspellings with their canonical term.

    Returns the corrected string and whether any replacement changed it.
    """
    changed = False

    def _replace(match: re.Match) -> str:
        nonlocal changed
        found = match.group(0)
        canonical = _VARIANT_INDEX[found]
        if canonical != found:
            changed = True
        return canonical

    corrected = _VARIANT_PATTERN.sub(_replace, normalized)
    return corrected, changed


def looks_misspelled(normalized: str, fragments: Sequence[str] = SUSPECT_FRAGMENTS) -> bool:
    """Cheap check run before paying for an LLM call."""
    return any(fragment in normalized for fragment in fragments)


class SpellingVerdict(BaseModel):
    """Structured answer expected from the LLM."""

    corrected: str
    confidence: Literal["high", "medium", "low"] = "low"
    has_mistakes: bool = Field(False, alias="hasMistakes")
    suggestions: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


@dataclass(frozen=True)
class Correction:
    """Result of correcting one query."""

    original: str
    normalized: str
    corrected: str
    static_applied: bool = False
    ai_applied: bool = False

    @property
    def method(self) -> str:
        if self.ai_applied:
            return "ai"
        if self.static_applied:
            return "static"
        return "none"


async def llm_spelling_corrector(query: str) -> Dict[str, Any]:
    """Ask the LLM for a spelling verdict on ``query``."""
    from dropiq.ai.llm_service import llm_service

    return await llm_service.call_llm_structured(
        prompt=f'User\'s search query: "{query}"',
        response_schema=SPELLING_CORRECTION_SCHEMA,
        system_prompt=SPELLING_CORRECTION_SYSTEM_PROMPT,
    )


class SpellingCorrector:
    """Static + AI spelling correction for search queries."""

    def __init__(
        self,
        ai_corrector: Optional[AICorrector] = llm_spelling_corrector,
        ai_enabled: Optional[bool] = None,
        ai_timeout: Optional[float] = None,
        suspect_fragments: Sequence[str] = SUSPECT_FRAGMENTS,
    ):
        self.ai_corrector = ai_corrector
        self.ai_enabled = settings.spelling_ai_enabled if ai_enabled is None else ai_enabled
        self.ai_timeout = ai_timeout or settings.spelling_ai_timeout_seconds
        self.suspect_fragments = tuple(suspect_fragments)

    async def correct(self, query: Optional[str]) -> Correction:
        """Correct a raw query. Precedence: AI > static > normalized."""
        original = query or ""
        normalized = normalize_query(original)
        if not normalized:
            return Correction(original, "", "")

        corrected, static_applied = apply_static_corrections(normalized)

        if (
            self.ai_enabled
            and self.ai_corrector is not None
            and not static_applied
            and looks_misspelled(normalized, self.suspect_fragments)
        ):
            ai_corrected = await self._ai_correct(original)
            if ai_corrected is not None:
                logger.info(f'AI spelling correction applied: "{original}" -> "{ai_corrected}"')
                metrics.spelling_corrections_total.labels(method="ai").inc()
                return Correction(original, normalized, ai_corrected, ai_applied=True)

        if static_applied:
            logger.debug(f'Static spelling correction: "{normalized}" -> "{corrected}"')
            metrics.spelling_corrections_total.labels(method="static").inc()

        return Correction(original, normalized, corrected, static_applied=static_applied)

    async def _ai_correct(self, query: str) -> Optional[str]:
        """Return the adopted AI correction, or None to fall back."""
        try:
            raw = await asyncio.wait_for(self.ai_corrector(query), timeout=self.ai_timeout)
            verdict = SpellingVerdict.model_validate(raw)
        except asyncio.TimeoutError:
            logger.warning(f"AI spelling correction timed out after {self.ai_timeout}s")
            return None
        except ValidationError as e:
            logger.warning(f"AI spelling correction returned malformed verdict: {e}")
            return None
        except Exception as e:
            logger.warning(f"AI spelling correction failed: {e}")
            return None

        if verdict.confidence == "high" and verdict.has_mistakes:
            corrected = normalize_query(verdict.corrected)
            return corrected or None

        logger.debug(f"AI decided no correction needed (confidence: {verdict.confidence})")
        return None
