"""Tests for search query spelling correction."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from dropiq.search.spelling import (
    SPELLING_CORRECTIONS,
    SpellingCorrector,
    SpellingVerdict,
    apply_static_corrections,
    looks_misspelled,
    normalize_query,
)


class TestNormalizeQuery:
    """Test query normalization."""

    def test_trims_collapses_and_lowercases(self):
        assert normalize_query("  Sony   WH-1000XM5\t Headphones ") == "sony wh-1000xm5 headphones"

    def test_empty(self):
        assert normalize_query("") == ""
        assert normalize_query("   ") == ""
        assert normalize_query(None) == ""


class TestStaticCorrections:
    """Test the static misspelling table."""

    @pytest.mark.parametrize(
        "query,expected",
        [
            ("erbuds", "earbuds"),
            ("smasung hedphones", "samsung headphones"),
            ("blutooth neckbnad", "bluetooth neckband"),
            ("sonny earbuds", "sony earbuds"),
            ("xiaomi earbuds", "mi earbuds"),
            ("one plus buds", "oneplus buds"),
        ],
    )
    def test_known_misspellings_are_corrected(self, query, expected):
        corrected, changed = apply_static_corrections(query)
        assert corrected == expected
        assert changed is True

    def test_every_variant_maps_to_a_canonical_term(self):
        for canonical, variants in SPELLING_CORRECTIONS.items():
            for variant in variants:
                corrected, _ = apply_static_corrections(variant)
                assert corrected in SPELLING_CORRECTIONS, f"{variant!r} -> {corrected!r}"

    def test_canonical_terms_are_not_rewritten(self):
        corrected, changed = apply_static_corrections("wireless bluetooth earbuds")
        assert corrected == "wireless bluetooth earbuds"
        assert changed is False

    def test_replacements_do_not_cascade(self):
        # "wire" is a variant of "wired" but must not touch "wireless"
        assert apply_static_corrections("wireless") == ("wireless", False)
        assert apply_static_corrections("wire earphones") == ("wired earphones", True)

    def test_first_rule_wins_for_shared_variant(self):
        assert apply_static_corrections("earpods") == ("earbuds", True)

    def test_untouched_query_equals_normalized_original(self):
        assert apply_static_corrections("laptop stand") == ("laptop stand", False)

    def test_protected_words_keep_short_variants_out(self):
        # "bot" is a boat misspelling, but not inside "robot"
        assert apply_static_corrections("robot vacuum") == ("robot vacuum", False)
        assert apply_static_corrections("robotic vacuum cleaner") == ("robotic vacuum cleaner", False)
        assert apply_static_corrections("bot earbuds") == ("boat earbuds", True)


class TestLooksMisspelled:
    def test_matches_fragment(self):
        assert looks_misspelled("cheap headfones") is True

    def test_clean_query(self):
        assert looks_misspelled("laptop stand") is False

    def test_custom_fragments(self):
        assert looks_misspelled("cancleing headset", ("cancleing",)) is True


class TestSpellingVerdict:
    def test_accepts_camel_case_alias(self):
        verdict = SpellingVerdict.model_validate(
            {"corrected": "earbuds", "confidence": "high", "hasMistakes": True, "suggestions": []}
        )
        assert verdict.has_mistakes is True
        assert verdict.confidence == "high"


class TestSpellingCorrector:
    """Test static + AI correction precedence."""

    @pytest.mark.asyncio
    async def test_static_correction(self):
        corrector = SpellingCorrector(ai_enabled=False)
        result = await corrector.correct("  Erbuds ")

        assert result.corrected == "earbuds"
        assert result.normalized == "erbuds"
        assert result.static_applied is True
        assert result.ai_applied is False
        assert result.method == "static"

    @pytest.mark.asyncio
    async def test_empty_query(self):
        result = await SpellingCorrector(ai_enabled=False).correct("   ")
        assert result.corrected == ""
        assert result.method == "none"

    @pytest.mark.asyncio
    async def test_ai_correction_adopted_when_confident(self):
        ai = AsyncMock(
            return_value={"corrected": "Noise Cancelling Headset", "confidence": "high", "hasMistakes": True}
        )
        corrector = SpellingCorrector(ai_corrector=ai, ai_enabled=True, suspect_fragments=("cancleing",))

        result = await corrector.correct("Cancleing headset")

        ai.assert_awaited_once_with("Cancleing headset")
        assert result.corrected == "noise cancelling headset"
        assert result.ai_applied is True
        assert result.method == "ai"

    @pytest.mark.asyncio
    async def test_ai_low_confidence_falls_back(self):
        ai = AsyncMock(return_value={"corrected": "cancelling", "confidence": "low", "hasMistakes": True})
        corrector = SpellingCorrector(ai_corrector=ai, ai_enabled=True, suspect_fragments=("cancleing",))

        result = await corrector.correct("cancleing headset")

        assert result.corrected == "cancleing headset"
        assert result.ai_applied is False

    @pytest.mark.asyncio
    async def test_ai_not_called_after_static_correction(self):
        ai = AsyncMock()
        corrector = SpellingCorrector(ai_corrector=ai, ai_enabled=True, suspect_fragments=("hedphones",))

        result = await corrector.correct("hedphones")

        ai.assert_not_awaited()
        assert result.corrected == "headphones"

    @pytest.mark.asyncio
    async def test_ai_not_called_when_disabled(self):
        ai = AsyncMock()
        corrector = SpellingCorrector(ai_corrector=ai, ai_enabled=False, suspect_fragments=("cancleing",))

        await corrector.correct("cancleing headset")

        ai.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ai_timeout_falls_back(self):
        async def slow(query):
            await asyncio.sleep(1)
            return {"corrected": "never", "confidence": "high", "hasMistakes": True}

        corrector = SpellingCorrector(
            ai_corrector=slow, ai_enabled=True, ai_timeout=0.01, suspect_fragments=("cancleing",)
        )
        result = await corrector.correct("cancleing headset")

        assert result.corrected == "cancleing headset"
        assert result.ai_applied is False

    @pytest.mark.asyncio
    async def test_ai_failure_falls_back(self):
        ai = AsyncMock(side_effect=ValueError("OpenAI API key not configured"))
        corrector = SpellingCorrector(ai_corrector=ai, ai_enabled=True, suspect_fragments=("cancleing",))

        result = await corrector.correct("cancleing headset")

        assert result.corrected == "cancleing headset"

    @pytest.mark.asyncio
    async def test_malformed_ai_response_falls_back(self):
        ai = AsyncMock(return_value={"confidence": "certain"})
        corrector = SpellingCorrector(ai_corrector=ai, ai_enabled=True, suspect_fragments=("cancleing",))

        result = await corrector.correct("cancleing headset")

        assert result.corrected == "cancleing headset"
        assert result.ai_applied is False
