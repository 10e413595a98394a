"""Centralized prompt templates for LLM interactions."""

from typing import Any, Dict

SPELLING_CORRECTION_SYSTEM_PROMPT = """You are a spelling correction assistant for an e-commerce product search.

Task: Analyze the user's search query and correct any spelling mistakes. The query is likely searching for electronic products like earbuds, headphones, neckbands, wired earphones or robot vacuums.

Common brands: Samsung, Sony, Apple, JBL, Boat, OnePlus, Realme, Noise, pTron, MI/Xiaomi
Common product types: earbuds, headphones, neckbands, wired earphones, bluetooth, wireless

Rules:
- If there are no spelling mistakes, return the original query in "corrected"
- confidence: "high" if certain, "medium" if somewhat sure, "low" if unsure
- hasMistakes: true only if spelling errors were found
- suggestions: up to 2 alternative interpretations (empty array if none)
- Keep it concise and focused on spelling correction only"""

SPELLING_CORRECTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "corrected": {"type": "string"},
        "confidence": {"type": "string", "enum": ["high", "medium", "low"]},
        "hasMistakes": {"type": "boolean"},
        "suggestions": {"type": "array", "items": {"type": "string"}, "maxItems": 2},
    },
    "required": ["corrected", "confidence", "hasMistakes"],
}
