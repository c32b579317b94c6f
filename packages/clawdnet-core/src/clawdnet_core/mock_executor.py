"""Deterministic stand-in outputs for agents without a real endpoint.

The per-skill output shapes are a contract: downstream clients are typed
against them, so keys must not change.
"""
from __future__ import annotations

import random
from typing import Any, Callable, Optional

MIN_SIMULATED_MS = 500
SIMULATED_JITTER_MS = 2000


def _field(input: Any, *keys: str) -> Any:
    if isinstance(input, dict):
        for key in keys:
            value = input.get(key)
            if value:
                return value
    return None


def _text(skill: str, input: Any) -> dict[str, Any]:
    prompt = _field(input, "prompt", "text") or "your request"
    return {
        "text": (
            f'This is a mock response for "{prompt}". '
            "In production, this would be generated by the actual AI agent."
        ),
        "tokens": 42,
    }


def _code(skill: str, input: Any) -> dict[str, Any]:
    prompt = _field(input, "prompt") or "your request"
    return {
        "code": (
            f"// Code output for: {prompt}\n"
            "function example() {\n"
            "  return 'Hello, ClawdNet!';\n"
            "}"
        ),
        "language": _field(input, "language") or "javascript",
    }


def _image(skill: str, input: Any) -> dict[str, Any]:
    return {
        "imageUrl": "https://placehold.co/512x512/1a1a2e/00ff88?text=Generated+Image",
        "prompt": _field(input, "prompt"),
        "width": 512,
        "height": 512,
    }


def _translation(skill: str, input: Any) -> dict[str, Any]:
    return {
        "translatedText": f"[Translated: {_field(input, 'text') or 'your text'}]",
        "sourceLanguage": _field(input, "from") or "auto",
        "targetLanguage": _field(input, "to") or "en",
    }


def _search(skill: str, input: Any) -> dict[str, Any]:
    return {
        "results": [
            {"title": "Result 1", "url": "https://example.com/1", "snippet": "Search result snippet."},
            {"title": "Result 2", "url": "https://example.com/2", "snippet": "Another result."},
        ],
        "query": _field(input, "query", "prompt"),
    }


def _analysis(skill: str, input: Any) -> dict[str, Any]:
    return {
        "analysis": "Analysis complete. The input appears to be valid.",
        "confidence": 0.85,
        "sources": ["source-1", "source-2"],
    }


def _default(skill: str, input: Any) -> dict[str, Any]:
    return {"result": f"Output for skill: {skill}", "input": input}


GENERATORS: dict[str, Callable[[str, Any], dict[str, Any]]] = {
    "text-generation": _text,
    "creative-writing": _text,
    "copywriting": _text,
    "code-generation": _code,
    "image-generation": _image,
    "translation": _translation,
    "web-search": _search,
    "research": _search,
    "analysis": _analysis,
    "fact-checking": _analysis,
}


def generate(skill: str, input: Any) -> dict[str, Any]:
    """Produce the mock output for ``skill``. Pure; never raises."""
    return GENERATORS.get(skill, _default)(skill, input)


def simulated_execution_time_ms(rng: Optional[random.Random] = None) -> int:
    """Execution-time jitter reported alongside mock output."""
    rng = rng or random
    return MIN_SIMULATED_MS + int(rng.random() * SIMULATED_JITTER_MS)
