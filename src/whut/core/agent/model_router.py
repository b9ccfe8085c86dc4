from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Literal

IntentClass = Literal["quick_fact", "standard", "complex", "creative"]

_QUICK_PATTERNS = (
    re.compile(r"^(what|who|when|where|how much|how many|how old)\b.{0,50}\?$"),
    re.compile(r"^(is|are|was|were|do|does|did|can|will)\b.{0,40}\?$"),
    re.compile(r"^(define|meaning of|what'?s)\b"),
    re.compile(r"^(hi|hello|hey|thanks|thank you|ok|okay|sure|yes|no|bye)\b"),
)
_COMPLEX_PATTERNS = (
    re.compile(r"\b(analy[sz]e|compare|evaluate|investigate|assess)\b"),
    re.compile(r"\b(strateg|architect|design system|refactor)"),
    re.compile(r"\b(write|draft|compose).{0,30}(report|proposal|document|essay|article)"),
    re.compile(r"\b(explain in detail|deep dive|comprehensive)\b"),
    re.compile(r"\b(pros and cons|trade.?offs|implications)\b"),
    re.compile(r"\b(debug|troubleshoot|diagnose)\b"),
)
_CREATIVE_PATTERNS = (
    re.compile(r"\b(brainstorm|creative|ideate|come up with)\b"),
    re.compile(r"\b(write|draft|compose).{0,20}(story|poem|song|script)"),
)


@dataclass(frozen=True)
class ModelChoice:
    model: str
    intent_class: IntentClass


def standard_model() -> str:
    return os.getenv("WHUT_LLM_MODEL_STANDARD", "claude-sonnet-4-6")


def complex_model() -> str:
    return os.getenv("WHUT_LLM_MODEL_COMPLEX", "claude-opus-4-6")


def classify(message: str) -> IntentClass:
    lower = (message or "").strip().lower()
    word_count = len(lower.split())

    if word_count <= 5 and "?" not in lower:
        return "standard"
    if word_count <= 3:
        return "quick_fact"
    if any(pattern.search(lower) for pattern in _QUICK_PATTERNS):
        return "quick_fact"
    if word_count > 100 or any(pattern.search(lower) for pattern in _COMPLEX_PATTERNS):
        return "complex"
    if any(pattern.search(lower) for pattern in _CREATIVE_PATTERNS):
        return "creative"
    return "standard"


def select_model(message: str) -> ModelChoice:
    intent_class = classify(message)
    model = complex_model() if intent_class in {"complex", "creative"} else standard_model()
    return ModelChoice(model=model, intent_class=intent_class)
