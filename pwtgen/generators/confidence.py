"""Deterministic trust heuristic for a generated script."""

from __future__ import annotations

from typing import List

from ..core.models import RetrievalContext

BASE_CONFIDENCE = 0.5

# (substring, delta) applied in order when the generated code contains it
PENALTIES = (
    ("text=", -0.1),
    ("waitForTimeout", -0.15),
)
BONUSES = (
    ("getByTestId", 0.1),
    ("getByRole", 0.05),
    ("toBeVisible", 0.05),
    ("process.env", 0.05),
)
NO_ASSERTION_PENALTY = -0.2


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def score_confidence(contexts: List[RetrievalContext], code: str) -> float:
    # Boosted scores are ranks, not similarities
    scored = [ctx for ctx in contexts if not ctx.boosted]
    confidence = BASE_CONFIDENCE
    if scored:
        confidence += (sum(ctx.score for ctx in scored) / len(scored)) * 0.3

    if any(ctx.type == "workflow" for ctx in scored):
        confidence += 0.1
    if sum(1 for ctx in scored if ctx.type == "selector") >= 5:
        confidence += 0.1

    for needle, delta in PENALTIES:
        if needle in code:
            confidence += delta
    if "expect(" not in code:
        confidence += NO_ASSERTION_PENALTY
    for needle, delta in BONUSES:
        if needle in code:
            confidence += delta

    return clamp(confidence)
