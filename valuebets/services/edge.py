# valuebets/services/edge.py
"""
Edge and confidence between a model probability and the market's implied one.

edge       = model_probability - implied_probability
confidence = clamp(0, 100, round(edge * 100 / implied_probability))

Confidence is edge expressed as a percentage of the implied probability. It is
not Kelly or log-edge; keep the formula as is.
"""
from __future__ import annotations

import math
from typing import Optional


def implied_probability(decimal_odds: Optional[float]) -> Optional[float]:
    """1 / odds. Infinite odds give 0.0; missing or non-positive odds give None."""
    if decimal_odds is None or math.isnan(decimal_odds) or decimal_odds <= 0:
        return None
    if math.isinf(decimal_odds):
        return 0.0
    return 1.0 / decimal_odds


def compute_edge(model_probability: float, implied: float) -> float:
    return model_probability - implied


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def compute_confidence(edge: float, implied: float) -> Optional[int]:
    """None when implied is 0; the caller keeps its default confidence."""
    if not implied:
        return None
    return max(0, min(100, _round_half_up(edge * 100 / implied)))
