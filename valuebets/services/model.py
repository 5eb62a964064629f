from typing import Protocol

from ..domain.models import Fixture, ModelProbabilities

# Placeholder 1X2 probabilities; no real modeling behind them yet.
PLACEHOLDER = ModelProbabilities(home=0.45, draw=0.25, away=0.30)
BTTS_PROBABILITY = 0.4
OVER25_PROBABILITY = 0.323


class ProbabilityModel(Protocol):
    def predict(self, fixture: Fixture) -> ModelProbabilities: ...


class ConstantModel:
    def __init__(self, probs: ModelProbabilities = PLACEHOLDER):
        self.probs = probs

    def predict(self, fixture: Fixture) -> ModelProbabilities:
        return self.probs


def top_two_gap(probs: ModelProbabilities) -> int:
    """Confidence of the predicted outcome: gap to the runner-up, in points."""
    vals = sorted((probs.home, probs.draw, probs.away), reverse=True)
    return int(round((vals[0] - vals[1]) * 100))
