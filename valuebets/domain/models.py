from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict

Outcome = Literal["home", "draw", "away"]
Selection = Literal["1", "X", "2"]
PickType = Literal["MODEL+ODDS", "MODEL-ONLY"]

OUTCOME_TO_SELECTION: dict[str, str] = {"home": "1", "draw": "X", "away": "2"}


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class League(_Frozen):
    id: Optional[int] = None
    name: Optional[str] = None


class Team(_Frozen):
    id: Optional[int] = None
    name: Optional[str] = None


class Fixture(_Frozen):
    id: int
    league: League
    home: Team
    away: Team
    kickoff: Optional[str] = None       # ISO-8601 as sent by the provider
    status: Optional[str] = None        # short code, e.g. "NS"


class ThreeWayPrices(_Frozen):
    home: Optional[float] = None        # decimal odds
    draw: Optional[float] = None
    away: Optional[float] = None

    def for_outcome(self, outcome: Outcome) -> Optional[float]:
        return getattr(self, outcome)


class OddsQuote(_Frozen):
    fixture_id: int
    bookmaker: str
    prices: ThreeWayPrices


class ModelProbabilities(_Frozen):
    home: float
    draw: float
    away: float

    def best(self) -> Outcome:
        """Highest-probability outcome; ties resolve home, then draw."""
        if self.home >= self.draw and self.home >= self.away:
            return "home"
        if self.draw >= self.away:
            return "draw"
        return "away"

    def for_outcome(self, outcome: Outcome) -> float:
        return getattr(self, outcome)


class Teams(BaseModel):
    home: Team
    away: Team


class Pick(BaseModel):
    fixture_id: int
    league: League
    teams: Teams
    kickoff: Optional[str] = None
    datetime_local: Optional[str] = None
    market: str = "1X2"
    selection: Selection
    type: PickType
    model_prob: Optional[float] = None
    market_odds: Optional[float] = None
    implied_prob: Optional[float] = None
    edge: Optional[float] = None
    confidence: int = 0
    bookmaker: Optional[str] = None
    fallback: bool
    reason: str
