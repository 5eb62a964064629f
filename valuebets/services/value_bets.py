# valuebets/services/value_bets.py
from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from ..clients.apifootball import ApiFootballClient
from ..core.errors import SourceUnavailable
from ..core.metrics import MetricsCollector, NullMetrics
from ..domain.models import OUTCOME_TO_SELECTION, Fixture, OddsQuote, Pick, Teams
from .edge import compute_confidence, compute_edge, implied_probability
from .fixtures import fetch_fixtures
from .model import ConstantModel, ProbabilityModel
from .odds import fetch_odds_map
from .ranking import sort_value_bets
from .utils import format_local

log = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 50
REASON_MATCHED = "model+odds"
REASON_FALLBACK = "model-only fallback"


def build_pick(
    fixture: Fixture,
    model: ProbabilityModel,
    quote: Optional[OddsQuote],
    *,
    tz: Optional[str] = None,
) -> Pick:
    """
    One 1X2 pick on the model's favourite outcome. Edge is only computed when
    the quote carries a price for that outcome; otherwise it's a model-only
    fallback at FALLBACK_CONFIDENCE.
    """
    probs = model.predict(fixture)
    outcome = probs.best()
    model_prob = probs.for_outcome(outcome)

    pick = Pick(
        fixture_id=fixture.id,
        league=fixture.league,
        teams=Teams(home=fixture.home, away=fixture.away),
        kickoff=fixture.kickoff,
        datetime_local=format_local(fixture.kickoff, tz) if tz else None,
        selection=OUTCOME_TO_SELECTION[outcome],
        type="MODEL-ONLY",
        model_prob=model_prob,
        confidence=FALLBACK_CONFIDENCE,
        fallback=True,
        reason=REASON_FALLBACK,
    )

    price = quote.prices.for_outcome(outcome) if quote else None
    implied = implied_probability(price)
    if implied is None:
        return pick

    edge = compute_edge(model_prob, implied)
    confidence = compute_confidence(edge, implied)
    return pick.model_copy(update={
        "type": "MODEL+ODDS",
        "market_odds": price,
        "implied_prob": implied,
        "edge": edge,
        "confidence": pick.confidence if confidence is None else confidence,
        "bookmaker": quote.bookmaker if quote else None,
        "fallback": False,
        "reason": REASON_MATCHED,
    })


def build_picks(
    fixtures: Sequence[Fixture],
    odds: Mapping[int, OddsQuote],
    model: ProbabilityModel,
    *,
    tz: Optional[str] = None,
) -> List[Pick]:
    return [build_pick(f, model, odds.get(f.id), tz=tz) for f in fixtures]


class ValueBetService:
    """fixtures -> odds (concurrent) -> picks -> ranked list, rebuilt on every call."""

    def __init__(
        self,
        client: ApiFootballClient,
        *,
        model: Optional[ProbabilityModel] = None,
        trusted: Sequence[str] = (),
        tz: Optional[str] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.client = client
        self.model = model or ConstantModel()
        self.trusted = list(trusted)
        self.tz = tz
        self.metrics = metrics or NullMetrics()

    async def build(self, date: str) -> List[Pick]:
        """Raises SourceUnavailable when the fixtures call fails; odds failures only degrade."""
        try:
            fixtures = await fetch_fixtures(self.client, date)
        except SourceUnavailable:
            self.metrics.incr("fixtures.unavailable")
            raise
        self.metrics.incr("fixtures.fetched", len(fixtures))

        odds: Dict[int, OddsQuote] = {}
        if fixtures:
            odds = await fetch_odds_map(
                self.client, (f.id for f in fixtures), trusted=self.trusted, metrics=self.metrics
            )

        picks = sort_value_bets(build_picks(fixtures, odds, self.model, tz=self.tz))
        matched = sum(1 for p in picks if not p.fallback)
        self.metrics.incr("picks.matched", matched)
        self.metrics.incr("picks.fallback", len(picks) - matched)
        log.info("value bets for %s: %d fixtures, %d matched, %d fallback", date, len(fixtures), matched, len(picks) - matched)
        return picks
