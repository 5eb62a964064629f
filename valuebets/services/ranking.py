# valuebets/services/ranking.py
from __future__ import annotations

from typing import Any, List, Mapping, Sequence, Tuple, TypeVar, Union

from ..domain.models import Pick

MATCHED = "MODEL+ODDS"

P = TypeVar("P")


def _get(p: Union[Pick, Mapping[str, Any]], field: str) -> Any:
    if isinstance(p, Mapping):
        return p.get(field)
    return getattr(p, field, None)


def rank_key(p: Union[Pick, Mapping[str, Any]]) -> Tuple[int, float, float]:
    """MODEL+ODDS first, then edge desc, then model_prob desc. Missing numbers count as 0."""
    return (
        0 if _get(p, "type") == MATCHED else 1,
        -(_get(p, "edge") or 0.0),
        -(_get(p, "model_prob") or 0.0),
    )


def sort_value_bets(bets: Sequence[P]) -> List[P]:
    """Stable, returns a new list; works on Pick models and on plain dicts from JSON."""
    return sorted(bets, key=rank_key)
