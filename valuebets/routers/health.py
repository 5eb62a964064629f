# valuebets/routers/health.py
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response

from ..core.config import Settings, get_settings
from ..core.metrics import InMemoryMetrics, MetricsCollector
from ..deps import get_metrics

router = APIRouter(tags=["health"])

MANIFEST = {
    "name": "Value Bets",
    "short_name": "ValueBets",
    "start_url": "/",
    "display": "standalone",
}


@router.get("/api/v1/ping")
def ping():
    return {"pong": True}


@router.get("/health", summary="Liveness plus which providers are configured")
def health(
    settings: Settings = Depends(get_settings),
    metrics: MetricsCollector = Depends(get_metrics),
):
    # presence only; key values never leave the process
    out: Dict[str, Any] = {
        "status": "ok",
        "providers": {
            "api_football": bool(settings.api_football_key),
            "sportmonks": bool(settings.sportmonks_key),
        },
        "offline_cache": settings.offline_cache_enabled,
    }
    if isinstance(metrics, InMemoryMetrics):
        out["metrics"] = metrics.snapshot()
    return out


@router.head("/")
def head_root():
    return Response(status_code=200)


# pre-cached by the offline cache on install
@router.get("/manifest.json")
def manifest():
    return MANIFEST
