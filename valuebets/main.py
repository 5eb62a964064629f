# valuebets/main.py
from typing import Optional

from fastapi import FastAPI

from .core.config import Settings, get_settings
from .core.logging import configure_logging
from .middleware.offline import install_offline_cache
from .routers import cron, health, ohlc, select_matches, value_bets


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Value Bets API", version="0.1.0")

    # Routers
    app.include_router(health.router)
    app.include_router(value_bets.router)
    app.include_router(ohlc.router)
    app.include_router(select_matches.router)
    app.include_router(cron.router)

    @app.get("/")
    def root():
        return {"service": "valuebets-api"}

    if settings.offline_cache_enabled:
        install_offline_cache(app, version=settings.offline_cache_version)

    return app


app = create_app()
