# valuebets/core/config.py
from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ----- App settings (env-driven) -----
class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", env_file=".env", case_sensitive=False, extra="ignore")

    # provider keys; presence toggles behavior, values are never logged
    api_football_key: str = ""
    odds_api_key: str = ""
    football_data_key: str = ""
    sportmonks_key: str = ""

    trusted_bookies: str = Field(default="", description="comma/pipe separated, case-insensitive")
    tz_display: str = "Europe/Belgrade"
    vb_limit: int = Field(default=25, ge=1)

    # closing-capture window, minutes relative to kickoff
    clv_window_min: int = -10
    clv_window_max: int = 20

    snapshot_dir: str = ""
    snapshot_ttl_seconds: int = 48 * 3600

    offline_cache_enabled: bool = False
    offline_cache_version: str = "v1"

    metrics_enabled: bool = False
    http_timeout: float = 20.0
    select_matches_ttl_seconds: int = 300
    log_level: str = "INFO"

    # public origin the rebuild cron calls back into; request origin when empty
    self_base_url: str = ""

    def trusted_bookmakers(self) -> List[str]:
        raw = self.trusted_bookies.replace("|", ",")
        return [s.strip().lower() for s in raw.split(",") if s.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


# ----- Upstream static metadata -----
API_FOOTBALL_BASE = "https://v3.football.api-sports.io"
SPORTMONKS_BASE = "https://soccer.sportmonks.com/api/v2.0"

# tried in order; the first one answering with klines wins
BINANCE_HOSTS = (
    "https://api.binance.com",
    "https://data-api.binance.vision",
    "https://www.binance.com",
)

# header that tags internal sibling calls (cron -> value-bets)
INTERNAL_HEADER = "x-locked-proxy"
