# config.py – Chargement des paramètres via pydantic-settings

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # — FFLogs API (client credentials) —
    FFLOGS_CLIENT_ID: Optional[str] = None
    FFLOGS_CLIENT_SECRET: Optional[str] = None
    FFLOGS_TIMEOUT: float = 15.0  # secondes, par requête HTTP
    FFLOGS_MAX_RETRY_AFTER: float = 30.0  # attente max sur un 429

    # — Database —
    DB_URL: str = "sqlite:///data/rpf.db"

    # — Logging —
    LOG_LEVEL: str = "INFO"

    # — Synchronisation des parses —
    SYNC_INTERVAL_SECONDS: float = 60.0
    SYNC_BATCH_SIZE: int = 20
    SYNC_RATE_LIMIT_SECONDS: float = 1.0
    LISTING_WINDOW_MINUTES: int = 60  # annonces "actives"
    CACHE_TTL_HOURS: int = 24

    # — Web —
    WEB_HOST: str = "0.0.0.0"
    WEB_PORT: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def fflogs_configured(self) -> bool:
        """True si les identifiants FFLogs sont présents (interrupteur du sous-système)."""
        return bool(self.FFLOGS_CLIENT_ID and self.FFLOGS_CLIENT_SECRET)

settings = Settings()
