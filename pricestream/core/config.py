from enum import StrEnum

from pydantic_settings import BaseSettings


class Environment(StrEnum):
    development = "development"
    production = "production"


class Settings(BaseSettings):
    ENV: Environment = Environment.development
    LOG_LEVEL: str = "INFO"

    # Upstream trade feed
    STREAM_HOST: str = "stream.binance.com:9443"
    RECONNECT_DELAY: float = 3.0
    MAX_RECONNECT_ATTEMPTS: int = 5
    PING_INTERVAL: float = 20.0
    PING_TIMEOUT: float = 20.0

    # Read-only HTTP surface
    HTTP_ENABLED: bool = True
    HTTP_HOST: str = "0.0.0.0"
    HTTP_PORT: int = 8080

    # Optional JSON catalog, falls back to the built-in default catalog
    CATALOG_PATH: str | None = None

    @property
    def is_production(self) -> bool:
        return self.ENV == Environment.production


settings = Settings()
