from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    CASPER_NODE_URL: str = "http://localhost:7777/rpc"
    CASPER_EVENTS_URL: str = "http://localhost:18101/events/main"
    CASPER_CHAIN_NAME: str = "casper-test"

    OUTCOME_MANAGER_HASH: Optional[str] = None
    CALL_REGISTRY_HASH: Optional[str] = None

    ORACLE_SECRET_KEY_PATH: Optional[str] = None
    # dev only: random key when no secret key path is set
    ALLOW_EPHEMERAL_KEY: bool = True

    PRICE_API_URL: str = "https://api.dexscreener.com/latest/dex/pairs/base"
    HTTP_TIMEOUT: float = 10.0
    PRICE_DECIMALS: int = 18
    SETTLE_ON_STALE_PRICE: bool = False

    STATUS_POLL_MINUTES: int = 2
    EVENT_LISTENER_ENABLED: bool = True
    EVENT_RECONNECT_MAX_DELAY: float = 60.0
    # longer than the node keep-alive interval
    EVENT_READ_TIMEOUT: float = 90.0

    DATABASE_URL: str = "sqlite:///backit_oracle.db"

    TELEGRAM_TOKEN: Optional[str] = None
    TELEGRAM_CHAT_ID: Optional[str] = None

settings = Settings()
