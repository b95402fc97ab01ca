from typing import Literal

import motor.motor_asyncio
from pydantic_settings import BaseSettings, SettingsConfigDict


# -----------------------------
# SETTINGS
# -----------------------------
class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    mongo_uri: str = "mongodb://localhost:27017"
    db_name: str = "hf_relay"

    # where usage and access records go
    usage_backend: Literal["mongo", "log"] = "mongo"

    # service token for the HTTP API; empty disables the check
    api_token: str = ""

    rate_limit_max_requests: int = 20
    rate_limit_window_s: float = 60.0


_settings: Settings | None = None
_client = None


# -----------------------------
# GET SETTINGS
# -----------------------------
def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


# -----------------------------
# GET DATABASE
# -----------------------------
async def get_db():
    global _client
    settings = get_settings()

    if _client is None:
        _client = motor.motor_asyncio.AsyncIOMotorClient(settings.mongo_uri)

    return _client[settings.db_name]
