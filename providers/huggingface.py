from functools import lru_cache
from typing import Any, Dict, Optional

import httpx
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.logger import logger
from .base import Provider


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    HF_API_URL: str = "https://api-inference.huggingface.co/models/"
    HF_PROBE_TIMEOUT_S: float = 5.0
    HF_REQUEST_TIMEOUT_S: float = 20.0


@lru_cache
def get_settings() -> Settings:
    return Settings()


class HuggingFaceProvider(Provider):
    name = "huggingface"

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or get_settings().HF_API_URL
        if not self.base_url.endswith("/"):
            self.base_url += "/"
        # tests plug an httpx.MockTransport in here
        self.transport = transport

    def url_for(self, model: str) -> str:
        return f"{self.base_url}{model}"

    async def infer(
        self,
        credential: str,
        model: str,
        payload: Dict[str, Any],
        timeout: float,
    ) -> Any:
        headers = {
            "Authorization": f"Bearer {credential}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
            resp = await client.post(self.url_for(model), json=payload, headers=headers)

        logger.debug("POST {} -> {}", model, resp.status_code)
        resp.raise_for_status()

        try:
            return resp.json()
        except ValueError:
            return resp.text
