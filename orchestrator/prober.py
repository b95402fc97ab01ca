from typing import Optional

import httpx

from core.logger import logger
from orchestrator.catalog import ModelCatalog, get_catalog
from orchestrator.errors import error_message
from providers.base import Provider
from providers.huggingface import get_settings

PROBE_PAYLOAD = {"inputs": "Hello"}


class AvailabilityProber:
    """
    Cheap POST against a model to find out whether it can serve requests
    right now. Fails closed: any failure means "unavailable", nothing is
    ever raised to the caller.
    """

    def __init__(
        self,
        provider: Provider,
        catalog: Optional[ModelCatalog] = None,
        timeout_s: Optional[float] = None,
    ):
        self.provider = provider
        self.catalog = catalog or get_catalog()
        self.timeout_s = timeout_s if timeout_s is not None else get_settings().HF_PROBE_TIMEOUT_S

    async def probe(self, credential: str, model: str) -> bool:
        if self.catalog.is_likely_oversized(model):
            logger.debug("Model {} is likely too large for the free tier", model)
            return False

        try:
            await self.provider.infer(credential, model, PROBE_PAYLOAD, self.timeout_s)
        except httpx.HTTPStatusError as e:
            self._log_status_failure(model, e.response)
            return False
        except httpx.TransportError as e:
            logger.debug("Network error during availability check for {}: {!r}", model, e)
            return False
        except Exception as e:
            logger.warning(
                "Assuming model {} is unavailable due to unhandled error during check: {!r}",
                model,
                e,
            )
            return False

        logger.debug("Model {} is available", model)
        return True

    @staticmethod
    def _log_status_failure(model: str, response: httpx.Response) -> None:
        status = response.status_code
        message = error_message(response)

        if status == 401:
            logger.error("Invalid API key detected during availability check for {}", model)
        elif status == 404:
            logger.debug("Model {} not found or inaccessible (404)", model)
        elif status == 503:
            logger.debug("Model {} is unavailable (503), possibly loading or down", model)
        elif "loading" in message:
            logger.debug("Model {} exists but is still loading", model)
        elif "too large" in message:
            logger.debug("Model {} is too large to be loaded automatically", model)
        else:
            logger.debug("Model {} failed availability check ({}): {}", model, status, message)
