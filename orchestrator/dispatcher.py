from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional, Sequence, Union

from core.logger import logger
from db.usage import UsageRecorder
from orchestrator.catalog import ModelCatalog, Task, get_catalog
from orchestrator.errors import classify
from orchestrator.prober import AvailabilityProber
from orchestrator.schemas import DispatchOutcome
from providers.base import Provider
from providers.huggingface import get_settings


class Dispatcher:
    """
    Tries the requested model, then the catalog fallbacks, one at a time.

    Each candidate is probed first; unavailable ones are skipped without a
    real request. A failing request is remembered and the loop moves on, so
    an error is only classified once every candidate has been tried.
    """

    def __init__(
        self,
        provider: Provider,
        usage: Optional[UsageRecorder] = None,
        catalog: Optional[ModelCatalog] = None,
        prober: Optional[AvailabilityProber] = None,
        timeout_s: Optional[float] = None,
    ):
        self.provider = provider
        self.usage = usage
        self.catalog = catalog or get_catalog()
        self.prober = prober or AvailabilityProber(provider, catalog=self.catalog)
        self.timeout_s = timeout_s if timeout_s is not None else get_settings().HF_REQUEST_TIMEOUT_S

    def candidates(self, task: Union[Task, str], model: Optional[str] = None) -> Sequence[str]:
        return self.catalog.build_candidates(task, model)

    async def available_candidates(
        self, credential: str, candidates: Sequence[str]
    ) -> AsyncIterator[str]:
        for model in candidates:
            logger.debug("Attempting to use model: {}", model)
            if await self.prober.probe(credential, model):
                yield model
            else:
                logger.debug("Model {} is unavailable or failed checks, trying next option", model)

    async def dispatch(
        self,
        user_id: str,
        credential: str,
        task: Union[Task, str],
        payload: Dict[str, Any],
        model: Optional[str] = None,
    ) -> DispatchOutcome:
        task_name = task.value if isinstance(task, Task) else str(task)
        candidates = self.candidates(task, model)
        if not candidates:
            raise RuntimeError(f"no candidate models for task {task_name!r}")

        requested = candidates[0]
        logger.info("Initiating {} with Hugging Face API: user={} model={}", task_name, user_id, requested)

        last_error: Optional[BaseException] = None
        async for candidate in self.available_candidates(credential, candidates):
            used_fallback = candidate != requested
            if used_fallback:
                logger.info("Using fallback model {} instead of {}", candidate, requested)

            try:
                data = await self.provider.infer(credential, candidate, payload, self.timeout_s)
            except Exception as e:
                last_error = e
                logger.error(
                    "Error with model {} during {}: {!r} (status={})",
                    candidate,
                    task_name,
                    e,
                    _status_of(e),
                )
                continue

            self._record_usage(user_id, task_name, candidate)
            logger.debug("{} successful with model {}", task_name, candidate)
            return DispatchOutcome(
                data=data,
                model_used=candidate,
                used_fallback=used_fallback,
                notice=(
                    f'Note: The requested model "{requested}" was unavailable. '
                    f'Used "{candidate}" instead.'
                    if used_fallback
                    else None
                ),
            )

        logger.error(
            "All models failed for {}: user={} requested={} last_error={!r}",
            task_name,
            user_id,
            requested,
            last_error,
        )
        return classify(last_error, _prompt_of(payload))

    def _record_usage(self, user_id: str, task: str, model: str) -> None:
        if self.usage is None:
            return
        try:
            self.usage.record(user_id, task, model, datetime.now(timezone.utc))
        except Exception as e:
            logger.warning("Usage recording failed for {}: {!r}", model, e)


def _status_of(error: BaseException) -> Optional[int]:
    response = getattr(error, "response", None)
    return getattr(response, "status_code", None)


def _prompt_of(payload: Dict[str, Any]) -> str:
    inputs = payload.get("inputs", "")
    if isinstance(inputs, dict):
        return inputs.get("text", "")
    return inputs if isinstance(inputs, str) else ""
