import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

from core.logger import logger

CATALOG_PATH = Path(__file__).resolve().parent.parent / "conf" / "catalog.yaml"

# parameter count token such as "7b", "13B-" or "1.1B"
_SIZE_RE = re.compile(r"(\d+)[bB](?:-|\b)")


class Task(str, Enum):
    CREATIVE = "text-generation"
    SENTIMENT = "sentiment-analysis"
    CONVERSATION = "conversation"


@dataclass(frozen=True)
class ModelCatalog:
    tasks: Mapping[str, Tuple[str, ...]]
    default: Tuple[str, ...]
    oversized: Tuple[str, ...]
    max_params_b: int = 7

    def recommended_models(self, task: Union[Task, str]) -> Tuple[str, ...]:
        key = task.value if isinstance(task, Task) else str(task)
        return self.tasks.get(key, self.default)

    def is_likely_oversized(self, model: str) -> bool:
        """
        Name-based guess of whether the free tier can serve ``model``.
        False negatives are expected, only obvious cases are caught.
        """
        lowered = model.lower()
        for fragment in self.oversized:
            if fragment.lower() in lowered:
                logger.debug("Model {} is likely too large (matches {})", model, fragment)
                return True

        match = _SIZE_RE.search(model)
        if match and int(match.group(1)) >= self.max_params_b:
            logger.debug("Model {} is likely too large (size {}B)", model, match.group(1))
            return True
        return False

    def build_candidates(
        self, task: Union[Task, str], requested_model: Optional[str] = None
    ) -> Tuple[str, ...]:
        """
        Requested model first (or the task default), then the task's
        fallbacks, each model at most once.
        """
        recommended = self.recommended_models(task)
        first = requested_model or (recommended[0] if recommended else None)
        ordered = ([first] if first else []) + list(recommended)
        return tuple(dict.fromkeys(ordered))


def load_catalog(path: Path = CATALOG_PATH) -> ModelCatalog:
    data: Dict[str, Any] = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    tasks = {
        name: tuple(models or [])
        for name, models in (data.get("tasks") or {}).items()
    }
    return ModelCatalog(
        tasks=MappingProxyType(tasks),
        default=tuple(data.get("default") or ["gpt2-medium", "gpt2"]),
        oversized=tuple(data.get("oversized") or []),
        max_params_b=int(data.get("max_params_b", 7)),
    )


@lru_cache
def get_catalog() -> ModelCatalog:
    return load_catalog()


def recommended_models(task: Union[Task, str]) -> Tuple[str, ...]:
    return get_catalog().recommended_models(task)


def is_likely_oversized(model: str) -> bool:
    return get_catalog().is_likely_oversized(model)


def build_candidates(
    task: Union[Task, str], requested_model: Optional[str] = None
) -> Tuple[str, ...]:
    return get_catalog().build_candidates(task, requested_model)
