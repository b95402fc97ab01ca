"""Pytest configuration and fixtures."""

import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

import httpx
import pytest

# Add project root to sys.path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# keep tests away from a real MongoDB
os.environ.setdefault("USAGE_BACKEND", "log")

from orchestrator.catalog import ModelCatalog  # noqa: E402
from orchestrator.prober import PROBE_PAYLOAD  # noqa: E402
from providers.huggingface import HuggingFaceProvider  # noqa: E402

BASE_URL = "https://hub.test/models/"

Scripted = Union[Tuple[int, Any], Exception]


class FakeHub:
    """
    Scripted Hugging Face endpoint behind an httpx.MockTransport.

    ``probes`` and ``requests`` map a model id to either a
    ``(status, body)`` pair or an exception to raise. Unscripted models
    answer 404. Every call is appended to ``calls`` as ``(model, kind)``
    where kind is "probe" or "infer".
    """

    def __init__(self):
        self.probes: Dict[str, Scripted] = {}
        self.requests: Dict[str, Scripted] = {}
        self.calls: List[Tuple[str, str]] = []
        self.headers: List[httpx.Headers] = []
        self.bodies: List[Any] = []

    def available(self, model: str, body: Any = None) -> None:
        self.probes[model] = (200, [{"generated_text": "Hello"}])
        if body is not None:
            self.requests[model] = (200, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        model = request.url.path[len("/models/"):]
        body = json.loads(request.content)
        kind = "probe" if body == PROBE_PAYLOAD else "infer"
        self.calls.append((model, kind))
        self.headers.append(request.headers)
        self.bodies.append(body)

        table = self.probes if kind == "probe" else self.requests
        scripted = table.get(model, (404, {"error": f"Model {model} does not exist"}))
        if isinstance(scripted, Exception):
            raise scripted
        status, payload = scripted
        if isinstance(payload, str):
            return httpx.Response(status, text=payload)
        return httpx.Response(status, json=payload)

    def provider(self) -> HuggingFaceProvider:
        return HuggingFaceProvider(base_url=BASE_URL, transport=httpx.MockTransport(self.handler))

    def infer_calls(self) -> List[str]:
        return [model for model, kind in self.calls if kind == "infer"]


@pytest.fixture
def hub() -> FakeHub:
    return FakeHub()


@pytest.fixture
def small_catalog() -> ModelCatalog:
    return ModelCatalog(
        tasks={
            "text-generation": ("acme/writer-small", "acme/writer-tiny", "gpt2"),
            "sentiment-analysis": ("acme/sentiment-base", "acme/sentiment-mini"),
            "conversation": ("acme/chat-small",),
        },
        default=("gpt2",),
        oversized=("acme/huge",),
        max_params_b=7,
    )
