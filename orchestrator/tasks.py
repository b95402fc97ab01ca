"""
One entry point per inference task. Each builds the upstream payload,
runs it through the dispatcher and shapes the result for the caller.
"""

from typing import Any, Dict, List, Optional

from orchestrator.catalog import Task
from orchestrator.dispatcher import Dispatcher
from orchestrator.normalizer import normalize
from orchestrator.schemas import (
    ConversationResult,
    CreativeResult,
    DispatchOutcome,
    SentimentResult,
)

SENTIMENT_FALLBACK_NOTICE = "Note: All sentiment analysis models are currently unavailable."


async def generate_creative(
    dispatcher: Dispatcher,
    user_id: str,
    credential: str,
    prompt: str,
    options: Optional[Dict[str, Any]] = None,
) -> CreativeResult:
    options = options or {}
    payload = {
        "inputs": prompt,
        "parameters": {
            "max_length": options.get("max_length") or 150,
            "temperature": options.get("temperature") or 0.7,
            "return_full_text": False,
            "num_return_sequences": 1,
            "do_sample": True,
            "top_k": 50,
            "top_p": 0.95,
        },
    }

    outcome = await dispatcher.dispatch(
        user_id, credential, Task.CREATIVE, payload, model=options.get("model")
    )
    if outcome.degraded:
        return CreativeResult(**outcome.data, **_meta(outcome))

    generated_text = _first_generated_text(outcome.data)
    return CreativeResult(
        generated_text=generated_text,
        formatted_markdown=normalize(generated_text, prompt),
        **_meta(outcome),
    )


async def analyze_sentiment(
    dispatcher: Dispatcher,
    user_id: str,
    credential: str,
    text: str,
    options: Optional[Dict[str, Any]] = None,
) -> SentimentResult:
    options = options or {}
    payload = {"inputs": text}

    outcome = await dispatcher.dispatch(
        user_id, credential, Task.SENTIMENT, payload, model=options.get("model")
    )
    if outcome.degraded:
        return SentimentResult(
            sentiment_results=[],
            model_used=outcome.model_used,
            fallback_used=True,
            notice=SENTIMENT_FALLBACK_NOTICE,
        )

    # usually [[{label, score}, ...]], some models answer with a flat list
    data = outcome.data
    results: List[Any] = []
    if isinstance(data, list) and data and isinstance(data[0], list):
        results = data[0]
    elif isinstance(data, list):
        results = data
    return SentimentResult(sentiment_results=results, **_meta(outcome))


async def converse(
    dispatcher: Dispatcher,
    user_id: str,
    credential: str,
    message: str,
    options: Optional[Dict[str, Any]] = None,
) -> ConversationResult:
    options = options or {}
    payload = {
        "inputs": {
            "text": message,
            "past_user_inputs": options.get("past_user_inputs") or [],
            "generated_responses": options.get("generated_responses") or [],
        },
        "parameters": {
            "min_length": options.get("min_length") or 10,
            "max_length": options.get("max_length") or 150,
            "temperature": options.get("temperature") or 0.8,
            "top_k": 50,
            "top_p": 0.9,
            "repetition_penalty": 1.03,
        },
    }

    outcome = await dispatcher.dispatch(
        user_id, credential, Task.CONVERSATION, payload, model=options.get("model")
    )
    if outcome.degraded:
        return ConversationResult(**outcome.data, **_meta(outcome))

    data = outcome.data
    if isinstance(data, list):
        data = data[0] if data and isinstance(data[0], dict) else {}
    upstream: Dict[str, Any] = dict(data) if isinstance(data, dict) else {}
    for reserved in ("formatted_markdown", "model_used", "fallback_used", "notice"):
        upstream.pop(reserved, None)

    generated_text = upstream.pop("generated_text", "") or ""
    return ConversationResult(
        **upstream,
        generated_text=generated_text,
        formatted_markdown=normalize(generated_text, message),
        **_meta(outcome),
    )


def _meta(outcome: DispatchOutcome) -> Dict[str, Any]:
    return {
        "model_used": outcome.model_used,
        "fallback_used": outcome.used_fallback,
        "notice": outcome.notice,
    }


def _first_generated_text(data: Any) -> str:
    first = data[0] if isinstance(data, list) and data else data
    if isinstance(first, dict):
        return str(first.get("generated_text") or "")
    if isinstance(first, str):
        return first
    return ""
