"""
Classification of the last upstream failure once every candidate model
has been tried.

Network-level trouble and 503s degrade to a fallback document so that a
service-wide outage does not fail every caller; everything else is raised
as a ``ClassifiedError`` carrying the message shown to the caller and the
HTTP status the API answers with.
"""

import re
from typing import Any, Optional

import httpx

from core.logger import logger
from orchestrator.schemas import FALLBACK_MODEL, DispatchOutcome

FALLBACK_TEXT = (
    "I apologize, but I'm unable to generate a response at the moment "
    "due to service limitations."
)
FALLBACK_MARKDOWN = (
    "# Service Temporarily Unavailable\n\n"
    "I apologize, but I'm unable to generate a response to your request at the "
    "moment due to service limitations. Please try again later."
)
FALLBACK_NOTICE = (
    "Note: All Hugging Face models are currently unavailable. "
    "This is a fallback response."
)

_MISSING_MODEL_RE = re.compile(r"Model (.*) does not exist")

# raised before anything reached the wire
_SETUP_ERRORS = (httpx.InvalidURL, httpx.UnsupportedProtocol, httpx.LocalProtocolError)


class ClassifiedError(Exception):
    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.upstream_status = upstream_status


class InvalidCredential(ClassifiedError):
    status_code = 401

    def __init__(self, message: str = "Invalid credentials for Hugging Face API"):
        super().__init__(message, upstream_status=401)


class ModelNotFound(ClassifiedError):
    status_code = 404

    def __init__(self, model_name: Optional[str] = None):
        self.model_name = model_name
        name = model_name or "The specified model"
        super().__init__(
            f"{name} does not exist on Hugging Face. Please check the model name.",
            upstream_status=404,
        )


class ModelTooLarge(ClassifiedError):
    status_code = 403

    def __init__(self) -> None:
        super().__init__(
            "The selected model is too large for the free tier. "
            "Please try a smaller model.",
            upstream_status=403,
        )


class AccessDenied(ClassifiedError):
    status_code = 403

    def __init__(self, detail: str):
        super().__init__(f"Access denied: {detail}", upstream_status=403)


class RateLimited(ClassifiedError):
    status_code = 429

    def __init__(self) -> None:
        super().__init__(
            "Rate limit exceeded for Hugging Face API. Please try again later.",
            upstream_status=429,
        )


class ModelLoading(ClassifiedError):
    status_code = 503

    def __init__(self) -> None:
        super().__init__(
            "The model is still loading. Please try again in a few moments.",
            upstream_status=400,
        )


class UpstreamError(ClassifiedError):
    def __init__(self, status: int, detail: str):
        super().__init__(f"Hugging Face API error ({status}): {detail}", upstream_status=status)
        self.detail = detail
        # payment required is surfaced to the caller as-is
        if status == 402:
            self.status_code = 402
            self.message = detail


class RequestSetupError(ClassifiedError):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(f"Error setting up request: {detail}")


def error_message(response: httpx.Response) -> str:
    """Best-effort ``error`` field of an upstream error body."""
    try:
        body: Any = response.json()
    except ValueError:
        return response.text or response.reason_phrase

    if isinstance(body, dict) and body.get("error"):
        err = body["error"]
        if isinstance(err, list):
            return "; ".join(str(e) for e in err)
        return str(err)
    return response.text or response.reason_phrase


def fallback_outcome(original_input: str = "") -> DispatchOutcome:
    logger.warning("Generating fallback response as all models failed.")
    return DispatchOutcome(
        data={
            "generated_text": FALLBACK_TEXT,
            "formatted_markdown": FALLBACK_MARKDOWN,
        },
        model_used=FALLBACK_MODEL,
        used_fallback=True,
        notice=FALLBACK_NOTICE,
    )


def classify(last_error: Optional[BaseException], original_input: str = "") -> DispatchOutcome:
    if last_error is None:
        logger.error("No model could be used, providing fallback response")
        return fallback_outcome(original_input)

    if isinstance(last_error, httpx.HTTPStatusError):
        return _classify_status(last_error.response, original_input)

    if isinstance(last_error, _SETUP_ERRORS) or not isinstance(last_error, httpx.HTTPError):
        raise RequestSetupError(str(last_error)) from last_error

    # connect/DNS failures, timeouts, dropped connections: no response came back
    logger.error(
        "Network error or service down, providing fallback response: {} ({})",
        last_error,
        type(last_error).__name__,
    )
    return fallback_outcome(original_input)


def _classify_status(response: httpx.Response, original_input: str) -> DispatchOutcome:
    status = response.status_code
    message = error_message(response)

    if status == 401:
        raise InvalidCredential()
    if status == 404:
        match = _MISSING_MODEL_RE.search(message)
        raise ModelNotFound(match.group(1) if match else None)
    if status == 403:
        if "too large" in message:
            raise ModelTooLarge()
        raise AccessDenied(message)
    if status == 429:
        raise RateLimited()
    if status == 503:
        logger.error("Hugging Face service unavailable (503), providing fallback response: {}", message)
        return fallback_outcome(original_input)
    if status == 400 and "loading" in message:
        raise ModelLoading()
    raise UpstreamError(status, message)
