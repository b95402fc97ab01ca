"""
tests/test_errors.py

Classification of the last upstream failure: fallback document for
network trouble and 503, a typed ClassifiedError for everything else.
"""

import httpx
import pytest

from orchestrator.errors import (
    FALLBACK_NOTICE,
    FALLBACK_TEXT,
    AccessDenied,
    ClassifiedError,
    InvalidCredential,
    ModelLoading,
    ModelNotFound,
    ModelTooLarge,
    RateLimited,
    RequestSetupError,
    UpstreamError,
    classify,
    error_message,
)

URL = "https://hub.test/models/acme/model"


def status_error(status, body):
    request = httpx.Request("POST", URL)
    if isinstance(body, str):
        response = httpx.Response(status, text=body, request=request)
    else:
        response = httpx.Response(status, json=body, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


def assert_fallback(outcome):
    assert outcome.model_used == "fallback"
    assert outcome.used_fallback is True
    assert outcome.degraded is True
    assert outcome.notice == FALLBACK_NOTICE
    assert outcome.data["generated_text"] == FALLBACK_TEXT
    assert outcome.data["formatted_markdown"].startswith("# Service Temporarily Unavailable")


class TestFallbackOutcomes:
    def test_no_error_recorded(self):
        assert_fallback(classify(None, "prompt"))

    @pytest.mark.parametrize(
        "error",
        [
            httpx.ConnectError("connection refused"),
            httpx.ConnectTimeout("timed out"),
            httpx.ReadTimeout("timed out"),
            httpx.RemoteProtocolError("server disconnected without sending a response"),
            httpx.ReadError("connection reset"),
        ],
    )
    def test_network_failure(self, error):
        assert_fallback(classify(error, "prompt"))

    def test_service_unavailable(self):
        assert_fallback(classify(status_error(503, {"error": "Service Unavailable"}), "prompt"))


class TestRaisedErrors:
    def test_unauthorized(self):
        with pytest.raises(InvalidCredential) as exc:
            classify(status_error(401, {"error": "Invalid username or password."}))
        assert exc.value.status_code == 401
        assert exc.value.message == "Invalid credentials for Hugging Face API"

    def test_not_found_extracts_model_name(self):
        with pytest.raises(ModelNotFound) as exc:
            classify(status_error(404, {"error": "Model xyz does not exist"}))
        assert exc.value.model_name == "xyz"
        assert exc.value.status_code == 404
        assert exc.value.message.startswith("xyz does not exist on Hugging Face")

    def test_not_found_without_model_name(self):
        with pytest.raises(ModelNotFound) as exc:
            classify(status_error(404, "Not Found"))
        assert exc.value.model_name is None
        assert exc.value.message.startswith("The specified model does not exist")

    def test_forbidden_too_large(self):
        with pytest.raises(ModelTooLarge):
            classify(status_error(403, {"error": "The model is too large to be loaded automatically"}))

    def test_forbidden_otherwise(self):
        with pytest.raises(AccessDenied) as exc:
            classify(status_error(403, {"error": "gated repository"}))
        assert exc.value.message == "Access denied: gated repository"

    def test_rate_limited(self):
        with pytest.raises(RateLimited) as exc:
            classify(status_error(429, {"error": "Rate limit reached"}))
        assert exc.value.status_code == 429

    def test_model_loading(self):
        with pytest.raises(ModelLoading):
            classify(status_error(400, {"error": "Model acme/model is currently loading"}))

    def test_other_bad_request(self):
        with pytest.raises(UpstreamError) as exc:
            classify(status_error(400, {"error": "Input is too long"}))
        assert exc.value.upstream_status == 400
        assert exc.value.message == "Hugging Face API error (400): Input is too long"

    def test_server_error(self):
        with pytest.raises(UpstreamError) as exc:
            classify(status_error(500, "boom"))
        assert exc.value.status_code == 502
        assert "(500): boom" in exc.value.message

    def test_payment_required_is_passed_through(self):
        with pytest.raises(UpstreamError) as exc:
            classify(status_error(402, {"error": "You have exceeded your monthly credits"}))
        assert exc.value.status_code == 402
        assert exc.value.message == "You have exceeded your monthly credits"

    @pytest.mark.parametrize(
        "error",
        [
            httpx.InvalidURL("Invalid URL"),
            httpx.UnsupportedProtocol("Request URL has an unsupported protocol 'ftp://'"),
            TypeError("Object of type bytes is not JSON serializable"),
        ],
    )
    def test_request_never_sent(self, error):
        with pytest.raises(RequestSetupError) as exc:
            classify(error)
        assert exc.value.status_code == 500
        assert exc.value.message.startswith("Error setting up request:")

    def test_taxonomy_shares_a_base(self):
        for cls in (
            InvalidCredential,
            ModelNotFound,
            ModelTooLarge,
            AccessDenied,
            RateLimited,
            ModelLoading,
            UpstreamError,
            RequestSetupError,
        ):
            assert issubclass(cls, ClassifiedError)


class TestErrorMessage:
    def test_error_field(self):
        response = httpx.Response(400, json={"error": "bad input"})
        assert error_message(response) == "bad input"

    def test_error_list(self):
        response = httpx.Response(400, json={"error": ["first", "second"]})
        assert error_message(response) == "first; second"

    def test_plain_text_body(self):
        response = httpx.Response(502, text="Bad Gateway from proxy")
        assert error_message(response) == "Bad Gateway from proxy"
