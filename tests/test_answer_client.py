"""
Unit tests for the answer request client with a mocked HTTP transport.
"""

import asyncio
import json
import os
import sys

import httpx
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from voicebot.client.answer_client import AnswerClient, classify_status
from voicebot.config import ClientConfig
from voicebot.errors import AnswerRequestError, ErrorKind, ValidationError


def run(coro):
    """Helper to run a coroutine synchronously."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def ask_with(handler, question="What is React?"):
    """Run one ``ask`` against a MockTransport handler."""
    async def _test():
        client = AnswerClient(
            ClientConfig(api_url="https://bot.test"), transport=httpx.MockTransport(handler)
        )
        await client.initialize()
        try:
            return await client.ask(question)
        finally:
            await client.close()

    return run(_test())


class TestClassifyStatus:
    """Tests for HTTP status to ErrorKind mapping."""

    def test_rate_limited(self):
        assert classify_status(429) is ErrorKind.RATE_LIMITED

    def test_server_errors(self):
        assert classify_status(500) is ErrorKind.SERVER_ERROR
        assert classify_status(503) is ErrorKind.SERVER_ERROR

    def test_bad_request(self):
        assert classify_status(400) is ErrorKind.VALIDATION

    def test_other_client_errors(self):
        assert classify_status(404) is ErrorKind.NETWORK
        assert classify_status(403) is ErrorKind.NETWORK


class TestAnswerClient:
    """Tests for AnswerClient.ask()."""

    def test_success(self):
        """One POST with the question; the answer text is returned."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"response": "I build web apps."})

        assert ask_with(handler) == "I build web apps."
        assert len(requests) == 1
        assert requests[0].method == "POST"
        assert str(requests[0].url) == "https://bot.test/api/ask"
        assert json.loads(requests[0].content) == {"question": "What is React?"}

    def test_empty_question_not_sent(self):
        """Empty questions fail locally without a network round trip."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"response": "x"})

        with pytest.raises(ValidationError):
            ask_with(handler, question="   ")
        assert requests == []

    def test_too_long_question_not_sent(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"response": "x"})

        with pytest.raises(ValidationError):
            ask_with(handler, question="a" * 1001)
        assert requests == []
        assert ask_with(handler, question="a" * 1000) == "x"

    def test_validation_before_initialize(self):
        """Validation does not need an HTTP client."""
        client = AnswerClient(ClientConfig())
        with pytest.raises(ValidationError):
            run(client.ask(""))

    def test_rate_limited_response(self):
        """429 maps to RATE_LIMITED and is not retried."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429, json={"error": "Too many requests. Please try again later."})

        with pytest.raises(AnswerRequestError) as excinfo:
            ask_with(handler)
        assert excinfo.value.kind is ErrorKind.RATE_LIMITED
        assert excinfo.value.status_code == 429
        assert "Too many requests" in str(excinfo.value)
        assert len(calls) == 1

    def test_server_error_response(self):
        def handler(request):
            return httpx.Response(500, json={"error": "Internal server error"})

        with pytest.raises(AnswerRequestError) as excinfo:
            ask_with(handler)
        assert excinfo.value.kind is ErrorKind.SERVER_ERROR

    def test_not_found_response(self):
        def handler(request):
            return httpx.Response(404, text="<html>nope</html>")

        with pytest.raises(AnswerRequestError) as excinfo:
            ask_with(handler)
        assert excinfo.value.kind is ErrorKind.NETWORK
        assert excinfo.value.status_code == 404

    def test_transport_failure(self):
        """Connection errors map to SERVER_ERROR."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(AnswerRequestError) as excinfo:
            ask_with(handler)
        assert excinfo.value.kind is ErrorKind.SERVER_ERROR
        assert excinfo.value.status_code is None

    def test_malformed_body(self):
        def handler(request):
            return httpx.Response(200, json={"answer": "wrong key"})

        with pytest.raises(AnswerRequestError) as excinfo:
            ask_with(handler)
        assert excinfo.value.kind is ErrorKind.NETWORK
