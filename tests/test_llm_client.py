"""Unit tests for the LLM client abstraction layer."""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from coastguard.core.config import LLMConfig
from coastguard.core.errors import ValidationFailureError
from coastguard.llm.client import create_llm_client, extract_json_object
from coastguard.llm.health import HealthStatus, check_llm_health
from coastguard.llm.providers.ollama import OllamaClient
from coastguard.llm.providers.openai_compat import OpenAICompatClient


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _ollama_config(**overrides) -> LLMConfig:
    defaults = {
        "provider": "ollama",
        "base_url": "http://localhost:11434",
        "model": "llama3.1:8b",
        "vision_model": "llava:13b",
    }
    defaults.update(overrides)
    return LLMConfig(**defaults)


def _openai_config(**overrides) -> LLMConfig:
    defaults = {
        "provider": "openai",
        "base_url": "http://localhost:8000",
        "model": "gpt-4o-mini",
        "vision_model": "gpt-4o",
        "api_key": "sk-test",
    }
    defaults.update(overrides)
    return LLMConfig(**defaults)


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


# ---------------------------------------------------------------------------
# Factory tests
# ---------------------------------------------------------------------------

class TestFactory:
    def test_creates_ollama_client(self):
        client = create_llm_client(_ollama_config())
        assert isinstance(client, OllamaClient)

    def test_creates_openai_client(self):
        client = create_llm_client(_openai_config())
        assert isinstance(client, OpenAICompatClient)

    def test_creates_vllm_client_without_key(self):
        client = create_llm_client(_openai_config(provider="vllm", api_key=None))
        assert isinstance(client, OpenAICompatClient)

    def test_openai_without_key_is_none(self):
        assert create_llm_client(_openai_config(api_key=None)) is None

    def test_disabled_is_none(self):
        assert create_llm_client(_ollama_config(enabled=False)) is None

    def test_unknown_provider_raises(self):
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            create_llm_client(_ollama_config(provider="nope"))


class TestExtractJsonObject:
    def test_embedded_object(self):
        assert extract_json_object('Here you go: {"loss": "yes"} done') == {"loss": "yes"}

    def test_no_object(self):
        with pytest.raises(ValidationFailureError):
            extract_json_object("no json here")

    def test_malformed(self):
        with pytest.raises(ValidationFailureError):
            extract_json_object("{loss: yes}")


# ---------------------------------------------------------------------------
# Ollama provider tests
# ---------------------------------------------------------------------------

class TestOllamaClient:
    @pytest.mark.asyncio
    async def test_generate_requests_json(self, httpx_mock):
        httpx_mock.add_response(
            url="http://localhost:11434/api/generate",
            method="POST",
            json={"response": '{"why": "x"}'},
        )
        client = OllamaClient(_ollama_config(max_tokens=120))
        try:
            result = await client.generate("Phrase this")
            assert result == '{"why": "x"}'

            body = json.loads(httpx_mock.get_request().content)
            assert body["format"] == "json"
            assert body["options"]["num_predict"] == 120
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_describe_images_uses_vision_model(self, httpx_mock):
        httpx_mock.add_response(
            url="http://localhost:11434/api/chat",
            method="POST",
            json={"message": {"role": "assistant", "content": "looks fine"}},
        )
        client = OllamaClient(_ollama_config())
        try:
            result = await client.describe_images("Compare", [b"before", b"after"])
            assert result == "looks fine"

            body = json.loads(httpx_mock.get_request().content)
            assert body["model"] == "llava:13b"
            assert body["messages"][0]["images"] == [
                base64.b64encode(b"before").decode("ascii"),
                base64.b64encode(b"after").decode("ascii"),
            ]
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_is_available_false_on_error(self, httpx_mock):
        httpx_mock.add_exception(
            httpx.ConnectError("connection refused"),
            url="http://localhost:11434/api/tags",
        )
        client = OllamaClient(_ollama_config())
        try:
            assert await client.is_available() is False
        finally:
            await client.close()


# ---------------------------------------------------------------------------
# OpenAI-compatible provider tests
# ---------------------------------------------------------------------------

class TestOpenAICompatClient:
    @pytest.mark.asyncio
    async def test_generate_wraps_as_chat(self, httpx_mock):
        httpx_mock.add_response(
            url="http://localhost:8000/v1/chat/completions",
            method="POST",
            json=_completion("  Generated  "),
        )
        client = OpenAICompatClient(_openai_config())
        try:
            result = await client.generate("Do something", system_prompt="Be concise.")
            assert result == "Generated"

            request = httpx_mock.get_request()
            assert request.headers["authorization"] == "Bearer sk-test"
            body = json.loads(request.content)
            assert body["model"] == "gpt-4o-mini"
            assert body["messages"][0] == {"role": "system", "content": "Be concise."}
            assert body["messages"][1] == {"role": "user", "content": "Do something"}
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_describe_images_sends_data_urls(self, httpx_mock):
        httpx_mock.add_response(
            url="http://localhost:8000/v1/chat/completions",
            method="POST",
            json=_completion('{"loss": "no"}'),
        )
        client = OpenAICompatClient(_openai_config())
        try:
            await client.describe_images("Compare", [b"img1", b"img2"])

            body = json.loads(httpx_mock.get_request().content)
            assert body["model"] == "gpt-4o"
            content = body["messages"][0]["content"]
            assert content[0] == {"type": "text", "text": "Compare"}
            encoded = base64.b64encode(b"img1").decode("ascii")
            assert content[1]["image_url"]["url"] == f"data:image/jpeg;base64,{encoded}"
            assert len(content) == 3
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_server_error_raises(self, httpx_mock):
        httpx_mock.add_response(
            url="http://localhost:8000/v1/chat/completions",
            method="POST",
            status_code=503,
        )
        client = OpenAICompatClient(_openai_config(max_retries=0))
        try:
            with pytest.raises(httpx.HTTPStatusError):
                await client.chat([{"role": "user", "content": "Hi"}])
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_non_json_body_is_validation_failure(self, httpx_mock):
        httpx_mock.add_response(
            url="http://localhost:8000/v1/chat/completions",
            method="POST",
            text="<html>gateway</html>",
        )
        client = OpenAICompatClient(_openai_config())
        try:
            with pytest.raises(ValidationFailureError):
                await client.chat([{"role": "user", "content": "Hi"}])
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_null_content_is_validation_failure(self, httpx_mock):
        httpx_mock.add_response(
            url="http://localhost:8000/v1/chat/completions",
            method="POST",
            json={"choices": [{"message": {"content": None}}]},
        )
        client = OpenAICompatClient(_openai_config())
        try:
            with pytest.raises(ValidationFailureError, match="NoneType"):
                await client.chat([{"role": "user", "content": "Hi"}])
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_retries_once_after_server_error(self, httpx_mock):
        url = "http://localhost:8000/v1/chat/completions"
        httpx_mock.add_response(url=url, method="POST", status_code=502)
        httpx_mock.add_response(url=url, method="POST", json=_completion("ok"))
        client = OpenAICompatClient(_openai_config(max_retries=1))
        try:
            assert await client.chat([{"role": "user", "content": "Hi"}]) == "ok"
            assert len(httpx_mock.get_requests()) == 2
        finally:
            await client.close()


# ---------------------------------------------------------------------------
# Health check tests
# ---------------------------------------------------------------------------

class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_healthy(self, httpx_mock):
        httpx_mock.add_response(
            url="http://localhost:11434/api/tags",
            method="GET",
            json={"models": []},
        )
        status = await check_llm_health(_ollama_config())
        assert isinstance(status, HealthStatus)
        assert status.healthy is True
        assert status.service == "llm:ollama"
        assert status.latency_ms is not None

    @pytest.mark.asyncio
    async def test_unhealthy(self, httpx_mock):
        httpx_mock.add_exception(
            httpx.ConnectError("refused"),
            url="http://localhost:11434/api/tags",
        )
        status = await check_llm_health(_ollama_config())
        assert status.healthy is False

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        status = await check_llm_health(_openai_config(api_key=None))
        assert status.healthy is False
        assert status.details["reason"] == "disabled or missing credentials"
