"""Tests for sitout.llm — HttpProvider and EchoProvider."""

import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock, patch

from sitout.llm import EchoProvider, HttpProvider, ProviderError, build_provider


# ---------------------------------------------------------------------------
# EchoProvider
# ---------------------------------------------------------------------------

class TestEchoProvider:
    async def test_returns_prompt_unchanged(self) -> None:
        provider = EchoProvider()
        result = await provider("system", "hello world", 0.8, "key")
        assert result == "hello world"

    async def test_system_and_key_ignored(self) -> None:
        provider = EchoProvider()
        assert await provider("a", "x", 0.1, "k1") == await provider("b", "x", 0.9, "")


# ---------------------------------------------------------------------------
# HttpProvider — Gemini format
# ---------------------------------------------------------------------------

def _mock_response(body: dict, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


def _gemini_body(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class TestHttpProviderGemini:
    @pytest.fixture
    def provider(self) -> HttpProvider:
        return HttpProvider(provider_url="https://gemini.test", model="gemini-1.5-flash")

    async def test_happy_path(self, provider: HttpProvider) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_gemini_body("Nice evening, alle?")))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await provider("You are Babu.", "Say hello.", 0.8, "AIza-key")
        assert result == "Nice evening, alle?"

    async def test_posts_to_model_url(self, provider: HttpProvider) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_gemini_body("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await provider("s", "p", 0.8, "k")
        url = mock_post.call_args[0][0]
        assert url == "https://gemini.test/v1beta/models/gemini-1.5-flash:generateContent"

    async def test_sends_system_prompt_and_temperature(self, provider: HttpProvider) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_gemini_body("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await provider("You are Babu.", "Say hello.", 0.9, "k")
        body = mock_post.call_args.kwargs["json"]
        assert body["systemInstruction"]["parts"][0]["text"] == "You are Babu."
        assert body["contents"][0]["parts"][0]["text"] == "Say hello."
        assert body["generationConfig"]["temperature"] == 0.9

    async def test_api_key_sent_in_goog_header(self, provider: HttpProvider) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_gemini_body("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await provider("s", "p", 0.8, "secret")
        headers = mock_post.call_args.kwargs["headers"]
        assert headers.get("x-goog-api-key") == "secret"
        assert "Authorization" not in headers

    async def test_multiple_parts_joined(self, provider: HttpProvider) -> None:
        body = {"candidates": [{"content": {"parts": [{"text": "Eda, "}, {"text": "come sit."}]}}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            assert await provider("s", "p", 0.8, "k") == "Eda, come sit."

    async def test_trailing_slash_stripped_from_url(self) -> None:
        provider = HttpProvider(provider_url="https://gemini.test/", model="m")
        mock_post = AsyncMock(return_value=_mock_response(_gemini_body("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await provider("s", "p", 0.8, "k")
        assert mock_post.call_args[0][0] == "https://gemini.test/v1beta/models/m:generateContent"

    async def test_connect_error_raises_provider_error(self, provider: HttpProvider) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(ProviderError, match="Cannot connect") as exc_info:
                await provider("s", "p", 0.8, "k")
        assert exc_info.value.status_code is None

    async def test_timeout_raises_provider_error(self, provider: HttpProvider) -> None:
        mock_post = AsyncMock(side_effect=httpx.TimeoutException("timeout"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(ProviderError, match="timed out"):
                await provider("s", "p", 0.8, "k")

    async def test_http_error_carries_status_code(self, provider: HttpProvider) -> None:
        bad_resp = MagicMock()
        bad_resp.status_code = 429
        bad_resp.raise_for_status.side_effect = httpx.HTTPStatusError(
            "", request=MagicMock(), response=bad_resp
        )
        mock_post = AsyncMock(return_value=bad_resp)
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(ProviderError, match="HTTP 429") as exc_info:
                await provider("s", "p", 0.8, "k")
        assert exc_info.value.status_code == 429

    async def test_http_error_includes_provider_message(self, provider: HttpProvider) -> None:
        body = {"error": {"message": "API key not valid. Please pass a valid API key."}}
        mock_post = AsyncMock(return_value=_mock_response(body, status=400))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(ProviderError, match="API key not valid") as exc_info:
                await provider("s", "p", 0.8, "k")
        assert exc_info.value.status_code == 400

    async def test_malformed_response_raises_provider_error(self, provider: HttpProvider) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"unexpected": "format"}))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(ProviderError, match="Unexpected response format"):
                await provider("s", "p", 0.8, "k")

    async def test_non_json_body_raises_provider_error(self, provider: HttpProvider) -> None:
        resp = _mock_response({})
        resp.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
        mock_post = AsyncMock(return_value=resp)
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(ProviderError, match="non-JSON") as exc_info:
                await provider("s", "p", 0.8, "k")
        assert exc_info.value.status_code is None

    async def test_json_array_body_raises_provider_error(self, provider: HttpProvider) -> None:
        mock_post = AsyncMock(return_value=_mock_response(["not", "an", "object"]))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(ProviderError, match="Unexpected response format"):
                await provider("s", "p", 0.8, "k")

    @pytest.mark.parametrize("error", [
        httpx.ReadError("connection reset"),
        httpx.RemoteProtocolError("peer closed connection"),
    ])
    async def test_other_transport_errors_raise_provider_error(
        self, provider: HttpProvider, error: httpx.RequestError
    ) -> None:
        mock_post = AsyncMock(side_effect=error)
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(ProviderError, match="Request to provider failed") as exc_info:
                await provider("s", "p", 0.8, "k")
        assert exc_info.value.__cause__ is error


# ---------------------------------------------------------------------------
# HttpProvider — OpenAI format
# ---------------------------------------------------------------------------

class TestHttpProviderOpenAI:
    @pytest.fixture
    def provider(self) -> HttpProvider:
        return HttpProvider(
            provider_url="http://localhost:8080",
            provider_format="openai",
            model="gpt-4o-mini",
        )

    async def test_posts_to_chat_completions(self, provider: HttpProvider) -> None:
        body = {"choices": [{"message": {"content": "ok"}}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            await provider("s", "p", 0.8, "k")
        assert mock_post.call_args[0][0] == "http://localhost:8080/v1/chat/completions"

    async def test_sends_model_and_messages(self, provider: HttpProvider) -> None:
        body = {"choices": [{"message": {"content": "ok"}}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            await provider("You are Chakko.", "Joke.", 0.7, "k")
        sent = mock_post.call_args.kwargs["json"]
        assert sent["model"] == "gpt-4o-mini"
        assert sent["messages"] == [
            {"role": "system", "content": "You are Chakko."},
            {"role": "user", "content": "Joke."},
        ]
        assert sent["temperature"] == 0.7

    async def test_bearer_token_sent(self, provider: HttpProvider) -> None:
        body = {"choices": [{"message": {"content": "ok"}}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            await provider("s", "p", 0.8, "secret")
        assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer secret"

    async def test_no_auth_header_without_key(self, provider: HttpProvider) -> None:
        body = {"choices": [{"message": {"content": "ok"}}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            await provider("s", "p", 0.8, "")
        assert "Authorization" not in mock_post.call_args.kwargs["headers"]

    async def test_happy_path(self, provider: HttpProvider) -> None:
        body = {"choices": [{"message": {"content": "Pwoli!"}}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            assert await provider("s", "p", 0.8, "k") == "Pwoli!"

    async def test_malformed_response_raises_provider_error(self, provider: HttpProvider) -> None:
        body = _gemini_body("gemini format accidentally")
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(ProviderError, match="Unexpected response format"):
                await provider("s", "p", 0.8, "k")


class TestBuildProvider:
    def test_echo(self) -> None:
        assert isinstance(build_provider("echo", "", ""), EchoProvider)

    def test_http(self) -> None:
        assert isinstance(build_provider("openai", "http://x", "m"), HttpProvider)
