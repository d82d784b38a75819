"""Provider client — HTTP connection to a text-generation backend.

The generation client injects a provider callable matching the protocol:

    async def __call__(self, system: str, prompt: str,
                       temperature: float, api_key: str) -> str: ...

`api_key` is chosen per call by the credential pool, so one provider
instance serves every credential.

Two implementations are provided:

    HttpProvider: real HTTP client, supports Gemini and OpenAI-compatible
                    chat backends. Selected by provider_format.
    EchoProvider: returns the prompt back unchanged. Useful for smoke-testing
                    the scheduler wiring without network access.

Every failure surfaces as ProviderError; `status_code` carries the HTTP
status when there was one so callers can classify throttling vs auth.
"""

from __future__ import annotations

import logging
from typing import Literal, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol: every provider implementation must match this signature
# ---------------------------------------------------------------------------

class TextProvider(Protocol):
    async def __call__(
        self, system: str, prompt: str, temperature: float, api_key: str
    ) -> str: ...


# ---------------------------------------------------------------------------
# HttpProvider: connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["gemini", "openai", "echo"]


class HttpProvider:
    """Async HTTP client for chat-style generation backends.

    Supported formats:
      "gemini": POST /v1beta/models/{model}:generateContent
                  Auth: x-goog-api-key header
                  Response: {"candidates": [{"content": {"parts": [{"text": ...}]}}]}
      "openai": POST /v1/chat/completions  {"model": ..., "messages": [...]}
                  Auth: Bearer token
                  Response: {"choices": [{"message": {"content": ...}}]}

    Args:
        provider_url:    Base URL of the backend.
        provider_format: Wire format to use. Defaults to "gemini".
        model:           Model identifier.
        timeout:         HTTP timeout in seconds. Defaults to 30.
    """

    def __init__(
        self,
        provider_url: str = "https://generativelanguage.googleapis.com",
        provider_format: ProviderFormat = "gemini",
        model: str = "gemini-1.5-flash",
        timeout: float = 30.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._format = provider_format
        self._model = model
        self._timeout = timeout

    def _headers(self, api_key: str) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if not api_key:
            return headers
        if self._format == "gemini":
            headers["x-goog-api-key"] = api_key
        else:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    def _build_request(self, system: str, prompt: str, temperature: float) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "openai":
            url = f"{self._base_url}/v1/chat/completions"
            body: dict = {
                "messages": [
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                "temperature": temperature,
            }
            if self._model:
                body["model"] = self._model
            return url, body

        # gemini (default)
        url = f"{self._base_url}/v1beta/models/{self._model}:generateContent"
        return url, {
            "systemInstruction": {"parts": [{"text": system}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": temperature},
        }

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from the response body."""
        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected response format from {self._base_url}")
        if self._format == "openai":
            choices = data.get("choices")
            if not choices or "content" not in choices[0].get("message", {}):
                raise ProviderError("Unexpected response format from OpenAI-compatible backend")
            return choices[0]["message"]["content"] or ""

        candidates = data.get("candidates")
        try:
            parts = candidates[0]["content"]["parts"]
        except (TypeError, IndexError, KeyError) as e:
            raise ProviderError("Unexpected response format from Gemini backend") from e
        return "".join(p.get("text", "") for p in parts)

    async def __call__(
        self, system: str, prompt: str, temperature: float, api_key: str
    ) -> str:
        url, body = self._build_request(system, prompt, temperature)
        logger.debug("provider call url=%s prompt_len=%d", url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers(api_key))
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise ProviderError(f"Cannot connect to provider at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            detail = _error_detail(e.response)
            message = f"Provider returned HTTP {status}"
            if detail:
                message = f"{message}: {detail}"
            raise ProviderError(message, status_code=status) from e
        except httpx.TimeoutException as e:
            raise ProviderError(f"Provider timed out after {self._timeout}s") from e
        except httpx.RequestError as e:
            raise ProviderError(f"Request to provider failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(f"Provider returned a non-JSON body from {self._base_url}") from e
        text = self._parse_response(data)
        logger.debug("provider response len=%d", len(text))
        return text


def _error_detail(response: httpx.Response) -> str:
    """Best-effort error message from a JSON error body ({"error": {"message": ...}})."""
    try:
        message = response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return ""
    return message if isinstance(message, str) else ""


# ---------------------------------------------------------------------------
# EchoProvider: returns the prompt unchanged; no network calls
# ---------------------------------------------------------------------------

class EchoProvider:
    """Returns the prompt text as-is.

    Lets you verify the scheduler, rotation and rendering end-to-end without
    a running model. Use a stub provider in tests when you need controlled
    responses or failures.
    """

    async def __call__(
        self, system: str, prompt: str, temperature: float, api_key: str
    ) -> str:
        logger.debug("EchoProvider prompt_len=%d", len(prompt))
        return prompt


def build_provider(
    provider_format: ProviderFormat, provider_url: str, model: str, timeout: float = 30.0
) -> TextProvider:
    """Construct the provider named by configuration."""
    if provider_format == "echo":
        return EchoProvider()
    return HttpProvider(
        provider_url=provider_url,
        provider_format=provider_format,
        model=model,
        timeout=timeout,
    )


# ---------------------------------------------------------------------------
# ProviderError: raised by HttpProvider for all connection and protocol failures
# ---------------------------------------------------------------------------

class ProviderError(RuntimeError):
    """Raised when the provider cannot be reached or returns an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
