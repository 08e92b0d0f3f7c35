"""Ollama HTTP backend.

Talks to a running Ollama server. Ollama loads and evicts models on its
own; this backend only checks that the model exists and streams chat
completions from it.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncGenerator

import httpx

from . import GenerationError, ModelLoadError
from .base import GenerationOptions, InferenceBackend

logger = logging.getLogger(__name__)


def _error_message(body: bytes | str, default: str) -> str:
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return default
    if isinstance(data, dict) and "error" in data:
        return f"Ollama error: {data['error']}"
    return default


class OllamaBackend(InferenceBackend):
    """HTTP client backend for Ollama chat models.

    Example:
        backend = OllamaBackend("qwen2.5:0.5b")
        await backend.load()  # Verifies the model exists in Ollama

        async for token in backend.generate_stream(messages):
            print(token, end="")

        await backend.unload()  # Closes HTTP client

    Attributes:
        _name: The Ollama model name (e.g., "qwen2.5:0.5b")
        _endpoint: Ollama API base URL
        _timeout: Request timeout in seconds
        _client: httpx.AsyncClient for making requests
    """

    def __init__(
        self,
        model_name: str,
        endpoint: str = "http://localhost:11434",
        timeout: float = 300.0,
    ) -> None:
        self._name = model_name
        self._endpoint = endpoint.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @property
    def model_name(self) -> str:
        return self._name

    @property
    def is_loaded(self) -> bool:
        """Check if the HTTP client is initialized.

        Ollama may still page the model in on the first request.
        """
        return self._client is not None

    async def load(self) -> None:
        """Initialize the HTTP client and verify the model via /api/show.

        Raises:
            ModelLoadError: If the model is not found or Ollama is not reachable
        """
        if self._client is not None:
            return

        client = httpx.AsyncClient(timeout=self._timeout)

        try:
            resp = await client.post(f"{self._endpoint}/api/show", json={"name": self._name})

            if resp.status_code != 200:
                await client.aclose()
                raise ModelLoadError(
                    _error_message(resp.content, f"Model '{self._name}' not found in Ollama")
                )

            self._client = client
            logger.info(f"Ollama model ready: {self._name} at {self._endpoint}")

        except httpx.ConnectError as e:
            await client.aclose()
            raise ModelLoadError(
                f"Cannot connect to Ollama at {self._endpoint}. "
                "Is Ollama running? Try: ollama serve"
            ) from e
        except httpx.TimeoutException as e:
            await client.aclose()
            raise ModelLoadError(f"Timeout connecting to Ollama at {self._endpoint}") from e

    async def unload(self) -> None:
        """Close the HTTP client. Idempotent."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def build_payload(
        self,
        messages: list[dict[str, str]],
        options: GenerationOptions,
    ) -> dict[str, Any]:
        """Request body for /api/chat."""
        payload: dict[str, Any] = {
            "model": self._name,
            "messages": list(messages),
            "stream": True,
            "options": {
                "temperature": options.temperature,
                "num_predict": options.max_tokens,
                "repeat_penalty": options.repeat_penalty,
            },
        }
        if options.json_mode:
            payload["format"] = "json"
        return payload

    async def generate_stream(
        self,
        messages: list[dict[str, str]],
        options: GenerationOptions | None = None,
    ) -> AsyncGenerator[str, None]:
        """Stream tokens from /api/chat.

        Args:
            messages: List of {"role": "user"|"assistant"|"system", "content": str}
            options: Decoding settings (defaults to GenerationOptions())

        Yields:
            String chunks of generated text

        Raises:
            RuntimeError: If backend not loaded (call load() first)
            GenerationError: If the streaming request fails
        """
        if not self.is_loaded:
            raise RuntimeError("OllamaBackend not loaded. Call load() before generate_stream()")

        assert self._client is not None

        payload = self.build_payload(messages, options or GenerationOptions())

        try:
            async with self._client.stream(
                "POST",
                f"{self._endpoint}/api/chat",
                json=payload,
            ) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    raise GenerationError(
                        _error_message(body, f"Ollama API error (status {response.status_code})")
                    )

                async for line in response.aiter_lines():
                    if not line:
                        continue

                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        continue

                    content = data.get("message", {}).get("content", "")
                    if content:
                        yield content

                    if data.get("done", False):
                        break

        except httpx.ConnectError as e:
            raise GenerationError(f"Lost connection to Ollama at {self._endpoint}") from e
        except httpx.TimeoutException as e:
            raise GenerationError("Timeout during generation - Ollama may be overloaded") from e

    @classmethod
    async def is_available(cls, endpoint: str = "http://localhost:11434") -> bool:
        """Check if Ollama answers GET /api/tags within 2 seconds."""
        try:
            async with httpx.AsyncClient(timeout=2.0) as client:
                response = await client.get(f"{endpoint.rstrip('/')}/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False


__all__ = ["OllamaBackend"]
