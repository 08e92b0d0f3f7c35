"""vLLM HTTP backend.

Connects to a running vLLM server through its OpenAI-compatible API.
vLLM loads its model at server startup, so load() only verifies that the
configured model is being served.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncGenerator

import httpx

from . import GenerationError, ModelLoadError
from .base import GenerationOptions, InferenceBackend

logger = logging.getLogger(__name__)


class VLLMBackend(InferenceBackend):
    """HTTP client backend for vLLM chat completion.

    Example:
        backend = VLLMBackend("Qwen/Qwen1.5-0.5B-Chat")
        await backend.load()  # Verifies the model is served

        async for token in backend.generate_stream(messages):
            print(token, end="")

        await backend.unload()

    Attributes:
        _name: The model name served by vLLM
        _endpoint: vLLM API base URL
        _timeout: Request timeout in seconds
        _client: httpx.AsyncClient for making requests
    """

    def __init__(
        self,
        model_name: str,
        endpoint: str = "http://localhost:8000",
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
        return self._client is not None

    async def load(self) -> None:
        """Initialize the HTTP client and check /v1/models lists our model.

        Raises:
            ModelLoadError: If the model is not served or vLLM is not reachable
        """
        if self._client is not None:
            return

        client = httpx.AsyncClient(timeout=self._timeout)

        try:
            resp = await client.get(f"{self._endpoint}/v1/models")

            if resp.status_code != 200:
                await client.aclose()
                raise ModelLoadError(
                    f"Cannot list models from vLLM at {self._endpoint}. Is vLLM running?"
                )

            available_models = [m["id"] for m in resp.json().get("data", [])]

            if self._name not in available_models:
                await client.aclose()
                models_str = ", ".join(available_models) if available_models else "none"
                raise ModelLoadError(
                    f"Model '{self._name}' not available in vLLM. Available models: {models_str}"
                )

            self._client = client
            logger.info(f"vLLM model ready: {self._name} at {self._endpoint}")

        except httpx.ConnectError as e:
            await client.aclose()
            raise ModelLoadError(
                f"Cannot connect to vLLM at {self._endpoint}. Is vLLM running?"
            ) from e
        except httpx.TimeoutException as e:
            await client.aclose()
            raise ModelLoadError(f"Timeout connecting to vLLM at {self._endpoint}") from e

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
        """Request body for /v1/chat/completions.

        repetition_penalty is a vLLM extension to the OpenAI schema.
        """
        payload: dict[str, Any] = {
            "model": self._name,
            "messages": list(messages),
            "stream": True,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "repetition_penalty": options.repeat_penalty,
        }
        if options.json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def generate_stream(
        self,
        messages: list[dict[str, str]],
        options: GenerationOptions | None = None,
    ) -> AsyncGenerator[str, None]:
        """Stream tokens from the chat completions endpoint (SSE).

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
            raise RuntimeError("VLLMBackend not loaded. Call load() before generate_stream()")

        assert self._client is not None

        payload = self.build_payload(messages, options or GenerationOptions())

        try:
            async with self._client.stream(
                "POST",
                f"{self._endpoint}/v1/chat/completions",
                json=payload,
            ) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    error_msg = f"vLLM API error (status {response.status_code})"
                    try:
                        data = json.loads(body)
                        if "error" in data:
                            error_detail = data["error"]
                            if isinstance(error_detail, dict):
                                error_detail = error_detail.get("message", error_detail)
                            error_msg = f"vLLM error: {error_detail}"
                    except (json.JSONDecodeError, TypeError):
                        pass
                    raise GenerationError(error_msg)

                async for line in response.aiter_lines():
                    # SSE format: "data: {...}"
                    if not line.startswith("data: "):
                        continue

                    data_str = line[6:]
                    if data_str.strip() == "[DONE]":
                        break

                    try:
                        data = json.loads(data_str)
                    except json.JSONDecodeError:
                        continue

                    choices = data.get("choices", [])
                    if not choices:
                        continue

                    content = choices[0].get("delta", {}).get("content", "")
                    if content:
                        yield content

                    if choices[0].get("finish_reason") is not None:
                        break

        except httpx.ConnectError as e:
            raise GenerationError(f"Lost connection to vLLM at {self._endpoint}") from e
        except httpx.TimeoutException as e:
            raise GenerationError("Timeout during generation - vLLM may be overloaded") from e

    @classmethod
    async def is_available(cls, endpoint: str = "http://localhost:8000") -> bool:
        """Check if vLLM answers GET /v1/models within 2 seconds."""
        try:
            async with httpx.AsyncClient(timeout=2.0) as client:
                response = await client.get(f"{endpoint.rstrip('/')}/v1/models")
                return response.status_code == 200
        except httpx.HTTPError:
            return False


__all__ = ["VLLMBackend"]
