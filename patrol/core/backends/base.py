"""Abstract base class for generative text backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncGenerator


@dataclass(frozen=True)
class GenerationOptions:
    """Decoding settings for one generation request.

    The defaults are near-greedy: intent classification wants the same
    JSON for the same input, not creative variation.

    Attributes:
        max_tokens: Maximum new tokens (a JSON answer is short)
        temperature: Sampling temperature
        repeat_penalty: Repetition penalty (1.0 disables it)
        json_mode: Ask the server to constrain output to JSON if supported
    """

    max_tokens: int = 256
    temperature: float = 0.01
    repeat_penalty: float = 1.1
    json_mode: bool = True


class InferenceBackend(ABC):
    """Abstract base class for generative text backends.

    Lifecycle:
    1. Create backend instance with model name and endpoint
    2. Call load() to connect and verify the model
    3. Call generate_stream() to generate responses
    4. Call unload() to release the connection (must be idempotent)
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name."""
        ...

    @property
    @abstractmethod
    def is_loaded(self) -> bool:
        """Check if the backend is ready to generate."""
        ...

    @abstractmethod
    async def load(self) -> None:
        """Connect to the server and verify the model.

        Raises:
            ModelLoadError: If the model is missing or the server unreachable
        """
        ...

    @abstractmethod
    async def unload(self) -> None:
        """Release the connection.

        Must be idempotent - safe to call multiple times.
        """
        ...

    @abstractmethod
    async def generate_stream(
        self,
        messages: list[dict[str, str]],
        options: GenerationOptions | None = None,
    ) -> AsyncGenerator[str, None]:
        """Stream generated text, new tokens only.

        Args:
            messages: List of {"role": "user"|"assistant"|"system", "content": str}
            options: Decoding settings (defaults to GenerationOptions())

        Yields:
            String chunks

        Raises:
            RuntimeError: If not loaded
            GenerationError: If generation fails mid-stream
        """
        ...
        # Make this a generator
        yield ""

    @classmethod
    @abstractmethod
    async def is_available(cls, endpoint: str) -> bool:
        """Check if the server behind this backend is reachable."""
        ...


__all__ = ["GenerationOptions", "InferenceBackend"]
