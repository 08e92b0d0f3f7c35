"""Generative model backends for the patrol assistant.

This package provides HTTP adapters for locally served chat models:
- OllamaBackend: Ollama's /api/chat endpoint
- VLLMBackend: vLLM's OpenAI-compatible /v1/chat/completions endpoint

Usage:
    from patrol.config import AppConfig
    from patrol.core.backends import create_backend

    backend = create_backend(AppConfig())
    await backend.load()

    async for token in backend.generate_stream(messages):
        print(token, end="")

    await backend.unload()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import GenerationOptions, InferenceBackend

if TYPE_CHECKING:
    from ...config import AppConfig


# Exceptions
class BackendError(Exception):
    """Base exception for backend errors."""

    pass


class ModelLoadError(BackendError):
    """Model is missing or its server cannot be reached."""

    pass


class DependencyError(BackendError):
    """Required dependency not installed."""

    pass


class GenerationError(BackendError):
    """Error during text generation."""

    pass


def create_backend(config: "AppConfig") -> InferenceBackend:
    """Create the backend selected by the configuration.

    Uses lazy imports to avoid loading unused backends.

    Args:
        config: Application configuration (backend, model name, endpoints)

    Returns:
        Configured InferenceBackend instance (not yet loaded).

    Raises:
        ValueError: If the backend name is unknown.
    """
    if config.backend == "ollama":
        from .ollama import OllamaBackend

        return OllamaBackend(config.model_name, endpoint=config.ollama_endpoint)

    elif config.backend == "vllm":
        from .vllm import VLLMBackend

        return VLLMBackend(config.model_name, endpoint=config.vllm_endpoint)

    else:
        raise ValueError(f"Unknown backend: {config.backend}")


__all__ = [
    # Base class
    "GenerationOptions",
    "InferenceBackend",
    # Backends (lazy imported)
    "OllamaBackend",
    "VLLMBackend",
    # Factory
    "create_backend",
    # Exceptions
    "BackendError",
    "ModelLoadError",
    "DependencyError",
    "GenerationError",
]


def __getattr__(name: str):
    """Lazy import backends."""
    if name == "OllamaBackend":
        from .ollama import OllamaBackend
        return OllamaBackend
    if name == "VLLMBackend":
        from .vllm import VLLMBackend
        return VLLMBackend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
