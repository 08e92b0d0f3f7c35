"""Generative pipeline: a lazily loaded backend behind a load guard.

Loading a model (or verifying it on a model server) is expensive, so the
pipeline loads its backend on first use and reuses it afterwards. Callers
racing on first use wait on the same lock; only one of them loads.
"""

from __future__ import annotations

import asyncio
import logging
import time

from .backends import InferenceBackend
from .backends.base import GenerationOptions

logger = logging.getLogger(__name__)


class GenerativePipeline:
    """One backend, loaded at most once, used for single-shot generation.

    Example:
        pipeline = GenerativePipeline(create_backend(config), config.generation.to_options())
        text = await pipeline.invoke(messages)
        await pipeline.close()

    Attributes:
        backend: The inference backend
        options: Decoding settings applied to every invocation
    """

    def __init__(
        self,
        backend: InferenceBackend,
        options: GenerationOptions | None = None,
    ) -> None:
        self.backend = backend
        self.options = options or GenerationOptions()
        self._lock = asyncio.Lock()
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def ensure_loaded(self) -> None:
        """Load the backend unless a previous call already did.

        A failed load is not remembered; the next call tries again.

        Raises:
            ModelLoadError: If the backend cannot load its model
        """
        if self._loaded:
            return

        async with self._lock:
            if self._loaded:
                return

            logger.info(f"Loading model {self.backend.model_name}...")
            start = time.monotonic()
            await self.backend.load()
            self._loaded = True
            logger.info(
                f"Model {self.backend.model_name} loaded in {time.monotonic() - start:.2f}s"
            )

    async def invoke(self, messages: list[dict[str, str]]) -> str:
        """Generate a complete reply for a chat.

        Args:
            messages: Chat messages, system prompt first

        Returns:
            Generated text (new tokens only), stripped

        Raises:
            ModelLoadError: If the backend cannot load
            GenerationError: If generation fails
        """
        await self.ensure_loaded()

        chunks: list[str] = []
        async for chunk in self.backend.generate_stream(messages, self.options):
            chunks.append(chunk)

        text = "".join(chunks).strip()
        logger.debug(f"Model output ({len(text)} chars): {text}")
        return text

    async def close(self) -> None:
        """Unload the backend. Safe to call when nothing was loaded."""
        async with self._lock:
            if self._loaded:
                await self.backend.unload()
                self._loaded = False


__all__ = ["GenerativePipeline"]
