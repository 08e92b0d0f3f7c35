"""Intent resolution orchestrator.

One resolution is strictly sequential:
1. Ask the generative model for a JSON intent object (one call, no retries)
2. Pull the first parseable object out of the raw output
3. Complete it (or delegate to the rule-based fallback)
4. Gate task creation on confidence

If the model call fails for any reason the fallback resolver answers from
the user text alone. resolve() never raises.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .candidates import extract_json_object
from .completion import ResultCompleter
from .entities import ParamExtractor
from .fallback import FallbackResolver
from .policy import DecisionPolicy
from .taxonomy import IntentResult

if TYPE_CHECKING:
    from ...config import AppConfig
    from ..pipeline import GenerativePipeline

logger = logging.getLogger(__name__)

# Security: Maximum input length to bound regex and model work
MAX_INPUT_LENGTH = 10_000


INTENT_SYSTEM_PROMPT = """\
你是一个专门用于解析用户意图并输出JSON的AI。你的唯一任务是分析用户信息，\
并严格按照下面的格式只返回一个JSON对象，禁止返回任何其他解释、问候或文字。

// 1. 如果用户意图是创建任务，像这样填充JSON:
{
  "intent": "新建任务",
  "confidence": 0.9,
  "params": {
    "taskName": "从用户输入中提取的任务名",
    "startPos": "从用户输入中提取的起始点",
    "taskTrip": "从用户输入中提取的距离(数字)",
    "executor": "从用户输入中提取的执行人",
    "remark": "根据用户输入生成的备注"
  },
  "reply": "已为您创建任务。",
  "shouldCreateTask": true
}

// 2. 如果用户只是打招呼或闲聊，像这样填充JSON:
{
  "intent": "打招呼",
  "confidence": 0.9,
  "params": {},
  "reply": "您好！我是您的地铁巡检助手，有什么可以帮您的吗？",
  "shouldCreateTask": false
}

// 3. 如果用户想查询已有任务，像这样填充JSON:
{
  "intent": "查询任务",
  "confidence": 0.8,
  "params": {},
  "reply": "我可以帮您查询任务信息，请告诉我您想了解什么？",
  "shouldCreateTask": false
}"""


def build_messages(text: str) -> list[dict[str, str]]:
    """Chat messages for one intent request."""
    return [
        {"role": "system", "content": INTENT_SYSTEM_PROMPT},
        {"role": "user", "content": text},
    ]


class IntentResolver:
    """Resolve user text to an IntentResult.

    Attributes:
        pipeline: Generative pipeline, or None to resolve with rules only
        fallback: Rule-based resolver
        completer: Completes partial model objects
        policy: Confidence gate for task creation
    """

    def __init__(
        self,
        pipeline: "GenerativePipeline | None" = None,
        fallback: FallbackResolver | None = None,
        completer: ResultCompleter | None = None,
        policy: DecisionPolicy | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.fallback = fallback or FallbackResolver()
        self.completer = completer or ResultCompleter(self.fallback)
        self.policy = policy or DecisionPolicy(fallback=self.fallback)

    async def resolve(self, text: str) -> IntentResult:
        """Resolve user text through the model, falling back to rules.

        Args:
            text: User input text

        Returns:
            A final IntentResult (never raises)
        """
        text = self._prepare(text)

        if self.pipeline is None or not text:
            return self.resolve_offline(text)

        try:
            raw_text = await self.pipeline.invoke(build_messages(text))
        except Exception as e:
            logger.warning(f"Generative pipeline failed, using fallback: {e}")
            result = self.fallback.resolve("", text)
            logger.info(
                f"Resolved by fallback {result.intent.value} ({result.confidence:.2f}), "
                f"create={result.should_create_task}"
            )
            return result

        payload = extract_json_object(raw_text)
        result = self.completer.complete(payload, raw_text, text)
        result = self.policy.apply(result, text)
        logger.info(
            f"Resolved {result.intent.value} ({result.confidence:.2f}, {result.source}), "
            f"create={result.should_create_task}"
        )
        return result

    def resolve_offline(self, text: str) -> IntentResult:
        """Resolve with the rule-based fallback only (no model call).

        The decision policy still applies, so a low-confidence create
        becomes a clarification request.
        """
        text = self._prepare(text)
        result = self.policy.apply(self.fallback.resolve("", text), text)
        logger.info(
            f"Resolved offline {result.intent.value} ({result.confidence:.2f}), "
            f"create={result.should_create_task}"
        )
        return result

    async def close(self) -> None:
        """Release the pipeline's backend, if any."""
        if self.pipeline is not None:
            await self.pipeline.close()

    @staticmethod
    def _prepare(text: str) -> str:
        text = (text or "").strip()
        if len(text) > MAX_INPUT_LENGTH:
            logger.warning(f"Input truncated from {len(text)} to {MAX_INPUT_LENGTH} chars")
            text = text[:MAX_INPUT_LENGTH]
        return text


def create_resolver(
    config: "AppConfig | None" = None,
    offline: bool = False,
) -> IntentResolver:
    """Factory function to create an IntentResolver from configuration.

    Args:
        config: Application configuration (defaults to AppConfig())
        offline: Skip the generative model and use rules only

    Returns:
        Configured IntentResolver instance (backend not yet loaded)
    """
    from ...config import AppConfig

    config = config or AppConfig()
    fallback = FallbackResolver(
        extractor=ParamExtractor(scale_kilometers=config.scale_kilometers),
    )
    policy = DecisionPolicy(
        threshold=config.confidence_threshold,
        fallback=fallback,
    )

    pipeline = None
    if not offline:
        from ..backends import create_backend
        from ..pipeline import GenerativePipeline

        pipeline = GenerativePipeline(create_backend(config), config.generation.to_options())

    return IntentResolver(pipeline=pipeline, fallback=fallback, policy=policy)


def resolve_intent(text: str, config: "AppConfig | None" = None) -> IntentResult:
    """Resolve user text synchronously.

    Builds a resolver, runs one resolution on a fresh event loop and
    releases the backend. Must not be called from inside a running loop;
    async callers should use IntentResolver.resolve().

    Args:
        text: User input text
        config: Application configuration (defaults to AppConfig())

    Returns:
        A final IntentResult
    """

    async def _run() -> IntentResult:
        resolver = create_resolver(config)
        try:
            return await resolver.resolve(text)
        finally:
            await resolver.close()

    return asyncio.run(_run())


__all__ = [
    "INTENT_SYSTEM_PROMPT",
    "MAX_INPUT_LENGTH",
    "IntentResolver",
    "build_messages",
    "create_resolver",
    "resolve_intent",
]
