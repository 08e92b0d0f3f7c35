"""Rule-based fallback resolution.

Resolves user input without the generative model, using keyword tables, the
task-type classifier and the parameter extractor. Used when the model is
unavailable, returns nothing parseable, or returns an unusable object.

Branches are checked in strict priority order and the first hit wins:
greeting, create-task keyword, query keyword, template keyword, domain
anchor, unknown.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from .entities import ParamExtractor
from .patterns import (
    CREATE_TASK_KEYWORDS,
    DOMAIN_ANCHOR_KEYWORDS,
    GREETING_KEYWORDS,
    QUERY_TASK_KEYWORDS,
    TaskTypeClassifier,
    TemplateMatch,
    find_keyword,
)
from .taxonomy import (
    ANCHOR_REPLY,
    QUERY_REPLY,
    IntentConfidence,
    IntentResult,
    IntentType,
    TaskParams,
    confirmation_reply,
)

logger = logging.getLogger(__name__)


class FallbackResolver:
    """Deterministic keyword and pattern based resolver.

    Attributes:
        classifier: Task-type classifier over the template registry
        extractor: Parameter extractor
    """

    def __init__(
        self,
        classifier: TaskTypeClassifier | None = None,
        extractor: ParamExtractor | None = None,
    ) -> None:
        self.classifier = classifier or TaskTypeClassifier()
        self.extractor = extractor or ParamExtractor()

    def generate_task_params(self, text: str, match: TemplateMatch | None = None) -> TaskParams:
        """Build complete task parameters for text.

        The classified template supplies defaults, extracted fields override
        them one by one, and an unchanged default task name is replaced by
        the template's display name.

        Args:
            text: User input text
            match: Classification of text, when the caller already has one

        Returns:
            Complete TaskParams tagged with the template id and confidence
        """
        if match is None:
            match = self.classifier.classify(text)
        template = match.template
        params = self.extractor.extract(text).merge_into(template.default_params)

        if not params.task_name or params.task_name == template.default_params.task_name:
            params = replace(params, task_name=template.display_name)

        return replace(params, task_type=template.id, confidence=match.confidence)

    def resolve(self, raw_text: str, user_input: str) -> IntentResult:
        """Resolve intent from raw model text and the original user input.

        Args:
            raw_text: Raw model output (empty string when there is none)
            user_input: Original user message

        Returns:
            A complete IntentResult
        """
        raw_text = raw_text or ""
        user_input = user_input or ""

        keyword = find_keyword(GREETING_KEYWORDS, raw_text, user_input)
        if keyword is not None:
            logger.info(f"Fallback: greeting ({keyword!r})")
            return IntentResult.greeting()

        keyword = find_keyword(CREATE_TASK_KEYWORDS, raw_text, user_input)
        if keyword is not None:
            params = self.generate_task_params(user_input)
            logger.info(f"Fallback: create task ({keyword!r}) -> {params.task_type}")
            return self._create(params, IntentConfidence.KEYWORD, confirmation_reply(params))

        keyword = find_keyword(QUERY_TASK_KEYWORDS, raw_text, user_input)
        if keyword is not None:
            logger.info(f"Fallback: query task ({keyword!r})")
            return IntentResult(
                intent=IntentType.QUERY_TASK,
                confidence=IntentConfidence.QUERY,
                reply=QUERY_REPLY,
                source="fallback",
            )

        match = self.classifier.classify(user_input)
        if match.matched:
            params = self.generate_task_params(user_input, match)
            logger.info(f"Fallback: template keyword {match.keyword!r} -> {params.task_type}")
            return self._create(params, IntentConfidence.TEMPLATE, confirmation_reply(params))

        # Anchors are checked case-sensitively against the user input only
        if any(anchor in user_input for anchor in DOMAIN_ANCHOR_KEYWORDS):
            template = self.classifier.templates[self.classifier.default_id]
            params = replace(
                template.default_params,
                task_type=template.id,
                confidence=IntentConfidence.DEFAULT,
            )
            logger.info("Fallback: domain anchor, default inspection task")
            return self._create(params, IntentConfidence.DEFAULT, ANCHOR_REPLY)

        logger.info("Fallback: no keyword matched")
        return IntentResult.unknown()

    def _create(self, params: TaskParams, confidence: float, reply: str) -> IntentResult:
        return IntentResult(
            intent=IntentType.CREATE_TASK,
            confidence=confidence,
            reply=reply,
            params=params,
            should_create_task=True,
            source="fallback",
        )


__all__ = ["FallbackResolver"]
