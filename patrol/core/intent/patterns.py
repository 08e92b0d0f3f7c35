"""Keyword tables and task-type classification for patrol intent resolution.

All matching here is case-insensitive substring matching against
lower-cased text. Keyword tables are evaluated in the order declared.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

from .taxonomy import IntentConfidence
from .templates import DEFAULT_TEMPLATE_ID, TASK_TEMPLATES, TaskTemplate

logger = logging.getLogger(__name__)

GREETING_KEYWORDS: tuple[str, ...] = (
    "你好",
    "您好",
    "早上好",
    "下午好",
    "晚上好",
    "hi",
    "hello",
    "good morning",
    "good afternoon",
    "good evening",
)

# Narrower set used to recognise a greeting inside a model "reply" field
REPLY_GREETING_KEYWORDS: tuple[str, ...] = ("您好", "你好", "hi", "hello")

CREATE_TASK_KEYWORDS: tuple[str, ...] = (
    "新建任务",
    "创建任务",
    "建个任务",
    "添加任务",
    "生成任务",
    "帮我创建",
    "帮我建",
    "巡检",
    "检查",
    "监控",
    "create",
    "new",
    "task",
    "inspection",
    "check",
    "monitor",
    "地铁",
    "隧道",
    "轨道",
    "线路",
)

QUERY_TASK_KEYWORDS: tuple[str, ...] = (
    "查询任务",
    "查看任务",
    "任务列表",
    "有哪些任务",
    "任务状态",
    "任务进度",
    "query",
    "list",
    "status",
    "progress",
    "查看",
    "查询",
    "了解",
)

# Facility terms that still imply an inspection task when nothing else matched
DOMAIN_ANCHOR_KEYWORDS: tuple[str, ...] = ("地铁", "隧道", "巡检", "车站", "站台", "区间")


def find_keyword(keywords: Iterable[str], *texts: str) -> str | None:
    """Return the first keyword found in any of the texts.

    Args:
        keywords: Keywords in priority order
        texts: Texts to search (lower-cased before matching)

    Returns:
        The matching keyword, or None
    """
    lowered = [t.lower() for t in texts if t]
    for keyword in keywords:
        if any(keyword in text for text in lowered):
            return keyword
    return None


@dataclass(frozen=True)
class TemplateMatch:
    """Result of task-type classification.

    Attributes:
        template: The selected template
        confidence: KEYWORD when a keyword hit, DEFAULT otherwise
        keyword: The keyword that selected the template (None for default)
    """

    template: TaskTemplate
    confidence: float
    keyword: str | None = None

    @property
    def matched(self) -> bool:
        """Whether a keyword selected the template (not the default path)."""
        return self.keyword is not None


class TaskTypeClassifier:
    """Select a task template from free text.

    Templates are checked in registry order and the first one with any
    keyword in the text wins, regardless of how many keywords other
    templates would hit.
    """

    def __init__(
        self,
        templates: Mapping[str, TaskTemplate] = TASK_TEMPLATES,
        default_id: str = DEFAULT_TEMPLATE_ID,
    ) -> None:
        if default_id not in templates:
            raise ValueError(f"Default template {default_id!r} is not registered")
        self.templates = templates
        self.default_id = default_id

    def classify(self, text: str) -> TemplateMatch:
        """Classify text against the template keywords.

        Args:
            text: User input text

        Returns:
            TemplateMatch for the first matching template, or the default
            template with DEFAULT confidence
        """
        text_lower = (text or "").lower()
        for template in self.templates.values():
            keyword = find_keyword(template.keywords, text_lower)
            if keyword is not None:
                logger.debug(f"Template {template.id} matched on {keyword!r}")
                return TemplateMatch(template, IntentConfidence.KEYWORD, keyword)

        return TemplateMatch(self.templates[self.default_id], IntentConfidence.DEFAULT)


__all__ = [
    "CREATE_TASK_KEYWORDS",
    "DOMAIN_ANCHOR_KEYWORDS",
    "GREETING_KEYWORDS",
    "QUERY_TASK_KEYWORDS",
    "REPLY_GREETING_KEYWORDS",
    "TaskTypeClassifier",
    "TemplateMatch",
    "find_keyword",
]
