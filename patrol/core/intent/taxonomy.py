"""Intent taxonomy, confidence levels and result types for the patrol assistant.

This module defines the intent types a user utterance can resolve to, the
confidence constants used by every resolution stage, and the two value
objects handed back to callers: TaskParams and IntentResult.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class IntentType(str, Enum):
    """Core intent types for user input classification."""

    CREATE_TASK = "CreateTask"  # Create an inspection task
    GREETING = "Greeting"  # Hello / small talk
    QUERY_TASK = "QueryTask"  # Ask about existing tasks
    UNKNOWN = "Unknown"  # Nothing recognised

    @property
    def label(self) -> str:
        """Chinese label used in the model prompt and model output."""
        return _LABELS[self]

    @classmethod
    def from_label(cls, value: Any) -> "IntentType":
        """Map a model-produced label to an IntentType.

        Accepts the Chinese labels from the system prompt as well as the
        enum values and names ("CreateTask", "CREATE_TASK"). Anything else
        maps to UNKNOWN.
        """
        text = str(value or "").strip()
        if not text:
            return cls.UNKNOWN
        for intent, label in _LABELS.items():
            if text == label:
                return intent
        normalized = text.replace("_", "").replace("-", "").replace(" ", "").lower()
        for intent in cls:
            if normalized in (intent.value.lower(), intent.name.replace("_", "").lower()):
                return intent
        return cls.UNKNOWN


_LABELS: dict[IntentType, str] = {
    IntentType.CREATE_TASK: "新建任务",
    IntentType.GREETING: "打招呼",
    IntentType.QUERY_TASK: "查询任务",
    IntentType.UNKNOWN: "未知",
}


class IntentConfidence:
    """Confidence levels assigned by the resolution stages.

    - GREETING (0.9): greeting keyword or greeting reply
    - KEYWORD (0.8): create-task keyword, or a template keyword hit
    - THRESHOLD (0.7): minimum confidence to actually create a task
    - QUERY (0.7): query keyword
    - TEMPLATE (0.6): template keyword hit without a create keyword
    - DEFAULT (0.5): defaults, domain anchors and unknown input
    """

    GREETING = 0.9
    KEYWORD = 0.8
    THRESHOLD = 0.7
    QUERY = 0.7
    TEMPLATE = 0.6
    DEFAULT = 0.5


# Replies shared by the fallback resolver, the completer and the policy
GREETING_REPLY = "您好！我是智能任务助手，可以帮您创建和管理任务。请告诉我您需要什么帮助？"
QUERY_REPLY = "我可以帮您查询任务信息，请告诉我您想了解什么？"
ACKNOWLEDGE_REPLY = "我理解了您的需求"
PROCESSING_REPLY = "我理解了您的需求，正在为您处理..."
ANCHOR_REPLY = (
    "检测到您提到地铁隧道巡检相关内容，已为您创建默认巡检任务。"
    "您可以告诉我具体的起始位置和距离要求。"
)
CLARIFY_REPLY = "我似乎理解您想创建一个任务，但不太确定。您可以换个方式，或者提供更具体的信息吗？"


@dataclass(frozen=True)
class TaskParams:
    """Parameters for a task-creation request.

    Attributes:
        task_name: Task name (non-empty once complete)
        start_pos: Start position, e.g. "东门" or "隧道入口"
        task_trip: Distance in meters (> 0 once complete)
        executor: Who runs the task, e.g. "巡检机器人"
        remark: Free-form remark (may be empty)
        task_type: Template id the params were derived from (provenance)
        confidence: Classifier confidence for task_type
    """

    task_name: str = ""
    start_pos: str = ""
    task_trip: int = 0
    executor: str = ""
    remark: str = ""
    task_type: str | None = None
    confidence: float | None = None

    def is_complete(self) -> bool:
        """Check that every required field is populated."""
        return bool(
            self.task_name and self.start_pos and self.executor and self.task_trip > 0
        )

    def missing_fields(self) -> list[str]:
        """Names of required fields that are empty."""
        missing = [
            name for name in ("task_name", "start_pos", "executor") if not getattr(self, name)
        ]
        if self.task_trip <= 0:
            missing.append("task_trip")
        return missing

    def to_create_payload(self) -> dict[str, Any]:
        """Body accepted by the task-creation API."""
        return {
            "taskName": self.task_name,
            "startPos": self.start_pos,
            "taskTrip": self.task_trip,
            "executor": self.executor,
            "remark": self.remark,
        }

    def to_dict(self) -> dict[str, Any]:
        """Create payload plus provenance tags, omitting unset tags."""
        data = self.to_create_payload()
        if self.task_type is not None:
            data["taskType"] = self.task_type
        if self.confidence is not None:
            data["confidence"] = self.confidence
        return data


@dataclass(frozen=True)
class IntentResult:
    """Result of intent resolution.

    Attributes:
        intent: The resolved intent type
        confidence: Confidence score 0.0-1.0
        reply: Human-readable reply, never empty
        params: Task parameters (only for CREATE_TASK, otherwise None)
        should_create_task: Whether the caller should create the task
        source: Which stage produced the result (model, completed, fallback)
    """

    intent: IntentType
    confidence: float
    reply: str
    params: TaskParams | None = None
    should_create_task: bool = False
    source: str = field(default="unknown", compare=False)

    @classmethod
    def greeting(cls, reply: str = GREETING_REPLY, source: str = "fallback") -> "IntentResult":
        """Create a greeting result."""
        return cls(
            intent=IntentType.GREETING,
            confidence=IntentConfidence.GREETING,
            reply=reply or GREETING_REPLY,
            source=source,
        )

    @classmethod
    def unknown(cls, reply: str = PROCESSING_REPLY, source: str = "fallback") -> "IntentResult":
        """Create a result for input nothing could classify."""
        return cls(
            intent=IntentType.UNKNOWN,
            confidence=IntentConfidence.DEFAULT,
            reply=reply or ACKNOWLEDGE_REPLY,
            source=source,
        )

    def with_changes(self, **changes: Any) -> "IntentResult":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def is_actionable(self) -> bool:
        """Check that the result asks for a task with complete params."""
        return (
            self.should_create_task
            and self.intent == IntentType.CREATE_TASK
            and self.params is not None
            and self.params.is_complete()
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the camelCase keys of the model output format."""
        return {
            "intent": self.intent.value,
            "confidence": self.confidence,
            "params": self.params.to_dict() if self.params is not None else {},
            "reply": self.reply,
            "shouldCreateTask": self.should_create_task,
        }


def confirmation_reply(params: TaskParams) -> str:
    """Reply confirming a created task."""
    return (
        f"已为您创建{params.task_name}，起始位置：{params.start_pos}，"
        f"距离：{params.task_trip}米，执行人：{params.executor}"
    )
