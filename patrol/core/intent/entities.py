"""Task parameter extraction for patrol intent resolution.

Pulls task name, start position, distance, executor and remark out of free
text. Every field has its own ordered list of extraction rules; within a
field the first rule that matches wins, and fields never affect each other.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any

from .taxonomy import TaskParams

logger = logging.getLogger(__name__)

# Character run that stops at whitespace and Chinese/ASCII punctuation
_TOKEN = r"[^\s,，。]+"
# Same, but also stops at the characters of "任务"
_NAME_TOKEN = r"[^任务\s,，。]+"
_METERS = r"\s*(米|m|M)"


@dataclass(frozen=True)
class ExtractionRule:
    """One pattern for one field.

    Attributes:
        field: TaskParams field the rule fills
        pattern: Compiled regex; group 1 is the value, or the whole match
            when the pattern has no groups
        unit: Distance unit captured by the rule ("m" or "km"), None for text
    """

    field: str
    pattern: re.Pattern[str]
    unit: str | None = None

    def apply(self, text: str) -> str | None:
        """Return the captured value, or None if the rule does not match."""
        match = self.pattern.search(text)
        if match is None:
            return None
        if self.pattern.groups:
            return match.group(1)
        return match.group(0)


def _rules(field_name: str, *patterns: str, unit: str | None = None) -> list[ExtractionRule]:
    return [ExtractionRule(field_name, re.compile(p), unit) for p in patterns]


# Evaluated top to bottom; order within a field is significant
EXTRACTION_RULES: tuple[ExtractionRule, ...] = (
    *_rules(
        "task_name",
        rf"任务名[称]?[：:]\s*({_TOKEN})",
        rf"创建[一个]?({_NAME_TOKEN})任务",
        rf"新建[一个]?({_NAME_TOKEN})任务",
        rf"({_NAME_TOKEN})巡检",
        rf"({_NAME_TOKEN})检查",
        rf"({_NAME_TOKEN})监控",
        rf"隧道({_NAME_TOKEN})",
        rf"地铁({_NAME_TOKEN})",
    ),
    *_rules(
        "start_pos",
        rf"起点[：:]\s*({_TOKEN})",
        rf"起始[位置]?[：:]\s*({_TOKEN})",
        rf"从({_TOKEN})开始",
        rf"在({_TOKEN})进行",
        rf"隧道({_NAME_TOKEN})",
        rf"地铁({_NAME_TOKEN})",
        rf"({_NAME_TOKEN})站",
        rf"({_NAME_TOKEN})入口",
    ),
    *_rules(
        "task_trip",
        rf"(\d+){_METERS}",
        rf"距离[：:]\s*(\d+){_METERS}",
        rf"行程[：:]\s*(\d+){_METERS}",
        rf"长度[：:]\s*(\d+){_METERS}",
        unit="m",
    ),
    *_rules("task_trip", r"(\d+)\s*公里", r"(\d+)\s*km", unit="km"),
    *_rules(
        "executor",
        rf"执行人[：:]\s*({_TOKEN})",
        rf"由({_TOKEN})执行",
        rf"({_TOKEN})负责",
        rf"巡检({_TOKEN})",
        r"机器人",
        r"AGV",
    ),
    *_rules(
        "remark",
        rf"备注[：:]\s*({_TOKEN})",
        rf"说明[：:]\s*({_TOKEN})",
        rf"描述[：:]\s*({_TOKEN})",
        rf"原因[：:]\s*({_TOKEN})",
        rf"目的[：:]\s*({_TOKEN})",
    ),
)

PARAM_FIELDS: tuple[str, ...] = ("task_name", "start_pos", "task_trip", "executor", "remark")


@dataclass
class ExtractedParams:
    """Container for parameters found in user input.

    Attributes:
        task_name: Task name
        start_pos: Start position
        task_trip: Distance as an integer (meters, or the raw km figure)
        executor: Executor name
        remark: Remark text
        raw: Matched pattern per field, for debugging
    """

    task_name: str | None = None
    start_pos: str | None = None
    task_trip: int | None = None
    executor: str | None = None
    remark: str | None = None
    raw: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding unset fields."""
        return {k: v for k, v in self.__dict__.items() if v is not None and k != "raw"}

    def is_empty(self) -> bool:
        """Check whether nothing was extracted."""
        return not self.to_dict()

    def merge_into(self, base: TaskParams) -> TaskParams:
        """Overlay the extracted fields on top of base, field by field."""
        return replace(base, **self.to_dict())


class ParamExtractor:
    """Apply the extraction rule table to free text.

    Kilometer rules yield the captured number as-is unless scale_kilometers
    is set, in which case the value is multiplied by 1000.
    """

    def __init__(
        self,
        rules: tuple[ExtractionRule, ...] = EXTRACTION_RULES,
        scale_kilometers: bool = False,
    ) -> None:
        self.scale_kilometers = scale_kilometers
        self._rules_by_field: dict[str, list[ExtractionRule]] = {}
        for rule in rules:
            self._rules_by_field.setdefault(rule.field, []).append(rule)

    def rules_for(self, field_name: str) -> list[ExtractionRule]:
        """Rules for one field, in evaluation order."""
        return list(self._rules_by_field.get(field_name, []))

    def extract(self, text: str) -> ExtractedParams:
        """Extract every field from text independently.

        Args:
            text: User input text

        Returns:
            ExtractedParams with zero or more fields set
        """
        params = ExtractedParams()
        for field_name in PARAM_FIELDS:
            for rule in self._rules_by_field.get(field_name, []):
                value = rule.apply(text)
                if value is None:
                    continue
                if field_name == "task_trip":
                    trip = self._to_meters(value, rule.unit)
                    if trip is None:
                        continue
                    params.task_trip = trip
                else:
                    setattr(params, field_name, value)
                params.raw[field_name] = rule.pattern.pattern
                break

        logger.debug(f"Extracted params: {params.to_dict()}")
        return params

    def _to_meters(self, value: str, unit: str | None) -> int | None:
        try:
            trip = int(value)
        except ValueError:
            return None
        if trip <= 0:
            return None
        if unit == "km" and self.scale_kilometers:
            trip *= 1000
        return trip


# Module-level instance for convenience
_extractor = ParamExtractor()


def extract_params(text: str) -> ExtractedParams:
    """Extract task parameters from text using the default extractor.

    Args:
        text: User input text

    Returns:
        ExtractedParams with all detected fields
    """
    return _extractor.extract(text)
