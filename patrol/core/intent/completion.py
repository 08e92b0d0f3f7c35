"""Validation and completion of model-produced intent objects.

The generative model is asked for a fixed JSON shape but small models drop
fields, mangle keys (" reply") or echo the prompt's placeholder text. The
completer turns whatever object was parsed into a complete IntentResult,
either by filling gaps or by handing the input to the fallback resolver.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Any

from .fallback import FallbackResolver
from .patterns import REPLY_GREETING_KEYWORDS, find_keyword
from .taxonomy import (
    ACKNOWLEDGE_REPLY,
    IntentConfidence,
    IntentResult,
    IntentType,
    TaskParams,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS: tuple[str, ...] = ("intent", "confidence", "params", "shouldCreateTask")

# Model param keys -> TaskParams fields
PARAM_KEYS: dict[str, str] = {
    "taskName": "task_name",
    "startPos": "start_pos",
    "taskTrip": "task_trip",
    "executor": "executor",
    "remark": "remark",
    "taskType": "task_type",
    "confidence": "confidence",
}

# Prompt placeholder text a model sometimes copies into its answer
_PLACEHOLDER_MARKERS: tuple[str, ...] = ("从用户输入中提取", "根据用户输入生成")

_TRUE_STRINGS = {"true", "yes", "1", "是"}


def normalize_keys(payload: dict[Any, Any]) -> dict[str, Any]:
    """Strip whitespace around keys; an exact key beats a padded one."""
    normalized: dict[str, Any] = {}
    for key, value in payload.items():
        name = str(key).strip()
        if name not in normalized or key == name:
            normalized[name] = value
    return normalized


def _present(payload: dict[str, Any], key: str) -> bool:
    value = payload.get(key)
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def _clamp(value: Any, default: float | None = IntentConfidence.DEFAULT) -> float | None:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return default


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _to_trip(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        trip = int(value)
    else:
        match = re.search(r"\d+", str(value))
        if match is None:
            return None
        trip = int(match.group(0))
    return trip if trip > 0 else None


def _to_text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    if not text or any(marker in text for marker in _PLACEHOLDER_MARKERS):
        return None
    return text


def coerce_params(raw: Any) -> dict[str, Any]:
    """Convert a model "params" object into TaskParams keyword arguments.

    Unknown keys, empty values and echoed placeholders are dropped, and the
    distance is coerced to a positive integer.
    """
    if not isinstance(raw, dict):
        return {}
    fields: dict[str, Any] = {}
    for key, value in normalize_keys(raw).items():
        name = PARAM_KEYS.get(key, key if key in PARAM_KEYS.values() else None)
        if name is None:
            continue
        if name == "task_trip":
            coerced: Any = _to_trip(value)
        elif name == "confidence":
            coerced = _clamp(value, default=None)
        else:
            coerced = _to_text(value)
        if coerced is not None:
            fields[name] = coerced
    return fields


class ResultCompleter:
    """Turn a parsed (possibly partial) model object into an IntentResult.

    Attributes:
        fallback: Resolver used for delegation and for parameter defaults
    """

    def __init__(self, fallback: FallbackResolver | None = None) -> None:
        self.fallback = fallback or FallbackResolver()

    def complete(
        self,
        payload: dict[str, Any] | None,
        raw_text: str,
        user_input: str,
    ) -> IntentResult:
        """Complete a parsed model object.

        Args:
            payload: Object from the JSON candidate extractor, or None
            raw_text: Raw model output the object came from
            user_input: Original user message

        Returns:
            A complete IntentResult. Never raises; internal errors delegate
            to the fallback resolver.
        """
        if payload is None:
            logger.warning("Model returned no parseable JSON, using fallback")
            return self.fallback.resolve(raw_text, user_input)

        try:
            return self._complete(normalize_keys(payload), raw_text, user_input)
        except Exception as e:
            logger.warning(f"Completing model output failed, using fallback: {e}")
            return self.fallback.resolve(raw_text, user_input)

    def _complete(
        self,
        payload: dict[str, Any],
        raw_text: str,
        user_input: str,
    ) -> IntentResult:
        reply = _to_text(payload.get("reply")) if _present(payload, "reply") else None

        if all(_present(payload, key) for key in REQUIRED_FIELDS):
            return self._build(payload, reply, user_input, source="model")

        logger.info(
            "Model JSON incomplete, missing: "
            f"{[key for key in REQUIRED_FIELDS if not _present(payload, key)]}"
        )

        if reply and not _present(payload, "intent"):
            if find_keyword(REPLY_GREETING_KEYWORDS, reply) is not None:
                return IntentResult.greeting(reply=reply, source="completed")
            logger.info("Incomplete non-greeting reply, using fallback")
            return self.fallback.resolve(raw_text, user_input)

        return self._build(payload, reply, user_input, source="completed")

    def _build(
        self,
        payload: dict[str, Any],
        reply: str | None,
        user_input: str,
        source: str,
    ) -> IntentResult:
        intent = IntentType.from_label(payload.get("intent"))
        confidence = _clamp(payload.get("confidence"))
        should_create = _to_bool(payload.get("shouldCreateTask", False))

        params: TaskParams | None = None
        if intent == IntentType.CREATE_TASK:
            params = self.fill_params(payload.get("params"), user_input)
        else:
            should_create = False

        return IntentResult(
            intent=intent,
            confidence=confidence,
            reply=reply or ACKNOWLEDGE_REPLY,
            params=params,
            should_create_task=should_create,
            source=source,
        )

    def fill_params(self, raw_params: Any, user_input: str) -> TaskParams:
        """Model params with missing required fields taken from the rules.

        Fields the model supplied win; the rest come from the template
        defaults merged with what the extractor finds in the user input.
        """
        fields = coerce_params(raw_params)
        derived = self.fallback.generate_task_params(user_input)
        if not fields:
            return derived
        missing = [name for name in PARAM_KEYS.values() if name not in fields]
        if missing:
            logger.debug(f"Back-filled params from rules: {missing}")
        return replace(derived, **fields)


__all__ = ["REQUIRED_FIELDS", "ResultCompleter", "coerce_params", "normalize_keys"]
