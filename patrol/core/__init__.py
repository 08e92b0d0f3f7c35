"""Core components for the patrol assistant."""

from __future__ import annotations

from .intent import IntentResolver, IntentResult, IntentType, TaskParams, resolve_intent
from .pipeline import GenerativePipeline
from .tasks import TaskApiClient, TaskApiError

__all__ = [
    "GenerativePipeline",
    "IntentResolver",
    "IntentResult",
    "IntentType",
    "TaskApiClient",
    "TaskApiError",
    "TaskParams",
    "resolve_intent",
]
