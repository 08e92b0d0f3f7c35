"""Intent resolution for the patrol assistant.

This module turns a free-form user message about metro tunnel inspection
into a structured IntentResult and decides whether a task should be created.

The resolution pipeline:
1. Generative model call - one request for a JSON intent object
2. JSON candidate extraction - first parseable object in the raw output
3. Result completion - fill gaps, or delegate to the keyword fallback
4. Decision policy - create only at confidence >= 0.7

Example usage:
    ```python
    from patrol.core.intent import IntentResolver, IntentType

    resolver = IntentResolver()  # no model: keyword rules only

    result = resolver.resolve_offline("帮我创建巡检任务，起点：东门，距离：800米")
    assert result.intent == IntentType.CREATE_TASK
    assert result.params.task_trip == 800

    # With a model server
    resolver = create_resolver(AppConfig())
    result = await resolver.resolve("你好")
    await resolver.close()
    ```
"""

from .candidates import extract_json_object, iter_json_candidates
from .completion import REQUIRED_FIELDS, ResultCompleter, coerce_params
from .entities import (
    EXTRACTION_RULES,
    ExtractedParams,
    ExtractionRule,
    ParamExtractor,
    extract_params,
)
from .fallback import FallbackResolver
from .patterns import TaskTypeClassifier, TemplateMatch
from .policy import CONFIDENCE_THRESHOLD, DecisionPolicy
from .resolver import (
    INTENT_SYSTEM_PROMPT,
    IntentResolver,
    create_resolver,
    resolve_intent,
)
from .taxonomy import (
    IntentConfidence,
    IntentResult,
    IntentType,
    TaskParams,
)
from .templates import (
    DEFAULT_TEMPLATE_ID,
    TASK_TEMPLATES,
    TaskTemplate,
    get_template,
)

__all__ = [
    # Orchestration
    "IntentResolver",
    "create_resolver",
    "resolve_intent",
    "INTENT_SYSTEM_PROMPT",
    # Stages
    "extract_json_object",
    "iter_json_candidates",
    "ResultCompleter",
    "REQUIRED_FIELDS",
    "coerce_params",
    "FallbackResolver",
    "DecisionPolicy",
    "CONFIDENCE_THRESHOLD",
    # Classification
    "TaskTypeClassifier",
    "TemplateMatch",
    # Parameter extraction
    "ParamExtractor",
    "ExtractedParams",
    "ExtractionRule",
    "EXTRACTION_RULES",
    "extract_params",
    # Taxonomy
    "IntentType",
    "IntentConfidence",
    "IntentResult",
    "TaskParams",
    # Templates
    "TaskTemplate",
    "TASK_TEMPLATES",
    "DEFAULT_TEMPLATE_ID",
    "get_template",
]
