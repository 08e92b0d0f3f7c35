"""Tests for the rule-based fallback resolver and the decision policy.

Tests cover:
- Fallback branch priority (greeting, create, query, template, anchor, unknown)
- generate_task_params template defaults and overrides
- Confidence gate and param re-derivation
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from patrol.core.intent import (
    CONFIDENCE_THRESHOLD,
    DecisionPolicy,
    FallbackResolver,
    IntentConfidence,
    IntentResult,
    IntentType,
    ParamExtractor,
    TaskParams,
    get_template,
)
from patrol.core.intent.taxonomy import (
    ANCHOR_REPLY,
    CLARIFY_REPLY,
    GREETING_REPLY,
    QUERY_REPLY,
)

CREATE_TEXT = "帮我创建巡检任务，起点：东门，距离：800米，执行人：巡检机器人"


@pytest.fixture
def fallback() -> FallbackResolver:
    return FallbackResolver()


# ============================================================================
# generate_task_params
# ============================================================================


class TestGenerateTaskParams:
    """Tests for template-based parameter generation."""

    def test_extracted_fields_override_defaults(self, fallback: FallbackResolver) -> None:
        """Test extracted values replace template defaults."""
        params = fallback.generate_task_params(CREATE_TEXT)
        assert params.task_trip == 800
        assert params.start_pos == "东门"
        assert params.executor == "巡检机器人"
        assert params.remark == "地铁隧道安全巡检"
        assert params.task_type == "tunnel_inspection"
        assert params.confidence == IntentConfidence.KEYWORD

    def test_unmatched_text_uses_default_template(self, fallback: FallbackResolver) -> None:
        """Test the default template fills every field."""
        params = fallback.generate_task_params("asdkjASD123")
        default = get_template("tunnel_inspection").default_params
        assert params.task_name == "隧道巡检任务"
        assert params.start_pos == default.start_pos
        assert params.task_trip == default.task_trip
        assert params.confidence == IntentConfidence.DEFAULT
        assert params.is_complete()

    def test_default_name_becomes_display_name(self, fallback: FallbackResolver) -> None:
        """Test an unextracted task name is the template display name."""
        params = fallback.generate_task_params("设备维修")
        assert params.task_type == "equipment_check"
        assert params.task_name == "设备检查任务"
        assert params.task_trip == 500

    def test_km_scaling_follows_extractor(self) -> None:
        """Test km scaling is controlled by the extractor."""
        fallback = FallbackResolver(extractor=ParamExtractor(scale_kilometers=True))
        assert fallback.generate_task_params("巡检5公里").task_trip == 5000


# ============================================================================
# Fallback branches
# ============================================================================


class TestFallbackResolver:
    """Tests for fallback branch priority."""

    def test_greeting_wins_over_create(self, fallback: FallbackResolver) -> None:
        """Test a greeting is detected before a create keyword."""
        result = fallback.resolve("", "你好，帮我巡检隧道")
        assert result.intent == IntentType.GREETING
        assert result.confidence == 0.9
        assert result.should_create_task is False
        assert result.reply == GREETING_REPLY

    def test_greeting_in_raw_text(self, fallback: FallbackResolver) -> None:
        """Test greeting keywords are also checked in the model output."""
        result = fallback.resolve('{"reply": "Hello!"}', "xyz")
        assert result.intent == IntentType.GREETING

    def test_create_keyword(self, fallback: FallbackResolver) -> None:
        """Test a create keyword creates a task from the user input."""
        result = fallback.resolve("", CREATE_TEXT)
        assert result.intent == IntentType.CREATE_TASK
        assert result.confidence == IntentConfidence.KEYWORD
        assert result.should_create_task is True
        assert result.params is not None
        assert result.params.task_trip == 800
        assert result.params.start_pos == "东门"
        assert "东门" in result.reply
        assert "800米" in result.reply

    def test_query_keyword(self, fallback: FallbackResolver) -> None:
        """Test a query keyword yields QueryTask."""
        result = fallback.resolve("", "查看任务列表")
        assert result.intent == IntentType.QUERY_TASK
        assert result.confidence == IntentConfidence.QUERY
        assert result.reply == QUERY_REPLY
        assert result.params is None
        assert result.should_create_task is False

    def test_template_keyword(self, fallback: FallbackResolver) -> None:
        """Test a template keyword alone creates a task at 0.6."""
        result = fallback.resolve("", "设备维修")
        assert result.intent == IntentType.CREATE_TASK
        assert result.confidence == IntentConfidence.TEMPLATE
        assert result.should_create_task is True
        assert result.params is not None
        assert result.params.task_type == "equipment_check"

    def test_template_keyword_classifies_once(self, fallback: FallbackResolver) -> None:
        """Test the template branch reuses its classification for the params."""
        classifier = fallback.classifier
        with patch.object(classifier, "classify", wraps=classifier.classify) as classify:
            result = fallback.resolve("", "设备维修")
        classify.assert_called_once_with("设备维修")
        assert result.params is not None
        assert result.params.confidence == IntentConfidence.KEYWORD

    def test_domain_anchor(self, fallback: FallbackResolver) -> None:
        """Test a domain anchor creates the default task verbatim."""
        result = fallback.resolve("", "去车站看看")
        default = get_template("tunnel_inspection").default_params
        assert result.intent == IntentType.CREATE_TASK
        assert result.confidence == IntentConfidence.DEFAULT
        assert result.reply == ANCHOR_REPLY
        assert result.params is not None
        assert result.params.task_name == default.task_name
        assert result.params.task_trip == default.task_trip
        assert result.params.confidence == IntentConfidence.DEFAULT

    def test_unknown(self, fallback: FallbackResolver) -> None:
        """Test unmatched input resolves to Unknown at 0.5."""
        result = fallback.resolve("", "asdkjASD123")
        assert result.intent == IntentType.UNKNOWN
        assert result.confidence == IntentConfidence.DEFAULT
        assert result.params is None
        assert result.should_create_task is False
        assert result.reply

    def test_empty_inputs(self, fallback: FallbackResolver) -> None:
        """Test empty inputs resolve to Unknown."""
        assert fallback.resolve("", "").intent == IntentType.UNKNOWN

    def test_source_is_fallback(self, fallback: FallbackResolver) -> None:
        """Test results are tagged with their stage."""
        assert fallback.resolve("", CREATE_TEXT).source == "fallback"


# ============================================================================
# Decision Policy
# ============================================================================


def _create_result(confidence: float, params: TaskParams | None = None) -> IntentResult:
    return IntentResult(
        intent=IntentType.CREATE_TASK,
        confidence=confidence,
        reply="已为您创建任务。",
        params=params if params is not None else TaskParams("巡检", "东门", 800, "巡检机器人"),
        should_create_task=True,
    )


class TestDecisionPolicy:
    """Tests for the create-task confidence gate."""

    @pytest.fixture
    def policy(self) -> DecisionPolicy:
        return DecisionPolicy()

    def test_default_threshold(self, policy: DecisionPolicy) -> None:
        """Test the default threshold is 0.7."""
        assert policy.threshold == CONFIDENCE_THRESHOLD == 0.7

    def test_below_threshold_asks_to_clarify(self, policy: DecisionPolicy) -> None:
        """Test 0.6 blocks task creation and asks for clarification."""
        original = _create_result(0.6)
        result = policy.apply(original, "巡检")
        assert result.should_create_task is False
        assert result.reply == CLARIFY_REPLY
        assert result.intent == IntentType.CREATE_TASK
        assert result.params == original.params

    def test_above_threshold_creates(self, policy: DecisionPolicy) -> None:
        """Test 0.75 keeps task creation."""
        original = _create_result(0.75)
        result = policy.apply(original, "巡检")
        assert result.should_create_task is True
        assert result == original

    def test_threshold_inclusive(self, policy: DecisionPolicy) -> None:
        """Test confidence equal to the threshold creates."""
        assert policy.apply(_create_result(0.7), "巡检").should_create_task is True

    def test_rederives_missing_params(self, policy: DecisionPolicy) -> None:
        """Test confident results without params get params from the rules."""
        original = _create_result(0.9).with_changes(params=None)
        result = policy.apply(original, CREATE_TEXT)
        assert result.params is not None
        assert result.params.task_trip == 800
        assert result.is_actionable()

    def test_rederive_keeps_given_fields(self, policy: DecisionPolicy) -> None:
        """Test re-derivation fills gaps without discarding given values."""
        original = _create_result(0.9, TaskParams(start_pos="西门"))
        result = policy.apply(original, "巡检")
        assert result.params is not None
        assert result.params.start_pos == "西门"
        assert result.params.is_complete()

    def test_non_create_passthrough(self, policy: DecisionPolicy) -> None:
        """Test results that do not create a task pass unchanged."""
        greeting = IntentResult.greeting()
        assert policy.apply(greeting, "你好") is greeting

    def test_custom_threshold(self) -> None:
        """Test a stricter threshold."""
        policy = DecisionPolicy(threshold=0.85)
        assert policy.apply(_create_result(0.8), "巡检").should_create_task is False

    @pytest.mark.parametrize("threshold", [-0.1, 1.5])
    def test_invalid_threshold(self, threshold: float) -> None:
        """Test thresholds outside [0, 1] are rejected."""
        with pytest.raises(ValueError):
            DecisionPolicy(threshold=threshold)
