"""Task template registry for metro tunnel inspection.

Templates bundle default task parameters with the keywords that trigger
them. The registry is built once at import time and is read-only; its
order matters because classification returns the first matching template.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from .taxonomy import TaskParams


@dataclass(frozen=True)
class TaskTemplate:
    """A named task category with default parameters.

    Attributes:
        id: Template identifier (e.g. "tunnel_inspection")
        display_name: Human-readable task name
        default_params: Fully populated default parameters
        keywords: Trigger keywords, matched as lower-case substrings
        description: Short description of the task category
    """

    id: str
    display_name: str
    default_params: TaskParams
    keywords: tuple[str, ...]
    description: str = ""


# Main business type, used when no keyword matches
DEFAULT_TEMPLATE_ID = "tunnel_inspection"

_TEMPLATES: tuple[TaskTemplate, ...] = (
    TaskTemplate(
        id="tunnel_inspection",
        display_name="隧道巡检任务",
        default_params=TaskParams(
            task_name="隧道巡检任务",
            start_pos="隧道入口",
            task_trip=1000,
            executor="巡检机器人",
            remark="地铁隧道安全巡检",
        ),
        keywords=("巡检", "检查", "巡视", "巡查", "检测", "隧道", "地铁", "轨道", "线路"),
        description="地铁隧道安全巡检任务",
    ),
    TaskTemplate(
        id="equipment_check",
        display_name="设备检查任务",
        default_params=TaskParams(
            task_name="设备检查任务",
            start_pos="设备区域",
            task_trip=500,
            executor="巡检机器人",
            remark="设备状态检查",
        ),
        keywords=("设备", "检查", "维护", "保养", "修理", "维修", "检修", "故障"),
        description="设备状态检查和维护任务",
    ),
    TaskTemplate(
        id="safety_monitoring",
        display_name="安全监控任务",
        default_params=TaskParams(
            task_name="安全监控任务",
            start_pos="监控区域",
            task_trip=800,
            executor="巡检机器人",
            remark="安全状态监控",
        ),
        keywords=("监控", "监视", "观察", "跟踪", "监测", "安全", "防护", "预警"),
        description="安全状态监控任务",
    ),
)

TASK_TEMPLATES: Mapping[str, TaskTemplate] = MappingProxyType(
    {template.id: template for template in _TEMPLATES}
)


def get_template(template_id: str) -> TaskTemplate:
    """Look up a template by id.

    Raises:
        KeyError: If no template has that id
    """
    return TASK_TEMPLATES[template_id]


def default_template() -> TaskTemplate:
    """The template used when nothing else matches."""
    return TASK_TEMPLATES[DEFAULT_TEMPLATE_ID]


__all__ = [
    "DEFAULT_TEMPLATE_ID",
    "TASK_TEMPLATES",
    "TaskTemplate",
    "default_template",
    "get_template",
]
