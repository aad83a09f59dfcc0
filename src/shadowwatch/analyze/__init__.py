"""Analysis utilities."""

from .insights import (
    InsightGenerator,
    build_architecture_prompt,
    build_product_purpose_prompt,
    build_unit_test_plan_prompt,
)
from .planner import AnalysisPlanner, build_planner_prompt, preset_tiny_plan

__all__ = [
    "AnalysisPlanner",
    "InsightGenerator",
    "build_architecture_prompt",
    "build_planner_prompt",
    "build_product_purpose_prompt",
    "build_unit_test_plan_prompt",
    "preset_tiny_plan",
]
