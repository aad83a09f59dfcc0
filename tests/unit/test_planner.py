from __future__ import annotations

import json
from unittest.mock import AsyncMock, Mock

import pytest

from shadowwatch.analyze.planner import (
    PLANNER_SYSTEM_PROMPT,
    AnalysisPlanner,
    build_planner_prompt,
    preset_tiny_plan,
)
from shadowwatch.models import FolderInfo, ProjectSummary
from shadowwatch.schemas import PLANNER_RESPONSE_SCHEMA


def _summary(total_files: int) -> ProjectSummary:
    return ProjectSummary(
        total_files=total_files,
        total_lines=total_files * 120,
        folders=[
            FolderInfo(path="src/core", file_count=3, total_lines=400, extensions=[".py"]),
            FolderInfo(path="src/api", file_count=9, total_lines=1500, extensions=[".py", ".pyi"]),
        ],
        languages={".py": total_files - 1, ".ts": 1},
        has_package_json=True,
        has_tests=False,
        entry_points=["src/main.py"],
    )


def _llm_service(plan=None) -> Mock:
    service = Mock()
    service.config = Mock(planner_tiny_threshold=3)
    service.logger = None
    service.generate_structured = AsyncMock(return_value=plan)
    return service


@pytest.mark.anyio
async def test_tiny_project_uses_preset_without_llm_call(logger, log_stream) -> None:
    service = _llm_service()
    planner = AnalysisPlanner(service, logger=logger)

    plan = await planner.create_plan(_summary(3))

    service.generate_structured.assert_not_awaited()
    assert plan == preset_tiny_plan()
    assert plan["projectSize"] == "tiny"
    assert plan["estimatedLLMCalls"] == 1
    assert [phase["name"] for phase in plan["phases"]] == ["comprehensive"]
    events = [json.loads(line) for line in log_stream.getvalue().splitlines()]
    assert any(e["message"] == "planner_preset" and e["llm_calls"] == 0 for e in events)


@pytest.mark.anyio
async def test_larger_project_makes_exactly_one_structured_call(logger) -> None:
    llm_plan = {
        "projectSize": "medium",
        "analysisApproach": "Group by module",
        "phases": [{"name": "api", "purpose": "map endpoints", "targetFiles": ["src/api"], "priority": 1}],
        "estimatedLLMCalls": 6,
        "recommendations": ["skip generated code"],
    }
    service = _llm_service(llm_plan)
    planner = AnalysisPlanner(service, logger=logger)

    plan = await planner.create_plan(_summary(40))

    service.generate_structured.assert_awaited_once()
    args = service.generate_structured.call_args
    assert args.args[1] is PLANNER_RESPONSE_SCHEMA
    assert args.kwargs["system"] == PLANNER_SYSTEM_PROMPT
    assert plan is llm_plan


@pytest.mark.anyio
async def test_threshold_override(logger) -> None:
    service = _llm_service({"projectSize": "small", "phases": [], "estimatedLLMCalls": 2})
    planner = AnalysisPlanner(service, tiny_threshold=0, logger=logger)

    await planner.create_plan(_summary(1))

    service.generate_structured.assert_awaited_once()


def test_planner_prompt_describes_structure_only() -> None:
    prompt = build_planner_prompt(_summary(12))

    assert "## Project Summary" in prompt
    assert "- Total code files: 12" in prompt
    assert "- Has package.json: true" in prompt
    assert "- Has existing tests: false" in prompt
    assert "- Entry points found: src/main.py" in prompt
    assert "- Languages: .py: 11 files, .ts: 1 files" in prompt
    # folders are listed largest first
    assert prompt.index("src/api: 9 files") < prompt.index("src/core: 3 files")
    assert '"projectSize": "tiny|small|medium|large"' in prompt


def test_planner_prompt_caps_folder_list() -> None:
    summary = ProjectSummary(
        total_files=50,
        total_lines=5000,
        folders=[FolderInfo(path=f"pkg{i}", file_count=i, total_lines=10) for i in range(30)],
    )

    prompt = build_planner_prompt(summary, max_folders=5)

    assert "- pkg29:" in prompt
    assert "- pkg24:" not in prompt
    assert "- Entry points found: none detected" in prompt
