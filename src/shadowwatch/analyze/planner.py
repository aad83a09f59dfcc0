from __future__ import annotations

from typing import Any, Dict, Optional

from ..constants import Defaults
from ..logging import ShadowLogger, default_logger
from ..models import ProjectSummary
from ..schemas import PLANNER_RESPONSE_SCHEMA
from .llm.llm_service import LLMService

PLANNER_SYSTEM_PROMPT = "You are an analysis planner. Create an efficient analysis plan for this project."


def format_folder_list(summary: ProjectSummary, max_folders: int = Defaults.PLANNER_MAX_FOLDERS) -> str:
    """Largest folders first, one "- path: N files, ~L lines [exts]" line each."""
    folders = sorted(summary.folders, key=lambda f: f.file_count, reverse=True)[:max_folders]
    return "\n".join(
        f"- {f.path}: {f.file_count} files, ~{f.total_lines} lines [{', '.join(f.extensions)}]"
        for f in folders
    )


def format_languages(summary: ProjectSummary) -> str:
    return ", ".join(
        f"{ext}: {count} files"
        for ext, count in sorted(summary.languages.items(), key=lambda item: item[1], reverse=True)
    )


def build_planner_prompt(summary: ProjectSummary, max_folders: int = Defaults.PLANNER_MAX_FOLDERS) -> str:
    """Describe the project's shape (no file contents) and ask for a JSON plan."""
    folder_list = format_folder_list(summary, max_folders)
    languages = format_languages(summary)
    entry_points = ", ".join(summary.entry_points) or "none detected"

    return f"""Given this project structure, create an efficient analysis plan.

## Project Summary
- Total code files: {summary.total_files}
- Estimated lines: {summary.total_lines}
- Languages: {languages}
- Has package.json: {str(summary.has_package_json).lower()}
- Has existing tests: {str(summary.has_tests).lower()}
- Entry points found: {entry_points}

## Folder Structure
{folder_list}

## Your Task
Create an analysis plan. Return JSON:

{{
  "projectSize": "tiny|small|medium|large",
  "analysisApproach": "Brief description of how to analyze this project",
  "keyFiles": ["list of most important files to analyze first"],
  "skipPatterns": ["patterns to skip like test files, configs"],
  "phases": [
    {{
      "name": "phase name",
      "purpose": "what this phase extracts",
      "targetFiles": "which files this applies to",
      "priority": 1
    }}
  ],
  "estimatedLLMCalls": 3,
  "recommendations": ["any special notes about this codebase"]
}}

Guidelines:
- tiny (<=5 files): Single LLM call for everything
- small (6-20 files): 2-3 focused calls
- medium (21-100 files): Group by module, 5-10 calls max
- large (100+ files): Sample key files, 10-15 calls max

Keep it simple. Small projects need minimal analysis."""


def preset_tiny_plan() -> Dict[str, Any]:
    return {
        "projectSize": "tiny",
        "analysisApproach": "Single comprehensive analysis",
        "keyFiles": [],
        "skipPatterns": ["*.test.*", "*.spec.*", "node_modules"],
        "phases": [
            {"name": "comprehensive", "purpose": "Full analysis", "targetFiles": "all", "priority": 1},
        ],
        "estimatedLLMCalls": 1,
        "recommendations": [],
    }


class AnalysisPlanner:
    """Decides how many LLM calls an analysis needs. The plan is advisory."""

    def __init__(
        self,
        llm_service: LLMService,
        *,
        tiny_threshold: Optional[int] = None,
        logger: Optional[ShadowLogger] = None,
    ) -> None:
        self.llm_service = llm_service
        if tiny_threshold is None:
            tiny_threshold = llm_service.config.planner_tiny_threshold
        self.tiny_threshold = tiny_threshold
        self.logger = logger or llm_service.logger or default_logger()

    async def create_plan(self, summary: ProjectSummary) -> Dict[str, Any]:
        self.logger.info(
            "planner_summary",
            total_files=summary.total_files,
            total_lines=summary.total_lines,
            languages=summary.languages,
        )

        if summary.total_files <= self.tiny_threshold:
            self.logger.info("planner_preset", reason="tiny_project", llm_calls=0)
            return preset_tiny_plan()

        plan = await self.llm_service.generate_structured(
            build_planner_prompt(summary),
            PLANNER_RESPONSE_SCHEMA,
            system=PLANNER_SYSTEM_PROMPT,
        )
        self.logger.info(
            "planner_plan",
            project_size=plan.get("projectSize"),
            estimated_calls=plan.get("estimatedLLMCalls"),
            phases=len(plan.get("phases") or []),
        )
        return plan
