"""Product-purpose, architecture and unit-test-plan requests built from a project summary."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from ..logging import ShadowLogger, default_logger
from ..models import ProjectSummary
from ..schemas import (
    LLM_INSIGHTS_SCHEMA,
    LLM_INSIGHTS_SECTIONS,
    PRODUCT_PURPOSE_SCHEMA,
    PRODUCT_PURPOSE_SECTIONS,
    UNIT_TEST_PLAN_SCHEMA,
)
from .llm.llm_service import LLMService
from .planner import format_folder_list, format_languages

ARCHITECT_SYSTEM_PROMPT = (
    "You are an expert software architect who understands how product goals "
    "and user needs shape architecture decisions."
)
TEST_ARCHITECT_SYSTEM_PROMPT = "You are an expert test architect who creates comprehensive unit test plans."

_MAX_CONTEXT_ITEMS = 5


def _bullets(values: Iterable[Any], empty: str = "none") -> str:
    return "\n".join(f"- {value}" for value in values) or f"- {empty}"


def _project_context(summary: ProjectSummary) -> str:
    return f"""## Statistics
- Total Files: {summary.total_files}
- Total Lines: {summary.total_lines}
- Languages: {format_languages(summary) or "unknown"}
- Has package.json: {str(summary.has_package_json).lower()}
- Has existing tests: {str(summary.has_tests).lower()}

## Entry Points
{_bullets(summary.entry_points, "none detected")}

## Current Folder Structure
{format_folder_list(summary) or "- (no folders)"}"""


def build_product_purpose_prompt(summary: ProjectSummary, overview: str = "") -> str:
    return f"""Analyze this product's purpose and understand WHY its architecture exists.

## Product Overview
{overview.strip() or "No product documentation was provided."}

{_project_context(summary)}

## Your Task

Analyze WHY this architecture exists based on the product's purpose. Provide your analysis using EXACTLY these markdown section headers:

## Product Purpose
[What is this product trying to achieve? What is its core mission?]

## Architecture Rationale
[Why does this architecture exist? What product goals drove these architectural decisions?]

## Key Design Decisions
- Decision 1: [What decision] - Reason: [Why this decision was made based on product needs]

## User Goals
- Goal 1: [What users are trying to accomplish]

## Contextual Factors
- Factor 1: [What factors influence the architecture?]

IMPORTANT: Focus on understanding WHY the architecture exists, not just what it is. Connect architectural decisions to product goals and user needs."""


def _product_purpose_block(product_purpose: Dict[str, Any]) -> str:
    lines = [
        "## Product Purpose & Architecture Rationale",
        "",
        f"**Product Purpose:** {product_purpose.get('productPurpose', '')}",
        "",
        f"**Architecture Rationale:** {product_purpose.get('architectureRationale', '')}",
    ]
    for key, label in (
        ("designDecisions", "Key Design Decisions"),
        ("userGoals", "User Goals"),
        ("contextualFactors", "Contextual Factors"),
    ):
        values = product_purpose.get(key) or []
        if values:
            lines += ["", f"**{label}:**", _bullets(values)]
    lines += [
        "",
        "Make recommendations conditional on these goals: \"If you want X, then Y\".",
    ]
    return "\n".join(lines)


def build_architecture_prompt(summary: ProjectSummary, product_purpose: Optional[Dict[str, Any]] = None) -> str:
    prompt = f"""Analyze this codebase architecture and provide insights.

{_project_context(summary)}

# Your Task

Provide a comprehensive architectural analysis using EXACTLY these markdown section headers:

## Overall Architecture Assessment
[Describe the architecture style/pattern here]

## Strengths
- Strength 1

## Issues & Concerns
For EACH issue provide:
1. **Title**: Human-readable title (e.g., "Root Directory Clutter")
2. **Description**: [Problem description]. **Proposed Fix**: [Specific, actionable solution]
3. **Relevant Files**: ["src/main.ts", "package.json"]
4. **Relevant Functions**: ["initializeApp"]

## Code Organization
[Analyze the file structure, especially root directory clutter]

## Entry Points
[Analyze entry points here]

## Orphaned Files
[What unreferenced files might represent]

## Folder Reorganization
[Specific files to move, the target structure and the rationale]

## Recommendations
- **If you want [product goal]**: [Then refactor this way] - [Rationale]

## Refactoring Priorities
For EACH priority provide **Title**, **Description**, **Relevant Files** and **Relevant Functions** as for issues.

IMPORTANT: Use the EXACT section headers shown above. Start each section immediately after the header."""
    if product_purpose:
        prompt += "\n\n" + _product_purpose_block(product_purpose)
    return prompt


_UNIT_TEST_PLAN_TEMPLATE = """{
  "unit_test_strategy": {
    "overall_approach": "string describing how to approach unit testing",
    "testing_frameworks": ["pytest", "unittest"],
    "mocking_strategy": "how to mock dependencies",
    "isolation_level": "what can be tested in isolation"
  },
  "test_suites": [
    {
      "id": "unique-id",
      "name": "Test suite name",
      "description": "what this suite tests",
      "test_file_path": "path/to/test_file.py",
      "source_files": ["file1.py", "file2.py"],
      "test_cases": [
        {
          "id": "test-id",
          "name": "test_function_name",
          "description": "what this test verifies",
          "target_function": "function being tested",
          "target_file": "source file",
          "scenarios": ["scenario 1", "scenario 2"],
          "mocks": ["what to mock"],
          "assertions": ["what to assert"],
          "priority": "high|medium|low"
        }
      ]
    }
  ],
  "rationale": "why these unit tests matter"
}"""


def build_unit_test_plan_prompt(summary: ProjectSummary, insights: Optional[Dict[str, Any]] = None) -> str:
    parts = [
        "Generate a comprehensive unit test plan for this codebase.",
        _project_context(summary),
    ]
    if insights:
        issues = insights.get("issues") or []
        parts.append(
            "## Architecture Insights\n"
            f"### Overall Assessment\n{insights.get('overallAssessment') or 'N/A'}\n\n"
            f"### Strengths\n{_bullets((insights.get('strengths') or [])[:_MAX_CONTEXT_ITEMS], 'N/A')}\n\n"
            f"### Issues\n{_bullets([issue.get('title', '') for issue in issues[:_MAX_CONTEXT_ITEMS]], 'N/A')}"
        )
    parts.append(
        "## Your Task\n\n"
        "Generate a comprehensive unit test plan in the following JSON structure:\n\n"
        f"{_UNIT_TEST_PLAN_TEMPLATE}\n\n"
        "## Guidelines\n"
        "1. Focus on user-facing functionality\n"
        "2. Prioritize high-value functions (entry points, core logic)\n"
        "3. Use mocks for external dependencies\n"
        "4. Test edge cases and error handling\n"
        "5. Keep tests isolated and fast\n\n"
        "Return ONLY the JSON object, no other text."
    )
    return "\n\n".join(parts)


class InsightGenerator:
    """Runs the product-purpose, architecture-insight and unit-test-plan calls."""

    def __init__(self, llm_service: LLMService, *, logger: Optional[ShadowLogger] = None) -> None:
        self.llm_service = llm_service
        self.logger = logger or llm_service.logger or default_logger()

    async def analyze_product_purpose(self, summary: ProjectSummary, overview: str = "") -> Dict[str, Any]:
        result = await self.llm_service.request(
            build_product_purpose_prompt(summary, overview),
            PRODUCT_PURPOSE_SCHEMA,
            system=ARCHITECT_SYSTEM_PROMPT,
            sections=PRODUCT_PURPOSE_SECTIONS,
        )
        data = result.data
        self.logger.info(
            "product_purpose_analyzed",
            tier=result.tier.value,
            design_decisions=len(data["designDecisions"]),
            user_goals=len(data["userGoals"]),
        )
        return data

    async def generate_architecture_insights(
        self,
        summary: ProjectSummary,
        product_purpose: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        result = await self.llm_service.request(
            build_architecture_prompt(summary, product_purpose),
            LLM_INSIGHTS_SCHEMA,
            system=ARCHITECT_SYSTEM_PROMPT,
            sections=LLM_INSIGHTS_SECTIONS,
        )
        data = result.data
        self.logger.info(
            "architecture_insights",
            tier=result.tier.value,
            issues=len(data["issues"]),
            recommendations=len(data["recommendations"]),
            priorities=len(data["priorities"]),
        )
        return data

    async def generate_unit_test_plan(
        self,
        summary: ProjectSummary,
        insights: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        plan = await self.llm_service.generate_structured(
            build_unit_test_plan_prompt(summary, insights),
            UNIT_TEST_PLAN_SCHEMA,
            system=TEST_ARCHITECT_SYSTEM_PROMPT,
        )
        suites = plan.get("test_suites") or []
        self.logger.info(
            "unit_test_plan",
            suites=len(suites),
            test_cases=sum(len(suite.get("test_cases") or []) for suite in suites),
        )
        return plan
