"""JSON schemas for structured LLM replies."""

from __future__ import annotations

from typing import Any, Dict, Tuple

from .models import SectionField

_STRING_LIST: Dict[str, Any] = {"type": "array", "items": {"type": "string"}}


def _insight_item(title_hint: str, description_hint: str) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "title": {"type": "string", "description": title_hint},
            "description": {"type": "string", "description": description_hint},
            "relevantFiles": {**_STRING_LIST, "default": []},
            "relevantFunctions": {**_STRING_LIST, "default": []},
        },
        "required": ["title", "description"],
    }


ISSUE_ITEM_SCHEMA = _insight_item(
    "Human-readable title that clearly describes the issue",
    "Problem description followed by '**Proposed Fix**:' and the detailed solution",
)
RECOMMENDATION_ITEM_SCHEMA = _insight_item(
    "Human-readable title for the recommendation",
    "'If you want [goal]: [refactor this way] - [rationale]'",
)
PRIORITY_ITEM_SCHEMA = _insight_item(
    "Human-readable title for the priority",
    "Description of the priority with rationale",
)

PRODUCT_PURPOSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "productPurpose": {"type": "string"},
        "architectureRationale": {"type": "string"},
        "designDecisions": _STRING_LIST,
        "userGoals": _STRING_LIST,
        "contextualFactors": _STRING_LIST,
    },
    "required": [
        "productPurpose",
        "architectureRationale",
        "designDecisions",
        "userGoals",
        "contextualFactors",
    ],
}

LLM_INSIGHTS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "overallAssessment": {"type": "string"},
        "strengths": {**_STRING_LIST, "default": []},
        "issues": {"type": "array", "items": ISSUE_ITEM_SCHEMA, "default": []},
        "organization": {"type": "string", "default": ""},
        "entryPointsAnalysis": {"type": "string", "default": ""},
        "orphanedFilesAnalysis": {"type": "string", "default": ""},
        "folderReorganization": {"type": "string", "default": ""},
        "recommendations": {"type": "array", "items": RECOMMENDATION_ITEM_SCHEMA, "default": []},
        "priorities": {"type": "array", "items": PRIORITY_ITEM_SCHEMA, "default": []},
    },
    "required": ["overallAssessment", "strengths", "issues", "recommendations", "priorities"],
}

_TEST_CASE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "name": {"type": "string"},
        "description": {"type": "string"},
        "target_function": {"type": "string"},
        "target_file": {"type": "string"},
        "scenarios": _STRING_LIST,
        "mocks": _STRING_LIST,
        "assertions": _STRING_LIST,
        "priority": {"type": "string", "enum": ["high", "medium", "low"]},
    },
    "required": ["name", "target_function"],
}

UNIT_TEST_PLAN_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "unit_test_strategy": {
            "type": "object",
            "properties": {
                "overall_approach": {"type": "string"},
                "testing_frameworks": _STRING_LIST,
                "mocking_strategy": {"type": "string"},
                "isolation_level": {"type": "string"},
            },
            "required": ["overall_approach"],
        },
        "test_suites": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                    "test_file_path": {"type": "string"},
                    "source_files": _STRING_LIST,
                    "test_cases": {"type": "array", "items": _TEST_CASE_SCHEMA},
                },
                "required": ["name", "test_cases"],
            },
        },
        "rationale": {"type": "string", "default": ""},
    },
    "required": ["unit_test_strategy", "test_suites"],
}

PLANNER_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "projectSize": {"type": "string", "enum": ["tiny", "small", "medium", "large"]},
        "analysisApproach": {"type": "string"},
        "keyFiles": _STRING_LIST,
        "skipPatterns": _STRING_LIST,
        "phases": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "purpose": {"type": "string"},
                    "targetFiles": {"type": ["string", "array"]},
                    "priority": {"type": "number"},
                },
                "required": ["name", "purpose", "targetFiles", "priority"],
            },
        },
        "estimatedLLMCalls": {"type": "number"},
        "recommendations": _STRING_LIST,
    },
    "required": ["projectSize", "phases", "estimatedLLMCalls"],
}

# Markdown layouts for replies that answer with section headers instead of JSON.

PRODUCT_PURPOSE_SECTIONS: Tuple[SectionField, ...] = (
    SectionField("productPurpose", "text", ("Product Purpose",)),
    SectionField("architectureRationale", "text", ("Architecture Rationale",)),
    SectionField("designDecisions", "list", ("Key Design Decisions", "Design Decisions")),
    SectionField("userGoals", "list", ("User Goals",)),
    SectionField("contextualFactors", "list", ("Contextual Factors",)),
)

LLM_INSIGHTS_SECTIONS: Tuple[SectionField, ...] = (
    SectionField(
        "overallAssessment",
        "text",
        ("Overall Architecture Assessment", "Architecture Assessment", "Overall Assessment", "Overall"),
    ),
    SectionField("strengths", "list", ("Strengths",)),
    SectionField("issues", "items", ("Issues & Concerns", "Issues", "Concerns")),
    SectionField("organization", "text", ("Code Organization", "Organization", "File Organization")),
    SectionField("entryPointsAnalysis", "text", ("Entry Points", "Entry Points Analysis")),
    SectionField("orphanedFilesAnalysis", "text", ("Orphaned Files", "Orphaned Files Analysis")),
    SectionField(
        "folderReorganization",
        "text",
        ("Folder Reorganization", "Reorganization", "Folder Reorganization Plan"),
    ),
    SectionField("recommendations", "items", ("Recommendations",)),
    SectionField("priorities", "items", ("Refactoring Priorities", "Priorities", "Refactoring")),
)
