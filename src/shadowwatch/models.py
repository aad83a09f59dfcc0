from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple

from .constants import Defaults, ProviderName

MessageRole = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ProviderConfig:
    """Identity, credential and quota for one LLM backend."""

    name: ProviderName
    api_key: str
    model: str
    requests_per_minute: int
    tokens_per_minute: Optional[float] = None
    timeout_seconds: int = Defaults.REQUEST_TIMEOUT_SECONDS

    def __repr__(self) -> str:
        masked = "***" if self.api_key else ""
        return (
            f"ProviderConfig(name={self.name.value!r}, api_key={masked!r}, model={self.model!r}, "
            f"requests_per_minute={self.requests_per_minute}, tokens_per_minute={self.tokens_per_minute})"
        )


@dataclass
class FolderInfo:
    path: str
    file_count: int
    total_lines: int
    extensions: List[str] = field(default_factory=list)


@dataclass
class ProjectSummary:
    """Structure-only view of a workspace, produced by the file scanner."""

    total_files: int
    total_lines: int
    folders: List[FolderInfo] = field(default_factory=list)
    languages: Dict[str, int] = field(default_factory=dict)
    has_package_json: bool = False
    has_tests: bool = False
    entry_points: List[str] = field(default_factory=list)


SectionKind = Literal["text", "list", "items"]


@dataclass(frozen=True)
class SectionField:
    """
    Maps one output field to the markdown section(s) it is read from.

    kind "text" keeps the section body, "list" splits it into strings and
    "items" parses it into title/description items. Headings are tried in order.
    """

    key: str
    kind: SectionKind
    headings: Tuple[str, ...]
