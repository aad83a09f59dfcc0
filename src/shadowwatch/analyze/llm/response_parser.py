from __future__ import annotations

import copy
import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from ...errors import ValidationError
from ...logging import ShadowLogger, default_logger
from ...models import SectionField


class ExtractionTier(str, Enum):
    DIRECT_JSON = "direct_json"
    MARKDOWN_SECTIONS = "markdown_sections"
    EMBEDDED_JSON = "embedded_json"
    NATURAL_LANGUAGE = "natural_language"


@dataclass
class ParsedResult:
    data: Any
    tier: ExtractionTier
    raw_text: str


_FAILED = object()


_CLOSERS = {"{": "}", "[": "]"}
_FENCE_RE = re.compile(r"```[\w+-]*[ \t]*\n?(?P<body>.*?)```", re.DOTALL)


def extract_json_span(text: str, opener: str = "{") -> Optional[str]:
    """Return the first balanced {...} (or [...]) span, skipping brackets inside string literals."""
    closer = _CLOSERS[opener]
    start = text.find(opener)
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        ch = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def embedded_json_candidates(text: str) -> List[str]:
    """
    Candidate JSON texts inside a prose reply, in the order they are tried:
    fenced code blocks whose body opens with { or [, then the balanced span
    for each bracket type, earliest opener first.
    """
    candidates: List[str] = []
    for match in _FENCE_RE.finditer(text):
        body = match.group("body").strip()
        if body[:1] in _CLOSERS:
            candidates.append(body)

    openers = sorted((text.find(opener), opener) for opener in _CLOSERS if opener in text)
    for _, opener in openers:
        span = extract_json_span(text, opener)
        if span is not None:
            candidates.append(span)
    return candidates


# ---------------------------------------------------------------------------
# Natural-language fallback
# ---------------------------------------------------------------------------

_BULLET = r"(?:[-•*]|\d+[.)])"
_BULLET_MARKER_RE = re.compile(rf"^{_BULLET}\s+")
_BULLET_LABEL_RE = re.compile(rf"^{_BULLET}\s+(?P<label>[^:\n]{{1,120}}?):(?:\s+(?P<text>.*))?$")
_BOLD_TITLE_RE = re.compile(rf"^(?:{_BULLET}\s+)?(?P<bold>\*\*)?Title(?(bold)\*\*)\s*:\s*(?P<text>.*)$", re.IGNORECASE)
_BOLD_FIELD_RE = re.compile(
    rf"^(?:{_BULLET}\s+)?(?P<bold>\*\*)?(?:Relevant\s+)?(?P<field>Description|Files|Functions)(?(bold)\*\*)"
    r"\s*:\s*(?P<text>.*)$",
    re.IGNORECASE,
)
_LABEL_LINE_RE = re.compile(r"^(?P<label>[A-Za-z][^:\n]{0,79}?):\s+(?P<text>\S.*)$")

_FIELD_KEYS = {
    "description": "description",
    "files": "relevantFiles",
    "functions": "relevantFunctions",
}


class ParserState(str, Enum):
    NO_ITEM = "no_item"
    IN_ITEM = "in_item"


@dataclass
class _Item:
    title: str = ""
    description: str = ""
    relevant_files: List[str] = field(default_factory=list)
    relevant_functions: List[str] = field(default_factory=list)

    def normalized(self) -> Optional[Dict[str, Any]]:
        title = _strip_markup(_BULLET_MARKER_RE.sub("", self.title.strip()))
        description = self.description.strip()
        if not title and not description:
            return None
        return {
            "title": title,
            "description": description,
            "relevantFiles": list(self.relevant_files),
            "relevantFunctions": list(self.relevant_functions),
        }


def _strip_markup(value: str) -> str:
    value = value.strip()
    if value.startswith("**") and value.endswith("**") and len(value) >= 4:
        value = value[2:-2].strip()
    return value


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'`":
        value = value[1:-1].strip()
    return value


def _split_list(value: str) -> List[str]:
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    parts = (part.strip().strip("\"'`").strip() for part in value.split(","))
    return [part for part in parts if part]


def is_bullet_start(line: str) -> bool:
    return bool(_BULLET_MARKER_RE.match(line))


def is_bold_title(line: str) -> bool:
    return bool(_BOLD_TITLE_RE.match(line))


def is_bold_field(line: str) -> bool:
    return bool(_BOLD_FIELD_RE.match(line))


def is_label_line(line: str) -> bool:
    return bool(_LABEL_LINE_RE.match(line))


class NaturalLanguageItemParser:
    """
    Line-oriented two-state machine that turns list-style prose into items.

    States:
    - NO_ITEM: nothing accumulated yet; orphaned field markers are dropped.
    - IN_ITEM: lines extend the current item until the next item start.

    Item starts: bullet/number lines ("- Label: text", "2) text"),
    "Title: text" (bold or plain), and a plain "Label: text" line while in
    NO_ITEM. Description, Files and Functions lines (optionally bold, optionally
    prefixed "Relevant") update the open item.
    """

    def __init__(self) -> None:
        self.state = ParserState.NO_ITEM
        self.items: List[Dict[str, Any]] = []
        self._current: Optional[_Item] = None

    def parse(self, text: str) -> List[Dict[str, Any]]:
        for raw_line in text.splitlines():
            self.feed(raw_line)
        self._finish_item()
        return self.items

    def feed(self, raw_line: str) -> None:
        line = raw_line.strip()
        if not line:
            return

        if is_bold_field(line):
            self._apply_field(line)
        elif is_bold_title(line):
            match = _BOLD_TITLE_RE.match(line)
            self._start_item(_Item(title=_unquote(match.group("text"))))
        elif is_bullet_start(line):
            self._start_item(self._item_from_bullet(line))
        elif self.state is ParserState.NO_ITEM and is_label_line(line):
            match = _LABEL_LINE_RE.match(line)
            self._start_item(_Item(title=match.group("label"), description=match.group("text").strip()))
        elif self.state is ParserState.IN_ITEM:
            self._append_description(line)

    @staticmethod
    def _item_from_bullet(line: str) -> _Item:
        match = _BULLET_LABEL_RE.match(line)
        if match:
            return _Item(title=match.group("label"), description=(match.group("text") or "").strip())
        return _Item(description=_BULLET_MARKER_RE.sub("", line).strip())

    def _start_item(self, item: _Item) -> None:
        self._finish_item()
        self._current = item
        self.state = ParserState.IN_ITEM

    def _finish_item(self) -> None:
        if self._current is not None:
            normalized = self._current.normalized()
            if normalized is not None:
                self.items.append(normalized)
        self._current = None
        self.state = ParserState.NO_ITEM

    def _apply_field(self, line: str) -> None:
        if self._current is None:
            return
        match = _BOLD_FIELD_RE.match(line)
        key = _FIELD_KEYS[match.group("field").lower()]
        value = match.group("text").strip()
        if key == "description":
            self._current.description = _unquote(value)
        elif key == "relevantFiles":
            self._current.relevant_files = _split_list(value)
        else:
            self._current.relevant_functions = _split_list(value)

    def _append_description(self, line: str) -> None:
        if self._current.description:
            self._current.description += "\n" + line
        else:
            self._current.description = line


_LIST_MARKER_RE = re.compile(rf"^{_BULLET}(?:\s+|$)")
_PROPOSED_FIX_RE = re.compile(r"\*\*Proposed Fix\*\*:(?P<fix>.*)", re.DOTALL)
_MIN_PROPOSED_FIX_CHARS = 10


def _has_short_proposed_fix(item: str) -> bool:
    match = _PROPOSED_FIX_RE.search(item)
    return match is not None and len(match.group("fix").strip()) < _MIN_PROPOSED_FIX_CHARS


def split_list_items(text: str, *, logger: Optional[ShadowLogger] = None) -> List[str]:
    """Split a bullet or numbered list into item strings with markers removed."""
    items: List[str] = []
    current: List[str] = []

    def flush() -> None:
        item = "\n".join(current).strip()
        if item:
            items.append(item)
        current.clear()

    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if _LIST_MARKER_RE.match(line):
            flush()
            line = _LIST_MARKER_RE.sub("", line, count=1)
        if line:
            current.append(line)
    flush()

    short_fixes = [item for item in items if _has_short_proposed_fix(item)]
    if short_fixes:
        (logger or default_logger()).warning(
            "list_item_short_proposed_fix",
            detail="Issue item has an empty or very short Proposed Fix",
            count=len(short_fixes),
        )
    return items


# ---------------------------------------------------------------------------
# Markdown sections
# ---------------------------------------------------------------------------

_MIN_SECTION_CHARS = 10
_SECTION_FLAGS = re.IGNORECASE | re.MULTILINE | re.DOTALL


def _section_patterns(heading: str) -> List[re.Pattern]:
    title = re.escape(heading)
    tail = r"[ \t]*:?[ \t]*\n+(?P<body>.*?)"
    return [
        re.compile(rf"^#{{1,3}}[ \t]+{title}{tail}(?=\n#{{1,3}}[ \t]|\Z)", _SECTION_FLAGS),
        re.compile(rf"^\*\*{title}:?\*\*{tail}(?=\n\*\*[^*\n]+\*\*[ \t]*:?[ \t]*\n|\n#|\Z)", _SECTION_FLAGS),
        re.compile(rf"^\d+\.[ \t]+{title}{tail}(?=\n\d+\.[ \t]|\n#|\Z)", _SECTION_FLAGS),
    ]


def extract_section(text: str, *headings: str) -> str:
    """
    Return the body of the first section titled by one of headings.

    Headings are matched case-insensitively as markdown headers (#, ##, ###),
    bold lines (**Heading**) or numbered lines (1. Heading). A body of ten
    characters or fewer is treated as missing, and "" is returned.
    """
    for heading in headings:
        for pattern in _section_patterns(heading):
            match = pattern.search(text or "")
            if match is None:
                continue
            body = match.group("body").strip()
            if len(body) > _MIN_SECTION_CHARS:
                return body
    return ""


def extract_list_section(text: str, *headings: str, logger: Optional[ShadowLogger] = None) -> List[str]:
    section = extract_section(text, *headings)
    if not section:
        return []
    return split_list_items(section, logger=logger)


def parse_section_items(text: str, *headings: str) -> List[Dict[str, Any]]:
    section = extract_section(text, *headings)
    if not section:
        return []
    return NaturalLanguageItemParser().parse(section)


def parse_markdown_sections(
    text: str,
    layout: Sequence[SectionField],
    *,
    logger: Optional[ShadowLogger] = None,
) -> Optional[Dict[str, Any]]:
    """Build an object from markdown sections; None when no section was found."""
    data: Dict[str, Any] = {}
    for section in layout:
        if section.kind == "text":
            data[section.key] = extract_section(text, *section.headings)
        elif section.kind == "list":
            data[section.key] = extract_list_section(text, *section.headings, logger=logger)
        else:
            data[section.key] = parse_section_items(text, *section.headings)
    if not any(data.values()):
        return None
    return data


# ---------------------------------------------------------------------------
# Schema validation (JSON-schema subset)
# ---------------------------------------------------------------------------

_TYPE_CHECKS: Dict[str, Callable[[Any], bool]] = {
    "string": lambda v: isinstance(v, str),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, dict),
    "null": lambda v: v is None,
}


def _json_type_name(value: Any) -> str:
    for name in ("null", "boolean", "integer", "number", "string", "array", "object"):
        if _TYPE_CHECKS[name](value):
            return name
    return type(value).__name__


def _display(path: str) -> str:
    return path or "<root>"


def validate(data: Any, schema: Dict[str, Any], path: str = "") -> None:
    """Raise ValidationError if data does not satisfy schema."""
    expected = schema.get("type")
    if expected is not None:
        allowed = expected if isinstance(expected, list) else [expected]
        if not any(_TYPE_CHECKS.get(t, lambda _v: True)(data) for t in allowed):
            raise ValidationError(
                f"Field '{_display(path)}' expected {'|'.join(allowed)}, got {_json_type_name(data)}",
                path=path,
            )

    if "enum" in schema and data not in schema["enum"]:
        raise ValidationError(
            f"Field '{_display(path)}' must be one of {schema['enum']!r}, got {data!r}",
            path=path,
        )

    if isinstance(data, dict):
        properties = schema.get("properties") or {}
        required = schema.get("required") or []
        for name in required:
            if name not in data:
                child = f"{path}.{name}" if path else name
                raise ValidationError(f"Missing required field '{child}'", path=child)
        for name, subschema in properties.items():
            if name not in data:
                continue
            value = data[name]
            child = f"{path}.{name}" if path else name
            # Optional fields explicitly sent as null are kept as null.
            if value is None and name not in required:
                continue
            validate(value, subschema, child)
    elif isinstance(data, list) and isinstance(schema.get("items"), dict):
        for index, item in enumerate(data):
            validate(item, schema["items"], f"{path}[{index}]")


def apply_defaults(data: Any, schema: Dict[str, Any]) -> Any:
    """
    Fill absent optional properties that declare a schema default.

    Required properties are never filled, so a reply missing them still fails
    validation. Present nulls are left alone.
    """
    if isinstance(data, dict):
        required = schema.get("required") or []
        for name, subschema in (schema.get("properties") or {}).items():
            if name not in data:
                if name not in required and "default" in subschema:
                    data[name] = copy.deepcopy(subschema["default"])
            else:
                apply_defaults(data[name], subschema)
    elif isinstance(data, list) and isinstance(schema.get("items"), dict):
        for item in data:
            apply_defaults(item, schema["items"])
    return data


def _matches_top_level_type(data: Any, schema: Optional[Dict[str, Any]]) -> bool:
    expected = (schema or {}).get("type")
    if expected is None:
        return True
    allowed = expected if isinstance(expected, list) else [expected]
    return any(_TYPE_CHECKS.get(t, lambda _v: True)(data) for t in allowed)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class ResponseParser:
    """Parse an LLM reply into validated structured data."""

    def __init__(self, logger: Optional[ShadowLogger] = None) -> None:
        self.logger = logger

    def parse(
        self,
        raw_text: str,
        schema: Optional[Dict[str, Any]] = None,
        sections: Optional[Sequence[SectionField]] = None,
    ) -> ParsedResult:
        """
        Extract structured data, first tier that succeeds wins:

        1. the whole reply is JSON
        2. markdown sections, only when a section layout is given
        3. JSON embedded in prose: fenced blocks, then the earliest balanced
           {...} or [...] span
        4. list-style prose, via NaturalLanguageItemParser

        Schema validation runs on whatever the winning tier produced. A schema
        mismatch is final; it never falls through to a later tier.
        """
        raw = raw_text or ""
        data, tier = self._extract(raw, schema, sections)
        try:
            if schema is not None:
                validate(data, schema)
        except ValidationError as exc:
            raise exc.with_raw_text(raw)
        return ParsedResult(data=data, tier=tier, raw_text=raw)

    def _extract(
        self,
        raw: str,
        schema: Optional[Dict[str, Any]],
        sections: Optional[Sequence[SectionField]],
    ) -> tuple[Any, ExtractionTier]:
        data = self.parse_direct(raw)
        if data is not _FAILED:
            return data, ExtractionTier.DIRECT_JSON

        if sections:
            data = parse_markdown_sections(raw, sections, logger=self.logger)
            if data is not None:
                return data, ExtractionTier.MARKDOWN_SECTIONS

        data = self.parse_embedded(raw, schema)
        if data is not _FAILED:
            if schema is not None:
                data = apply_defaults(data, schema)
            return data, ExtractionTier.EMBEDDED_JSON

        items = self.parse_natural_language(raw)
        if items:
            return items, ExtractionTier.NATURAL_LANGUAGE

        raise ValidationError(
            "Could not extract structured data from model response",
            raw_text=raw,
        )

    @staticmethod
    def parse_direct(raw: str) -> Any:
        text = raw.strip()
        if not text:
            return _FAILED
        try:
            return json.loads(text)
        except (ValueError, RecursionError):
            return _FAILED

    @staticmethod
    def parse_embedded(raw: str, schema: Optional[Dict[str, Any]] = None) -> Any:
        """First candidate that decodes and, given a schema, has its top-level type."""
        for candidate in embedded_json_candidates(raw):
            try:
                data = json.loads(candidate)
            except (ValueError, RecursionError):
                continue
            if _matches_top_level_type(data, schema):
                return data
        return _FAILED

    @staticmethod
    def parse_natural_language(raw: str) -> List[Dict[str, Any]]:
        return NaturalLanguageItemParser().parse(raw)
