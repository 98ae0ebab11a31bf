"""Registry of runtime tools the model may call, with built-in discovery tools."""

from __future__ import annotations

import enum
import json
import re
from dataclasses import dataclass
from typing import Callable, Optional

from .types import MAX_TOOLS, InvokeRequest, ToolCall, ToolDefinition

TOOL_FINDER_NAME = "tools.find"
TOOL_MAP_NAME = "tools.map"

_MAP_POLICY = "Use skills.find for how-to guidance, then tools.find for concrete tool schemas."
_CAPACITY_EXCEEDED = "Invoke request tool capacity exceeded"
_DEFAULT_FIND_LIMIT = 5
_MAX_FIND_LIMIT = 8
_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9]+")

ToolHandler = Callable[[ToolCall], str]


class ToolExposure(enum.Enum):
    """Whether a tool is sent up front or only after discovery."""

    INITIAL = "initial"
    DISCOVERABLE = "discoverable"


class AppendMode(enum.Enum):
    """Which registered tools to attach to a request."""

    ALL = "all"
    INITIAL_ONLY = "initial_only"
    DISCOVERABLE_ONLY = "discoverable_only"


class ToolError(Exception):
    """Raised when a tool cannot be registered, found, run or attached."""


def tool_map_definition() -> ToolDefinition:
    """Definition of the built-in tool that lists tool domains."""
    return ToolDefinition(
        name=TOOL_MAP_NAME,
        description=(
            "List runtime tool domains and compact workflows. "
            "Use first when the relevant FieldHub tool domain is unclear."
        ),
        input_schema_json='{"type":"object","additionalProperties":false,"properties":{}}',
    )


def tool_finder_definition() -> ToolDefinition:
    """Definition of the built-in tool that searches tools by intent."""
    return ToolDefinition(
        name=TOOL_FINDER_NAME,
        description=(
            "Find runtime tools by intent. "
            "Use before calling device/runtime tools when exact tool names are unknown."
        ),
        input_schema_json=(
            '{"type":"object","properties":{"query":{"type":"string"},'
            '"limit":{"type":"integer","minimum":1,"maximum":8}},"required":["query"]}'
        ),
    )


def _domain_name(definition: ToolDefinition) -> str:
    if definition.domain:
        return definition.domain
    dot = definition.name.find(".")
    if dot <= 0:
        return ""
    return definition.name[:dot]


def matches_query(definition: ToolDefinition, query: str) -> bool:
    """Whether the tool's name or description matches ``query``.

    The whole query may appear anywhere, or any alphanumeric word of three or
    more characters from it may; comparison ignores case.
    """
    if not query:
        return True
    haystack = f"{definition.name} {definition.description}".lower()
    needle = query.lower()
    if needle in haystack:
        return True
    return any(len(token) >= 3 and token in haystack for token in _TOKEN_PATTERN.findall(needle))


def _parse_args(arguments_json: str) -> dict:
    try:
        doc = json.loads(arguments_json)
    except (json.JSONDecodeError, TypeError):
        return {}
    return doc if isinstance(doc, dict) else {}


def _parse_query(args: dict) -> str:
    query = args.get("query")
    return query.strip() if isinstance(query, str) else ""


def _parse_limit(args: dict, fallback: int) -> int:
    raw = args.get("limit")
    if not isinstance(raw, int) or isinstance(raw, bool) or not 0 <= raw <= 0xFFFFFFFF:
        raw = fallback
    if raw == 0:
        return 1
    return min(raw, _MAX_FIND_LIMIT)


def _dumps(doc: dict) -> str:
    return json.dumps(doc, separators=(",", ":"), ensure_ascii=False)


@dataclass
class _Entry:
    definition: ToolDefinition
    handler: ToolHandler
    exposure: ToolExposure


class ToolRuntimeRegistry:
    """Holds tool definitions and their handlers in fixed slots.

    Handlers take the ``ToolCall`` and return the result JSON, raising
    ``ToolError`` on failure. Names match regardless of case.
    """

    MAX_ENTRIES = MAX_TOOLS

    def __init__(self) -> None:
        self._slots: list[Optional[_Entry]] = [None] * self.MAX_ENTRIES
        self._active_max = self.MAX_ENTRIES

    def _active(self) -> list[_Entry]:
        return [entry for entry in self._slots[: self._active_max] if entry is not None]

    def _discoverable(self) -> list[_Entry]:
        return [e for e in self._active() if e.exposure is ToolExposure.DISCOVERABLE]

    def _find(self, tool_name: str) -> Optional[_Entry]:
        wanted = tool_name.lower()
        return next((e for e in self._active() if e.definition.name.lower() == wanted), None)

    def set_max(self, max_entries: int) -> None:
        """Limit the registry to ``max_entries`` slots, dropping tools beyond it."""
        if max_entries <= 0 or max_entries > self.MAX_ENTRIES:
            raise ValueError(f"max_entries must be between 1 and {self.MAX_ENTRIES}")
        if max_entries < self._active_max:
            for index in range(max_entries, self.MAX_ENTRIES):
                self._slots[index] = None
        self._active_max = max_entries

    def max(self) -> int:
        """The number of usable slots."""
        return self._active_max

    def register_tool(
        self,
        definition: ToolDefinition,
        on_call: Optional[ToolHandler],
        exposure: ToolExposure = ToolExposure.INITIAL,
    ) -> None:
        """Add a tool, or replace the one with the same name."""
        if not definition.name:
            raise ToolError("Tool name is required")
        if on_call is None:
            raise ToolError("Tool callback is required")

        existing = self._find(definition.name)
        if existing is not None:
            existing.definition = definition
            existing.handler = on_call
            existing.exposure = exposure
            return

        for index in range(self._active_max):
            if self._slots[index] is None:
                self._slots[index] = _Entry(definition, on_call, exposure)
                return
        raise ToolError("Tool registry is full")

    def unregister_tool(self, tool_name: str) -> None:
        """Remove the named tool; raise ``KeyError`` if it is not registered."""
        wanted = tool_name.lower()
        for index in range(self._active_max):
            entry = self._slots[index]
            if entry is not None and entry.definition.name.lower() == wanted:
                self._slots[index] = None
                return
        raise KeyError(tool_name)

    def on_call(self, tool_call: ToolCall) -> str:
        """Run ``tool_call`` and return its result JSON."""
        if not tool_call.name:
            raise ToolError("Tool call name is empty")

        lowered = tool_call.name.lower()
        if lowered == TOOL_MAP_NAME:
            return self._tool_map()
        if lowered == TOOL_FINDER_NAME:
            return self._tool_find(tool_call.arguments_json)

        entry = self._find(tool_call.name)
        if entry is None:
            raise ToolError(f"No registered tool handler for: {tool_call.name}")
        return entry.handler(tool_call)

    def _tool_map(self) -> str:
        discoverable = self._discoverable()
        seen: set[str] = set()
        domains = []
        for source in discoverable:
            domain = _domain_name(source.definition)
            if not domain or domain.lower() in seen:
                continue
            seen.add(domain.lower())
            item: dict = {"name": domain}
            if source.definition.workflow:
                item["workflow"] = source.definition.workflow
            if source.definition.find_query:
                item["findQuery"] = source.definition.find_query
            item["tools"] = [
                e.definition.name
                for e in discoverable
                if _domain_name(e.definition).lower() == domain.lower()
            ]
            domains.append(item)
        return _dumps({"domains": domains, "policy": _MAP_POLICY})

    def _tool_find(self, arguments_json: str) -> str:
        args = _parse_args(arguments_json)
        query = _parse_query(args)
        limit = _parse_limit(args, _DEFAULT_FIND_LIMIT)
        discoverable = self._discoverable()

        found = [e for e in discoverable if matches_query(e.definition, query)][:limit]
        if not found:
            found = discoverable[:limit]

        tools = [{"name": e.definition.name, "description": e.definition.description} for e in found]
        return _dumps({"tools": tools, "query": query})

    def append_tool_definitions(self, request: InvokeRequest, mode: AppendMode = AppendMode.ALL) -> None:
        """Attach registered tools (and the discovery tools) to ``request``."""
        if mode in (AppendMode.ALL, AppendMode.INITIAL_ONLY):
            for builtin in (tool_map_definition(), tool_finder_definition()):
                if not request.has_tool(builtin.name) and not request.add_tool(builtin):
                    raise ToolError(_CAPACITY_EXCEEDED)

        for entry in self._active():
            if mode is AppendMode.INITIAL_ONLY and entry.exposure is not ToolExposure.INITIAL:
                continue
            if mode is AppendMode.DISCOVERABLE_ONLY and entry.exposure is not ToolExposure.DISCOVERABLE:
                continue
            if request.has_tool(entry.definition.name):
                continue
            if not request.add_tool(entry.definition):
                raise ToolError(_CAPACITY_EXCEEDED)

        request.enable_tool_calls = len(request.tools) > 0

    def append_discovered_tool_definitions(
        self, query: str, max_results: int, request: InvokeRequest
    ) -> None:
        """Attach discoverable tools matching ``query``, or any if none match."""
        limit = max_results or _DEFAULT_FIND_LIMIT
        discoverable = self._discoverable()

        appended = self._append_up_to(
            (e for e in discoverable if matches_query(e.definition, query)), limit, request
        )
        if appended == 0:
            self._append_up_to(iter(discoverable), limit, request)

        request.enable_tool_calls = len(request.tools) > 0

    @staticmethod
    def _append_up_to(entries, limit: int, request: InvokeRequest) -> int:
        appended = 0
        for entry in entries:
            if appended >= limit:
                break
            if request.has_tool(entry.definition.name):
                continue
            if not request.add_tool(entry.definition):
                raise ToolError(_CAPACITY_EXCEEDED)
            appended += 1
        return appended

    def has_tool(self, tool_name: str) -> bool:
        return self._find(tool_name) is not None

    def required_tools_json_for(self, tool_name: str) -> str:
        """The JSON list of tools that must succeed before this one, or ""."""
        entry = self._find(tool_name)
        return entry.definition.requires_json if entry is not None else ""

    def __len__(self) -> int:
        return len(self._active())