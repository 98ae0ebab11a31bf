"""Request, response and message types shared by provider clients and adapters."""

from __future__ import annotations

import enum
from dataclasses import MISSING, dataclass, field, fields
from typing import Any, Callable, Optional

MAX_MESSAGES = 24
MAX_TOOLS = 24
MAX_TOOL_CALLS = 8


class ProviderKind(enum.Enum):
    """Known provider families."""

    OPENAI = "openai"
    CLAUDE = "claude"
    OPENROUTER = "openrouter"
    OLLAMA = "ollama"
    LLAMACPP = "llamacpp"
    UNKNOWN = "unknown"


class MessageRole(enum.Enum):
    """Role of a chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class AsyncSubmitResult(enum.Enum):
    """Outcome of handing a request to an asynchronous transport."""

    ACCEPTED = "accepted"
    BUSY = "busy"
    FAILED = "failed"


class SubmitError(Exception):
    """Raised when an asynchronous request cannot be submitted."""

    def __init__(self, message: str = "", result: AsyncSubmitResult = AsyncSubmitResult.FAILED):
        super().__init__(message)
        self.message = message
        self.result = result


@dataclass
class Message:
    """One chat message."""

    role: MessageRole
    content: str
    tool_call_id: str = ""
    tool_name: str = ""


@dataclass
class ToolDefinition:
    """A tool the model may call."""

    name: str
    description: str = ""
    input_schema_json: str = ""
    domain: str = ""
    workflow: str = ""
    find_query: str = ""
    requires_json: str = ""


@dataclass
class ToolCall:
    """A tool call emitted by the model."""

    id: str = ""
    type: str = "function"
    name: str = ""
    arguments_json: str = "{}"


@dataclass
class StreamChunk:
    """A piece of a streamed response."""

    text_delta: str = ""
    raw_chunk: str = ""
    done: bool = False
    done_reason: str = ""


@dataclass
class InvokeRequest:
    """A text-generation request."""

    base_url: str = ""
    api_key: str = ""
    http_referer: str = ""
    app_title: str = ""
    model: str = ""
    prompt: str = ""
    system_prompt: str = ""
    messages: list[Message] = field(default_factory=list)
    tools: list[ToolDefinition] = field(default_factory=list)
    tool_choice: str = ""
    enable_tool_calls: bool = False
    max_tokens: int = 512
    temperature: float = 0.7
    timeout_ms: int = 45000
    prefer_psram: bool = True
    stream: bool = False
    stream_callback: Optional[Callable[[StreamChunk], None]] = None
    body_spool: Any = None
    max_messages: int = MAX_MESSAGES
    max_tools: int = MAX_TOOLS

    def add_message(
        self,
        role: MessageRole,
        content: str,
        tool_call_id: str = "",
        tool_name: str = "",
    ) -> bool:
        """Append a message; return False when the request is full."""
        if len(self.messages) >= self.max_messages:
            return False
        self.messages.append(Message(role, content, tool_call_id, tool_name))
        return True

    def add_tool(self, definition: ToolDefinition) -> bool:
        """Append a tool definition; return False when the request is full."""
        if len(self.tools) >= self.max_tools:
            return False
        self.tools.append(definition)
        return True

    def has_tool(self, name: str) -> bool:
        """Whether a tool with this name (any case) is already attached."""
        wanted = name.lower()
        return any(tool.name.lower() == wanted for tool in self.tools)

    def reset(self) -> None:
        """Restore every field to its default."""
        for f in fields(self):
            if f.default is not MISSING:
                setattr(self, f.name, f.default)
            elif f.default_factory is not MISSING:
                setattr(self, f.name, f.default_factory())


@dataclass
class InvokeResponse:
    """The outcome of a text-generation request."""

    ok: bool = False
    status_code: int = 0
    text: str = ""
    finish_reason: str = ""
    error_code: str = ""
    error_message: str = ""
    raw_response: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    realtime_accepted: bool = False
    max_tool_calls: int = MAX_TOOL_CALLS

    def add_tool_call(self, call: ToolCall) -> bool:
        """Append a tool call; return False when the response is full."""
        if len(self.tool_calls) >= self.max_tool_calls:
            return False
        self.tool_calls.append(call)
        return True


@dataclass
class HttpRequest:
    """An HTTP request built by an adapter."""

    method: str = "POST"
    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""
    timeout_ms: int = 45000
    stream: bool = False
    non_blocking_preferred: bool = False
    prefer_psram: bool = True
    body_spool: Any = None


@dataclass
class HttpResponse:
    """An HTTP response delivered by a transport."""

    status_code: int = 0
    body: str = ""
    error_message: str = ""
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class SpeechToTextChunk:
    """A piece of a streamed transcription."""

    text_delta: str = ""
    raw_chunk: str = ""
    done: bool = False
    done_reason: str = ""


@dataclass
class SpeechToTextRequest:
    """A transcription request."""

    base_url: str = ""
    api_key: str = ""
    http_referer: str = ""
    app_title: str = ""
    model: str = ""
    audio_base64: str = ""
    audio_mime_type: str = ""
    language: str = ""
    timeout_ms: int = 45000
    prefer_psram: bool = True
    body_spool: Any = None
    stream_callback: Optional[Callable[[SpeechToTextChunk], None]] = None


@dataclass
class SpeechToTextResponse:
    """The outcome of a transcription request."""

    ok: bool = False
    status_code: int = 0
    text: str = ""
    error_code: str = ""
    error_message: str = ""
    raw_response: str = ""


@dataclass
class TextToSpeechChunk:
    """A piece of streamed synthesized audio."""

    audio_base64_delta: str = ""
    audio_mime_type: str = ""
    raw_chunk: str = ""
    done: bool = False
    done_reason: str = ""


@dataclass
class TextToSpeechRequest:
    """A speech synthesis request."""

    base_url: str = ""
    api_key: str = ""
    http_referer: str = ""
    app_title: str = ""
    model: str = ""
    input_text: str = ""
    voice: str = ""
    output_format: str = ""
    timeout_ms: int = 45000
    prefer_psram: bool = True
    body_spool: Any = None
    stream_callback: Optional[Callable[[TextToSpeechChunk], None]] = None


@dataclass
class TextToSpeechResponse:
    """The outcome of a speech synthesis request."""

    ok: bool = False
    status_code: int = 0
    audio_base64: str = ""
    audio_mime_type: str = ""
    error_code: str = ""
    error_message: str = ""
    raw_response: str = ""


@dataclass
class RealtimeParsedEvent:
    """An event decoded from a realtime session message.

    ``kind`` is one of ``"none"``, ``"text"``, ``"tool_call"``, ``"error"``,
    ``"generation_done"`` or ``"turn_done"``.
    """

    kind: str = "none"
    text_delta: str = ""
    done: bool = False
    done_reason: str = ""
    has_tool_call: bool = False
    tool_call: ToolCall = field(default_factory=ToolCall)
    prompt_tokens: int = -1
    completion_tokens: int = -1
    total_tokens: int = -1
    error_code: str = ""
    error_message: str = ""