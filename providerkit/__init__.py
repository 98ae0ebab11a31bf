"""Provider-agnostic AI toolkit: request types, provider registry, tool runtime, skills and chat session memory."""

__version__ = "0.1.0"

__all__ = [
    "types",
    "registry",
    "chat_config",
    "skill",
    "tool_runtime",
    "chat_session_store",
]