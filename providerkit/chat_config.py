"""Configuration and status types for the chat session store."""

from __future__ import annotations

from dataclasses import dataclass, replace

MAX_TRACKED_SESSIONS = 8
DEFAULT_MEMORY_PATH = "/cache/chat_sessions"
DEFAULT_SKILLS_PATH = "/skills"


@dataclass
class ChatSessionStoreConfig:
    """Limits and paths for persisted chat sessions."""

    memory_path: str = DEFAULT_MEMORY_PATH
    skills_path: str = DEFAULT_SKILLS_PATH
    max_records: int = 8
    expiry_ms: int = 30 * 60 * 1000
    cleanup_interval_ms: int = 30000
    soft_file_bytes: int = 24 * 1024
    hard_total_bytes: int = 256 * 1024
    retained_turns_after_compact: int = 10
    compact_every_turns: int = 2
    summary_max_chars: int = 768
    max_text_chars: int = 512

    def normalized(self) -> "ChatSessionStoreConfig":
        """A copy with empty paths defaulted and counts clamped to usable values."""
        return replace(
            self,
            memory_path=self.memory_path or DEFAULT_MEMORY_PATH,
            skills_path=self.skills_path or DEFAULT_SKILLS_PATH,
            max_records=min(max(self.max_records, 1), MAX_TRACKED_SESSIONS),
            retained_turns_after_compact=self.retained_turns_after_compact or 1,
            summary_max_chars=self.summary_max_chars or 256,
        )


@dataclass
class ChatSessionStatus:
    """How many sessions are tracked and how many bytes they occupy."""

    session_count: int = 0
    total_bytes: int = 0