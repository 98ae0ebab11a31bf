"""Persists chat turns per session as JSON lines, with compaction and cleanup."""

from __future__ import annotations

import json
import os
import threading
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from .chat_config import MAX_TRACKED_SESSIONS, ChatSessionStatus, ChatSessionStoreConfig
from .types import InvokeRequest, MessageRole

_U32_MASK = 0xFFFFFFFF
_U16_MAX = 0xFFFF
_SESSION_ID_MAX = 23
_CONTEXT_MAX_TURNS = 12
_COMPACT_MAX_TURNS = 16
_SUMMARY_PREFIX = "Summary: "
_SESSION_SUFFIX = ".jsonl"


class ChatStoreError(Exception):
    """Raised when the chat session store cannot carry out an operation."""


def _u32(value: int) -> int:
    return value & _U32_MASK


def _reached(now_ms: int, deadline_ms: int) -> bool:
    """Whether ``now_ms`` is at or past ``deadline_ms`` on a wrapping 32-bit clock."""
    return _u32(now_ms - deadline_ms) < 0x80000000


def _monotonic_ms() -> int:
    return _u32(int(time.monotonic() * 1000))


def _dumps(doc: dict) -> str:
    return json.dumps(doc, separators=(",", ":"), ensure_ascii=False)


def _truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars].strip()


def _normalized_role(role: Optional[str]) -> str:
    if role in ("system", "assistant", "tool"):
        return role
    return "user"


def _role_from_text(role: str) -> MessageRole:
    lowered = role.lower()
    if lowered == "system":
        return MessageRole.SYSTEM
    if lowered == "assistant":
        return MessageRole.ASSISTANT
    if lowered == "tool":
        return MessageRole.TOOL
    return MessageRole.USER


@dataclass
class _SessionMeta:
    id: str
    last_active_ms: int = 0
    expires_at_ms: int = 0
    in_flight: int = 0
    bytes: int = 0
    last_compacted_at_ms: int = 0


@dataclass
class _Turn:
    role: str
    text: str
    ts_ms: int = 0


class ChatSessionStore:
    """Tracks up to eight chat sessions, each stored as a JSON-lines file.

    Paths such as ``/cache/chat_sessions`` are taken relative to the storage
    root set with ``set_storage``. ``begin`` must be called before use.
    Times are millisecond counts on a wrapping 32-bit clock.
    """

    def __init__(
        self,
        config: Optional[ChatSessionStoreConfig] = None,
        *,
        clock: Optional[Callable[[], int]] = None,
    ):
        self._root: Optional[Path] = None
        self._lock = threading.RLock()
        self._begun = False
        self._records: list[Optional[_SessionMeta]] = [None] * MAX_TRACKED_SESSIONS
        self._last_cleanup_at_ms = 0
        self._clock = clock or _monotonic_ms
        self._config = ChatSessionStoreConfig().normalized()
        self._memory_path = self._config.memory_path
        self._skills_path = self._config.skills_path
        self._apply_config(config or ChatSessionStoreConfig())

    @property
    def config(self) -> ChatSessionStoreConfig:
        return self._config

    @property
    def memory_path(self) -> str:
        return self._memory_path

    @property
    def skills_path(self) -> str:
        return self._skills_path

    def _apply_config(self, config: ChatSessionStoreConfig) -> None:
        self._config = config.normalized()
        self._memory_path = self._config.memory_path
        self._skills_path = self._config.skills_path

    def set_config(self, config: ChatSessionStoreConfig) -> None:
        with self._lock:
            self._apply_config(config)

    def set_storage(self, root: Union[str, os.PathLike, None]) -> None:
        """Set the directory under which all store paths live."""
        self._root = None if root is None else Path(root)

    def set_memory_path(self, memory_path: str) -> None:
        """Change where session files live; an empty path is ignored."""
        if not memory_path:
            return
        with self._lock:
            self._memory_path = memory_path

    def set_skills_path(self, skills_path: str) -> None:
        """Change the skills path; an empty path is ignored."""
        if not skills_path:
            return
        with self._lock:
            self._skills_path = skills_path

    def begin(self) -> None:
        """Start the store, creating the session directory if needed."""
        if self._root is None:
            raise ChatStoreError("Storage is not configured")
        with self._lock:
            self._begun = True
            self._ensure_directory()

    # ---- paths and sizes -------------------------------------------------

    def _resolve(self, path: str) -> Path:
        assert self._root is not None
        return self._root / path.lstrip("/")

    def _directory(self) -> Path:
        return self._resolve(self._memory_path)

    def _session_path(self, session_id: str) -> Path:
        return self._resolve(f"{self._memory_path}/{session_id}{_SESSION_SUFFIX}")

    def _temp_path(self, session_id: str) -> Path:
        return self._resolve(f"{self._memory_path}/.{session_id}.tmp")

    def _ensure_directory(self) -> None:
        directory = self._directory()
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ChatStoreError(f"Unable to create session directory: {directory}") from exc

    @staticmethod
    def _file_size(path: Path) -> int:
        try:
            return path.stat().st_size if path.is_file() else 0
        except OSError:
            return 0

    def _total_bytes(self) -> int:
        directory = self._directory()
        if not directory.is_dir():
            return 0
        return sum(entry.stat().st_size for entry in directory.iterdir() if entry.is_file())

    def _refresh_bytes(self, meta: _SessionMeta) -> int:
        meta.bytes = self._file_size(self._session_path(meta.id))
        return meta.bytes

    # ---- session records -------------------------------------------------

    def _check_ready(self, session_id: str) -> str:
        if not session_id:
            raise ValueError("Session id is required")
        if self._root is None:
            raise ChatStoreError("Storage is not configured")
        if not self._begun:
            raise ChatStoreError("Store has not been started")
        return session_id[:_SESSION_ID_MAX]

    def _limit(self) -> int:
        return self._config.max_records

    def _used(self) -> list[_SessionMeta]:
        return [meta for meta in self._records[: self._limit()] if meta is not None]

    def _find(self, session_id: str) -> Optional[_SessionMeta]:
        return next((meta for meta in self._used() if meta.id == session_id), None)

    def _is_tracked(self, session_id: str) -> bool:
        return bool(session_id) and self._find(session_id) is not None

    def _clear(self, meta: _SessionMeta) -> None:
        self._records[self._records.index(meta)] = None

    def _new_meta(self, session_id: str, now_ms: int) -> _SessionMeta:
        return _SessionMeta(
            id=session_id,
            last_active_ms=now_ms,
            expires_at_ms=_u32(now_ms + self._config.expiry_ms),
        )

    def _evict_candidate(self, now_ms: int) -> Optional[_SessionMeta]:
        candidate: Optional[_SessionMeta] = None
        for meta in self._used():
            if meta.in_flight > 0:
                continue
            if candidate is None:
                candidate = meta
                continue
            if _reached(now_ms, meta.expires_at_ms) and not _reached(now_ms, candidate.expires_at_ms):
                candidate = meta
                continue
            if meta.last_active_ms < candidate.last_active_ms:
                candidate = meta
        return candidate

    def _find_or_create(self, session_id: str, now_ms: int) -> _SessionMeta:
        existing = self._find(session_id)
        if existing is not None:
            return existing

        for index in range(self._limit()):
            if self._records[index] is None:
                meta = self._new_meta(session_id, now_ms)
                self._records[index] = meta
                return meta

        evicted = self._evict_candidate(now_ms)
        if evicted is None:
            raise ChatStoreError("No session slot available")
        self._session_path(evicted.id).unlink(missing_ok=True)
        index = self._records.index(evicted)
        meta = self._new_meta(session_id, now_ms)
        self._records[index] = meta
        return meta

    def _bump(self, meta: _SessionMeta, now_ms: int) -> None:
        meta.last_active_ms = now_ms
        meta.expires_at_ms = _u32(now_ms + self._config.expiry_ms)

    # ---- public operations -------------------------------------------------

    def open_chat(self, session_id: str, now_ms: int) -> None:
        """Start tracking a session, or refresh it if already tracked."""
        self.touch(session_id, now_ms)

    def touch(self, session_id: str, now_ms: int) -> None:
        """Mark a session active at ``now_ms``, creating it if needed."""
        session_id = self._check_ready(session_id)
        with self._lock:
            self._bump(self._find_or_create(session_id, now_ms), now_ms)

    def mark_in_flight(self, session_id: str, delta: int, now_ms: int) -> None:
        """Adjust the count of requests in progress for a session."""
        session_id = self._check_ready(session_id)
        with self._lock:
            meta = self._find_or_create(session_id, now_ms)
            if delta > 0:
                meta.in_flight = min(meta.in_flight + delta, _U16_MAX)
            elif delta < 0:
                meta.in_flight = max(meta.in_flight + delta, 0)
            self._bump(meta, now_ms)
            if meta.in_flight == 0 and self._config.compact_every_turns > 0:
                self._compact(meta, self._config.retained_turns_after_compact)

    def append_turn(self, session_id: str, role: Optional[str], text: str, now_ms: int) -> None:
        """Append one turn to a session's file; empty text is skipped."""
        session_id = self._check_ready(session_id)
        with self._lock:
            meta = self._find_or_create(session_id, now_ms)
            self._ensure_directory()

            payload = _truncate(text, self._config.max_text_chars)
            if not payload:
                return

            line = _dumps({"tsMs": now_ms, "role": _normalized_role(role), "text": payload})
            try:
                with open(self._session_path(meta.id), "a", encoding="utf-8", newline="") as handle:
                    handle.write(line + "\n")
            except OSError as exc:
                raise ChatStoreError(f"Unable to append to session: {meta.id}") from exc

            self._bump(meta, now_ms)
            self._refresh_bytes(meta)
            hard_limit_exceeded = self._total_bytes() > self._config.hard_total_bytes
            if meta.bytes > self._config.soft_file_bytes:
                self._compact(meta, self._config.retained_turns_after_compact)

        if hard_limit_exceeded:
            self.run_mandatory_cleanup(now_ms)

    def build_context_messages(self, session_id: str, request: InvokeRequest, max_turns: int) -> None:
        """Fill ``request.messages`` with the system prompt, recent turns and the prompt."""
        session_id = self._check_ready(session_id)
        if max_turns <= 0:
            raise ValueError("max_turns must be positive")
        with self._lock:
            meta = self._find(session_id)
            if meta is None:
                raise KeyError(session_id)

            turns, total = self._load_tail(meta, min(max_turns, _CONTEXT_MAX_TURNS))

            prompt = request.prompt
            system_prompt = request.system_prompt
            request.messages = []
            if system_prompt:
                request.add_message(MessageRole.SYSTEM, system_prompt)
            if total > len(turns) > 0:
                request.add_message(
                    MessageRole.ASSISTANT,
                    f"{_SUMMARY_PREFIX}{total - len(turns)} earlier turns were compacted. "
                    "Use latest context.",
                )
            for turn in turns:
                if not request.add_message(_role_from_text(turn.role), turn.text):
                    break
            request.add_message(MessageRole.USER, prompt)

            self._bump(meta, self._clock())

    def compact_chat(self, session_id: str, retain_turns: int = 0) -> None:
        """Replace older turns with a summary, keeping ``retain_turns`` recent ones."""
        session_id = self._check_ready(session_id)
        with self._lock:
            meta = self._find(session_id)
            if meta is None:
                raise KeyError(session_id)
            if retain_turns <= 0:
                retain_turns = self._config.retained_turns_after_compact
            if not self._compact(meta, retain_turns):
                raise ChatStoreError(f"Unable to compact session: {session_id}")

    def delete_chat(self, session_id: str) -> None:
        """Forget a session and delete its file."""
        self.reset(session_id)

    def reset(self, session_id: str) -> None:
        """Forget a session and delete its file; unknown sessions are ignored."""
        session_id = self._check_ready(session_id)
        with self._lock:
            meta = self._find(session_id)
            if meta is None:
                return
            if meta.in_flight > 0:
                raise ChatStoreError(f"Session has requests in flight: {session_id}")
            self._session_path(meta.id).unlink(missing_ok=True)
            self._clear(meta)

    def cleanup_chat(self, now_ms: int) -> None:
        self.run_mandatory_cleanup(now_ms)

    def run_mandatory_cleanup(self, now_ms: int) -> None:
        """Drop expired sessions and compact or delete files to respect size limits.

        Runs at most once per ``cleanup_interval_ms``.
        """
        if self._root is None or not self._begun:
            return
        config = self._config
        with self._lock:
            if _u32(now_ms - self._last_cleanup_at_ms) < config.cleanup_interval_ms:
                return
            self._last_cleanup_at_ms = now_ms

            for meta in self._used():
                if _reached(now_ms, meta.expires_at_ms) and meta.in_flight == 0:
                    self._session_path(meta.id).unlink(missing_ok=True)
                    self._clear(meta)
                    continue
                if self._refresh_bytes(meta) > config.soft_file_bytes:
                    self._compact(meta, config.retained_turns_after_compact)
                    self._refresh_bytes(meta)

            total = self._total_bytes()
            if total <= config.hard_total_bytes:
                return

            for meta in self._used():
                if meta.in_flight > 0:
                    continue
                self._compact(meta, config.retained_turns_after_compact)
                self._refresh_bytes(meta)
                total = self._total_bytes()
                if total <= config.hard_total_bytes:
                    break

            directory = self._directory()
            if total <= config.hard_total_bytes or not directory.is_dir():
                return
            for entry in sorted(directory.iterdir()):
                if total <= config.hard_total_bytes:
                    break
                if not entry.is_file() or not entry.name.endswith(_SESSION_SUFFIX):
                    continue
                if self._is_tracked(entry.name[: -len(_SESSION_SUFFIX)]):
                    continue
                size = entry.stat().st_size
                entry.unlink(missing_ok=True)
                total = max(total - size, 0)

    def status(self) -> ChatSessionStatus:
        """How many sessions are tracked and the bytes in the session directory."""
        if self._root is None or not self._begun:
            return ChatSessionStatus()
        with self._lock:
            return ChatSessionStatus(session_count=len(self._used()), total_bytes=self._total_bytes())

    # ---- turn files ------------------------------------------------------

    def _parse_turn(self, line: str) -> Optional[_Turn]:
        if not line:
            return None
        try:
            doc = json.loads(line)
        except json.JSONDecodeError:
            return None
        if not isinstance(doc, dict):
            return None
        role, text = doc.get("role"), doc.get("text")
        if not isinstance(role, str) or not isinstance(text, str) or not text:
            return None
        text = _truncate(text, self._config.max_text_chars)
        if not text:
            return None
        ts_ms = doc.get("tsMs")
        if not isinstance(ts_ms, int) or isinstance(ts_ms, bool) or not 0 <= ts_ms <= _U32_MASK:
            ts_ms = 0
        return _Turn(role=role, text=text, ts_ms=ts_ms)

    def _read_turns(self, meta: _SessionMeta):
        """Yield parsed turns from a session file; nothing if it cannot be read."""
        try:
            content = self._session_path(meta.id).read_text(encoding="utf-8")
        except OSError:
            return
        for line in content.split("\n"):
            turn = self._parse_turn(line)
            if turn is not None:
                yield turn

    def _load_tail(self, meta: _SessionMeta, max_turns: int) -> tuple[list[_Turn], int]:
        """The last ``max_turns`` turns in order, and the total number of turns."""
        tail: deque[_Turn] = deque(maxlen=max_turns)
        total = 0
        for turn in self._read_turns(meta):
            tail.append(turn)
            total += 1
        return list(tail), total

    def _compact_summary(self, meta: _SessionMeta, older_count: int) -> str:
        max_chars = self._config.summary_max_chars
        summary = _SUMMARY_PREFIX
        consumed = 0
        for turn in self._read_turns(meta):
            if consumed >= older_count:
                break
            consumed += 1
            item = f"{turn.role}: {turn.text}".replace("\n", " ").replace("\r", " ").strip()
            if not item:
                continue
            if len(summary) > len(_SUMMARY_PREFIX):
                summary += " | "
            summary += item
            if len(summary) >= max_chars:
                summary = summary[:max_chars].strip()
                break
        if len(summary) <= len(_SUMMARY_PREFIX):
            summary = f"{_SUMMARY_PREFIX}{older_count} older turns compacted."
        return summary

    def _compact(self, meta: _SessionMeta, retain_turns: int) -> bool:
        if retain_turns <= 0:
            return False
        source = self._session_path(meta.id)
        if not source.exists():
            meta.bytes = 0
            return True

        turns, total = self._load_tail(meta, min(retain_turns, _COMPACT_MAX_TURNS))
        if total <= len(turns):
            meta.last_compacted_at_ms = self._clock()
            return True

        older = total - len(turns)
        try:
            summary = self._compact_summary(meta, older)
        except OSError:
            summary = f"{_SUMMARY_PREFIX}{older} older turns compacted to preserve memory."

        temp = self._temp_path(meta.id)
        lines = [_dumps({"tsMs": self._clock(), "role": "assistant", "text": summary})]
        lines.extend(_dumps({"tsMs": t.ts_ms, "role": t.role, "text": t.text}) for t in turns)
        try:
            temp.unlink(missing_ok=True)
            with open(temp, "w", encoding="utf-8", newline="") as handle:
                handle.write("".join(line + "\n" for line in lines))
            source.unlink(missing_ok=True)
            os.replace(temp, source)
        except OSError:
            temp.unlink(missing_ok=True)
            return False

        meta.last_compacted_at_ms = self._clock()
        meta.bytes = self._file_size(source)
        return True