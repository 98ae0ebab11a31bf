import json

import pytest

from providerkit.chat_config import ChatSessionStoreConfig
from providerkit.chat_session_store import ChatSessionStore, ChatStoreError
from providerkit.types import InvokeRequest, MessageRole


def make_store(tmp_path, **overrides):
    store = ChatSessionStore(ChatSessionStoreConfig(**overrides), clock=lambda: 42)
    store.set_storage(tmp_path)
    store.begin()
    return store


def session_file(tmp_path, session_id):
    return tmp_path / "cache" / "chat_sessions" / f"{session_id}.jsonl"


def read_lines(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_begin_without_storage_raises():
    store = ChatSessionStore()
    with pytest.raises(ChatStoreError):
        store.begin()


def test_begin_creates_memory_directory(tmp_path):
    make_store(tmp_path)
    assert (tmp_path / "cache" / "chat_sessions").is_dir()


def test_operations_before_begin_raise(tmp_path):
    store = ChatSessionStore()
    store.set_storage(tmp_path)
    with pytest.raises(ChatStoreError):
        store.touch("s", 1000)


def test_empty_session_id_raises(tmp_path):
    store = make_store(tmp_path)
    with pytest.raises(ValueError):
        store.append_turn("", "user", "hi", 1000)


def test_append_turn_writes_json_line(tmp_path):
    store = make_store(tmp_path)
    store.append_turn("s1", "user", "hello", 1000)
    store.append_turn("s1", "robot", "beep", 1001)
    lines = read_lines(session_file(tmp_path, "s1"))
    assert lines[0] == {"tsMs": 1000, "role": "user", "text": "hello"}
    assert lines[1]["role"] == "user"
    assert list(lines[1]) == ["tsMs", "role", "text"]


def test_append_turn_truncates_and_trims(tmp_path):
    store = make_store(tmp_path, max_text_chars=5)
    store.append_turn("s1", "assistant", "abc   defgh", 1000)
    assert read_lines(session_file(tmp_path, "s1"))[0]["text"] == "abc"


def test_append_empty_text_writes_nothing(tmp_path):
    store = make_store(tmp_path)
    store.append_turn("s1", "user", "", 1000)
    assert not session_file(tmp_path, "s1").exists()
    assert store.status().session_count == 1


def test_build_context_messages_orders_messages(tmp_path):
    store = make_store(tmp_path)
    store.append_turn("s", "user", "q1", 1000)
    store.append_turn("s", "assistant", "a1", 1001)
    request = InvokeRequest(prompt="next", system_prompt="sys")
    store.build_context_messages("s", request, 10)
    assert [m.role for m in request.messages] == [
        MessageRole.SYSTEM,
        MessageRole.USER,
        MessageRole.ASSISTANT,
        MessageRole.USER,
    ]
    assert [m.content for m in request.messages] == ["sys", "q1", "a1", "next"]


def test_build_context_messages_summarizes_older_turns(tmp_path):
    store = make_store(tmp_path)
    for i in range(4):
        store.append_turn("s", "user", f"t{i}", 1000 + i)
    request = InvokeRequest(prompt="now")
    store.build_context_messages("s", request, 2)
    assert len(request.messages) == 4
    assert request.messages[0].role == MessageRole.ASSISTANT
    assert request.messages[0].content.startswith("Summary: ")
    assert [m.content for m in request.messages[1:]] == ["t2", "t3", "now"]


def test_build_context_unknown_session_raises(tmp_path):
    store = make_store(tmp_path)
    with pytest.raises(KeyError):
        store.build_context_messages("missing", InvokeRequest(prompt="x"), 4)


def test_compact_chat_keeps_recent_turns_and_summary(tmp_path):
    store = make_store(tmp_path)
    for i in range(5):
        store.append_turn("s", "user", f"t{i}", 1000 + i)
    store.compact_chat("s", 2)
    lines = read_lines(session_file(tmp_path, "s"))
    assert len(lines) == 3
    assert lines[0]["role"] == "assistant"
    assert lines[0]["text"].startswith("Summary: ")
    assert "user: t0" in lines[0]["text"]
    assert [line["text"] for line in lines[1:]] == ["t3", "t4"]
    assert lines[1]["tsMs"] == 1003


def test_compact_with_few_turns_leaves_file_unchanged(tmp_path):
    store = make_store(tmp_path)
    store.append_turn("s", "user", "only", 1000)
    before = session_file(tmp_path, "s").read_text(encoding="utf-8")
    store.compact_chat("s", 3)
    assert session_file(tmp_path, "s").read_text(encoding="utf-8") == before


def test_compact_unknown_session_raises(tmp_path):
    store = make_store(tmp_path)
    with pytest.raises(KeyError):
        store.compact_chat("nobody", 2)


def test_reset_removes_file_and_record(tmp_path):
    store = make_store(tmp_path)
    store.append_turn("s", "user", "hi", 1000)
    store.reset("s")
    assert not session_file(tmp_path, "s").exists()
    assert store.status().session_count == 0


def test_reset_unknown_session_is_ignored(tmp_path):
    store = make_store(tmp_path)
    store.append_turn("s", "user", "hi", 1000)
    store.delete_chat("other")
    assert store.status().session_count == 1


def test_reset_in_flight_raises(tmp_path):
    store = make_store(tmp_path)
    store.mark_in_flight("s", 1, 1000)
    with pytest.raises(ChatStoreError):
        store.reset("s")


def test_in_flight_never_goes_negative(tmp_path):
    store = make_store(tmp_path)
    store.append_turn("s", "user", "hi", 1000)
    store.mark_in_flight("s", -3, 1000)
    store.mark_in_flight("s", 1, 1000)
    store.mark_in_flight("s", -1, 1000)
    store.reset("s")
    assert not session_file(tmp_path, "s").exists()


def test_least_recent_session_is_evicted(tmp_path):
    store = make_store(tmp_path, max_records=2)
    store.open_chat("a", 1000)
    store.open_chat("b", 2000)
    store.append_turn("a", "user", "hi", 1500)
    store.open_chat("c", 3000)
    assert not session_file(tmp_path, "a").exists()
    assert store.status().session_count == 2
    with pytest.raises(KeyError):
        store.build_context_messages("a", InvokeRequest(prompt="x"), 4)


def test_no_slot_when_all_in_flight(tmp_path):
    store = make_store(tmp_path, max_records=1)
    store.mark_in_flight("a", 1, 1000)
    with pytest.raises(ChatStoreError):
        store.open_chat("b", 2000)


def test_cleanup_removes_expired_sessions(tmp_path):
    store = make_store(tmp_path, expiry_ms=1000, cleanup_interval_ms=0)
    store.append_turn("s", "user", "hi", 1000)
    store.cleanup_chat(5000)
    assert not session_file(tmp_path, "s").exists()
    assert store.status().session_count == 0


def test_cleanup_respects_interval(tmp_path):
    store = make_store(tmp_path, expiry_ms=1000)
    store.append_turn("s", "user", "hi", 1000)
    store.cleanup_chat(5000)
    assert session_file(tmp_path, "s").exists()
    assert store.status().session_count == 1


def test_cleanup_removes_untracked_files_over_hard_limit(tmp_path):
    store = make_store(tmp_path, hard_total_bytes=10, cleanup_interval_ms=0)
    store.append_turn("alive", "user", "hello there", 1000)
    ghost = tmp_path / "cache" / "chat_sessions" / "ghost.jsonl"
    ghost.write_text('{"tsMs":1,"role":"user","text":"boo"}\n', encoding="utf-8")
    store.run_mandatory_cleanup(2000)
    assert not ghost.exists()
    assert session_file(tmp_path, "alive").exists()


def test_soft_limit_triggers_compaction(tmp_path):
    store = make_store(tmp_path, soft_file_bytes=200, retained_turns_after_compact=2)
    for i in range(10):
        store.append_turn("s", "user", f"message number {i}", 1000 + i)
    lines = read_lines(session_file(tmp_path, "s"))
    assert len(lines) <= 3
    assert lines[-1]["text"] == "message number 9"


def test_status_counts_bytes(tmp_path):
    store = make_store(tmp_path)
    store.append_turn("a", "user", "one", 1000)
    store.append_turn("b", "user", "two", 1000)
    status = store.status()
    expected = session_file(tmp_path, "a").stat().st_size + session_file(tmp_path, "b").stat().st_size
    assert status.session_count == 2
    assert status.total_bytes == expected


def test_status_before_begin_is_empty():
    status = ChatSessionStore().status()
    assert (status.session_count, status.total_bytes) == (0, 0)


def test_set_memory_path_ignores_empty(tmp_path):
    store = make_store(tmp_path)
    store.set_memory_path("")
    assert store.memory_path == "/cache/chat_sessions"
    store.set_memory_path("/other")
    store.append_turn("s", "user", "hi", 1000)
    assert (tmp_path / "other" / "s.jsonl").exists()


def test_long_session_id_is_truncated(tmp_path):
    store = make_store(tmp_path)
    long_id = "x" * 30
    store.append_turn(long_id, "user", "hi", 1000)
    store.append_turn(long_id, "user", "again", 1001)
    assert session_file(tmp_path, long_id[:23]).exists()
    assert store.status().session_count == 1


def test_config_is_normalized(tmp_path):
    store = make_store(tmp_path, max_records=50, retained_turns_after_compact=0)
    assert store.config.max_records == 8
    assert store.config.retained_turns_after_compact == 1