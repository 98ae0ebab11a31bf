# providerkit

Building blocks for an application that talks to AI model providers. It gives
you the request and response types, a registry of provider adapters, a runtime
for tools that a model may call, a small skill catalogue, and per-session chat
memory stored on disk. It has no dependencies outside the standard library.

## Modules

- `providerkit.types` holds the dataclasses and enums shared by everything else:
  `ProviderKind`, `MessageRole`, `AsyncSubmitResult`, `Message`,
  `ToolDefinition`, `ToolCall`, `InvokeRequest`, `InvokeResponse`,
  `HttpRequest`, `HttpResponse`, `StreamChunk`, the speech-to-text and
  text-to-speech request, response and chunk types, `RealtimeParsedEvent`, and
  `SubmitError`.
- `providerkit.registry` defines the `ProviderAdapter` and
  `AudioProviderAdapter` base classes and the `ProviderRegistry`.
- `providerkit.tool_runtime` provides `ToolRuntimeRegistry` along with the
  built-in `tools.map` and `tools.find` discovery tools.
- `providerkit.skill` provides `SkillStore` and `SkillItem`.
- `providerkit.chat_config` provides `ChatSessionStoreConfig` and
  `ChatSessionStatus`.
- `providerkit.chat_session_store` provides `ChatSessionStore`.

## Installing

```
pip install .
```

With the test dependencies:

```
pip install ".[test]"
```

## Requests

`InvokeRequest` has room for 24 messages and 24 tools. `InvokeResponse` has
room for 8 tool calls. The `add_*` methods return `False` once the limit is
reached. `has_tool` compares names without regard to case, and `reset()` puts
every field back to its default.

```python
from providerkit.types import InvokeRequest, MessageRole

request = InvokeRequest(model="some-model", api_key="placeholder", prompt="Hello")
request.add_message(MessageRole.SYSTEM, "Be brief")
```

## Provider adapters and the registry

An adapter turns an `InvokeRequest` into an `HttpRequest`, and fills an
`InvokeResponse` from an `HttpResponse`. To write one, subclass
`ProviderAdapter`, set `kind` and `id`, and implement `build_http_request` and
`parse_http_response`. An adapter that also handles audio subclasses
`AudioProviderAdapter` and overrides the speech-to-text and text-to-speech
methods it supports.

```python
from providerkit.registry import ProviderAdapter, ProviderRegistry
from providerkit.types import HttpRequest, ProviderKind

class EchoAdapter(ProviderAdapter):
    kind = ProviderKind.OLLAMA
    id = "ollama"

    def build_http_request(self, request):
        return HttpRequest(url=f"{request.base_url}/chat", body=request.prompt)

    def parse_http_response(self, http_response, response):
        response.ok = 200 <= http_response.status_code < 300
        response.text = http_response.body
        return response.ok

registry = ProviderRegistry()
registry.add(EchoAdapter())
registry.lookup("OLLAMA")             # by id, ignoring case
registry.lookup(ProviderKind.OLLAMA)  # by kind
```

The registry holds up to 10 adapters. `add` raises `ValueError` when the
registry is full, or when an adapter with the same kind or id is already there.

## Tool runtime

Each tool is a `ToolDefinition` paired with a handler. A handler takes the
`ToolCall` and returns the result JSON as a string. To report a failure, it
raises `ToolError`. Names are matched without regard to case.

```python
from providerkit.tool_runtime import AppendMode, ToolExposure, ToolRuntimeRegistry
from providerkit.types import InvokeRequest, ToolCall, ToolDefinition

tools = ToolRuntimeRegistry()
tools.register_tool(
    ToolDefinition(name="gpio.read", description="Read a GPIO pin level"),
    lambda call: '{"value":1}',
    ToolExposure.DISCOVERABLE,
)

tools.on_call(ToolCall(name="tools.find", arguments_json='{"query":"gpio"}'))
# '{"tools":[{"name":"gpio.read","description":"Read a GPIO pin level"}],"query":"gpio"}'

request = InvokeRequest(prompt="Read pin 4")
tools.append_tool_definitions(request, AppendMode.INITIAL_ONLY)
# request.tools now holds tools.map and tools.find; gpio.read is left out
tools.append_discovered_tool_definitions("gpio", 5, request)
# gpio.read is now attached as well
```

- `tools.map` lists the domains of the discoverable tools. A domain is the
  `domain` field, or else the part of the name before the first dot.
- `tools.find` returns up to `limit` discoverable tools that match the query.
  The default limit is 5, capped to the range 1–8. When nothing matches, it
  returns the first discoverable tools instead.
- `matches_query` counts a tool as a match when the whole query, or any word of
  three or more letters and digits taken from it, appears in the tool's name or
  description.
- `set_max` narrows the registry to fewer slots, and drops any tools beyond
  them. `required_tools_json_for` returns a tool's `requires_json`.

## Skills

`SkillStore` holds up to 16 `SkillItem`s. Ids are unique without regard to
case. Every failure raises `SkillError`, except `remove` of an unknown id, which
raises `KeyError`.

```python
from providerkit.skill import SkillItem, SkillStore

skills = SkillStore()
skills.add(SkillItem(id="greet", name="Greeting", instructions="Say hi"))
skills.save_to_file("skills.json")

restored = SkillStore()
restored.load_from_file("skills.json")
assert restored.get("GREET").name == "Greeting"
```

The stored form is `{"skills":[{"id":…,"name":…,"description":…,"instructions":…}]}`.
`load_json` and `load_from_file` replace the whole collection, and leave it
untouched if the payload is invalid.

## Chat session memory

`ChatSessionStore` tracks up to 8 sessions. Each session's turns are kept in
`<memory_path>/<session id>.jsonl`, and the paths are resolved under the root
directory given to `set_storage`. Times are millisecond counts on a wrapping
32-bit clock, and you pass them in. Failures raise `ChatStoreError`, or
`KeyError` for an unknown session.

```python
from providerkit.chat_config import ChatSessionStoreConfig
from providerkit.chat_session_store import ChatSessionStore
from providerkit.types import InvokeRequest

store = ChatSessionStore(ChatSessionStoreConfig(max_records=4))
store.set_storage("/tmp/myapp")
store.begin()

store.open_chat("session-1", 1000)
store.append_turn("session-1", "user", "Hi there", 1000)
store.append_turn("session-1", "assistant", "Hello!", 1200)

request = InvokeRequest(system_prompt="Be brief", prompt="What did I say?")
store.build_context_messages("session-1", request, 10)
# request.messages: system prompt, the stored turns, then the prompt as a user message

store.status()  # ChatSessionStatus(session_count=1, total_bytes=...)
```

- The text of each turn is cut to `max_text_chars`. Roles other than `system`,
  `assistant` and `tool` are stored as `user`.
- A file that grows past `soft_file_bytes` is compacted. Older turns are
  replaced by one summary turn, and the last `retained_turns_after_compact`
  turns are kept. `compact_chat` does the same on request.
- `run_mandatory_cleanup` (or `cleanup_chat`) runs at most once per
  `cleanup_interval_ms`. It drops expired sessions that have nothing in flight,
  compacts large files, and, while the directory is over `hard_total_bytes`,
  deletes session files that are no longer tracked.
- When every slot is taken, a new session evicts an idle one. Expired sessions
  go first, then the least recently active.
- `mark_in_flight` counts requests in progress. A session with requests in
  flight cannot be reset or evicted.

## What this package does not do

This package sends nothing over the network. It has no transport and no client
that runs an adapter's `HttpRequest`. It has no loop that feeds tool results
back to the model round after round, no speech-to-text or text-to-speech
client, and no realtime session handling. The types for these are defined, and
your application supplies the code that does the sending. There is no command
line program.

## Running the tests

```
pytest
```