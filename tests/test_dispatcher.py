"""
Tests for the pop-ui mode dispatcher.
"""

import asyncio
import json

import pytest

from popui.mcp.dispatcher import ToolDispatcher, as_text
from popui.services.surface_store import SurfaceStore
from popui.utils.errors import InternalError, NotFoundError

from tests._helpers import FakeRenderBridge


async def call(dispatcher, **arguments):
    return await dispatcher.dispatch(arguments)


@pytest.mark.asyncio
@pytest.mark.parametrize("mode", ["get", "describe"])
async def test_read_modes_on_unknown_name_are_not_found(dispatcher, mode):
    result = await call(dispatcher, name="ghost", mode=mode)

    assert result.is_error is True
    assert result.text == 'User interface named "ghost" not found.'


@pytest.mark.asyncio
async def test_show_then_get_succeeds_with_null_state(dispatcher, store):
    shown = await call(dispatcher, name="todo", mode="show", tsx="<Todo />")
    assert shown.is_error is False

    result = await call(dispatcher, name="todo", mode="get")

    assert result.is_error is False
    assert result.text == "null"
    assert await store.read_content("todo") == "<Todo />"


@pytest.mark.asyncio
async def test_show_new_surface_without_content_is_rejected(dispatcher, store, bridge):
    result = await call(dispatcher, name="todo", mode="show")

    assert result.is_error is True
    assert "tsx is required" in result.text
    assert store.exists("todo") is False
    assert bridge.calls == []


@pytest.mark.asyncio
async def test_set_on_unknown_name_never_creates_it(dispatcher, store):
    result = await call(dispatcher, name="ghost", mode="set", json='{"a": 1}')
    assert result.is_error is True
    assert result.text == 'User interface named "ghost" not found.'

    follow_up = await call(dispatcher, name="ghost", mode="get")
    assert follow_up.is_error is True
    assert store.exists("ghost") is False
    assert store.list_names() == []


@pytest.mark.asyncio
async def test_reshow_without_content_keeps_persisted_content(dispatcher, store, bridge):
    await call(dispatcher, name="todo", mode="show", tsx="<Todo v1 />")
    bridge.calls.clear()

    result = await call(dispatcher, name="todo", mode="show")

    assert result.is_error is False
    assert await store.read_content("todo") == "<Todo v1 />"
    assert ("open", "todo") not in bridge.calls
    assert ("reveal", "todo") in bridge.calls


@pytest.mark.asyncio
async def test_last_show_wins_without_duplicates(dispatcher, store):
    await call(dispatcher, name="todo", mode="show", tsx="<One />")
    await call(dispatcher, name="todo", mode="show", tsx="<Two />")

    assert await store.read_content("todo") == "<Two />"
    assert store.list_names() == ["todo"]


@pytest.mark.asyncio
async def test_invalid_mode_names_the_value(dispatcher):
    result = await call(dispatcher, name="todo", mode="frobnicate")

    assert result.is_error is True
    assert "frobnicate" in result.text
    assert result.text == 'Invalid mode "frobnicate".'


@pytest.mark.asyncio
async def test_missing_mode_defaults_to_show(dispatcher, store):
    result = await call(dispatcher, name="todo", tsx="<Todo />")

    assert result.is_error is False
    assert store.exists("todo")


@pytest.mark.asyncio
async def test_show_orders_persist_notify_open_inject_reveal(store, bridge):
    events = []

    async def on_list_changed():
        events.append(("notify", store.exists("todo")))

    dispatcher = ToolDispatcher(store, on_list_changed=on_list_changed)
    result = await call(dispatcher, name="todo", mode="show", tsx="<Todo />", json='{"items": []}')

    assert result.is_error is False
    assert json.loads(result.text) == {"items": []}
    # Content was on disk before the notification went out
    assert events == [("notify", True)]
    assert bridge.calls == [("open", "todo"), ("set_state", "todo"), ("reveal", "todo")]
    assert bridge.visible == ["todo"]


@pytest.mark.asyncio
async def test_show_broadcasts_list_changed(dispatcher, registry):
    async def handler(session, message):
        return None

    session = registry.register(handler)

    await call(dispatcher, name="todo", mode="show", tsx="<Todo />")

    assert session.queue.get_nowait() == {
        "jsonrpc": "2.0",
        "method": "notifications/resources/list_changed",
    }


@pytest.mark.asyncio
async def test_show_existing_without_content_does_not_broadcast(dispatcher, registry):
    await call(dispatcher, name="todo", mode="show", tsx="<Todo />")

    async def handler(session, message):
        return None

    session = registry.register(handler)
    await call(dispatcher, name="todo", mode="show")

    assert session.queue.empty()


@pytest.mark.asyncio
async def test_set_updates_live_state(dispatcher, bridge):
    await call(dispatcher, name="counter", mode="show", tsx="<Counter />")

    result = await call(dispatcher, name="counter", mode="set", json='{"count": 3}')

    assert result.is_error is False
    assert json.loads(result.text) == {"count": 3}
    assert bridge.states["counter"] == {"count": 3}

    read_back = await call(dispatcher, name="counter", mode="get")
    assert json.loads(read_back.text) == {"count": 3}


@pytest.mark.asyncio
async def test_set_requires_state(dispatcher):
    await call(dispatcher, name="counter", mode="show", tsx="<Counter />")

    result = await call(dispatcher, name="counter", mode="set")

    assert result.is_error is True
    assert result.text == "json is required when mode is set."


@pytest.mark.asyncio
async def test_set_rejects_malformed_json(dispatcher, bridge):
    await call(dispatcher, name="counter", mode="show", tsx="<Counter />")

    result = await call(dispatcher, name="counter", mode="set", json="{not json")

    assert result.is_error is True
    assert "not a valid JSON document" in result.text
    assert "counter" not in bridge.states


@pytest.mark.asyncio
async def test_describe_returns_schema(dispatcher, bridge):
    await call(dispatcher, name="form", mode="show", tsx="<Form />")
    bridge.schemas["form"] = {"type": "object", "properties": {"email": {"type": "string"}}}

    result = await call(dispatcher, name="form", mode="describe")

    assert result.is_error is False
    assert json.loads(result.text)["properties"]["email"] == {"type": "string"}


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["", "../escape", "nested/name", ".hidden", None])
async def test_rejects_unusable_names(dispatcher, store, name):
    arguments = {"mode": "show", "tsx": "<X />"}
    if name is not None:
        arguments["name"] = name

    result = await dispatcher.dispatch(arguments)

    assert result.is_error is True
    assert list(store.content_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_wrongly_typed_arguments_are_tool_errors(dispatcher):
    result = await call(dispatcher, name="todo", mode="show", tsx=42)

    assert result.is_error is True
    assert result.text.startswith("Invalid arguments:")
    assert "tsx" in result.text


class NotReportingBridge(FakeRenderBridge):
    """Renders surfaces but never reports live state or a schema."""

    async def get_state(self, name):
        await self._step("get_state", name)
        raise NotFoundError(f'User interface named "{name}" not found.')

    async def describe_state(self, name):
        await self._step("describe_state", name)
        raise NotFoundError(f'User interface named "{name}" not found.')


@pytest.mark.asyncio
async def test_show_then_get_before_renderer_reports_state(uploads_dir):
    store = SurfaceStore(uploads_dir, NotReportingBridge(), bridge_timeout=0.5)
    dispatcher = ToolDispatcher(store)

    shown = await call(dispatcher, name="todo", mode="show", tsx="<T/>")
    fetched = await call(dispatcher, name="todo", mode="get")
    described = await call(dispatcher, name="todo", mode="describe")

    assert (shown.is_error, shown.text) == (False, "null")
    assert (fetched.is_error, fetched.text) == (False, "null")
    assert (described.is_error, described.text) == (False, "null")


@pytest.mark.asyncio
async def test_renderer_losing_surface_reads_as_null(dispatcher, bridge):
    await call(dispatcher, name="todo", mode="show", tsx="<Todo />")
    bridge.opened.clear()

    result = await call(dispatcher, name="todo", mode="get")

    # Backing content still exists, so the surface does too
    assert result.is_error is False
    assert result.text == "null"


@pytest.mark.asyncio
async def test_set_reopens_surface_the_renderer_dropped(dispatcher, bridge, uploads_dir):
    await call(dispatcher, name="counter", mode="show", tsx="<Counter />")
    bridge.opened.clear()
    bridge.calls.clear()

    result = await call(dispatcher, name="counter", mode="set", json='{"count": 1}')

    assert result.is_error is False
    assert bridge.states["counter"] == {"count": 1}
    assert bridge.opened["counter"] == uploads_dir / "counter.tsx"
    assert bridge.calls == [("set_state", "counter"), ("open", "counter"), ("set_state", "counter")]


@pytest.mark.asyncio
async def test_sets_on_unknown_names_leave_no_locks_behind(dispatcher, store):
    for i in range(100):
        result = await dispatcher.dispatch({"name": f"ghost{i}", "mode": "set", "json": "{}"})
        assert result.is_error is True

    await call(dispatcher, name="todo", mode="show", tsx="<Todo />")

    assert store._locks == {}


@pytest.mark.asyncio
async def test_renderer_timeout_propagates_as_internal_error(uploads_dir):
    slow = FakeRenderBridge(delay=1.0)
    store = SurfaceStore(uploads_dir, slow, bridge_timeout=0.05)
    dispatcher = ToolDispatcher(store)

    with pytest.raises(InternalError):
        await call(dispatcher, name="todo", mode="show", tsx="<Todo />")

    # Content was persisted before the renderer was asked to open it
    assert store.exists("todo")


@pytest.mark.asyncio
async def test_show_and_set_on_same_name_are_serialized(uploads_dir):
    bridge = FakeRenderBridge(delay=0.02)
    store = SurfaceStore(uploads_dir, bridge, bridge_timeout=1.0)
    dispatcher = ToolDispatcher(store)

    await asyncio.gather(
        call(dispatcher, name="todo", mode="show", tsx="<Todo />", json='{"v": 1}'),
        call(dispatcher, name="todo", mode="set", json='{"v": 2}'),
    )

    actions = [action for action, _ in bridge.calls]
    # The set runs after the whole show, never in the middle of it
    assert actions == ["open", "set_state", "reveal", "set_state"]
    assert bridge.states["todo"] == {"v": 2}


def test_as_text():
    assert as_text(None) == "null"
    assert as_text("raw") == "raw"
    assert as_text({"a": [1, 2]}) == '{"a": [1, 2]}'


