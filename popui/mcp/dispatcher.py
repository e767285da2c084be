"""
Mode dispatcher for the ``pop-ui`` tool.

One invocation maps to one branch: show, get, set or describe. Tool-level
failures come back as results with ``is_error`` set; renderer and storage
failures (``InternalError``) propagate to the transport.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError

from ..services.surface_store import SurfaceStore, validate_surface_name
from ..utils.errors import (
    TOOL_LEVEL_ERRORS,
    InvalidModeError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger("popui.mcp")

ListChangedCallback = Callable[[], Awaitable[Any]]


class SurfaceMode(str, Enum):
    SHOW = "show"
    GET = "get"
    SET = "set"
    DESCRIBE = "describe"


class SurfaceInvocation(BaseModel):
    """Arguments of one ``pop-ui`` call."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    mode: Optional[str] = None
    content: Optional[str] = Field(default=None, alias="tsx")
    state: Optional[Any] = Field(default=None, alias="json")


@dataclass
class ToolResult:
    text: str
    is_error: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": [{"type": "text", "text": self.text}],
            "isError": self.is_error,
        }


def as_text(value: Any) -> str:
    """Render a live state or schema the way the host expects to read it."""
    if value is None:
        return "null"
    if isinstance(value, str):
        return value
    return json.dumps(value)


def not_found(name: str) -> NotFoundError:
    return NotFoundError(f'User interface named "{name}" not found.')


def parse_state(raw: Any) -> Any:
    """Injected state arrives as a JSON string; structured values pass through."""
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"json is not a valid JSON document: {exc.msg}.") from exc


class ToolDispatcher:
    def __init__(self, store: SurfaceStore, on_list_changed: Optional[ListChangedCallback] = None):
        self.store = store
        self.on_list_changed = on_list_changed

    async def dispatch(self, arguments: Optional[Dict[str, Any]]) -> ToolResult:
        try:
            invocation = SurfaceInvocation.model_validate(arguments or {})
        except SchemaError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            return ToolResult(f"Invalid arguments: {problems}", is_error=True)

        try:
            return await self._run(invocation)
        except TOOL_LEVEL_ERRORS as exc:
            logger.info(f"pop-ui {invocation.mode or 'show'} {invocation.name!r} failed: {exc.message}")
            return ToolResult(exc.message, is_error=True)

    async def _run(self, invocation: SurfaceInvocation) -> ToolResult:
        raw_mode = invocation.mode if invocation.mode is not None else SurfaceMode.SHOW.value
        try:
            mode = SurfaceMode(raw_mode)
        except ValueError:
            raise InvalidModeError(raw_mode) from None

        name = validate_surface_name(invocation.name)
        logger.debug(f"pop-ui mode={mode.value} name={name}")

        if mode is SurfaceMode.SHOW:
            return await self.show(name, invocation.content, invocation.state)
        if mode is SurfaceMode.GET:
            return await self.get(name)
        if mode is SurfaceMode.SET:
            return await self.set(name, invocation.state)
        return await self.describe(name)

    async def show(self, name: str, content: Optional[str], state: Any = None) -> ToolResult:
        async with self.store.lock(name):
            if content is None and not self.store.exists(name):
                raise ValidationError(
                    "tsx is required when mode is show and the user interface does not exist."
                )
            injected = parse_state(state) if state is not None else None

            if content is not None:
                await self.store.write_content(name, content)
                if self.on_list_changed is not None:
                    await self.on_list_changed()
                await self.store.open(name)

            if state is not None:
                current = await self.store.set_state(name, injected)
                await self.store.reveal(name)
            else:
                await self.store.reveal(name)
                current = await self._reported(name, self.store.get_state)

        return ToolResult(as_text(current))

    async def get(self, name: str) -> ToolResult:
        if not self.store.exists(name):
            raise not_found(name)
        return ToolResult(as_text(await self._reported(name, self.store.get_state)))

    async def set(self, name: str, state: Any) -> ToolResult:
        if state is None:
            raise ValidationError("json is required when mode is set.")
        # Existence is read under the lock, after any in-flight show
        async with self.store.lock(name):
            if not self.store.exists(name):
                raise not_found(name)
            injected = parse_state(state)
            try:
                updated = await self.store.set_state(name, injected)
            except NotFoundError:
                # Backing content exists but the renderer dropped it
                await self.store.open(name)
                updated = await self.store.set_state(name, injected)
        return ToolResult(as_text(updated))

    async def describe(self, name: str) -> ToolResult:
        if not self.store.exists(name):
            raise not_found(name)
        return ToolResult(as_text(await self._reported(name, self.store.describe_state)))

    async def _reported(self, name: str, read: Callable[[str], Awaitable[Any]]) -> Any:
        """Read what the renderer reports for an existing surface.

        Existence is decided by the backing content, so a renderer that does
        not know the surface (yet) reads as ``null``.
        """
        try:
            return await read(name)
        except NotFoundError:
            logger.debug(f"Renderer has nothing for {name} yet")
            return None
