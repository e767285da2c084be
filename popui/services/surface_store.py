"""
Surface store: backing content on disk plus the live renderer.

A surface exists when its ``<name><suffix>`` file exists in the content
directory. The directory is shared with the upload endpoints, so listing
filters strictly by suffix.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Dict, List, Optional, TypeVar, Union

from ..utils.errors import InternalError, PopUIError, ValidationError
from .render_bridge import RenderBridge

logger = logging.getLogger("popui.surfaces")

T = TypeVar("T")


def validate_surface_name(name: Any) -> str:
    """Reject names that are not plain file stems."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required.")
    if name != Path(name).name or "/" in name or "\\" in name or name.startswith("."):
        raise ValidationError(f'Invalid user interface name "{name}".')
    return name


class SurfaceStore:
    def __init__(
        self,
        content_dir: Path,
        bridge: RenderBridge,
        *,
        suffix: str = ".tsx",
        bridge_timeout: float = 10.0,
    ):
        self.content_dir = Path(content_dir)
        self.bridge = bridge
        self.suffix = suffix if suffix.startswith(".") else f".{suffix}"
        self.bridge_timeout = bridge_timeout
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Backing content
    # ------------------------------------------------------------------

    def ensure_dir(self) -> None:
        self.content_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        return self.content_dir / f"{validate_surface_name(name)}{self.suffix}"

    def surface_name(self, file_name: str) -> Optional[str]:
        """The surface a file in the content directory backs, if any."""
        if not file_name.endswith(self.suffix):
            return None
        stem = file_name[: -len(self.suffix)]
        if not stem or stem.startswith("."):
            return None
        return stem

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    @asynccontextmanager
    async def lock(self, name: str) -> AsyncIterator[None]:
        """Write lock for one surface name.

        An entry lives only while someone holds or waits for it.
        """
        lock = self._locks.setdefault(name, asyncio.Lock())
        self._lock_users[name] = self._lock_users.get(name, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[name] -= 1
            if not self._lock_users[name]:
                del self._lock_users[name]
                del self._locks[name]

    def list_names(self) -> List[str]:
        if not self.content_dir.is_dir():
            return []
        names = []
        for entry in self.content_dir.iterdir():
            stem = self.surface_name(entry.name)
            if stem and entry.is_file():
                names.append(stem)
        return sorted(names)

    async def read_content(self, name: str) -> Optional[str]:
        path = self.path_for(name)
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise InternalError(f"Could not read {path.name}: {exc}") from exc

    async def write_content(self, name: str, content: Union[str, bytes]) -> Path:
        """Persist content for ``name``. Last write wins."""
        path = self.path_for(name)
        data = content.encode("utf-8") if isinstance(content, str) else content
        try:
            await asyncio.to_thread(self._write_atomic, path, data)
        except OSError as exc:
            raise InternalError(f"Could not save {path.name}: {exc}") from exc
        logger.info(f"Saved {path.name} ({len(data)} bytes)")
        return path

    def _write_atomic(self, path: Path, data: bytes) -> None:
        self.ensure_dir()
        fd, tmp = tempfile.mkstemp(dir=str(self.content_dir), prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    # ------------------------------------------------------------------
    # Live renderer
    # ------------------------------------------------------------------

    async def _bridge_call(self, action: str, name: str, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.bridge_timeout)
        except asyncio.TimeoutError as exc:
            raise InternalError(
                f"Timed out after {self.bridge_timeout}s waiting for the renderer ({action} {name})"
            ) from exc
        except PopUIError:
            raise
        except Exception as exc:
            logger.exception(f"Render bridge failed during {action} for {name}")
            raise InternalError(f"Render bridge failed during {action} for {name}: {exc}") from exc

    async def open(self, name: str) -> None:
        await self._bridge_call("open", name, self.bridge.open(name, self.path_for(name)))

    async def reveal(self, name: str) -> None:
        await self._bridge_call("reveal", name, self.bridge.reveal(name, self.path_for(name)))

    async def get_state(self, name: str) -> Optional[Any]:
        return await self._bridge_call("get_state", name, self.bridge.get_state(name))

    async def set_state(self, name: str, state: Any) -> Optional[Any]:
        return await self._bridge_call("set_state", name, self.bridge.set_state(name, state))

    async def describe_state(self, name: str) -> Optional[Any]:
        return await self._bridge_call("describe_state", name, self.bridge.describe_state(name))
