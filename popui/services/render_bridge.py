"""
Bridge to the process that renders surfaces.

The bridge never holds state itself. Implementations raise
``NotFoundError`` when the renderer does not know the surface and
``InternalError`` when the renderer misbehaves.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Awaitable, Dict, Optional
from urllib.parse import quote

import httpx

from ..utils.errors import InternalError, NotFoundError
from ..utils.http_client import HttpClient

logger = logging.getLogger("popui.surfaces")


class RenderBridge(ABC):
    """Capability interface for the live rendering surface."""

    @abstractmethod
    async def open(self, name: str, source: Path) -> None:
        """Render (or re-render) ``name`` from its backing content."""

    @abstractmethod
    async def reveal(self, name: str, source: Path) -> None:
        """Make the surface visible, loading ``source`` if it is not open."""

    @abstractmethod
    async def get_state(self, name: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def set_state(self, name: str, state: Any) -> Optional[Any]:
        ...

    @abstractmethod
    async def describe_state(self, name: str) -> Optional[Any]:
        ...

    async def aclose(self) -> None:
        return None


class HttpRenderBridge(RenderBridge):
    """Talks to a renderer exposing ``/surfaces/{name}/...`` over HTTP.

    Reads (GET) and state writes (PUT) are idempotent and retried up to
    ``retries`` times; open and show (POST) are sent once.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, retries: int = 0):
        self.base_url = base_url
        self._http = HttpClient(base_url=base_url, timeout=timeout, retries=retries)

    @staticmethod
    def _url(name: str, action: str) -> str:
        return f"/surfaces/{quote(name, safe='')}/{action}"

    async def _call(self, name: str, action: str, response: Awaitable[httpx.Response]) -> Dict[str, Any]:
        try:
            resp = await response
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                raise NotFoundError(f'User interface named "{name}" not found.') from exc
            raise InternalError(
                f"Renderer rejected {action} for {name}: HTTP {exc.response.status_code}"
            ) from exc
        except httpx.TimeoutException as exc:
            raise InternalError(f"Renderer timed out during {action} for {name}") from exc
        except httpx.HTTPError as exc:
            raise InternalError(f"Renderer unreachable at {self.base_url}: {exc}") from exc

        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as exc:
            raise InternalError(f"Renderer sent invalid JSON for {action} on {name}") from exc
        if not isinstance(data, dict):
            raise InternalError(f"Renderer sent an unexpected payload for {action} on {name}")
        return data

    async def open(self, name: str, source: Path) -> None:
        await self._call(name, "open", self._http.post(
            self._url(name, "open"), json={"path": str(source)}, retries=0,
        ))
        logger.info(f"Renderer opened {name} from {source}")

    async def reveal(self, name: str, source: Path) -> None:
        await self._call(name, "show", self._http.post(
            self._url(name, "show"), json={"path": str(source)}, retries=0,
        ))

    async def get_state(self, name: str) -> Optional[Any]:
        data = await self._call(name, "state", self._http.get(self._url(name, "state")))
        return data.get("state")

    async def set_state(self, name: str, state: Any) -> Optional[Any]:
        data = await self._call(name, "state", self._http.put(self._url(name, "state"), json={"state": state}))
        return data.get("state", state)

    async def describe_state(self, name: str) -> Optional[Any]:
        data = await self._call(name, "schema", self._http.get(self._url(name, "schema")))
        return data.get("schema")

    async def aclose(self) -> None:
        await self._http.close()
