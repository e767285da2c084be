"""
Resource listing for known surfaces.

Resources are derived from the backing content on every call, so a
``notifications/resources/list_changed`` broadcast simply means "list again".
"""

import json
from typing import Any, Dict, List

from ..services.surface_store import SurfaceStore
from ..utils.errors import NotFoundError, ValidationError

LIST_URI = "ui://list"
SURFACE_URI_PREFIX = "ui://surface/"
SURFACE_URI_TEMPLATE = SURFACE_URI_PREFIX + "{name}"


class ResourceLister:
    def __init__(self, store: SurfaceStore):
        self.store = store

    def list_names(self) -> List[str]:
        return self.store.list_names()

    def list_resources(self) -> Dict[str, Any]:
        resources = [
            {
                "uri": LIST_URI,
                "name": "ui/list",
                "description": "Names of all user interfaces that can be shown",
                "mimeType": "application/json",
            }
        ]
        for name in self.list_names():
            resources.append(
                {
                    "uri": f"{SURFACE_URI_PREFIX}{name}",
                    "name": name,
                    "description": f"Source of the {name} user interface",
                    "mimeType": "text/plain",
                }
            )
        return {"resources": resources}

    def list_templates(self) -> Dict[str, Any]:
        return {
            "resourceTemplates": [
                {
                    "uriTemplate": SURFACE_URI_TEMPLATE,
                    "name": "ui/surface",
                    "description": "Source of a named user interface",
                    "mimeType": "text/plain",
                }
            ]
        }

    async def read(self, uri: str) -> Dict[str, Any]:
        if uri == LIST_URI:
            return {
                "contents": [
                    {
                        "uri": uri,
                        "mimeType": "application/json",
                        "text": json.dumps(self.list_names(), indent=2),
                    }
                ]
            }

        if uri.startswith(SURFACE_URI_PREFIX):
            name = uri[len(SURFACE_URI_PREFIX):]
            try:
                content = await self.store.read_content(name)
            except ValidationError:
                content = None
            if content is not None:
                return {"contents": [{"uri": uri, "mimeType": "text/plain", "text": content}]}

        raise NotFoundError(f"Resource {uri} not found")
