from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, File, Request, UploadFile, status
from pydantic import BaseModel

from ..mcp.protocol import list_changed_notification
from ..utils.errors import InternalError, api_error, safe_api_error

logger = logging.getLogger("popui.uploads")

router = APIRouter()


class UploadRequest(BaseModel):
    fileName: Optional[str] = None
    fileType: Optional[str] = None
    fileSize: Optional[int] = None
    fileData: Optional[List[int]] = None


def _safe_file_name(file_name: str) -> str:
    sanitized = os.path.basename(file_name.replace("\\", "/"))
    if sanitized in ("", ".", ".."):
        raise api_error("Invalid file name", code="invalid_file_name")
    return sanitized


async def _store_upload(request: Request, file_name: str, data: bytes) -> Path:
    store = request.app.state.store
    settings = request.app.state.settings
    if len(data) > settings.max_upload_bytes:
        raise api_error(
            f"File exceeds the {settings.max_upload_bytes} byte limit",
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            code="file_too_large",
        )

    path = store.content_dir / _safe_file_name(file_name)
    surface = store.surface_name(path.name)
    try:
        if surface is not None:
            # Same write path as a show on that surface
            async with store.lock(surface):
                await store.write_content(surface, data)
        else:
            store.ensure_dir()
            await asyncio.to_thread(path.write_bytes, data)
    except InternalError as exc:
        raise safe_api_error("Failed to process file upload", exc.message) from exc
    except OSError as exc:
        raise safe_api_error("Failed to process file upload", f"Writing {path} failed: {exc}") from exc

    logger.info(f"Stored upload {path.name} ({len(data)} bytes)")
    if surface is not None:
        await request.app.state.registry.broadcast(list_changed_notification())
    return path


@router.get("/api/hello")
async def hello():
    return {"message": "Hello from the server!"}


@router.get("/api/files")
async def list_files(request: Request):
    store = request.app.state.store
    try:
        files = []
        for name in store.list_names():
            path = store.path_for(name)
            files.append({"name": path.name, "path": str(path), "size": path.stat().st_size})
    except OSError as exc:
        raise safe_api_error("Could not read upload directory", str(exc)) from exc
    return {"files": files}


@router.post("/upload")
async def upload_file(request: Request, payload: UploadRequest):
    """Store a file sent as JSON with its bytes as an array of integers."""
    if not payload.fileName or payload.fileData is None:
        raise api_error("Missing file data or file name", code="missing_file")

    try:
        data = bytes(payload.fileData)
    except ValueError as exc:
        raise api_error("fileData must contain byte values (0-255)", code="invalid_file_data") from exc

    path = await _store_upload(request, payload.fileName, data)
    return {
        "success": True,
        "message": "File uploaded successfully",
        "file": {
            "originalName": payload.fileName,
            "size": payload.fileSize if payload.fileSize is not None else len(data),
            "type": payload.fileType,
            "path": str(path),
        },
    }


@router.post("/upload-form")
async def upload_form(request: Request, file: Optional[UploadFile] = File(None)):
    if file is None or not file.filename:
        raise api_error("No file uploaded", code="missing_file")

    data = await file.read()
    path = await _store_upload(request, file.filename, data)
    return {
        "success": True,
        "message": "File uploaded successfully",
        "file": {
            "originalName": file.filename,
            "size": len(data),
            "path": str(path),
        },
    }
