from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException

from . import service
from .uploads import (
    ALLOWED_FORMATS,
    UploadReadError,
    file_extension,
    is_allowed,
    remove_upload,
    save_upload,
    unique_upload_path,
)


logger = logging.getLogger(__name__)

router = APIRouter(tags=["asr"])

UPLOAD_FIELD = "mp3"


def _error(request: Request, message: str, status_code: int) -> HTMLResponse:
    return request.app.state.templates.TemplateResponse(
        request, "error.html", {"message": message}, status_code=status_code
    )


@router.post("/upload", response_class=HTMLResponse)
async def upload(request: Request) -> HTMLResponse:
    # malformed bodies and non-file fields render error.html like a missing field
    try:
        form = await request.form()
    except (HTTPException, MultiPartException) as e:
        logger.info("Rejected malformed upload body: %s", getattr(e, "detail", e))
        return _error(request, "Failed to get the file", 400)

    try:
        mp3 = form.get(UPLOAD_FIELD)
        if not isinstance(mp3, UploadFile) or not mp3.filename:
            return _error(request, "Failed to get the file", 400)
        if not is_allowed(mp3.filename):
            logger.info("Rejected upload %r: unsupported format %r", mp3.filename, file_extension(mp3.filename))
            return _error(request, f"file format should be only: {', '.join(ALLOWED_FORMATS)}", 400)

        settings = request.app.state.settings
        path = unique_upload_path(settings.upload_dir, file_extension(mp3.filename))
        try:
            size = await save_upload(mp3, path)
        except UploadReadError:
            logger.exception("Failed to open upload %r", mp3.filename)
            return _error(request, "Failed to open the file", 500)
        except OSError:
            logger.exception("Failed to save upload %r to %s", mp3.filename, path)
            return _error(request, "Failed to save the file", 500)
    finally:
        await form.close()
    logger.info("Saved %r as %s (%d bytes)", mp3.filename, path, size)

    try:
        text = await service.transcribe(path, settings)
    except Exception:  # noqa: BLE001
        logger.exception("Transcription of %s failed", path)
        return _error(request, "Failed to transcribe speech", 502)
    finally:
        await asyncio.to_thread(remove_upload, path)

    return request.app.state.templates.TemplateResponse(request, "result.html", {"text": text})
