from __future__ import annotations

import asyncio
import logging
import os
import uuid

from fastapi import UploadFile


logger = logging.getLogger(__name__)

ALLOWED_FORMATS = ("mp3", "flac", "m4a", "mp4", "mpeg", "mpga", "oga", "ogg", "wav", "webm")

CHUNK_SIZE = 1024 * 1024


class UploadReadError(OSError):
    """The incoming upload stream could not be read."""


def file_extension(filename: str) -> str:
    base = os.path.basename(filename or "")
    if "." not in base:
        return ""
    return base.rsplit(".", 1)[1].lower()


def is_allowed(filename: str) -> bool:
    return file_extension(filename) in ALLOWED_FORMATS


def unique_upload_path(upload_dir: str, ext: str) -> str:
    return os.path.join(upload_dir, f"{uuid.uuid4().hex}.{ext}")


async def save_upload(file: UploadFile, path: str) -> int:
    """Copy the upload to ``path`` chunk by chunk and return the byte count.

    Read errors surface as :class:`UploadReadError`, write errors as the
    original :class:`OSError`. Either way nothing is left behind at ``path``.
    """
    written = 0
    dst = await asyncio.to_thread(open, path, "xb")
    try:
        with dst:
            while True:
                try:
                    chunk = await file.read(CHUNK_SIZE)
                except Exception as e:  # noqa: BLE001
                    raise UploadReadError(f"cannot read upload {file.filename!r}: {e}") from e
                if not chunk:
                    break
                await asyncio.to_thread(dst.write, chunk)
                written += len(chunk)
    except OSError:
        await asyncio.to_thread(remove_upload, path)
        raise
    return written


def remove_upload(path: str) -> bool:
    try:
        os.remove(path)
    except FileNotFoundError:
        return True
    except OSError:
        logger.warning("Error deleting file %s", path, exc_info=True)
        return False
    return True
