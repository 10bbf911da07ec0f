from __future__ import annotations

import asyncio
import logging
import mimetypes
import os

import httpx

from app.config import Settings


logger = logging.getLogger(__name__)

OPENAI_TRANSCRIPTIONS_URL = "https://api.openai.com/v1/audio/transcriptions"


class TranscriptionError(Exception):
    pass


async def transcribe(file_path: str, settings: Settings) -> str:
    """Send the audio file at ``file_path`` to the configured provider.

    One attempt only. Provider and transport errors from httpx are raised
    unchanged; a malformed provider reply raises :class:`TranscriptionError`.
    """
    if settings.asr_provider == "openai":
        return await _openai_transcribe(file_path, settings)
    return _stub_transcribe(file_path)


def _stub_transcribe(file_path: str) -> str:
    return f"transcribed: {os.path.basename(file_path)}"


def _read_bytes(file_path: str) -> bytes:
    with open(file_path, "rb") as fh:
        return fh.read()


async def _openai_transcribe(file_path: str, settings: Settings) -> str:
    filename = os.path.basename(file_path)
    content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    content = await asyncio.to_thread(_read_bytes, file_path)

    headers = {"Authorization": f"Bearer {settings.openai_api_key}"}
    form = {
        "model": (None, settings.asr_model),
        "file": (filename, content, content_type),
    }
    async with httpx.AsyncClient(timeout=settings.asr_timeout_s) as client:
        r = await client.post(OPENAI_TRANSCRIPTIONS_URL, headers=headers, files=form)
        r.raise_for_status()
        data = r.json()

    text = data.get("text") if isinstance(data, dict) else None
    if not isinstance(text, str):
        raise TranscriptionError(f"unexpected transcription response: {data!r}")
    logger.debug("Transcribed %s (%d bytes) with %s", filename, len(content), settings.asr_model)
    return text
