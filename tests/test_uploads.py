import asyncio
import os

import pytest
from unittest.mock import AsyncMock, MagicMock

from speech.asr.uploads import (
    ALLOWED_FORMATS,
    UploadReadError,
    file_extension,
    is_allowed,
    remove_upload,
    save_upload,
    unique_upload_path,
)


def _upload(chunks, filename="song.wav"):
    file = MagicMock()
    file.filename = filename
    file.read = AsyncMock(side_effect=list(chunks) + [b""])
    return file


@pytest.mark.parametrize("filename", [f"clip.{ext}" for ext in ALLOWED_FORMATS])
def test_every_allowed_format_is_accepted(filename):
    assert is_allowed(filename)


@pytest.mark.parametrize("filename,ext", [
    ("song.wav", "wav"),
    ("Song.MP3", "mp3"),
    ("archive.tar.webm", "webm"),
    ("voice.mpeg", "mpeg"),
    ("noext", ""),
    ("trailing.", ""),
    ("dir.v2/noext", ""),
])
def test_file_extension(filename, ext):
    assert file_extension(filename) == ext


@pytest.mark.parametrize("filename", ["doc.pdf", "song.wav.exe", "noext", "mp3", "fakemp3"])
def test_disallowed_formats(filename):
    assert not is_allowed(filename)


def test_unique_upload_path_shape(tmp_path):
    path = unique_upload_path(str(tmp_path), "wav")

    assert os.path.dirname(path) == str(tmp_path)
    stem, ext = os.path.splitext(os.path.basename(path))
    assert ext == ".wav"
    assert len(stem) == 32


def test_unique_upload_paths_never_collide(tmp_path):
    paths = {unique_upload_path(str(tmp_path), "mp3") for _ in range(1000)}

    assert len(paths) == 1000


@pytest.mark.asyncio
async def test_save_upload_writes_all_chunks(tmp_path):
    path = str(tmp_path / "a.wav")

    written = await save_upload(_upload([b"abc", b"def"]), path)

    assert written == 6
    with open(path, "rb") as fh:
        assert fh.read() == b"abcdef"


@pytest.mark.asyncio
async def test_save_upload_read_failure_leaves_no_file(tmp_path):
    path = str(tmp_path / "a.wav")
    file = MagicMock()
    file.filename = "a.wav"
    file.read = AsyncMock(side_effect=[b"abc", RuntimeError("connection reset")])

    with pytest.raises(UploadReadError, match="connection reset"):
        await save_upload(file, path)

    assert not os.path.exists(path)


@pytest.mark.asyncio
async def test_save_upload_into_missing_directory_raises(tmp_path):
    path = str(tmp_path / "missing" / "a.wav")

    with pytest.raises(FileNotFoundError):
        await save_upload(_upload([b"abc"]), path)


@pytest.mark.asyncio
async def test_save_upload_does_not_clobber_existing_file(tmp_path):
    path = tmp_path / "a.wav"
    path.write_bytes(b"keep")

    with pytest.raises(FileExistsError):
        await save_upload(_upload([b"abc"]), str(path))

    assert path.read_bytes() == b"keep"


def test_remove_upload(tmp_path):
    path = tmp_path / "a.wav"
    path.write_bytes(b"x")

    assert remove_upload(str(path)) is True
    assert not path.exists()


def test_remove_upload_missing_file_is_ok(tmp_path):
    assert remove_upload(str(tmp_path / "gone.wav")) is True


def test_remove_upload_failure_is_logged_not_raised(tmp_path, monkeypatch, caplog):
    def boom(path):
        raise PermissionError("read-only")

    monkeypatch.setattr("speech.asr.uploads.os.remove", boom)

    assert remove_upload(str(tmp_path / "a.wav")) is False
    assert "Error deleting file" in caplog.text


@pytest.fixture
def offloaded(monkeypatch):
    """Record every callable handed to asyncio.to_thread by the uploads module."""
    real_to_thread = asyncio.to_thread
    recorded = []

    async def recording(func, *args, **kwargs):
        recorded.append(func)
        return await real_to_thread(func, *args, **kwargs)

    monkeypatch.setattr("speech.asr.uploads.asyncio.to_thread", recording)
    return recorded


@pytest.mark.asyncio
async def test_save_upload_writes_off_the_event_loop(tmp_path, offloaded):
    path = str(tmp_path / "a.wav")

    await save_upload(_upload([b"abc", b"def"]), path)

    assert offloaded[0] is open
    writes = [f for f in offloaded[1:] if getattr(f, "__name__", "") == "write"]
    assert len(writes) == 2
