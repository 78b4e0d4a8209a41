"""Temporary on-disk staging for incoming upload streams."""
import logging
import os
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Protocol

import aiofiles
import aiofiles.os

from app.exceptions import PayloadTooLargeError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


@dataclass
class StagedFile:
    path: Path
    size: int

    async def read_bytes(self) -> bytes:
        async with aiofiles.open(self.path, "rb") as f:
            return await f.read()


@asynccontextmanager
async def staged_upload(
    source: AsyncReadable,
    max_bytes: int,
    directory: str | None = None,
) -> AsyncIterator[StagedFile]:
    """Copy `source` to a temp file in chunks, yield it, then delete it.

    Raises PayloadTooLargeError as soon as more than `max_bytes` arrive.
    The temp file is removed on every exit path.
    """
    fd, name = tempfile.mkstemp(prefix="upload-", suffix=".part", dir=directory or None)
    os.close(fd)
    path = Path(name)
    try:
        size = 0
        async with aiofiles.open(path, "wb") as f:
            while True:
                chunk = await source.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise PayloadTooLargeError(max_bytes)
                await f.write(chunk)
        yield StagedFile(path=path, size=size)
    finally:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError:
            logger.exception("Error cleaning up temporary file %s", path)
