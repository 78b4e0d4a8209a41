"""Upload pipeline: validate, time and persist one file into its region's store.

Duration semantics: when the client sends the epoch-millisecond instant it
started transmitting, the reported duration runs from that instant to the
moment the store acknowledged the insert (wall clock). Otherwise it runs from
the moment the server started processing the payload (monotonic clock).
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePosixPath
from typing import Callable

from sqlalchemy import insert, update
from sqlalchemy.ext.asyncio import AsyncConnection

from app.database import StorageGateway
from app.exceptions import (
    ConfigurationError,
    EmptyPayloadError,
    InvalidRegionError,
    PayloadTooLargeError,
    StorageError,
    UploadFailed,
)
from app.models.file_record import DEFAULT_FILE_TYPE, FileRecord, upload_speed_mbps
from app.services.staging import AsyncReadable, staged_upload

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024
MAX_FILE_NAME_LENGTH = 255
UNNAMED = "unnamed"
# Client-measured durations beyond this are clock skew or a bogus header
MAX_CLIENT_DURATION_MS = 24 * 60 * 60 * 1000


@dataclass
class UploadResult:
    id: int
    region: str
    upload_duration_ms: int
    file_name: str
    file_size: int
    file_type: str
    created_at: datetime | None = None

    @property
    def speed_mbps(self) -> float | None:
        return upload_speed_mbps(self.file_size, self.upload_duration_ms)


def clean_file_name(raw: str | None) -> str:
    """Reduce a client-supplied name to its last path component."""
    if not raw:
        return UNNAMED
    name = PurePosixPath(raw.replace("\\", "/")).name.strip()
    if not name or name in (".", ".."):
        return UNNAMED
    return name[:MAX_FILE_NAME_LENGTH]


class UploadPipeline:

    def __init__(
        self,
        gateway: StorageGateway,
        *,
        max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        temp_dir: str | None = None,
        monotonic: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ):
        self.gateway = gateway
        self.max_bytes = max_bytes
        self.temp_dir = temp_dir
        self._monotonic = monotonic
        self._wall_clock = wall_clock

    def _check_region(self, region: str | None) -> str:
        if not region or region not in self.gateway.registry:
            raise InvalidRegionError(region)
        return region

    async def upload(
        self,
        file_bytes: bytes | None,
        file_name: str | None,
        mime_type: str | None,
        region: str | None,
        client_start_ms: int | None = None,
    ) -> UploadResult:
        """Persist an in-memory payload as one FileRecord."""
        started = self._monotonic()
        region = self._check_region(region)
        if not file_bytes:
            raise EmptyPayloadError("No file data uploaded")
        if len(file_bytes) > self.max_bytes:
            raise PayloadTooLargeError(self.max_bytes)
        return await self._store(file_bytes, file_name, mime_type, region, started, client_start_ms)

    async def upload_stream(
        self,
        source: AsyncReadable,
        file_name: str | None,
        mime_type: str | None,
        region: str | None,
        client_start_ms: int | None = None,
    ) -> UploadResult:
        """Stage a streamed payload to a temp file, then persist it.

        The temp file is gone by the time this returns or raises. Local disk
        errors while staging surface as UploadFailed.
        """
        started = self._monotonic()
        region = self._check_region(region)
        try:
            async with staged_upload(source, self.max_bytes, self.temp_dir) as staged:
                if staged.size == 0:
                    raise EmptyPayloadError("No file data uploaded")
                file_bytes = await staged.read_bytes()
                return await self._store(file_bytes, file_name, mime_type, region, started, client_start_ms)
        except OSError as e:
            logger.error("Staging upload of %s failed: %s", file_name, e)
            raise UploadFailed(e) from e

    def _elapsed_ms(self, started: float, client_start_ms: int | None) -> int:
        if client_start_ms is not None:
            elapsed = int(self._wall_clock() * 1000) - client_start_ms
            if 0 <= elapsed <= MAX_CLIENT_DURATION_MS:
                return elapsed
            logger.warning("Client start time %s is %s server clock, using server timing",
                           client_start_ms, "ahead of" if elapsed < 0 else "too far behind")
        return max(0, int((self._monotonic() - started) * 1000))

    async def _insert_record(self, conn: AsyncConnection, values: dict) -> tuple[int, datetime | None]:
        result = await conn.execute(
            insert(FileRecord).values(**values).returning(FileRecord.id, FileRecord.created_at)
        )
        row = result.one()
        return row.id, row.created_at

    async def _store(
        self,
        file_bytes: bytes,
        file_name: str | None,
        mime_type: str | None,
        region: str,
        started: float,
        client_start_ms: int | None,
    ) -> UploadResult:
        name = clean_file_name(file_name)
        file_type = mime_type or DEFAULT_FILE_TYPE
        values = {
            "file_name": name,
            "file_data": file_bytes,
            "file_size": len(file_bytes),
            "file_type": file_type,
            "region": region,
            "upload_duration_ms": 0,
        }
        try:
            async with self.gateway.connection(region) as conn:
                record_id, created_at = await self._insert_record(conn, values)
                # Final figure covers the acknowledged insert; set before commit
                duration_ms = self._elapsed_ms(started, client_start_ms)
                await conn.execute(
                    update(FileRecord)
                    .where(FileRecord.id == record_id)
                    .values(upload_duration_ms=duration_ms)
                )
                await conn.commit()
        except (StorageError, ConfigurationError) as e:
            logger.error("Upload of %s to %s failed: %s", name, region, e)
            raise UploadFailed(e) from e

        result = UploadResult(
            id=record_id,
            region=region,
            upload_duration_ms=duration_ms,
            file_name=name,
            file_size=len(file_bytes),
            file_type=file_type,
            created_at=created_at,
        )
        logger.info(
            "Stored %s (%d bytes) in %s as id=%s in %d ms (%s MB/s)",
            name, result.file_size, region, record_id, duration_ms, result.speed_mbps,
        )
        return result
