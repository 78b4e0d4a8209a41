"""Download handler: fetch one stored file from a region's store."""
import logging
from dataclasses import dataclass
from urllib.parse import quote

from sqlalchemy import select

from app.database import StorageGateway
from app.exceptions import InvalidRegionError, InvalidRequestError, NotFoundError
from app.models.file_record import DEFAULT_FILE_TYPE, FileRecord

logger = logging.getLogger(__name__)


@dataclass
class DownloadedFile:
    file_name: str
    mime_type: str
    data: bytes

    @property
    def content_disposition(self) -> str:
        """Quoted filename, plus RFC 5987 filename* when the name is not ASCII."""
        fallback = self.file_name.encode("ascii", "replace").decode("ascii")
        fallback = fallback.replace("\\", "\\\\").replace('"', '\\"')
        header = f'attachment; filename="{fallback}"'
        if not self.file_name.isascii():
            header += f"; filename*=UTF-8''{quote(self.file_name)}"
        return header


def parse_file_id(raw) -> int:
    """Accept a positive integer id (or its string form)."""
    try:
        file_id = int(str(raw).strip())
    except (TypeError, ValueError):
        raise InvalidRequestError(f"Invalid file id: {raw}")
    if file_id <= 0:
        raise InvalidRequestError(f"Invalid file id: {raw}")
    return file_id


async def download(gateway: StorageGateway, file_id, region: str | None) -> DownloadedFile:
    """Read a file's bytes and metadata, scoped to the given region.

    No cross-region lookup: an id that exists only elsewhere is NotFoundError.
    """
    if not region or region not in gateway.registry:
        raise InvalidRegionError(region)
    file_id = parse_file_id(file_id)

    rows = await gateway.execute(
        region,
        select(FileRecord.file_name, FileRecord.file_type, FileRecord.file_data)
        .where(FileRecord.id == file_id, FileRecord.region == region),
    )
    if not rows:
        logger.info("File %s not found in %s", file_id, region)
        raise NotFoundError(f"File {file_id} not found in {region}")

    row = rows[0]
    return DownloadedFile(
        file_name=row["file_name"],
        mime_type=row["file_type"] or DEFAULT_FILE_TYPE,
        data=bytes(row["file_data"]),
    )
