"""Status aggregator: probe every region concurrently and list its files.

Each region runs as its own task. A region's failure becomes an "error"
entry for that region only; the result always has one entry per configured
region, in registry order.
"""
import asyncio
import logging

from sqlalchemy import desc, select

from app.database import StorageGateway
from app.exceptions import safe_error_message
from app.models.file_record import METADATA_COLUMNS, FileRecord
from app.schemas.file import FileMetaResponse
from app.schemas.status import RegionStatus

logger = logging.getLogger(__name__)


async def list_region_files(gateway: StorageGateway, region: str) -> list[FileMetaResponse]:
    """All FileRecords of a region, most recent first, without payloads."""
    rows = await gateway.execute(
        region,
        select(*METADATA_COLUMNS)
        .where(FileRecord.region == region)
        .order_by(desc(FileRecord.created_at), desc(FileRecord.id)),
    )
    return [FileMetaResponse.model_validate(dict(row)) for row in rows]


async def _region_status(gateway: StorageGateway, region: str) -> RegionStatus:
    endpoint = gateway.registry.endpoint(region)
    try:
        await gateway.ping(region)
        files = await list_region_files(gateway, region)
    except Exception as e:
        message = safe_error_message(e)
        logger.warning("Database error for %s: %s", region, message)
        return RegionStatus(region=region, endpoint=endpoint, status="error", error=message, files=[])

    logger.debug("Fetched %d file(s) for %s", len(files), region)
    return RegionStatus(region=region, endpoint=endpoint, status="connected", files=files)


async def list_statuses(gateway: StorageGateway) -> list[RegionStatus]:
    """One RegionStatus per configured region, in registry order.

    All regions are probed at once; total latency is that of the slowest one.
    """
    tasks = [
        asyncio.create_task(_region_status(gateway, region))
        for region in gateway.registry.names
    ]
    return list(await asyncio.gather(*tasks))
