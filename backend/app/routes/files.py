"""Files API routes: upload into a region, download from a region."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Query, UploadFile
from fastapi.responses import Response

from app.config import settings
from app.database import StorageGateway, get_gateway
from app.exceptions import (
    InvalidRequestError,
    NotFoundError,
    PayloadTooLargeError,
    RegionalStoreError,
    UploadFailed,
)
from app.schemas.file import UploadDetails, UploadResponse
from app.services.download_handler import download
from app.services.upload_pipeline import UploadPipeline

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])


def get_upload_pipeline(gateway: StorageGateway = Depends(get_gateway)) -> UploadPipeline:
    """FastAPI dependency building the pipeline from settings."""
    return UploadPipeline(
        gateway,
        max_bytes=settings.MAX_UPLOAD_BYTES,
        temp_dir=settings.UPLOAD_TEMP_DIR or None,
    )


def _parse_start_time(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    try:
        return int(value.strip())
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid upload start time")


@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    region: Optional[str] = Form(None),
    x_upload_start_time: Optional[str] = Header(None),
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
):
    """Store an uploaded file in the chosen region and report how long it took."""
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not region:
        raise HTTPException(status_code=400, detail="No region specified")
    client_start_ms = _parse_start_time(x_upload_start_time)

    try:
        result = await pipeline.upload_stream(
            file, file.filename, file.content_type, region, client_start_ms,
        )
    except PayloadTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UploadFailed as e:
        raise HTTPException(status_code=500, detail=f"Upload failed: {e}")
    finally:
        await file.close()

    return UploadResponse(
        file_id=result.id,
        region=result.region,
        upload_duration=result.upload_duration_ms,
        details=UploadDetails(
            file_name=result.file_name,
            file_size=result.file_size,
            file_type=result.file_type,
            upload_duration=result.upload_duration_ms,
            speed_mbps=result.speed_mbps,
        ),
    )


@router.get("/download/{file_id}")
async def download_file(
    file_id: str,
    region: Optional[str] = Query(None),
    gateway: StorageGateway = Depends(get_gateway),
):
    """Download a file's bytes from the region it was stored in."""
    try:
        stored = await download(gateway, file_id, region)
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError:
        raise HTTPException(status_code=404, detail="File not found")
    except RegionalStoreError as e:
        logger.error("Download of %s from %s failed: %s", file_id, region, e)
        raise HTTPException(status_code=500, detail="Error downloading file")

    return Response(
        content=stored.data,
        media_type=stored.mime_type,
        headers={"Content-Disposition": stored.content_disposition},
    )
