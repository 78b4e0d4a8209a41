"""File request/response schemas."""
from typing import Optional
from datetime import datetime
from pydantic import Field, computed_field
from app.models.file_record import upload_speed_mbps
from app.schemas.base import CamelModel, CamelORMModel


class FileMetaResponse(CamelORMModel):
    """A stored file as listed on the dashboard. Never carries the payload."""
    id: int
    file_name: str
    file_size: int
    file_type: Optional[str] = None
    region: str
    created_at: Optional[datetime] = None
    upload_duration_ms: Optional[int] = None

    @computed_field(alias="speedMBps")
    @property
    def speed_mbps(self) -> Optional[float]:
        """Megabytes (MiB) per second."""
        return upload_speed_mbps(self.file_size, self.upload_duration_ms)


class UploadDetails(CamelModel):
    file_name: str
    file_size: int
    file_type: str
    upload_duration: int
    # MiB per second
    speed_mbps: Optional[float] = Field(None, alias="speedMBps")


class UploadResponse(CamelModel):
    success: bool = True
    message: str = "File uploaded successfully"
    file_id: int
    region: str
    upload_duration: int
    details: UploadDetails
