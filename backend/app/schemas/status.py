"""Region status schemas."""
from typing import Literal, Optional
from app.schemas.base import CamelModel
from app.schemas.file import FileMetaResponse


class RegionStatus(CamelModel):
    """One region's reachability plus its full file listing (newest first)."""
    region: str
    endpoint: Optional[str] = None
    status: Literal["connected", "error"]
    files: list[FileMetaResponse] = []
    error: Optional[str] = None
