"""FileRecord model - one uploaded file, bytes stored inline in its region's table."""
from sqlalchemy import BigInteger, Index, Integer, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base, CreatedAtMixin

DEFAULT_FILE_TYPE = "application/octet-stream"


def upload_speed_mbps(file_size: int | None, duration_ms: int | None) -> float | None:
    """Upload speed in megabytes (MiB) per second, None without a measurable duration."""
    if not file_size or not duration_ms or duration_ms <= 0:
        return None
    return round((file_size / (1024 * 1024)) / (duration_ms / 1000), 2)


class FileRecord(Base, CreatedAtMixin):
    __tablename__ = "uploaded_files"

    # SERIAL, unique only within one region's store
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    file_type: Mapped[str | None] = mapped_column(String(100), nullable=True, default=DEFAULT_FILE_TYPE)
    region: Mapped[str] = mapped_column(String(50), nullable=False)
    upload_duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        Index("idx_uploaded_files_region_created_at", "region", "created_at"),
    )


# Everything but the payload, for listings
METADATA_COLUMNS = (
    FileRecord.id,
    FileRecord.file_name,
    FileRecord.file_size,
    FileRecord.file_type,
    FileRecord.region,
    FileRecord.created_at,
    FileRecord.upload_duration_ms,
)
