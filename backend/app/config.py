"""Application configuration from environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All config comes from env vars or .env.backend file."""

    # Declared order is the order regions are reported in
    REGIONS: str = "us-west-1,sa-east-1,ap-southeast-2"

    # JSON map of region -> "host[:port]", e.g. {"eu-central-1": "db.example:5432"}
    DB_HOSTS: dict[str, str] = {}

    # Reference deployment host variables ("host:port")
    DB_HOST_US_WEST: str = ""
    DB_HOST_SA_EAST: str = ""
    DB_HOST_AP_SOUTHEAST: str = ""

    DB_USERNAME: str = ""
    DB_PASSWORD: str = ""
    DB_NAME: str = "distributed_app"
    DB_PORT: int = 5432
    DB_SSL_MODE: str = "require"  # "disable", "prefer", "require", ...
    DB_CONNECT_TIMEOUT: float = 10.0
    DB_COMMAND_TIMEOUT: float = 30.0
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    MAX_UPLOAD_BYTES: int = 100 * 1024 * 1024
    UPLOAD_TEMP_DIR: str = ""  # empty = system temp dir

    API_PORT: int = 8721
    CORS_ORIGINS: str = "http://localhost:3000"

    class Config:
        env_file = ".env.backend"
        env_file_encoding = "utf-8"

    @property
    def region_names(self) -> list[str]:
        return [r.strip() for r in self.REGIONS.split(",") if r.strip()]


settings = Settings()
