"""Region registry: region identifier -> connection parameters.

Built once from settings at startup and never mutated afterwards. A region
can be declared but misconfigured (missing host); it stays in the registry
so it is still reported, and `get()` raises ConfigurationError for it.
"""
from dataclasses import dataclass, field
from types import MappingProxyType

from sqlalchemy.engine import URL

from app.config import Settings
from app.exceptions import ConfigurationError, RegionNotFoundError

# Host variables used by the reference three-region deployment
_REFERENCE_HOST_FIELDS = {
    "us-west-1": "DB_HOST_US_WEST",
    "sa-east-1": "DB_HOST_SA_EAST",
    "ap-southeast-2": "DB_HOST_AP_SOUTHEAST",
}


@dataclass(frozen=True)
class RegionConfig:
    name: str
    host: str
    port: int
    database: str
    username: str
    password: str = field(repr=False)
    connect_timeout: float = 10.0
    command_timeout: float = 30.0
    ssl_mode: str = "require"

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def url(self) -> URL:
        return URL.create(
            "postgresql+asyncpg",
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )

    def connect_args(self) -> dict:
        """Keyword arguments passed through to asyncpg.connect()."""
        return {
            "timeout": self.connect_timeout,
            "command_timeout": self.command_timeout,
            "ssl": False if self.ssl_mode == "disable" else self.ssl_mode,
        }


def parse_host_port(value: str, default_port: int = 5432) -> tuple[str, int]:
    """Split "host[:port]" into its parts."""
    host, sep, port = value.strip().rpartition(":")
    if not sep:
        return value.strip(), default_port
    if not port.isdigit():
        raise ConfigurationError(f"Invalid port in database host '{value}'")
    return host, int(port)


class RegionRegistry:
    """Immutable, ordered lookup of configured regions."""

    def __init__(self, names: list[str], hosts: dict[str, str], *,
                 database: str, username: str, password: str,
                 default_port: int = 5432, connect_timeout: float = 10.0,
                 command_timeout: float = 30.0, ssl_mode: str = "require"):
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Duplicate region in {names}")
        self._names = tuple(names)
        self._hosts = MappingProxyType({n: hosts.get(n, "") for n in names})
        self._database = database
        self._username = username
        self._password = password
        self._default_port = default_port
        self._connect_timeout = connect_timeout
        self._command_timeout = command_timeout
        self._ssl_mode = ssl_mode

    @classmethod
    def from_settings(cls, settings: Settings) -> "RegionRegistry":
        names = settings.region_names
        hosts = {}
        for name in names:
            host = settings.DB_HOSTS.get(name)
            if not host and name in _REFERENCE_HOST_FIELDS:
                host = getattr(settings, _REFERENCE_HOST_FIELDS[name])
            hosts[name] = host or ""
        return cls(
            names,
            hosts,
            database=settings.DB_NAME,
            username=settings.DB_USERNAME,
            password=settings.DB_PASSWORD,
            default_port=settings.DB_PORT,
            connect_timeout=settings.DB_CONNECT_TIMEOUT,
            command_timeout=settings.DB_COMMAND_TIMEOUT,
            ssl_mode=settings.DB_SSL_MODE,
        )

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    def __contains__(self, region: object) -> bool:
        return region in self._hosts

    def __iter__(self):
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def endpoint(self, region: str) -> str | None:
        """Raw configured host string for display, or None when unset."""
        if region not in self:
            raise RegionNotFoundError(region)
        return self._hosts[region] or None

    def get(self, region: str) -> RegionConfig:
        if region not in self:
            raise RegionNotFoundError(region)

        raw_host = self._hosts[region]
        if not raw_host:
            raise ConfigurationError(f"No database host found for region: {region}")
        missing = [
            label for label, value in (
                ("username", self._username),
                ("password", self._password),
                ("database name", self._database),
            ) if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing database {', '.join(missing)} for region: {region}"
            )

        host, port = parse_host_port(raw_host, self._default_port)
        if not host:
            raise ConfigurationError(f"Invalid database host for region: {region}")
        return RegionConfig(
            name=region,
            host=host,
            port=port,
            database=self._database,
            username=self._username,
            password=self._password,
            connect_timeout=self._connect_timeout,
            command_timeout=self._command_timeout,
            ssl_mode=self._ssl_mode,
        )
