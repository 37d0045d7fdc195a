from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote_plus

from mongosession.app.errors import ConfigError

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 27017
ID_FORMATS = ("string", "objectid")

_TRUE = {"1", "true", "yes", "y", "on"}


def _get_env(name: str, default: str | None = None) -> str:
    v = os.getenv(name, default)
    if v is None or v == "":
        raise ConfigError(f"Missing required env var: {name}")
    return v


def _get_number(name: str, default: str, cast: Any) -> Any:
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid value for {name}: {raw!r}") from e


@dataclass(frozen=True)
class ServerAddress:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    username: str | None = None
    password: str | None = None

    @classmethod
    def parse(cls, spec: str) -> "ServerAddress":
        """Parse ``[user:pass@]host[:port]``."""
        username = password = None
        rest = spec.strip()
        if "@" in rest:
            creds, rest = rest.rsplit("@", 1)
            username, _, password = creds.partition(":")
        host, _, port = rest.partition(":")
        try:
            port_num = int(port) if port else DEFAULT_PORT
        except ValueError as e:
            raise ConfigError(f"Invalid port in server address: {spec!r}") from e
        return cls(
            host=host or DEFAULT_HOST,
            port=port_num,
            username=username or None,
            password=password or None,
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.username) and bool(self.password)

    def host_port(self) -> str:
        return f"{self.host or DEFAULT_HOST}:{self.port or DEFAULT_PORT}"


@dataclass(frozen=True)
class Settings:
    # Cookie
    cookie_path: str = "/"
    cookie_domain: str | None = None

    # Session
    name: str = "mongo_sess"
    lifetime: int = 3600
    id_format: str = "string"

    # Mongo
    database: str = "session"
    collection: str = "sessions"
    replica_set: str | None = None
    servers: Tuple[ServerAddress, ...] = field(default_factory=lambda: (ServerAddress(),))
    uri: str | None = None
    write_journal: bool = True
    server_selection_timeout_ms: int = 30000
    tls: bool = False

    # Lock
    lock_timeout: float = 30.0
    lock_initial_delay: float = 0.005
    lock_max_delay: float = 1.0

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.database:
            raise ConfigError("You must specify a MongoDB database to use for session storage.")
        if not self.collection:
            raise ConfigError("You must specify a MongoDB collection to use for session storage.")
        if self.lifetime <= 0:
            raise ConfigError(f"Session lifetime must be positive, got {self.lifetime}")
        if self.id_format not in ID_FORMATS:
            raise ConfigError(f"Unknown session id format: {self.id_format!r}")

    def mongo_uri(self) -> str:
        if self.uri:
            return self.uri
        servers: List[ServerAddress] = list(self.servers) or [ServerAddress()]
        creds = ""
        # a connection string carries a single credential pair
        for server in servers:
            if server.has_credentials:
                creds = f"{quote_plus(server.username)}:{quote_plus(server.password)}@"
                break
        return "mongodb://" + creds + ",".join(s.host_port() for s in servers)

    def client_options(self) -> Dict[str, Any]:
        opts: Dict[str, Any] = {
            "connect": True,
            "serverSelectionTimeoutMS": self.server_selection_timeout_ms,
        }
        if self.replica_set:
            opts["replicaSet"] = self.replica_set
        if self.tls:
            opts["tls"] = True
        return opts

    def cookie_params(self) -> Dict[str, Any]:
        """Session cookie attributes for the host that issues the cookie."""
        params: Dict[str, Any] = {
            "name": self.name,
            "max_age": self.lifetime,
            "path": self.cookie_path,
        }
        if self.cookie_domain:
            params["domain"] = self.cookie_domain
        return params


def _parse_servers(raw: Optional[str]) -> Tuple[ServerAddress, ...]:
    if not raw:
        return (ServerAddress(),)
    return tuple(ServerAddress.parse(s) for s in raw.split(",") if s.strip())


def load_settings() -> Settings:
    journal_raw = os.getenv("SESSION_WRITE_JOURNAL", "true").lower().strip()
    tls_raw = os.getenv("SESSION_MONGO_TLS", "false").lower().strip()

    return Settings(
        cookie_path=os.getenv("SESSION_COOKIE_PATH", "/"),
        cookie_domain=os.getenv("SESSION_COOKIE_DOMAIN") or None,
        name=os.getenv("SESSION_NAME", "mongo_sess"),
        lifetime=_get_number("SESSION_LIFETIME", "3600", int),
        id_format=os.getenv("SESSION_ID_FORMAT", "string").lower().strip(),
        database=_get_env("SESSION_MONGO_DATABASE", "session"),
        collection=_get_env("SESSION_MONGO_COLLECTION", "sessions"),
        replica_set=os.getenv("SESSION_MONGO_REPLICA_SET") or None,
        servers=_parse_servers(os.getenv("SESSION_MONGO_SERVERS")),
        uri=os.getenv("SESSION_MONGO_URI") or None,
        write_journal=journal_raw in _TRUE,
        server_selection_timeout_ms=_get_number("SESSION_SERVER_SELECTION_TIMEOUT_MS", "30000", int),
        tls=tls_raw in _TRUE,
        lock_timeout=_get_number("SESSION_LOCK_TIMEOUT", "30", float),
        lock_initial_delay=_get_number("SESSION_LOCK_INITIAL_DELAY", "0.005", float),
        lock_max_delay=_get_number("SESSION_LOCK_MAX_DELAY", "1.0", float),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
