import json
import os
from dataclasses import dataclass, field
from dotenv import load_dotenv
from typing import Optional


# Load environment variables from a .env file if present. This only needs to
# happen once so we do it at import time before reading any variables.
load_dotenv()


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


class ConnectionConstants:
    """Default values used when building SQL Server connections."""

    #: TCP port SQL Server listens on unless told otherwise
    DEFAULT_PORT = 1433

    #: TDS protocol version passed to FreeTDS
    DEFAULT_TDS_VERSION = "8.0"

    #: Driver used for SQL and domain logins when none is given
    DEFAULT_DRIVER = "ODBC Driver 17 for SQL Server"

    #: Standalone Windows logins only work through FreeTDS
    DEFAULT_STANDALONE_DRIVER = "FreeTDS"

    #: Default connection timeout when establishing database connections
    CONNECTION_TIMEOUT = 30


def _int_from_env(name: str, default: int) -> int:
    return _as_int(name, os.getenv(name), default)


def _as_int(name: str, value, default: int) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


@dataclass
class Settings:
    """Connection settings loaded from environment variables."""

    server: Optional[str] = field(default_factory=lambda: os.getenv("MSSQL_SERVER"))
    database: Optional[str] = field(default_factory=lambda: os.getenv("MSSQL_DATABASE"))
    user: Optional[str] = field(default_factory=lambda: os.getenv("MSSQL_USER"))
    domain: Optional[str] = field(default_factory=lambda: os.getenv("MSSQL_DOMAIN"))
    password: Optional[str] = field(default_factory=lambda: os.getenv("MSSQL_PASSWORD"))
    port: int = field(
        default_factory=lambda: _int_from_env("MSSQL_PORT", ConnectionConstants.DEFAULT_PORT)
    )
    driver: Optional[str] = field(default_factory=lambda: os.getenv("MSSQL_DRIVER"))
    tds_version: str = field(
        default_factory=lambda: os.getenv("MSSQL_TDS_VERSION") or ConnectionConstants.DEFAULT_TDS_VERSION
    )
    auth_mode: str = field(default_factory=lambda: os.getenv("MSSQL_AUTH_MODE") or "sql")
    connect_timeout: int = field(
        default_factory=lambda: _int_from_env(
            "MSSQL_CONNECT_TIMEOUT", ConnectionConstants.CONNECTION_TIMEOUT
        )
    )

    def __post_init__(self) -> None:
        missing = []
        if not self.server:
            missing.append("MSSQL_SERVER")
        if not self.database:
            missing.append("MSSQL_DATABASE")

        if missing:
            raise ConfigError("Missing required environment variables: " + ", ".join(missing))

        # Values from JSON config files or callers may arrive as strings or null.
        self.port = _as_int("port", self.port, ConnectionConstants.DEFAULT_PORT)
        self.connect_timeout = _as_int(
            "connect_timeout", self.connect_timeout, ConnectionConstants.CONNECTION_TIMEOUT
        )

        if self.connect_timeout <= 0:
            raise ConfigError("MSSQL_CONNECT_TIMEOUT must be a positive integer")

    def to_request(self):
        """Build a ``ConnectionRequest`` from these settings.

        Driver names and auth modes are parsed here, so a typo in the
        environment surfaces as a ``ValidationError`` before any connection
        attempt is made.
        """
        from db.profile import AuthMode, ConnectionRequest, DriverKind

        auth_mode = AuthMode.parse(self.auth_mode)
        if self.driver:
            driver = DriverKind.parse(self.driver)
        elif auth_mode is AuthMode.STANDALONE_WINDOWS_LOGIN:
            driver = DriverKind.parse(ConnectionConstants.DEFAULT_STANDALONE_DRIVER)
        else:
            driver = DriverKind.parse(ConnectionConstants.DEFAULT_DRIVER)

        return ConnectionRequest(
            server=self.server,
            database=self.database,
            user=self.user,
            domain=self.domain,
            password=self.password,
            port=self.port,
            driver=driver,
            tds_version=self.tds_version,
            auth_mode=auth_mode,
        )


def load_config(config_file=None, default_config=None):
    """Load configuration from a JSON file if provided, otherwise use defaults."""
    config = dict(default_config or {})

    if not config_file:
        return config
    if not os.path.exists(config_file):
        raise ConfigError(f"Config file does not exist: {config_file}")

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            file_config = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Error loading config file {config_file}: {e}") from e

    if not isinstance(file_config, dict):
        raise ConfigError(f"Config file {config_file} must contain a JSON object")

    config.update(file_config)
    return config
