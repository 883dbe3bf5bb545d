"""Resolve SQL Server connection requests into driver-ready profiles.

A ``ConnectionRequest`` describes what the caller asked for: which server,
which authentication scheme and which ODBC driver. ``resolve`` checks that
the combination makes sense and returns an immutable ``ConnectionProfile``
holding exactly the fields the selected driver needs. Nothing here touches
the network; see ``db.mssql`` for the code that actually connects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from config import ConnectionConstants

logger = logging.getLogger(__name__)


class AuthMode(Enum):
    """Authentication schemes supported when opening a connection."""

    SQL_LOGIN = "sql"
    DOMAIN_LOGIN = "domain"
    STANDALONE_WINDOWS_LOGIN = "standalone"

    @classmethod
    def parse(cls, value: "AuthMode | str") -> "AuthMode":
        """Map a mode name such as ``"domain"`` onto an ``AuthMode``."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for mode in cls:
            if text in (mode.value, mode.name.lower()):
                return mode
        raise InvalidFieldValueError("auth_mode", value)


class DriverKind(Enum):
    """ODBC drivers the resolver knows how to configure."""

    ODBC_DRIVER_17 = "ODBC Driver 17 for SQL Server"
    FREETDS = "FreeTDS"

    @classmethod
    def parse(cls, value: "DriverKind | str") -> "DriverKind":
        """Map a driver name such as ``"{FreeTDS}"`` onto a ``DriverKind``."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().strip("{}").strip().lower()
        for kind in cls:
            if text in (kind.value.lower(), kind.name.lower()):
                return kind
        raise UnsupportedDriverError(value)


class ValidationError(ValueError):
    """Base exception for requests that cannot be turned into a profile."""

    def __init__(self, message: str, auth_mode: Optional[AuthMode] = None):
        self.auth_mode = auth_mode
        super().__init__(message)


class UnsupportedDriverForModeError(ValidationError):
    """Raised when the chosen driver cannot perform the requested login."""

    def __init__(self, driver: DriverKind, auth_mode: AuthMode):
        self.driver = driver
        msg = (
            f"{auth_mode.value} login can only be done with the "
            f"{DriverKind.FREETDS.value} driver, but the {driver.value} driver was specified"
        )
        super().__init__(msg, auth_mode)


class MissingRequiredFieldError(ValidationError):
    """Raised when a field required by the selected login is not supplied."""

    def __init__(self, fields: Tuple[str, ...], auth_mode: Optional[AuthMode] = None):
        self.fields = tuple(fields)
        mode = f" for {auth_mode.value} login" if auth_mode else ""
        super().__init__(f"Missing required fields{mode}: {', '.join(self.fields)}", auth_mode)


class InvalidFieldValueError(ValidationError):
    """Raised when a supplied field has a value the resolver cannot use."""

    def __init__(self, field_name: str, value, auth_mode: Optional[AuthMode] = None):
        self.field = field_name
        self.value = value
        super().__init__(f"Invalid value for {field_name}: {value!r}", auth_mode)


class UnsupportedDriverError(ValidationError):
    """Raised when a driver name does not match any known ``DriverKind``."""

    def __init__(self, name):
        self.name = name
        supported = ", ".join(kind.value for kind in DriverKind)
        super().__init__(f"Unsupported driver {name!r}; supported drivers are: {supported}")


#: ``advisory`` attribute set on the log record emitted when credentials are
#: supplied but the selected login cannot use them.
CREDENTIALS_IGNORED = "credentials_ignored"


@dataclass(frozen=True)
class ConnectionRequest:
    """Parameters supplied by the caller for one connection attempt."""

    server: Optional[str]
    database: Optional[str]
    user: Optional[str] = None
    domain: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    port: int = ConnectionConstants.DEFAULT_PORT
    driver: DriverKind = DriverKind.ODBC_DRIVER_17
    tds_version: str = ConnectionConstants.DEFAULT_TDS_VERSION
    auth_mode: AuthMode = AuthMode.SQL_LOGIN

    def __post_init__(self) -> None:
        # Accept plain names from config files and the command line.
        object.__setattr__(self, "driver", DriverKind.parse(self.driver))
        object.__setattr__(self, "auth_mode", AuthMode.parse(self.auth_mode))
        # Port and TDS version fall back to their defaults when not supplied.
        if _missing(self.port):
            object.__setattr__(self, "port", ConnectionConstants.DEFAULT_PORT)
        if _missing(self.tds_version):
            object.__setattr__(self, "tds_version", ConnectionConstants.DEFAULT_TDS_VERSION)


@dataclass(frozen=True)
class ConnectionProfile:
    """Driver-specific connection fields produced by ``resolve``.

    A profile either carries a ``uid``/``pwd`` pair or asks for a trusted
    (integrated) connection, never both and never neither.
    """

    driver: DriverKind
    server: str
    database: str
    port: int
    uid: Optional[str] = None
    pwd: Optional[str] = field(default=None, repr=False)
    trusted_connection: bool = False
    encryption: Optional[str] = None
    tds_version: Optional[str] = None

    def __post_init__(self) -> None:
        if self.trusted_connection == (self.uid is not None):
            raise ValueError("A profile needs either uid/pwd or a trusted connection")
        if (self.uid is None) != (self.pwd is None):
            raise ValueError("uid and pwd must be supplied together")

    def describe(self) -> str:
        """Return a one-line summary that is safe to log."""
        auth = "trusted connection" if self.trusted_connection else f"uid={self.uid}"
        return f"{self.driver.value} {self.server}:{self.port}/{self.database} ({auth})"


def _missing(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _require(request: ConnectionRequest, names, auth_mode: AuthMode) -> None:
    missing = tuple(name for name in names if _missing(getattr(request, name)))
    if missing:
        raise MissingRequiredFieldError(missing, auth_mode)


def _check_common(request: ConnectionRequest) -> None:
    mode = request.auth_mode
    port = request.port
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise InvalidFieldValueError("port", port, mode)


def _domain_user(request: ConnectionRequest) -> str:
    return f"{request.domain}\\{request.user}"


def _resolve_sql_login(request: ConnectionRequest) -> ConnectionProfile:
    _require(request, ("server", "user", "password", "database"), request.auth_mode)
    tds_version = request.tds_version if request.driver is DriverKind.FREETDS else None
    return ConnectionProfile(
        driver=request.driver,
        server=request.server,
        database=request.database,
        port=request.port,
        uid=request.user,
        pwd=request.password,
        tds_version=tds_version,
    )


def _resolve_domain_login(request: ConnectionRequest) -> ConnectionProfile:
    _require(request, ("server", "database"), request.auth_mode)
    credentials = (request.user, request.domain, request.password)

    if request.driver is DriverKind.ODBC_DRIVER_17:
        if not all(_missing(value) for value in credentials):
            logger.warning(
                f"The {request.driver.value} driver only supports domain authentication "
                "via Kerberos or SSPI; credentials ignored, falling back to integrated "
                "authentication",
                extra={"advisory": CREDENTIALS_IGNORED},
            )
        return ConnectionProfile(
            driver=request.driver,
            server=request.server,
            database=request.database,
            port=request.port,
            trusted_connection=True,
        )

    if any(_missing(value) for value in credentials):
        logger.debug("Incomplete domain credentials, using integrated authentication via FreeTDS")
        return ConnectionProfile(
            driver=request.driver,
            server=request.server,
            database=request.database,
            port=request.port,
            trusted_connection=True,
            encryption="require",
            tds_version=request.tds_version,
        )

    return ConnectionProfile(
        driver=request.driver,
        server=request.server,
        database=request.database,
        port=request.port,
        uid=_domain_user(request),
        pwd=request.password,
        tds_version=request.tds_version,
    )


def _resolve_standalone_login(request: ConnectionRequest) -> ConnectionProfile:
    _require(request, ("server", "user", "domain", "password", "database"), request.auth_mode)
    return ConnectionProfile(
        driver=request.driver,
        server=request.server,
        database=request.database,
        port=request.port,
        uid=_domain_user(request),
        pwd=request.password,
        tds_version=request.tds_version,
    )


_RESOLVERS = {
    AuthMode.SQL_LOGIN: _resolve_sql_login,
    AuthMode.DOMAIN_LOGIN: _resolve_domain_login,
    AuthMode.STANDALONE_WINDOWS_LOGIN: _resolve_standalone_login,
}


def resolve(request: ConnectionRequest) -> ConnectionProfile:
    """Validate ``request`` and build the profile for its auth mode.

    Args:
        request: The connection parameters supplied by the caller.

    Returns:
        A ``ConnectionProfile`` ready to hand to a connector.

    Raises:
        UnsupportedDriverForModeError: If the driver cannot perform the login.
        MissingRequiredFieldError: If a field the login needs is absent.
        InvalidFieldValueError: If the port is unusable.
    """
    # Driver compatibility wins over every other check.
    if (
        request.auth_mode is AuthMode.STANDALONE_WINDOWS_LOGIN
        and request.driver is not DriverKind.FREETDS
    ):
        raise UnsupportedDriverForModeError(request.driver, request.auth_mode)

    _check_common(request)
    return _RESOLVERS[request.auth_mode](request)
