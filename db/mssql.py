"""Convenience wrappers for establishing MSSQL connections."""

from __future__ import annotations

import logging
import urllib.parse
from typing import Any, Optional, Protocol, Union

import sqlalchemy

from config import ConnectionConstants, Settings
from db.profile import (
    AuthMode,
    ConnectionProfile,
    ConnectionRequest,
    DriverKind,
    resolve,
)
from utils.logging_helper import record_failure, record_success, redact_connection_string

logger = logging.getLogger(__name__)

DriverArg = Union[DriverKind, str]


class Connector(Protocol):
    """Anything that can open a live connection from a resolved profile."""

    def connect(self, profile: ConnectionProfile) -> Any:
        ...


def _odbc_value(value: Any) -> str:
    text = str(value)
    if any(ch in text for ch in ";{}") or text != text.strip():
        return "{" + text.replace("}", "}}") + "}"
    return text


def build_connection_string(profile: ConnectionProfile) -> str:
    """Render ``profile`` as an ODBC connection string.

    The Microsoft driver takes the port as part of ``SERVER`` while FreeTDS
    expects a separate ``PORT`` attribute.
    """
    parts = [f"DRIVER={{{profile.driver.value}}}"]
    if profile.driver is DriverKind.FREETDS:
        parts.append(f"SERVER={_odbc_value(profile.server)}")
        parts.append(f"PORT={profile.port}")
    else:
        parts.append(f"SERVER={_odbc_value(f'{profile.server},{profile.port}')}")
    parts.append(f"DATABASE={_odbc_value(profile.database)}")

    if profile.trusted_connection:
        parts.append("Trusted_Connection=yes")
    else:
        parts.append(f"UID={_odbc_value(profile.uid)}")
        parts.append(f"PWD={_odbc_value(profile.pwd)}")
    if profile.encryption:
        parts.append(f"Encryption={profile.encryption}")
    if profile.tds_version:
        parts.append(f"TDS_Version={profile.tds_version}")
    return ";".join(parts)


def build_sqlalchemy_url(profile: ConnectionProfile) -> str:
    """Return an ``mssql+pyodbc`` URL that wraps the ODBC connection string."""
    params = urllib.parse.quote_plus(build_connection_string(profile))
    return f"mssql+pyodbc:///?odbc_connect={params}"


def get_engine(profile: ConnectionProfile, **kwargs: Any) -> sqlalchemy.engine.Engine:
    """Create a SQLAlchemy engine for ``profile``."""
    logger.info(f"Creating SQLAlchemy engine for {profile.describe()}")
    return sqlalchemy.create_engine(build_sqlalchemy_url(profile), **kwargs)


class PyodbcConnector:
    """Open connections through ``pyodbc``."""

    def __init__(
        self,
        timeout: int = ConnectionConstants.CONNECTION_TIMEOUT,
        autocommit: bool = False,
    ) -> None:
        self.timeout = timeout
        self.autocommit = autocommit

    def connect(self, profile: ConnectionProfile) -> Any:
        import pyodbc  # Imported lazily so profiles can be built without a driver manager

        conn_str = build_connection_string(profile)
        logger.info(f"Connecting to {profile.describe()}")
        logger.debug(f"Connection string: {redact_connection_string(conn_str)}")
        try:
            conn = pyodbc.connect(conn_str, timeout=self.timeout, autocommit=self.autocommit)
        except Exception:
            record_failure()
            logger.error(f"Connection to {profile.server} failed")
            raise
        record_success()
        return conn


def open_connection(request: ConnectionRequest, connector: Optional[Connector] = None) -> Any:
    """Resolve ``request`` and hand the profile to ``connector``."""
    profile = resolve(request)
    return (connector or PyodbcConnector()).connect(profile)


def connect_sql_login(
    server: str,
    user: str,
    password: str,
    database: str,
    port: int = ConnectionConstants.DEFAULT_PORT,
    driver: DriverArg = DriverKind.ODBC_DRIVER_17,
    tds_version: str = ConnectionConstants.DEFAULT_TDS_VERSION,
    connector: Optional[Connector] = None,
) -> Any:
    """Connect using SQL Server login credentials.

    Either driver works. ``tds_version`` is only sent to FreeTDS.
    """
    request = ConnectionRequest(
        server=server,
        database=database,
        user=user,
        password=password,
        port=port,
        driver=driver,
        tds_version=tds_version,
        auth_mode=AuthMode.SQL_LOGIN,
    )
    return open_connection(request, connector)


def connect_domain_login(
    server: str,
    database: str,
    user: Optional[str] = None,
    domain: Optional[str] = None,
    password: Optional[str] = None,
    port: int = ConnectionConstants.DEFAULT_PORT,
    driver: DriverArg = DriverKind.ODBC_DRIVER_17,
    tds_version: str = ConnectionConstants.DEFAULT_TDS_VERSION,
    connector: Optional[Connector] = None,
) -> Any:
    """Connect using an Active Directory domain login.

    With ``ODBC Driver 17 for SQL Server`` only Kerberos / integrated (SSPI)
    authentication is possible, so any credentials passed in are ignored and
    a warning is logged. With ``FreeTDS`` a complete
    ``user``/``domain``/``password`` triple is sent as ``DOMAIN\\user``;
    otherwise FreeTDS attempts integrated authentication with encryption
    required. Integrated authentication is the more secure option and should
    be preferred when possible.
    """
    request = ConnectionRequest(
        server=server,
        database=database,
        user=user,
        domain=domain,
        password=password,
        port=port,
        driver=driver,
        tds_version=tds_version,
        auth_mode=AuthMode.DOMAIN_LOGIN,
    )
    return open_connection(request, connector)


def connect_standalone_login(
    server: str,
    user: str,
    domain: str,
    password: str,
    database: str,
    port: int = ConnectionConstants.DEFAULT_PORT,
    driver: DriverArg = DriverKind.FREETDS,
    tds_version: str = ConnectionConstants.DEFAULT_TDS_VERSION,
    connector: Optional[Connector] = None,
) -> Any:
    """Connect using a Windows login on a standalone (non-domain) server.

    This only works with the FreeTDS driver.
    """
    request = ConnectionRequest(
        server=server,
        database=database,
        user=user,
        domain=domain,
        password=password,
        port=port,
        driver=driver,
        tds_version=tds_version,
        auth_mode=AuthMode.STANDALONE_WINDOWS_LOGIN,
    )
    return open_connection(request, connector)


def get_configured_connection(
    settings: Optional[Settings] = None, connector: Optional[Connector] = None
) -> Any:
    """Connect to the server described by the ``MSSQL_*`` environment variables."""
    settings = settings or Settings()
    connector = connector or PyodbcConnector(timeout=settings.connect_timeout)
    return open_connection(settings.to_request(), connector)
