"""Database connection utilities."""

from .profile import (
    AuthMode,
    ConnectionProfile,
    ConnectionRequest,
    CREDENTIALS_IGNORED,
    DriverKind,
    InvalidFieldValueError,
    MissingRequiredFieldError,
    UnsupportedDriverError,
    UnsupportedDriverForModeError,
    ValidationError,
    resolve,
)
from .mssql import (
    PyodbcConnector,
    connect_domain_login,
    connect_sql_login,
    connect_standalone_login,
    get_configured_connection,
)

__all__ = [
    "AuthMode",
    "ConnectionProfile",
    "ConnectionRequest",
    "CREDENTIALS_IGNORED",
    "DriverKind",
    "InvalidFieldValueError",
    "MissingRequiredFieldError",
    "UnsupportedDriverError",
    "UnsupportedDriverForModeError",
    "ValidationError",
    "resolve",
    "PyodbcConnector",
    "connect_domain_login",
    "connect_sql_login",
    "connect_standalone_login",
    "get_configured_connection",
]
