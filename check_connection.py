"""Check that a SQL Server connection can be opened with the given login.

Connection parameters come from the ``MSSQL_*`` environment variables (a
``.env`` file is honoured), optionally overridden by a JSON config file and
then by command line arguments. The script resolves the parameters into a
connection profile, opens a connection through ``pyodbc`` and closes it
again.

Exit codes: ``0`` on success, ``1`` if the connection attempt fails and
``2`` if the parameters are invalid.
"""

import argparse
import dataclasses
import logging
import sys
from typing import Optional, Sequence

from config import ConfigError, Settings, load_config
from db.mssql import PyodbcConnector, build_connection_string
from db.profile import AuthMode, DriverKind, ValidationError, resolve
from utils.logging_helper import connection_counts, redact_connection_string, setup_logging

logger = logging.getLogger(__name__)

SETTING_NAMES = tuple(f.name for f in dataclasses.fields(Settings))


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments for the connection check."""
    parser = argparse.ArgumentParser(description="SQL Server connection check")
    parser.add_argument("--server", help="Network address of the SQL Server instance.")
    parser.add_argument("--database", help="Database to connect to.")
    parser.add_argument("--user", help="Login name.")
    parser.add_argument("--domain", help="Windows / Active Directory domain of the login.")
    parser.add_argument("--password", help="Password for the login.")
    parser.add_argument("--port", type=int, help="TCP port SQL Server is listening on.")
    parser.add_argument(
        "--driver",
        help="ODBC driver name. One of: " + ", ".join(kind.value for kind in DriverKind),
    )
    parser.add_argument("--tds-version", help="TDS protocol version used by FreeTDS.")
    parser.add_argument(
        "--auth-mode",
        choices=[mode.value for mode in AuthMode],
        help="Authentication scheme to use.",
    )
    parser.add_argument(
        "--timeout", dest="connect_timeout", type=int, help="Connection timeout in seconds."
    )
    parser.add_argument(
        "--config-file",
        help="Path to JSON configuration file with connection settings."
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the (redacted) connection string instead of connecting."
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging."
    )
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    """Merge the JSON config file and command line arguments over the environment."""
    values = load_config(args.config_file, {})
    unknown = sorted(set(values) - set(SETTING_NAMES))
    if unknown:
        raise ConfigError(f"Unknown settings in {args.config_file}: {', '.join(unknown)}")

    for name in SETTING_NAMES:
        value = getattr(args, name, None)
        if value is not None:
            values[name] = value
    return Settings(**values)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the connection check."""
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        settings = build_settings(args)
        profile = resolve(settings.to_request())
    except (ConfigError, ValidationError) as exc:
        logger.error(f"Invalid connection settings: {exc}")
        return 2

    if args.dry_run:
        print(redact_connection_string(build_connection_string(profile)))
        return 0

    try:
        conn = PyodbcConnector(timeout=settings.connect_timeout).connect(profile)
    except Exception as exc:
        logger.error(f"Connection failed: {exc}")
        return 1
    conn.close()

    logger.info(f"Connection to {profile.describe()} succeeded")
    logger.info(
        "Run completed - successes: %s failures: %s",
        connection_counts["success"],
        connection_counts["failure"],
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
