import dataclasses
import logging

import pytest

from db.profile import (
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


def make_request(**overrides):
    values = dict(
        server="sql01",
        database="db",
        user="alice",
        domain="CORP",
        password="p",
        auth_mode=AuthMode.SQL_LOGIN,
        driver=DriverKind.ODBC_DRIVER_17,
    )
    values.update(overrides)
    return ConnectionRequest(**values)


@pytest.mark.parametrize("driver", list(DriverKind))
def test_sql_login_uses_supplied_credentials(driver):
    profile = resolve(make_request(driver=driver, domain=None))
    assert profile.uid == "alice"
    assert profile.pwd == "p"
    assert profile.trusted_connection is False
    assert profile.port == 1433


def test_sql_login_tds_version_only_for_freetds():
    assert resolve(make_request(driver=DriverKind.ODBC_DRIVER_17)).tds_version is None
    assert resolve(make_request(driver=DriverKind.FREETDS)).tds_version == "8.0"


def test_sql_login_missing_fields_reported_together():
    with pytest.raises(MissingRequiredFieldError) as exc:
        resolve(make_request(user=None, password="", database=None))
    assert exc.value.fields == ("user", "password", "database")
    assert exc.value.auth_mode is AuthMode.SQL_LOGIN


def test_missing_server_is_rejected():
    with pytest.raises(MissingRequiredFieldError) as exc:
        resolve(make_request(server=None))
    assert exc.value.fields == ("server",)


@pytest.mark.parametrize(
    "overrides",
    [
        {},
        {"user": None, "password": None, "database": None},
        {"port": -5},
        {"tds_version": ""},
        {"server": None},
    ],
)
def test_standalone_login_rejects_odbc_driver(overrides):
    request = make_request(
        auth_mode=AuthMode.STANDALONE_WINDOWS_LOGIN,
        driver=DriverKind.ODBC_DRIVER_17,
        **overrides,
    )
    with pytest.raises(UnsupportedDriverForModeError) as exc:
        resolve(request)
    assert exc.value.driver is DriverKind.ODBC_DRIVER_17
    assert "FreeTDS" in str(exc.value)


def test_standalone_login_builds_domain_user():
    profile = resolve(
        make_request(auth_mode=AuthMode.STANDALONE_WINDOWS_LOGIN, driver=DriverKind.FREETDS)
    )
    assert profile.uid == "CORP\\alice"
    assert profile.pwd == "p"
    assert profile.tds_version == "8.0"
    assert profile.encryption is None


def test_standalone_login_requires_domain():
    request = make_request(
        auth_mode=AuthMode.STANDALONE_WINDOWS_LOGIN, driver=DriverKind.FREETDS, domain=None
    )
    with pytest.raises(MissingRequiredFieldError) as exc:
        resolve(request)
    assert exc.value.fields == ("domain",)


@pytest.mark.parametrize(
    "credentials",
    [
        {"user": "alice", "domain": None, "password": None},
        {"user": None, "domain": "CORP", "password": None},
        {"user": None, "domain": None, "password": "p"},
        {"user": "alice", "domain": "CORP", "password": "p"},
    ],
)
def test_domain_login_odbc17_ignores_credentials_with_one_warning(credentials, caplog):
    request = make_request(auth_mode=AuthMode.DOMAIN_LOGIN, **credentials)
    with caplog.at_level(logging.WARNING, logger="db.profile"):
        profile = resolve(request)

    ignored = [r for r in caplog.records if getattr(r, "advisory", None) == CREDENTIALS_IGNORED]
    assert len(ignored) == 1
    assert ignored[0].levelno == logging.WARNING
    assert profile.trusted_connection is True
    assert profile.uid is None and profile.pwd is None
    assert profile.encryption is None


def test_domain_login_odbc17_warns_on_every_call(caplog):
    request = make_request(auth_mode=AuthMode.DOMAIN_LOGIN, domain=None, password=None)
    with caplog.at_level(logging.WARNING, logger="db.profile"):
        for _ in range(3):
            resolve(request)

    ignored = [r for r in caplog.records if getattr(r, "advisory", None) == CREDENTIALS_IGNORED]
    assert len(ignored) == 3


def test_domain_login_odbc17_without_credentials_is_silent(caplog):
    request = make_request(auth_mode=AuthMode.DOMAIN_LOGIN, user=None, domain=None, password="")
    with caplog.at_level(logging.DEBUG, logger="db.profile"):
        profile = resolve(request)
    assert profile.trusted_connection is True
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


def test_domain_login_freetds_with_credentials():
    request = make_request(auth_mode=AuthMode.DOMAIN_LOGIN, driver=DriverKind.FREETDS)
    profile = resolve(request)
    assert profile.uid == "CORP\\alice"
    assert profile.pwd == "p"
    assert profile.tds_version == "8.0"
    assert profile.trusted_connection is False


@pytest.mark.parametrize("missing", ["user", "domain", "password"])
def test_domain_login_freetds_falls_back_to_integrated(missing):
    request = make_request(
        auth_mode=AuthMode.DOMAIN_LOGIN, driver=DriverKind.FREETDS, **{missing: None}
    )
    profile = resolve(request)
    assert profile.trusted_connection is True
    assert profile.encryption == "require"
    assert profile.tds_version == "8.0"
    assert profile.uid is None


def test_invalid_port_is_rejected():
    with pytest.raises(InvalidFieldValueError) as exc:
        resolve(make_request(port=70000))
    assert exc.value.field == "port"
    assert isinstance(exc.value, ValidationError)


def test_resolve_is_idempotent():
    request = make_request(auth_mode=AuthMode.DOMAIN_LOGIN, driver=DriverKind.FREETDS, port=14330)
    assert resolve(request) == resolve(request)


def test_profile_is_immutable():
    profile = resolve(make_request())
    with pytest.raises(dataclasses.FrozenInstanceError):
        profile.uid = "mallory"


def test_profile_requires_credentials_or_trust():
    with pytest.raises(ValueError):
        ConnectionProfile(driver=DriverKind.FREETDS, server="s", database="d", port=1433)
    with pytest.raises(ValueError):
        ConnectionProfile(
            driver=DriverKind.FREETDS, server="s", database="d", port=1433, uid="u"
        )


def test_password_not_in_repr():
    request = make_request(password="hunter2")
    profile = resolve(request)
    assert "hunter2" not in repr(request)
    assert "hunter2" not in repr(profile)
    assert "hunter2" not in profile.describe()


def test_request_accepts_driver_and_mode_names():
    request = make_request(driver="{freetds}", auth_mode="standalone")
    assert request.driver is DriverKind.FREETDS
    assert request.auth_mode is AuthMode.STANDALONE_WINDOWS_LOGIN


def test_unknown_driver_name_is_rejected():
    with pytest.raises(UnsupportedDriverError):
        make_request(driver="SQL Server Native Client 11.0")


def test_unknown_auth_mode_is_rejected():
    with pytest.raises(InvalidFieldValueError) as exc:
        make_request(auth_mode="kerberos")
    assert exc.value.field == "auth_mode"


@pytest.mark.parametrize("value", [None, ""])
def test_missing_port_takes_default(value):
    request = make_request(port=value)
    assert request.port == 1433
    assert resolve(request).port == 1433


@pytest.mark.parametrize("value", [None, "", "  "])
def test_missing_tds_version_takes_default(value):
    request = make_request(driver=DriverKind.FREETDS, tds_version=value)
    assert request.tds_version == "8.0"
    assert resolve(request).tds_version == "8.0"


def test_empty_tds_version_ignored_for_odbc17_sql_login():
    profile = resolve(make_request(tds_version=""))
    assert profile.uid == "alice"
    assert profile.tds_version is None
