import pytest

from logstack.rulerconfig import (
    HEADER_AUTH_CREDENTIALS_CONFLICT,
    AlertManagerClientConfig,
    AlertManagerSpec,
    BadRequestError,
    BasicAuth,
    FieldError,
    HeaderAuth,
    InvalidError,
    RulerConfig,
    RulerConfigSpec,
    RulerConfigValidator,
    RulerOverrides,
)

PASSWORD = "password"


def _basic(username):
    password = PASSWORD
    return AlertManagerSpec(
        client=AlertManagerClientConfig(
            basic_auth=BasicAuth(username=username, password=password)
        )
    )


def _header(credentials=None, credentials_file=None):
    return AlertManagerSpec(
        client=AlertManagerClientConfig(
            header_auth=HeaderAuth(
                credentials=credentials, credentials_file=credentials_file
            )
        )
    )


def _spec(global_spec, tenant_spec):
    return RulerConfigSpec(
        alert_manager_spec=global_spec,
        overrides={"tenant": RulerOverrides(alert_manager_overrides=tenant_spec)},
    )


CONFLICT_ERRORS = [
    FieldError(
        "spec.alertmanager.client.headerAuth.credentials",
        "creds",
        HEADER_AUTH_CREDENTIALS_CONFLICT,
    ),
    FieldError(
        "spec.alertmanager.client.headerAuth.credentialsFile",
        "creds-file",
        HEADER_AUTH_CREDENTIALS_CONFLICT,
    ),
    FieldError(
        "spec.overrides.tenant.alertmanager.client.headerAuth.credentials",
        "creds1",
        HEADER_AUTH_CREDENTIALS_CONFLICT,
    ),
    FieldError(
        "spec.overrides.tenant.alertmanager.client.headerAuth.credentialsFile",
        "creds-file1",
        HEADER_AUTH_CREDENTIALS_CONFLICT,
    ),
]

CASES = [
    pytest.param(_spec(_basic("user"), _basic("user1")), None, id="no header credentials"),
    pytest.param(
        _spec(_header(credentials="creds"), _header(credentials="creds1")),
        None,
        id="credentials",
    ),
    pytest.param(
        _spec(
            _header(credentials_file="creds-file"),
            _header(credentials_file="creds-file1"),
        ),
        None,
        id="credentials file",
    ),
    pytest.param(
        _spec(_header(credentials="creds"), _header(credentials_file="creds-file1")),
        None,
        id="credentials file override",
    ),
    pytest.param(
        _spec(
            _header(credentials="creds", credentials_file="creds-file"),
            _header(credentials="creds1", credentials_file="creds-file1"),
        ),
        InvalidError("loki.grafana.com", "RulerConfig", "testing-ruler", CONFLICT_ERRORS),
        id="both defined",
    ),
]


def _check(call, expected):
    if expected is None:
        assert call() == []
        return
    with pytest.raises(InvalidError) as info:
        call()
    assert info.value == expected
    assert info.value.errors == CONFLICT_ERRORS
    assert info.value.name == "testing-ruler"


@pytest.mark.parametrize("spec, expected", CASES)
def test_validate_create(spec, expected):
    config = RulerConfig(name="testing-ruler", spec=spec)
    validator = RulerConfigValidator()
    _check(lambda: validator.validate_create(config), expected)


@pytest.mark.parametrize("spec, expected", CASES)
def test_validate_update(spec, expected):
    config = RulerConfig(name="testing-ruler", spec=spec)
    validator = RulerConfigValidator()
    _check(lambda: validator.validate_update(RulerConfig(), config), expected)


def test_error_message_names_object_and_conflict():
    spec = _spec(_header(credentials="creds", credentials_file="creds-file"), None)
    with pytest.raises(InvalidError) as info:
        RulerConfigValidator().validate_create(RulerConfig(name="testing-ruler", spec=spec))
    message = str(info.value)
    assert message.startswith('RulerConfig.loki.grafana.com "testing-ruler" is invalid: [')
    assert HEADER_AUTH_CREDENTIALS_CONFLICT in message
    assert len(info.value.errors) == 2


def test_rejects_non_ruler_config():
    with pytest.raises(BadRequestError) as info:
        RulerConfigValidator().validate_create({"name": "x"})
    assert "object is not of type RulerConfig" in str(info.value)


def test_delete_is_never_rejected():
    spec = _spec(_header(credentials="creds", credentials_file="creds-file"), None)
    config = RulerConfig(name="testing-ruler", spec=spec)
    assert RulerConfigValidator().validate_delete(config) == []