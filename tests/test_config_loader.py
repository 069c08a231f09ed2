import dataclasses

import pytest

from certdeploy.config_loader import ConfigurationError, DeploymentInput, load_config


BASE_ENV = {
    "INPUT_ACCESS-KEY-ID": "LTAI-env",
    "INPUT_ACCESS-KEY-SECRET": "env-secret-value",
    "INPUT_CERTIFICATE-NAME": "example-com",
    "INPUT_FULLCHAIN-FILE": "/tmp/fullchain.pem",
    "INPUT_KEY-FILE": "/tmp/privkey.pem",
}


def env(**extra):
    values = dict(BASE_ENV)
    values.update(extra)
    return values


def test_workflow_inputs_with_defaults():
    config = load_config(environ=env())

    assert config.access_key_id == "LTAI-env"
    assert config.access_key_secret == "env-secret-value"
    assert config.security_token is None
    assert config.certificate_name == "example-com"
    assert config.cdn_domains == ()
    assert config.timeout == 10000
    assert config.retry == 3
    assert config.use_intl_endpoint is False
    assert config.dry_run is False
    assert config.continue_on_error is False


def test_workflow_inputs_as_passed_by_the_runner():
    config = load_config(environ=env(**{
        "INPUT_SECURITY-TOKEN": "sts-token",
        "INPUT_CDN-DOMAINS": "a.com\nb.com a.com",
        "INPUT_TIMEOUT": "5000",
        "INPUT_RETRY": "5",
        "INPUT_USE-INTL-ENDPOINT": "true",
    }))

    assert config.security_token == "sts-token"
    assert config.cdn_domains == ("a.com", "b.com")
    assert config.timeout == 5000
    assert config.timeout_seconds == 5.0
    assert config.retry == 5
    assert config.use_intl_endpoint is True


def test_underscore_names_and_provider_fallbacks():
    config = load_config(environ={
        "ALIBABA_CLOUD_ACCESS_KEY_ID": "LTAI-global",
        "ALIBABA_CLOUD_ACCESS_KEY_SECRET": "global-secret",
        "INPUT_CERTIFICATE_NAME": "example-com",
        "INPUT_FULLCHAIN_FILE": "fullchain.pem",
        "INPUT_KEY_FILE": "privkey.pem",
    })

    assert config.access_key_id == "LTAI-global"
    assert config.certificate_name == "example-com"


@pytest.mark.parametrize("value", ["", "abc"])
def test_unusable_numbers_fall_back_to_defaults(value):
    config = load_config(environ=env(**{"INPUT_TIMEOUT": value, "INPUT_RETRY": value}))

    assert config.timeout == 10000
    assert config.retry == 3


def test_zero_retry_is_rejected():
    with pytest.raises(ConfigurationError):
        load_config(environ=env(**{"INPUT_RETRY": "0"}))


def test_negative_timeout_is_rejected():
    with pytest.raises(ConfigurationError):
        load_config(environ=env(**{"INPUT_TIMEOUT": "-1"}))


def test_invalid_boolean_is_rejected():
    with pytest.raises(ConfigurationError):
        load_config(environ=env(**{"INPUT_USE-INTL-ENDPOINT": "maybe"}))


@pytest.mark.parametrize("missing", [
    "INPUT_CERTIFICATE-NAME",
    "INPUT_ACCESS-KEY-SECRET",
    "INPUT_FULLCHAIN-FILE",
    "INPUT_KEY-FILE",
])
def test_required_inputs(missing):
    values = env()
    del values[missing]

    with pytest.raises(ConfigurationError):
        load_config(environ=values)


def test_blank_certificate_name_is_rejected():
    with pytest.raises(ConfigurationError):
        load_config(environ=env(**{"INPUT_CERTIFICATE-NAME": "   "}))


def test_command_line_overrides_environment():
    config = load_config(
        overrides={"certificate_name": "from-cli", "retry": 7, "dry_run": True, "timeout": None},
        environ=env(**{"INPUT_TIMEOUT": "2000"}),
    )

    assert config.certificate_name == "from-cli"
    assert config.retry == 7
    assert config.dry_run is True
    assert config.timeout == 2000


def test_yaml_file_is_lowest_precedence(tmp_path, monkeypatch):
    monkeypatch.setenv("DEPLOY_SECRET", "yaml-expanded-secret")
    config_file = tmp_path / "deploy.yaml"
    config_file.write_text(
        "deployment:\n"
        "  access-key-id: LTAI-yaml\n"
        "  access_key_secret: ${DEPLOY_SECRET}\n"
        "  certificate_name: yaml-cert\n"
        "  fullchain_file: fullchain.pem\n"
        "  key_file: privkey.pem\n"
        "  cdn_domains:\n"
        "    - a.com\n"
        "    - b.com\n"
        "    - a.com\n"
        "  retry: 2\n"
        "  use_intl_endpoint: true\n"
    )

    config = load_config(str(config_file), environ={"INPUT_CERTIFICATE-NAME": "env-cert"})

    assert config.access_key_id == "LTAI-yaml"
    assert config.access_key_secret == "yaml-expanded-secret"
    assert config.certificate_name == "env-cert"
    assert config.cdn_domains == ("a.com", "b.com")
    assert config.retry == 2
    assert config.use_intl_endpoint is True


def test_yaml_without_deployment_section(tmp_path):
    config_file = tmp_path / "deploy.yaml"
    config_file.write_text("settings:\n  retry: 2\n")

    with pytest.raises(ConfigurationError):
        load_config(str(config_file), environ=env())


def test_yaml_with_unknown_keys(tmp_path):
    config_file = tmp_path / "deploy.yml"
    config_file.write_text("deployment:\n  retries: 2\n")

    with pytest.raises(ConfigurationError) as excinfo:
        load_config(str(config_file), environ=env())

    assert "retries" in str(excinfo.value)


def test_missing_or_non_yaml_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(str(tmp_path / "nope.yaml"), environ=env())

    other = tmp_path / "deploy.json"
    other.write_text("{}")
    with pytest.raises(ConfigurationError):
        load_config(str(other), environ=env())


def test_endpoints():
    mainland = DeploymentInput("id", "secret", "name", "chain", "key")
    intl = dataclasses.replace(mainland, use_intl_endpoint=True)

    assert mainland.cas_endpoint == "https://cas.aliyuncs.com"
    assert mainland.cdn_endpoint == "https://cdn.aliyuncs.com"
    assert mainland.cert_region == "cn-hangzhou"
    assert intl.cas_endpoint == "https://cas.ap-southeast-1.aliyuncs.com"
    assert intl.cdn_endpoint == "https://cdn.ap-southeast-1.aliyuncs.com"
    assert intl.cert_region == "ap-southeast-1"


def test_configuration_is_immutable():
    config = load_config(environ=env())

    with pytest.raises(dataclasses.FrozenInstanceError):
        config.certificate_name = "other"


def test_secrets_are_not_logged(caplog):
    load_config(environ=env(**{"INPUT_SECURITY-TOKEN": "sts-token-value"}))

    assert "env-secret-value" not in caplog.text
    assert "sts-token-value" not in caplog.text
