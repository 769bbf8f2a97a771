"""Unit tests for runtime settings resolution."""

import pytest

from address_zk.zk_protocol.exceptions import ConfigurationError
from address_zk.zk_protocol.settings import (
    Settings,
    get_settings,
    load_settings,
    set_settings,
    with_overrides,
)


def test_defaults() -> None:
    settings = load_settings(environ={})
    assert settings.max_pending == 16
    assert settings.prove_timeout == 120.0
    assert settings.allow_test_keys is False
    assert settings.membership_max_age == 86400
    assert settings.prover_workers >= 1
    assert settings.keys_dir.endswith("keys")


def test_environment_values() -> None:
    settings = load_settings(
        environ={
            "ADDRESS_ZK_MAX_PENDING": "4",
            "ADDRESS_ZK_ALLOW_TEST_KEYS": "yes",
            "ADDRESS_ZK_PROVE_TIMEOUT": "2.5",
            "ADDRESS_ZK_LOG_LEVEL": "debug",
        }
    )
    assert settings.max_pending == 4
    assert settings.allow_test_keys is True
    assert settings.prove_timeout == 2.5
    assert settings.log_level == "debug"


def test_precedence(tmp_path) -> None:
    config = tmp_path / "settings.yaml"
    config.write_text("max_pending: 3\nprover_workers: 2\nlog_json: false\n")
    env = {"ADDRESS_ZK_CONFIG": str(config), "ADDRESS_ZK_MAX_PENDING": "5"}

    settings = load_settings(environ=env)
    assert settings.max_pending == 5
    assert settings.prover_workers == 2
    assert settings.log_json is False

    settings = load_settings(environ=env, max_pending=9, prover_workers=None)
    assert settings.max_pending == 9
    assert settings.prover_workers == 2


@pytest.mark.parametrize(
    "env",
    [
        {"ADDRESS_ZK_MAX_PENDING": "many"},
        {"ADDRESS_ZK_MAX_PENDING": "0"},
        {"ADDRESS_ZK_ALLOW_TEST_KEYS": "perhaps"},
        {"ADDRESS_ZK_LOG_LEVEL": "LOUD"},
        {"ADDRESS_ZK_CONFIG": "/nonexistent/address-zk.yaml"},
    ],
)
def test_invalid_values(env) -> None:
    with pytest.raises(ConfigurationError):
        load_settings(environ=env)


def test_yaml_errors(tmp_path) -> None:
    unknown = tmp_path / "unknown.yaml"
    unknown.write_text("colour: blue\n")
    with pytest.raises(ConfigurationError):
        load_settings(environ={"ADDRESS_ZK_CONFIG": str(unknown)})

    not_mapping = tmp_path / "list.yaml"
    not_mapping.write_text("- 1\n- 2\n")
    with pytest.raises(ConfigurationError):
        load_settings(environ={"ADDRESS_ZK_CONFIG": str(not_mapping)})


def test_unknown_override() -> None:
    with pytest.raises(ConfigurationError):
        load_settings(environ={}, colour="blue")


def test_settings_override_and_copy(tmp_path) -> None:
    custom = Settings(keys_dir=str(tmp_path), prover_workers=1)
    set_settings(custom)
    try:
        assert get_settings() is custom
    finally:
        set_settings(None)
    changed = with_overrides(custom, max_pending=2)
    assert changed.max_pending == 2 and custom.max_pending == 16
    assert changed.keys_path == tmp_path
    with pytest.raises(ConfigurationError):
        with_overrides(custom, colour="blue")
