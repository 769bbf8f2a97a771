"""
Runtime settings.

Resolved in precedence order: in-memory override, environment variables
(``ADDRESS_ZK_*``), YAML file named by ``ADDRESS_ZK_CONFIG``, defaults.
Protocol constants that must not vary per deployment live in ``config``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Final, Optional

import yaml

from .exceptions import ConfigurationError

ENV_PREFIX: Final[str] = "ADDRESS_ZK_"
CONFIG_ENV_VAR: Final[str] = "ADDRESS_ZK_CONFIG"
_LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _default_keys_dir() -> str:
    return os.path.expanduser("~/.address_zk/keys")


@dataclass(frozen=True)
class Settings:
    """
    Deployment settings.

    Attributes:
        keys_dir: Root of the key store
        prover_workers: Worker processes for proof generation
        max_pending: Jobs admitted to the proving pool before it refuses work
        prove_timeout: Seconds before a proving job counts as failed
        allow_test_keys: Whether single-party test keys may be loaded
        log_level: Log level name
        log_json: JSON log output instead of console output
        membership_max_age: Freshness window for membership timestamps (seconds)
    """

    keys_dir: str = ""
    prover_workers: int = 0
    max_pending: int = 16
    prove_timeout: float = 120.0
    allow_test_keys: bool = False
    log_level: str = "INFO"
    log_json: bool = True
    membership_max_age: int = 86400

    def __post_init__(self):
        if not self.keys_dir:
            object.__setattr__(self, "keys_dir", _default_keys_dir())
        if self.prover_workers <= 0:
            object.__setattr__(self, "prover_workers", os.cpu_count() or 1)
        self.validate()

    def validate(self) -> None:
        if self.max_pending < 1:
            raise ConfigurationError("max_pending must be at least 1")
        if self.prove_timeout <= 0:
            raise ConfigurationError("prove_timeout must be positive")
        if self.membership_max_age <= 0:
            raise ConfigurationError("membership_max_age must be positive")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigurationError(
                f"Invalid log level: {self.log_level!r}. "
                f"Valid options: {', '.join(_LOG_LEVELS)}"
            )

    @property
    def keys_path(self) -> Path:
        return Path(self.keys_dir).expanduser()


def _coerce(name: str, raw: Any, target: type) -> Any:
    if target is bool:
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")
    try:
        return target(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} has invalid value {raw!r}: {e}") from e


_FIELD_TYPES: Dict[str, type] = {
    "keys_dir": str,
    "prover_workers": int,
    "max_pending": int,
    "prove_timeout": float,
    "allow_test_keys": bool,
    "log_level": str,
    "log_json": bool,
    "membership_max_age": int,
}


def _load_yaml(path: str) -> Dict[str, Any]:
    path = os.path.expanduser(path)
    if not os.path.exists(path):
        raise ConfigurationError(f"Configuration file not found: {path}")
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML configuration file '{path}': {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file '{path}' must contain a mapping")
    unknown = set(data) - set(_FIELD_TYPES)
    if unknown:
        raise ConfigurationError(f"Unknown settings in '{path}': {', '.join(sorted(unknown))}")
    return data


def load_settings(
    environ: Optional[Dict[str, str]] = None, **overrides: Any
) -> Settings:
    """
    Resolve settings from overrides, environment, YAML and defaults.

    Args:
        environ: Environment mapping (defaults to ``os.environ``)
        **overrides: Explicit values that win over everything else

    Raises:
        ConfigurationError: Unreadable file, unknown key or invalid value.
    """
    env = os.environ if environ is None else environ
    values: Dict[str, Any] = {}

    config_path = env.get(CONFIG_ENV_VAR)
    if config_path:
        for name, raw in _load_yaml(config_path).items():
            values[name] = _coerce(name, raw, _FIELD_TYPES[name])

    for name, target in _FIELD_TYPES.items():
        raw = env.get(ENV_PREFIX + name.upper())
        if raw is not None and raw != "":
            values[name] = _coerce(name, raw, target)

    for name, raw in overrides.items():
        if name not in _FIELD_TYPES:
            raise ConfigurationError(f"Unknown setting: {name}")
        if raw is not None:
            values[name] = _coerce(name, raw, _FIELD_TYPES[name])

    return Settings(**values)


_settings_override: Optional[Settings] = None


def get_settings() -> Settings:
    if _settings_override is not None:
        return _settings_override
    return load_settings()


def set_settings(settings: Optional[Settings]) -> None:
    """Set in-memory settings override (None clears it)."""
    global _settings_override
    _settings_override = settings


def with_overrides(settings: Settings, **changes: Any) -> Settings:
    known = {f.name for f in fields(Settings)}
    for name in changes:
        if name not in known:
            raise ConfigurationError(f"Unknown setting: {name}")
    return replace(settings, **changes)
