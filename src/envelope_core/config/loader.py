"""YAML configuration loading.

    loader = ConfigLoader()
    config = loader.load("envelope.yaml")
    loader.on_change(lambda new: logger.info("config changed"))
    loader.reload()

String values may reference the environment: ``${VAR}`` (required),
``${VAR:-fallback}`` and ``${VAR:?message}`` (required, custom message).
"""

import logging
import os
import re
import typing
from collections.abc import Callable
from dataclasses import fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from envelope_core.errors import create_error
from envelope_core.types import LogFormat, PluginSource, ValidationIssue, ValidationResult

from .models import EnvelopeConfig

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "ENVELOPE_CONFIG_PATH"
DEFAULT_CONFIG_FILE = "envelope.yaml"

_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+)(?::(?P<op>[-?])(?P<arg>[^}]*))?\}")
_SECTIONS = ("plugins", "enable_internal_tracing", "logging", "telemetry")
_LOG_LEVELS = ("CRITICAL", "DEBUG", "ERROR", "INFO", "WARNING")
_OTLP_PROTOCOLS = ("grpc", "http")


def resolve_env_vars(value: str) -> str:
    """Substitute ``${...}`` references in ``value``.

    Raises:
        EnvelopeError(CONFIG_INVALID): A required variable is unset
    """

    def substitute(ref: re.Match[str]) -> str:
        name, op, arg = ref.group("name", "op", "arg")
        if name in os.environ:
            return os.environ[name]
        if op == "-":
            return arg
        raise create_error(
            "CONFIG_INVALID",
            detail=(arg if op == "?" and arg else f"Environment variable {name} is required"),
        )

    return _ENV_REF.sub(substitute, value)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` updated with ``override``, merging nested dicts key by key.

    Neither argument is modified.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = deep_merge(current, value)
        merged[key] = value
    return merged


def _expand(data: Any) -> Any:
    if isinstance(data, str):
        return resolve_env_vars(data)
    if isinstance(data, list):
        return [_expand(item) for item in data]
    if isinstance(data, dict):
        return {key: _expand(item) for key, item in data.items()}
    return data


def _build(target: Any, raw: Any) -> Any:
    """Turn a parsed YAML value into ``target`` (dataclass, enum, list or dict of them)."""
    if raw is None:
        return None
    origin = typing.get_origin(target)
    if origin is list and isinstance(raw, list):
        (item_type,) = typing.get_args(target) or (Any,)
        return [_build(item_type, item) for item in raw]
    if origin is dict and isinstance(raw, dict):
        _, value_type = typing.get_args(target) or (Any, Any)
        return {key: _build(value_type, item) for key, item in raw.items()}
    if is_dataclass(target) and isinstance(raw, dict):
        known = {f.name: f.type for f in fields(target)}
        return target(**{key: _build(known[key], raw[key]) for key in raw if key in known})
    if isinstance(target, type) and issubclass(target, Enum):
        return target(raw)
    return raw


class ConfigLoader:
    """Loads, validates and reloads an ``EnvelopeConfig``."""

    def __init__(self) -> None:
        self._config: EnvelopeConfig | None = None
        self._source: Path | None = None
        self._overrides: dict[str, Any] | None = None
        self._listeners: list[Callable[[EnvelopeConfig], None]] = []

    def load(
        self,
        path: str | Path | None = None,
        use_defaults: bool = True,
        overrides: dict[str, Any] | None = None,
    ) -> EnvelopeConfig:
        """Read a YAML config file.

        Without ``path`` the file named by ``ENVELOPE_CONFIG_PATH`` is used,
        then ``./envelope.yaml``. A missing file yields the defaults unless
        ``use_defaults`` is False.

        Args:
            path: Config file location
            use_defaults: Fall back to defaults when the file does not exist
            overrides: Deep-merged over the file contents; kept for ``reload``

        Returns:
            The loaded configuration

        Raises:
            EnvelopeError(CONFIG_INVALID): Missing file, bad YAML or invalid values
        """
        source = Path(path) if path is not None else self._default_path()
        self._overrides = overrides

        if not source.is_file():
            if not use_defaults:
                raise create_error("CONFIG_INVALID", detail=f"Config file {source} not found")
            logger.info(f"{source} does not exist, falling back to default configuration")
            return self.load_from_dict(overrides or {})

        try:
            data = yaml.safe_load(source.read_text()) or {}
        except yaml.YAMLError as e:
            raise create_error("CONFIG_INVALID", detail=f"Invalid YAML in {source}: {e}") from e

        if not isinstance(data, dict):
            raise create_error(
                "CONFIG_INVALID",
                detail=f"{source}: top level must be a mapping, not {type(data).__name__}",
            )

        data = _expand(data)
        if overrides:
            data = deep_merge(data, overrides)
        return self.load_from_dict(data, source)

    def load_defaults(self) -> EnvelopeConfig:
        return self.load_from_dict({})

    def load_from_dict(self, data: dict[str, Any], source: Path | None = None) -> EnvelopeConfig:
        """Validate ``data`` and make it the current configuration.

        Args:
            data: Parsed configuration
            source: File the data came from, used by ``reload``

        Raises:
            EnvelopeError(CONFIG_INVALID): ``data`` failed validation
        """
        result = self.validate(data)
        for warning in result.warnings:
            logger.warning(f"{warning.message} ({warning.path})")
        if not result.valid:
            lines = "\n".join(f"- {issue.path}: {issue.message}" for issue in result.errors)
            raise create_error("CONFIG_INVALID", detail=f"Invalid configuration:\n{lines}")

        try:
            config = _build(EnvelopeConfig, data)
        except (TypeError, ValueError) as e:
            raise create_error("CONFIG_INVALID", detail=f"Cannot build configuration: {e}") from e

        self._config, self._source = config, source
        logger.debug(f"Loaded configuration with {len(config.plugins)} plugin definitions")
        return config

    def validate(self, data: dict[str, Any]) -> ValidationResult:
        """Check ``data`` without loading it.

        Unknown top-level keys are warnings; everything else is an error.
        """
        warnings = [
            ValidationIssue(path=key, message=f"Unknown configuration key: {key}", severity="warning")
            for key in data
            if key not in _SECTIONS
        ]
        errors: list[ValidationIssue] = []
        if "plugins" in data:
            errors += self._check_plugins(data["plugins"])
        if not isinstance(data.get("enable_internal_tracing", False), bool):
            errors.append(ValidationIssue("enable_internal_tracing", "expected true or false"))
        if "logging" in data:
            errors += self._check_logging(data["logging"])
        if "telemetry" in data:
            errors += self._check_telemetry(data["telemetry"])
        return ValidationResult(valid=True, errors=errors, warnings=warnings)

    @staticmethod
    def _check_plugins(entries: Any) -> list[ValidationIssue]:
        if not isinstance(entries, list):
            return [ValidationIssue("plugins", "expected a list of plugin definitions")]

        issues = []
        kinds = [source.value for source in PluginSource]
        for i, entry in enumerate(entries):
            where = f"plugins[{i}]"
            if not isinstance(entry, dict):
                issues.append(ValidationIssue(where, "expected a mapping"))
                continue
            if not entry.get("name") or not isinstance(entry["name"], str):
                issues.append(ValidationIssue(f"{where}.name", "a plugin name is required"))
            kind = entry.get("type", PluginSource.BUILTIN.value)
            if kind not in kinds:
                issues.append(ValidationIssue(f"{where}.type", f"expected one of {kinds}"))
            elif kind in (PluginSource.FILE.value, PluginSource.PACKAGE.value):
                location = "path" if kind == PluginSource.FILE.value else "package"
                if not entry.get(location):
                    issues.append(
                        ValidationIssue(f"{where}.{location}", f"{kind} plugins need '{location}'")
                    )
            if not isinstance(entry.get("config", {}), dict):
                issues.append(ValidationIssue(f"{where}.config", "expected a mapping"))
        return issues

    @staticmethod
    def _check_logging(section: Any) -> list[ValidationIssue]:
        if not isinstance(section, dict):
            return [ValidationIssue("logging", "expected a mapping")]
        issues = []
        level = section.get("level", "INFO")
        if not isinstance(level, str) or level.upper() not in _LOG_LEVELS:
            issues.append(ValidationIssue("logging.level", f"expected one of {list(_LOG_LEVELS)}"))
        formats = [fmt.value for fmt in LogFormat]
        if section.get("format", LogFormat.JSON.value) not in formats:
            issues.append(ValidationIssue("logging.format", f"expected one of {formats}"))
        return issues

    @staticmethod
    def _check_telemetry(section: Any) -> list[ValidationIssue]:
        if not isinstance(section, dict):
            return [ValidationIssue("telemetry", "expected a mapping")]
        otlp = section.get("otlp") or {}
        if isinstance(otlp, dict) and otlp.get("protocol", "grpc") not in _OTLP_PROTOCOLS:
            return [
                ValidationIssue("telemetry.otlp.protocol", f"expected one of {list(_OTLP_PROTOCOLS)}")
            ]
        return []

    def get(self) -> EnvelopeConfig:
        """Current configuration.

        Raises:
            EnvelopeError(CONFIG_INVALID): Nothing loaded yet
        """
        if self._config is None:
            raise create_error("CONFIG_INVALID", detail="No configuration has been loaded")
        return self._config

    def reload(self) -> EnvelopeConfig:
        """Re-read the last loaded file and pass the result to every ``on_change`` listener.

        Overrides given to the last ``load`` are merged over the file again.

        Raises:
            EnvelopeError(CONFIG_INVALID): The configuration did not come from a file
        """
        if self._source is None:
            raise create_error(
                "CONFIG_INVALID", detail="Configuration was not loaded from a file"
            )
        config = self.load(self._source, use_defaults=False, overrides=self._overrides)
        for listener in self._listeners:
            listener(config)
        return config

    def on_change(self, callback: Callable[[EnvelopeConfig], None]) -> None:
        self._listeners.append(callback)

    @staticmethod
    def _default_path() -> Path:
        return Path(os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_FILE)


def load_config(
    path: str | Path | None = None, overrides: dict[str, Any] | None = None
) -> EnvelopeConfig:
    """Load configuration with a fresh ``ConfigLoader``."""
    return ConfigLoader().load(path, overrides=overrides)
