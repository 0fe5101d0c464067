"""Shared enumerations for the orchestrator."""

from enum import Enum


class Phase(str, Enum):
    """Request processing phase."""

    PLUGIN_INIT = "plugin_init"
    SCHEMA_CHANGE = "schema_change"
    ENVELOPED = "enveloped"
    PARSE = "parse"
    VALIDATE = "validate"
    CONTEXT = "context"
    EXECUTE = "execute"
    SUBSCRIBE = "subscribe"
    RESOLVE = "resolve"


class PluginSource(str, Enum):
    """Where a configured plugin is loaded from."""

    BUILTIN = "builtin"
    FILE = "file"
    PACKAGE = "package"


class LogFormat(str, Enum):
    """Log output format."""

    JSON = "json"
    TEXT = "text"
