"""Config file loading (JSON with comments) and validation."""

from __future__ import annotations

import json
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator, validators
from jsonschema.exceptions import ValidationError

from .errors import ConfigError, ConfigValidationError

DEFAULT_CONFIG: dict[str, Any] = {"plugins": {}}

CONFIG_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "plugins": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {"enabled": {"type": "boolean"}},
            },
        },
        "intercept": {
            "type": "object",
            "properties": {
                "modules": {"type": "array", "items": {"type": "string"}},
                "safe_storage_bypass": {"type": ["boolean", "null"]},
                "host_origin": {"type": "string"},
            },
        },
        "logging": {
            "type": "object",
            "properties": {
                "echo": {"type": "boolean"},
                "rotate_max_bytes": {"type": "integer", "minimum": 1024},
            },
        },
        "watch": {
            "type": "object",
            "properties": {"interval_s": {"type": "number", "exclusiveMinimum": 0}},
        },
    },
}

_TYPE_WORDS = {
    "boolean": "true or false",
    "object": "an object",
    "array": "a list",
    "string": "a string",
    "integer": "an integer",
    "number": "a number",
    "null": "null",
}

# "object" means a real dict; JSON decoding never produces other mappings.
_ConfigValidator = validators.extend(
    Draft202012Validator,
    type_checker=Draft202012Validator.TYPE_CHECKER.redefine("object", lambda _checker, value: isinstance(value, dict)),
)
_validator = _ConfigValidator(CONFIG_SCHEMA)


@dataclass(frozen=True)
class ConfigIssue:
    """One problem in config.jsonc, located by section or plugin entry."""

    section: str | None
    plugin: str | None
    key: str
    message: str

    def describe(self) -> str:
        if self.plugin is not None:
            where = f"plugin {self.plugin!r}"
        elif self.section is not None:
            where = f"{self.section!r} section"
        else:
            where = "config"
        return f"{where}: {self.message}"


def _issue(error: ValidationError) -> ConfigIssue:
    parts = [str(part) for part in error.absolute_path]
    section = parts[0] if parts else None
    plugin = parts[1] if section == "plugins" and len(parts) > 1 else None
    rest = parts[2:] if plugin is not None else parts[1:]
    key = ".".join(rest)
    subject = key or ("entry" if plugin is not None else "section" if section is not None else "config")
    if error.validator == "type":
        expected = error.validator_value
        names = expected if isinstance(expected, list) else [expected]
        message = f"{subject} must be " + " or ".join(_TYPE_WORDS.get(name, name) for name in names)
    elif error.validator in ("minimum", "exclusiveMinimum"):
        bound = "at least" if error.validator == "minimum" else "greater than"
        message = f"{subject} must be {bound} {error.validator_value}"
    else:
        message = f"{subject}: {error.message}"
    return ConfigIssue(section=section, plugin=plugin, key=key, message=message)


def strip_jsonc(text: str) -> str:
    """Remove // and /* */ comments and trailing commas outside of strings."""
    out: list[str] = []
    i = 0
    n = len(text)
    in_string = False
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
            continue
        if ch == "/" and i + 1 < n and text[i + 1] == "/":
            end = text.find("\n", i)
            i = n if end == -1 else end
            continue
        if ch == "/" and i + 1 < n and text[i + 1] == "*":
            end = text.find("*/", i + 2)
            if end == -1:
                raise ConfigError("unterminated block comment")
            # Keep line structure so json error positions stay meaningful.
            out.append("\n" * text.count("\n", i, end))
            i = end + 2
            continue
        out.append(ch)
        i += 1
    return _strip_trailing_commas("".join(out))


def _strip_trailing_commas(text: str) -> str:
    out: list[str] = []
    in_string = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
        elif ch == ",":
            j = i + 1
            while j < n and text[j] in " \t\r\n":
                j += 1
            if j < n and text[j] in "}]":
                i += 1
                continue
        out.append(ch)
        i += 1
    return "".join(out)


def parse_config_text(text: str) -> dict[str, Any]:
    try:
        data = json.loads(strip_jsonc(text))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid config JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("config root must be an object")
    validate_config(data)
    data.setdefault("plugins", {})
    return data


def config_issues(data: Any) -> list[ConfigIssue]:
    issues = [_issue(error) for error in _validator.iter_errors(data)]
    return sorted(issues, key=lambda issue: (issue.section or "", issue.plugin or "", issue.key, issue.message))


def validate_config(data: dict[str, Any]) -> None:
    issues = config_issues(data)
    if issues:
        raise ConfigValidationError(issues)


def read_config(path: Path, logger: Any = None) -> dict[str, Any]:
    """Read the config file, or return the default config if missing or invalid."""
    try:
        if path.exists():
            return parse_config_text(path.read_text(encoding="utf-8"))
    except Exception as exc:
        if logger is not None:
            logger.event(event="config.read_failed", level="error", path=str(path), error=exc)
    return deepcopy(DEFAULT_CONFIG)


def plugin_configs(config: dict[str, Any]) -> dict[str, Any]:
    plugins = config.get("plugins") if isinstance(config, dict) else None
    return plugins if isinstance(plugins, dict) else {}


def plugin_config(config: dict[str, Any], name: str) -> dict[str, Any]:
    """Config for one plugin; a missing entry means disabled."""
    raw = plugin_configs(config).get(name)
    if not isinstance(raw, dict):
        return {"enabled": False}
    return deepcopy(raw)


def section(config: dict[str, Any], name: str) -> dict[str, Any]:
    value = config.get(name) if isinstance(config, dict) else None
    return value if isinstance(value, dict) else {}
