"""Read the agent configuration file into an ``AgentConfig``."""

from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import ValidationError

from shared_lib.errors import ConfigParseError, ConfigReadError
from shared_lib.schema import DEFAULT_CHECK_IP_URL, AgentConfig

DEFAULT_CONFIG_PATH = "config/config.json"


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    return Path(
        config_path
        or os.environ.get("AGENT_CONFIG_PATH")
        or DEFAULT_CONFIG_PATH
    )


def read_config(config_path: str | Path) -> AgentConfig:
    """Load and parse a config file.

    Raises ``ConfigReadError`` when the file cannot be read and
    ``ConfigParseError`` when its contents are not a JSON object matching
    ``AgentConfig``. Required-field checks are left to the caller.
    """
    path = Path(config_path)
    try:
        raw_payload = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigReadError(
            f"Cannot read config file {path!s}: {exc.strerror or exc}"
        ) from exc
    except UnicodeDecodeError as exc:
        raise ConfigParseError(
            f"Config file {path!s} is not valid UTF-8 (byte {exc.start})"
        ) from exc

    if not raw_payload.strip():
        raise ConfigParseError(f"Config file {path!s} is empty")

    try:
        data = json.loads(raw_payload)
    except json.JSONDecodeError as exc:
        raise ConfigParseError(
            f"Config file {path!s} is not valid JSON ({exc.msg} at line "
            f"{exc.lineno} column {exc.colno}). Check commas, quotes and brackets."
        ) from exc
    if not isinstance(data, dict):
        raise ConfigParseError(f"Config file {path!s} must contain a JSON object")

    data.setdefault(
        "check_ip_url",
        os.environ.get("AGENT_CHECK_IP_URL", DEFAULT_CHECK_IP_URL),
    )
    try:
        return AgentConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigParseError(
            f"Config file {path!s} has invalid values: {exc}"
        ) from exc
