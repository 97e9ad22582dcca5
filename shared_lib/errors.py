"""Exception hierarchy shared by the agent and the health listener."""

from __future__ import annotations

from typing import Iterable, Optional


class UpdaterError(Exception):
    """Base class for all DDNS updater errors."""


class ConfigError(UpdaterError):
    """The configuration file could not be turned into a usable config."""


class ConfigReadError(ConfigError):
    """The configuration file is missing or unreadable."""


class ConfigParseError(ConfigError):
    """The configuration file is not valid JSON or has mistyped fields."""


class ConfigValidationError(ConfigError):
    """A required configuration value is empty or malformed."""

    def __init__(self, problems: Iterable[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class CycleError(UpdaterError):
    """An update cycle failed; recorded in the health log."""


class NetworkError(CycleError):
    """The public IP could not be discovered."""


class UpdateError(CycleError):
    """The DDNS provider rejected or did not receive the update."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class HealthListenerError(UpdaterError):
    """The health HTTP listener could not be bound."""
