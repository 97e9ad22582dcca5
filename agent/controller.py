"""Apply reloaded configuration to the running scheduler and health listener."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from shared_lib.errors import (
    ConfigParseError,
    ConfigReadError,
    ConfigValidationError,
)
from shared_lib.schema import AgentConfig

# Long enough for one cycle's two outbound calls to finish.
STOP_TIMEOUT_SECONDS = 25.0


class ReloadResult(str, Enum):
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    INVALID = "invalid"
    FILE_ERROR = "file_error"


class SchedulerLike(Protocol):
    def restart(self, interval: float, timeout: Optional[float] = None) -> bool: ...

    def trigger(self) -> bool: ...

    def stop(self, timeout: Optional[float] = None) -> None: ...


class ListenerLike(Protocol):
    def restart(self, port: int) -> None: ...

    def stop(self) -> None: ...


@dataclass(frozen=True)
class ConfigChange:
    interval_changed: bool
    port_changed: bool
    target_changed: bool

    @property
    def any(self) -> bool:
        return self.interval_changed or self.port_changed or self.target_changed

    @classmethod
    def between(
        cls,
        previous: Optional[AgentConfig],
        candidate: AgentConfig,
    ) -> "ConfigChange":
        if previous is None:
            return cls(interval_changed=True, port_changed=True, target_changed=True)
        return cls(
            interval_changed=previous.interval != candidate.interval,
            port_changed=previous.health_port != candidate.health_port,
            target_changed=(
                previous.user != candidate.user
                or previous.password != candidate.password
                or previous.ddns != candidate.ddns
                or previous.check_ip_url != candidate.check_ip_url
            ),
        )


class ReconfigurationController:
    """Owns the active config and restarts only what a new config affects."""

    def __init__(
        self,
        scheduler: SchedulerLike,
        listener: ListenerLike,
        stop_timeout: float = STOP_TIMEOUT_SECONDS,
    ) -> None:
        self._scheduler = scheduler
        self._listener = listener
        self._stop_timeout = stop_timeout
        # Serializes reloads; never held by readers of the active config.
        self._apply_lock = threading.Lock()
        self._config_lock = threading.Lock()
        self._active: Optional[AgentConfig] = None
        self._listener_port: Optional[int] = None

    def current_config(self) -> Optional[AgentConfig]:
        with self._config_lock:
            return self._active

    def bootstrap(self, candidate: AgentConfig) -> ReloadResult:
        """Start the health listener for the initial config, then apply it.

        The listener comes up even when the candidate fails validation so the
        health endpoint reports ``starting`` until a valid config arrives.
        """
        with self._apply_lock:
            self._ensure_listener(candidate.health_port)
            return self._apply_locked(candidate)

    def apply(self, candidate: AgentConfig) -> ReloadResult:
        with self._apply_lock:
            return self._apply_locked(candidate)

    def reload(self, read: Callable[[], AgentConfig]) -> ReloadResult:
        try:
            candidate = read()
        except ConfigReadError as exc:
            logging.error("%s - keeping previous valid config.", exc)
            return ReloadResult.FILE_ERROR
        except ConfigParseError as exc:
            logging.error("%s - keeping previous valid config.", exc)
            return ReloadResult.INVALID
        return self.apply(candidate)

    def _apply_locked(self, candidate: AgentConfig) -> ReloadResult:
        try:
            candidate.check_required()
        except ConfigValidationError as exc:
            logging.warning("Invalid config: %s", exc)
            logging.warning("Config values: %s", candidate.describe())
            if self._active is not None:
                logging.warning("Keeping previous valid config; fix the file and save again.")
            else:
                logging.warning("Waiting for a valid config.")
            return ReloadResult.INVALID

        previous = self._active
        if previous == candidate:
            logging.info("Config file saved but no changes detected.")
            return ReloadResult.UNCHANGED

        change = ConfigChange.between(previous, candidate)
        with self._config_lock:
            self._active = candidate
        logging.info(
            "Config %s: %s",
            "loaded" if previous is None else "changed",
            candidate.describe(),
        )

        if change.port_changed:
            self._ensure_listener(candidate.health_port)
        if change.interval_changed:
            if previous is not None:
                logging.info(
                    "Interval changed from %ss to %ss; restarting IP checker.",
                    previous.interval,
                    candidate.interval,
                )
            self._scheduler.restart(candidate.interval, timeout=self._stop_timeout)
        elif change.target_changed:
            logging.info("DDNS settings changed; running an immediate check.")
            self._scheduler.trigger()
        return ReloadResult.APPLIED

    def _ensure_listener(self, port: int) -> None:
        if self._listener_port == port:
            return
        if self._listener_port is not None:
            logging.info(
                "Health port changed from %s to %s; restarting health listener.",
                self._listener_port,
                port,
            )
        self._listener.restart(port)
        self._listener_port = port

    def shutdown(self) -> None:
        with self._apply_lock:
            self._scheduler.stop(timeout=self._stop_timeout)
            self._listener.stop()
