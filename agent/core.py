"""Core update cycle for the DDNS agent."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

import requests

from agent.health import CheckLogEntry, ExitCode, HealthState, utcnow
from shared_lib.errors import CycleError, NetworkError, UpdateError
from shared_lib.schema import AgentConfig

REQUEST_TIMEOUT_SECONDS = 10


def _describe_request_error(exc: requests.RequestException, subject: str) -> str:
    if isinstance(exc, requests.Timeout):
        return f"timeout - check internet connection and {subject}"
    if isinstance(exc, requests.ConnectionError):
        return f"connection failed - check internet connection and {subject}"
    return f"request error: {exc}"


def _update_hint(status_code: int) -> str:
    if status_code in (401, 403):
        return " - authentication failed, check user and pass in the config file"
    if status_code == 404:
        return " - DDNS provider not found, check ddns in the config file"
    return ""


class UpdateCycle:
    """Runs one fetch-compare-update attempt and records it in ``HealthState``.

    This is the only writer of the cached IP and of the health log.
    """

    def __init__(
        self,
        config_provider: Callable[[], Optional[AgentConfig]],
        health: HealthState,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._config_provider = config_provider
        self._health = health
        self._session = session or requests.Session()
        self._timeout = timeout
        self._clock = clock
        self._run_lock = threading.Lock()

    def _fetch_public_ip(self, config: AgentConfig) -> str:
        try:
            response = self._session.get(config.check_ip_url, timeout=self._timeout)
        except requests.RequestException as exc:
            raise NetworkError(
                "Failed to get public IP: "
                + _describe_request_error(exc, "the IP discovery service")
            ) from exc
        if response.status_code != requests.codes.ok:
            raise NetworkError(
                f"Failed to get public IP: {config.check_ip_url} returned "
                f"status {response.status_code}"
            )
        ip_address = response.text.strip()
        if not ip_address:
            raise NetworkError(
                f"Failed to get public IP: {config.check_ip_url} returned an empty body"
            )
        return ip_address

    def _push_update(self, config: AgentConfig, ip_address: str) -> None:
        try:
            response = self._session.get(
                config.update_url(ip_address),
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            # The exception text may embed the credentialed URL.
            raise UpdateError(
                f"DDNS update to {config.ddns} failed: "
                + _describe_request_error(exc, "the ddns provider")
            ) from None
        if response.status_code != requests.codes.ok:
            raise UpdateError(
                f"DDNS update to {config.ddns} failed with status "
                f"{response.status_code} ({response.reason or 'Unknown'})"
                + _update_hint(response.status_code),
                status_code=response.status_code,
            )

    def _unchanged_message(self, ip_address: str) -> str:
        last_change = self._health.last_change
        if last_change is None:
            return f"IP unchanged: {ip_address} (change time unknown)"
        return (
            f"IP unchanged: {ip_address} "
            f"(last changed {last_change:%Y-%m-%d %H:%M:%S} UTC)"
        )

    def run(self) -> CheckLogEntry:
        with self._run_lock:
            return self._run_locked()

    def _run_locked(self) -> CheckLogEntry:
        started = self._clock()
        current_ip: Optional[str] = None
        try:
            config = self._config_provider()
            if config is None:
                raise CycleError("No valid configuration available")

            current_ip = self._fetch_public_ip(config)
            if current_ip == self._health.cached_ip:
                message = self._unchanged_message(current_ip)
                entry = CheckLogEntry(started, self._clock(), ExitCode.SUCCESS, message)
                self._health.record_success(entry, observed_ip=current_ip)
                logging.info(message)
                return entry

            logging.info("IP changed to %s; updating %s", current_ip, config.ddns)
            self._push_update(config, current_ip)
        except CycleError as exc:
            entry = CheckLogEntry(started, self._clock(), ExitCode.FAILURE, str(exc))
            self._health.record_failure(entry, observed_ip=current_ip)
            logging.error("%s", exc)
            return entry
        except Exception as exc:  # noqa: BLE001 - record and keep the loop alive
            entry = CheckLogEntry(
                started,
                self._clock(),
                ExitCode.FAILURE,
                f"Unexpected error: {exc}",
            )
            self._health.record_failure(entry, observed_ip=current_ip)
            logging.exception("Unexpected error during update cycle")
            return entry

        message = f"DDNS updated successfully with IP: {current_ip}"
        entry = CheckLogEntry(started, self._clock(), ExitCode.SUCCESS, message)
        self._health.record_success(
            entry,
            observed_ip=current_ip,
            propagated_ip=current_ip,
        )
        logging.info(message)
        return entry

    def close(self) -> None:
        self._session.close()
