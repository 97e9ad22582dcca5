"""Health state for the update loop and its read-only exporter.

``HealthState`` is written only by the update cycle. Readers never see the
live fields; they get a ``HealthSnapshot`` copied under the same lock the
writer holds, so a status is always paired with the log entry that produced it.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Callable, Deque, Dict, Optional, Tuple

LOG_CAPACITY = 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    STARTING = "starting"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class ExitCode(IntEnum):
    SUCCESS = 0
    FAILURE = 1


@dataclass(frozen=True)
class CheckLogEntry:
    start: datetime
    end: datetime
    exit_code: ExitCode
    output: str

    @property
    def succeeded(self) -> bool:
        return self.exit_code == ExitCode.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Start": self.start.isoformat(),
            "End": self.end.isoformat(),
            "ExitCode": int(self.exit_code),
            "Output": self.output,
        }


@dataclass(frozen=True)
class HealthSnapshot:
    status: HealthStatus
    failing_streak: int
    log: Tuple[CheckLogEntry, ...]
    last_ip: Optional[str]
    cached_ip: Optional[str]
    last_change: Optional[datetime]
    started_at: datetime
    taken_at: datetime

    @property
    def uptime_seconds(self) -> float:
        return max(0.0, (self.taken_at - self.started_at).total_seconds())

    @property
    def http_status(self) -> int:
        return 503 if self.status is HealthStatus.UNHEALTHY else 200

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Status": self.status.value,
            "FailingStreak": self.failing_streak,
            "Log": [entry.to_dict() for entry in self.log],
        }


class HealthState:
    """Lock-protected status, failure streak and bounded check log."""

    def __init__(
        self,
        capacity: int = LOG_CAPACITY,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._lock = threading.Lock()
        self._clock = clock
        self._status = HealthStatus.STARTING
        self._failing_streak = 0
        self._log: Deque[CheckLogEntry] = deque(maxlen=capacity)
        self._last_ip: Optional[str] = None
        self._cached_ip: Optional[str] = None
        self._last_change: Optional[datetime] = None
        self._started_at = clock()

    @property
    def capacity(self) -> int:
        return self._log.maxlen or 0

    @property
    def cached_ip(self) -> Optional[str]:
        with self._lock:
            return self._cached_ip

    @property
    def last_change(self) -> Optional[datetime]:
        with self._lock:
            return self._last_change

    def record_success(
        self,
        entry: CheckLogEntry,
        observed_ip: Optional[str] = None,
        propagated_ip: Optional[str] = None,
    ) -> None:
        """Append a successful check; ``propagated_ip`` replaces the cache."""
        with self._lock:
            self._log.append(entry)
            self._status = HealthStatus.HEALTHY
            self._failing_streak = 0
            if observed_ip is not None:
                self._last_ip = observed_ip
            if propagated_ip is not None:
                self._cached_ip = propagated_ip
                self._last_change = entry.end

    def record_failure(
        self,
        entry: CheckLogEntry,
        observed_ip: Optional[str] = None,
    ) -> None:
        with self._lock:
            self._log.append(entry)
            self._status = HealthStatus.UNHEALTHY
            self._failing_streak += 1
            if observed_ip is not None:
                self._last_ip = observed_ip

    def snapshot(self) -> HealthSnapshot:
        with self._lock:
            return HealthSnapshot(
                status=self._status,
                failing_streak=self._failing_streak,
                log=tuple(self._log),
                last_ip=self._last_ip,
                cached_ip=self._cached_ip,
                last_change=self._last_change,
                started_at=self._started_at,
                taken_at=self._clock(),
            )


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class HealthExporter:
    """Renders health snapshots for the HTTP listener."""

    def __init__(self, state: HealthState) -> None:
        self._state = state

    def snapshot(self) -> HealthSnapshot:
        return self._state.snapshot()

    def render(self) -> Tuple[Dict[str, Any], int]:
        snapshot = self.snapshot()
        return snapshot.to_dict(), snapshot.http_status

    def details(self) -> Tuple[Dict[str, Any], int]:
        snapshot = self.snapshot()
        payload = snapshot.to_dict()
        payload.update(
            {
                "StartedAt": _isoformat(snapshot.started_at),
                "UptimeSeconds": round(snapshot.uptime_seconds, 3),
                "LastIP": snapshot.last_ip,
                "CachedIP": snapshot.cached_ip,
                "LastChange": _isoformat(snapshot.last_change),
            }
        )
        return payload, snapshot.http_status
