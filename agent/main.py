"""Entry point for the DDNS agent."""

from __future__ import annotations

import logging
import os
import signal
import threading
from functools import partial
from typing import Optional

from agent.config import read_config, resolve_config_path
from agent.controller import ReconfigurationController
from agent.core import UpdateCycle
from agent.health import HealthExporter, HealthState
from agent.scheduler import Scheduler
from agent.watcher import ConfigWatcher
from shared_lib.errors import ConfigParseError, ConfigReadError, HealthListenerError
from webapp import create_app
from webapp.server import DEFAULT_HOST, HealthServer

DEFAULT_POLL_SECONDS = 2.0


def _configure_logging() -> None:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    # Health probes would otherwise log every request.
    logging.getLogger("werkzeug").setLevel(logging.WARNING)


def run(
    config_path: Optional[str] = None,
    stop_event: Optional[threading.Event] = None,
    reload_event: Optional[threading.Event] = None,
    poll_seconds: Optional[float] = None,
) -> int:
    path = resolve_config_path(config_path)
    stop_event = stop_event or threading.Event()
    reload_event = reload_event or threading.Event()
    if poll_seconds is None:
        poll_seconds = float(os.environ.get("CONFIG_POLL_SECONDS", DEFAULT_POLL_SECONDS))

    watcher = ConfigWatcher(path)
    try:
        initial_config = read_config(path)
    except (ConfigReadError, ConfigParseError) as exc:
        logging.error("%s", exc)
        logging.error("Failed to load initial config. Fix %s and restart.", path)
        return 1

    health = HealthState()
    exporter = HealthExporter(health)
    listener = HealthServer(
        create_app(exporter),
        host=os.environ.get("HEALTH_HOST", DEFAULT_HOST),
    )
    # The cycle reads the controller's active config, so it is bound last.
    scheduler = Scheduler(lambda: cycle.run())
    controller = ReconfigurationController(scheduler, listener)
    cycle = UpdateCycle(controller.current_config, health)
    load = partial(read_config, path)

    try:
        controller.bootstrap(initial_config)
        logging.info("Watching config file %s for changes...", path)
        while not stop_event.is_set():
            if reload_event.is_set() or watcher.changed():
                reload_event.clear()
                controller.reload(load)
            stop_event.wait(timeout=poll_seconds)
    except HealthListenerError as exc:
        logging.error("%s: %s", exc, exc.__cause__)
        return 1
    finally:
        logging.info("Shutting down...")
        controller.shutdown()
        cycle.close()

    return 0


def main() -> int:
    _configure_logging()
    reload_event = threading.Event()
    stop_event = threading.Event()

    def handle_sighup(signum: int, frame: Optional[object]) -> None:
        logging.info("Received SIGHUP; scheduling config reload.")
        reload_event.set()

    def handle_stop(signum: int, frame: Optional[object]) -> None:
        logging.info("Received %s; stopping agent.", signal.Signals(signum).name)
        stop_event.set()

    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, handle_sighup)
    signal.signal(signal.SIGTERM, handle_stop)
    signal.signal(signal.SIGINT, handle_stop)

    return run(stop_event=stop_event, reload_event=reload_event)


if __name__ == "__main__":
    raise SystemExit(main())
