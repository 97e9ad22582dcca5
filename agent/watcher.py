"""Detect changes to the config file by polling its modification stamp."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Tuple

Stamp = Tuple[int, int]


class ConfigWatcher:
    def __init__(self, config_path: str | Path) -> None:
        self._config_path = Path(config_path)
        self._stamp: Optional[Stamp] = self._read_stamp()
        self._missing_reported = False

    @property
    def path(self) -> Path:
        return self._config_path

    def _read_stamp(self) -> Optional[Stamp]:
        try:
            stat = os.stat(self._config_path)
        except OSError:
            return None
        return stat.st_mtime_ns, stat.st_size

    def changed(self) -> bool:
        """Return True once per observed modification of the file."""
        current = self._read_stamp()
        if current is None:
            if not self._missing_reported:
                logging.warning(
                    "Config file %s is missing; keeping existing config.",
                    self._config_path,
                )
                self._missing_reported = True
            return False

        self._missing_reported = False
        if current != self._stamp:
            self._stamp = current
            logging.info("Config file %s modified.", self._config_path)
            return True
        return False
