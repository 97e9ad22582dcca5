"""
Shared pytest fixtures for the DDNS agent tests.
"""

import json
import os
import sys
from pathlib import Path
from typing import Callable, List
from unittest.mock import MagicMock

import pytest
import requests

# Add project root to path FIRST
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from agent.health import HealthState  # noqa: E402
from shared_lib.schema import AgentConfig  # noqa: E402


def make_response(status_code: int = 200, text: str = "", reason: str = "OK") -> MagicMock:
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.text = text
    response.reason = reason
    return response


@pytest.fixture
def valid_config() -> AgentConfig:
    return AgentConfig.model_validate(
        {"user": "a", "pass": "b", "ddns": "x.example", "interval": 120}
    )


@pytest.fixture
def health() -> HealthState:
    return HealthState()


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(spec=requests.Session)


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[..., Path]:
    """Write a config file and return its path."""
    path = tmp_path / "config.json"

    def _write(payload=None, raw: str = None) -> Path:
        if raw is None:
            raw = json.dumps(payload)
        path.write_text(raw, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def responses_by_url(session: MagicMock) -> Callable[..., List[str]]:
    """Route session.get calls: discovery URL vs everything else (updates)."""

    def _install(discovery, update=None) -> List[str]:
        calls: List[str] = []

        def fake_get(url, timeout=None):
            calls.append(url)
            outcome = discovery if "api.ipify.org" in url else update
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        session.get.side_effect = fake_get
        return calls

    return _install


@pytest.fixture(name="make_response")
def make_response_fixture() -> Callable[..., MagicMock]:
    return make_response
