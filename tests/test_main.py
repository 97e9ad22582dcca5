"""
Tests for the agent entry point: fatal startup errors, live reloads and
graceful shutdown.
"""

import socket
import threading
import time

import pytest
import requests

from agent import main as agent_main


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        result = predicate()
        if result:
            return result
        time.sleep(0.05)
    return None


def fetch_health(port):
    try:
        return requests.get(f"http://127.0.0.1:{port}/health", timeout=2)
    except requests.ConnectionError:
        return None


def health_matching(port, predicate):
    response = fetch_health(port)
    if response is not None and predicate(response.json()):
        return response
    return None


@pytest.fixture
def outbound(monkeypatch, make_response):
    """Replace outbound calls made by the update cycle's session."""
    calls = []

    def fake_get(self, url, timeout=None):
        calls.append(url)
        if "api.ipify.org" in url:
            return make_response(text="1.2.3.4")
        return make_response()

    monkeypatch.setattr(requests.Session, "get", fake_get)
    monkeypatch.setenv("HEALTH_HOST", "127.0.0.1")
    monkeypatch.delenv("AGENT_CHECK_IP_URL", raising=False)
    return calls


class RunningAgent:
    def __init__(self, config_path):
        self.stop_event = threading.Event()
        self.reload_event = threading.Event()
        self.exit_code = None
        self._thread = threading.Thread(target=self._run, args=(str(config_path),))

    def _run(self, config_path):
        self.exit_code = agent_main.run(
            config_path,
            stop_event=self.stop_event,
            reload_event=self.reload_event,
            poll_seconds=0.05,
        )

    def __enter__(self):
        self._thread.start()
        return self

    def __exit__(self, *exc_info):
        self.stop_event.set()
        self._thread.join(timeout=30)


class TestStartupFailures:
    def test_missing_config_is_fatal(self, tmp_path):
        assert agent_main.run(str(tmp_path / "missing.json"), stop_event=threading.Event()) == 1

    def test_malformed_config_is_fatal(self, write_config):
        path = write_config(raw="{not json")
        assert agent_main.run(str(path), stop_event=threading.Event()) == 1

    def test_undecodable_config_is_fatal(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_bytes(b"\xff\xfe")
        assert agent_main.run(str(path), stop_event=threading.Event()) == 1


class TestRunLoop:
    def test_serves_health_after_first_update(self, write_config, outbound):
        port = free_port()
        path = write_config(
            {"user": "a", "pass": "b", "ddns": "x.example", "interval": 120, "health_port": port}
        )
        with RunningAgent(path) as agent:
            response = wait_until(
                lambda: health_matching(port, lambda body: body["Status"] == "healthy")
            )
            assert response is not None
            assert response.status_code == 200
            body = response.json()
            assert body["FailingStreak"] == 0
            assert body["Log"][0]["ExitCode"] == 0
            assert "1.2.3.4" in body["Log"][0]["Output"]
            assert outbound == ["https://api.ipify.org", "https://a:b@x.example?myip=1.2.3.4"]
        assert agent.exit_code == 0

    def test_interval_reload_keeps_history(self, write_config, outbound):
        port = free_port()
        data = {"user": "a", "pass": "b", "ddns": "x.example", "interval": 120, "health_port": port}
        path = write_config(data)
        with RunningAgent(path) as agent:
            assert wait_until(lambda: health_matching(port, lambda body: len(body["Log"]) == 1))

            write_config(dict(data, interval=180))
            agent.reload_event.set()
            response = wait_until(
                lambda: health_matching(port, lambda body: len(body["Log"]) == 2)
            )
            assert response is not None
            log = response.json()["Log"]
            assert "unchanged" in log[1]["Output"]
            # Cached IP survived the restart, so no second update call.
            assert outbound.count("https://a:b@x.example?myip=1.2.3.4") == 1
        assert agent.exit_code == 0

    def test_invalid_initial_config_waits(self, write_config, outbound):
        port = free_port()
        data = {"user": "", "pass": "b", "ddns": "x.example", "health_port": port}
        path = write_config(data)
        with RunningAgent(path) as agent:
            response = wait_until(lambda: fetch_health(port))
            assert response.json()["Status"] == "starting"
            assert outbound == []

            write_config(dict(data, user="a"))
            agent.reload_event.set()
            assert wait_until(
                lambda: health_matching(port, lambda body: body["Status"] == "healthy")
            )
        assert agent.exit_code == 0
