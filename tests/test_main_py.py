import importlib.util
import os
from datetime import datetime

import pytest
import requests
from fastapi.testclient import TestClient

import monitor


def _import_main_module(project_root):
    """Import main.py as a module without requiring it to be installed as a package."""
    main_path = os.path.join(project_root, "main.py")
    spec = importlib.util.spec_from_file_location("liveness_responder_main", main_path)
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)  # type: ignore[attr-defined]
    return mod


@pytest.fixture
def client():
    project_root = os.path.dirname(os.path.dirname(__file__))
    main = _import_main_module(project_root)
    with TestClient(main.app) as c:
        yield c


def test_root_returns_greeting(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/plain")
    assert "Hello" in r.text


def test_health_reports_ok_with_timestamp(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    datetime.fromisoformat(body["timestamp"].replace("Z", "+00:00"))


def test_unknown_route_is_not_healthy(client):
    assert client.get("/ready").status_code == 404


class _Resp:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def test_check_service_health_ok_and_down(monkeypatch):
    monkeypatch.setattr(monitor.requests, "get", lambda url, timeout=2: _Resp(200, {"status": "ok"}))
    ok, msg = monitor.check_service_health("http://example/health")
    assert ok is True
    assert msg == "Healthy"

    monkeypatch.setattr(monitor.requests, "get", lambda url, timeout=2: _Resp(503))
    ok, msg = monitor.check_service_health("http://example/health")
    assert ok is False
    assert "503" in msg

    def refuse(url, timeout=2):
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setattr(monitor.requests, "get", refuse)
    ok, msg = monitor.check_service_health("http://example/health")
    assert ok is False
    assert "no connection" in msg
