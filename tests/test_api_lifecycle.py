from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient


class _FakeRuntime(SimpleNamespace):
    """Minimal runtime stub for API lifecycle tests."""


def test_create_app_boot_runtime_false_does_not_attach_runtime() -> None:
    from farmledger.api.app import create_app

    app = create_app(boot_runtime=False)
    assert getattr(app.state, "runtime", None) is None

    # App should still be startable for route/middleware tests.
    with TestClient(app) as client:
        r = client.get("/v1/health")
        assert r.status_code == 200
        assert r.json()["runtime_attached"] is False

        r = client.get("/v1/status")
        assert r.status_code == 500
        body = r.json()
        assert body["ok"] is False
        assert body["error"]["code"] == "not_ready"


def test_create_app_boot_runtime_true_attaches_runtime(monkeypatch: pytest.MonkeyPatch) -> None:
    from farmledger.api import app as api_app

    def _fake_build_runtime():
        return _FakeRuntime(cfg=SimpleNamespace(mode="dev"))

    monkeypatch.setattr(api_app, "build_runtime", _fake_build_runtime)

    app = api_app.create_app(boot_runtime=True)
    assert getattr(app.state, "runtime", None) is not None
    assert app.state.runtime.cfg.mode == "dev"

    with TestClient(app) as client:
        assert client.get("/v1/health").json()["runtime_attached"] is True


def test_prod_mode_disables_docs(monkeypatch: pytest.MonkeyPatch) -> None:
    from farmledger.api.app import create_app

    monkeypatch.setenv("FARM_MODE", "prod")
    with TestClient(create_app(boot_runtime=False)) as client:
        assert client.get("/openapi.json").status_code == 404

    monkeypatch.setenv("FARM_MODE", "dev")
    with TestClient(create_app(boot_runtime=False)) as client:
        assert client.get("/openapi.json").status_code == 200
