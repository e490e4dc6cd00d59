# tests/unit/test_api.py
import json

import pytest
from fastapi.testclient import TestClient

import config.paths as paths_mod
from apps.ui_api.main import create_app
from core.timing.scheduler import ManualScheduler
from sdk.runtime import CallTimeoutError


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def client(monkeypatch, tmp_path, scheduler):
    paths = paths_mod.Paths(tmp_path, tmp_path / "data", tmp_path / "logs", tmp_path / ".tmp")
    paths.ensure_all()
    monkeypatch.setattr(paths_mod, "_paths_singleton", paths)

    app = create_app(scheduler_factory=lambda: scheduler)
    with TestClient(app) as c:
        yield c


def _advance(client, scheduler, stopwatch_id, n, resolution=10):
    def settle():
        client.get(f"/stopwatches/{stopwatch_id}/time")

    settle()
    for _ in range(n):
        scheduler.advance(resolution, settle=settle)


def test_create_and_drive_stopwatch(client, scheduler):
    r = client.post("/stopwatches", json={"resolution": 10})
    assert r.status_code == 201
    sid = r.json()["id"]

    assert client.post(f"/stopwatches/{sid}/go").status_code == 202
    _advance(client, scheduler, sid, 3)

    r = client.get(f"/stopwatches/{sid}/time")
    assert r.json()["ticks"] == 3

    r = client.get(f"/stopwatches/{sid}")
    body = r.json()
    assert (body["id"], body["ticks"], body["resolution"], body["running"], body["msec"]) == (sid, 3, 10, True, 30)

    assert client.post(f"/stopwatches/{sid}/stop").status_code == 202
    assert client.post(f"/stopwatches/{sid}/clear").status_code == 202
    body = client.get(f"/stopwatches/{sid}").json()
    assert (body["ticks"], body["running"]) == (0, False)


def test_hub_request_endpoint(client):
    sid = client.post("/stopwatches", json={"ticks": 100, "resolution": 10}).json()["id"]

    r = client.post(f"/stopwatches/{sid}/request", json={"changes": [["resolution", 30], ["bogus", 42]]})
    assert r.status_code == 200
    assert r.json()["status"] == "ok"

    body = client.get(f"/stopwatches/{sid}").json()
    assert (body["ticks"], body["resolution"], body["msec"]) == (33, 30, 990)

    r = client.post(f"/stopwatches/{sid}/request", json={"changes": {"running": True}})
    assert r.json()["status"] == "ok"
    assert client.get(f"/stopwatches/{sid}").json()["running"] is True


def test_list_and_delete(client):
    a = client.post("/stopwatches").json()["id"]
    b = client.post("/stopwatches", json={"running": True}).json()["id"]

    listed = {item["id"]: item for item in client.get("/stopwatches").json()["stopwatches"]}
    assert set(listed) == {a, b}
    assert listed[b]["running"] is True

    assert client.delete(f"/stopwatches/{a}").json()["status"] == "terminated"
    assert client.get(f"/stopwatches/{a}").status_code == 404
    assert client.delete(f"/stopwatches/{a}").status_code == 404
    assert [item["id"] for item in client.get("/stopwatches").json()["stopwatches"]] == [b]


def test_unknown_stopwatch_is_404(client):
    for method, url in [
        ("get", "/stopwatches/nope"),
        ("get", "/stopwatches/nope/time"),
        ("post", "/stopwatches/nope/go"),
        ("get", "/stopwatches/nope/events"),
    ]:
        r = getattr(client, method)(url)
        assert r.status_code == 404
        assert r.json() == {"error": "not found"}


@pytest.mark.parametrize("body", [{"resolution": 0}, {"ticks": -1}, {"running": "yes"}, {"resolution": "10"}])
def test_invalid_options_are_rejected(client, body):
    assert client.post("/stopwatches", json=body).status_code == 422


def test_unknown_announcer_is_400(client):
    r = client.post("/stopwatches", json={"announcer": "carrier-pigeon"})
    assert r.status_code == 400


def test_events_are_logged_with_jsonl_announcer(client, scheduler):
    sid = client.post("/stopwatches", json={"announcer": "jsonl"}).json()["id"]
    client.post(f"/stopwatches/{sid}/go")
    _advance(client, scheduler, sid, 2)

    events = client.get(f"/stopwatches/{sid}/events").json()["events"]
    assert [e["kind"] for e in events] == ["meta", "state", "state", "tick", "tick"]

    tail = client.get(f"/stopwatches/{sid}/events", params={"limit": 1}).json()["events"]
    assert tail[0]["data"] == {"ticks": 2, "msec": 20}


def test_events_websocket_streams_appended_lines(client):
    sid = client.post("/stopwatches", json={"announcer": "jsonl", "ticks": 7}).json()["id"]

    with client.websocket_connect(f"/ws/stopwatches/{sid}/events") as ws:
        client.post(f"/stopwatches/{sid}/clear")
        client.get(f"/stopwatches/{sid}/time")

        event = json.loads(ws.receive_text())

    assert event["kind"] == "state"
    assert event["stopwatch"] == sid
    assert event["data"]["ticks"] == 0


def test_events_websocket_reports_unknown_stopwatch(client):
    with client.websocket_connect("/ws/stopwatches/nope/events") as ws:
        assert json.loads(ws.receive_text()) == {"type": "error", "msg": "not found"}


def test_slow_stopwatch_is_504(client, monkeypatch):
    sid = client.post("/stopwatches").json()["id"]
    stopwatch = client.app.state.runtime.get(sid)

    def no_reply(*_args, **_kwargs):
        raise CallTimeoutError(f"{stopwatch.name}: no reply")

    for name in ("time", "snapshot", "request"):
        monkeypatch.setattr(stopwatch, name, no_reply)

    assert client.get(f"/stopwatches/{sid}/time").status_code == 504
    r = client.get(f"/stopwatches/{sid}")
    assert r.status_code == 504
    assert r.json() == {"error": "stopwatch did not reply in time"}
    assert client.post(f"/stopwatches/{sid}/request", json={"changes": {"running": True}}).status_code == 504
    assert client.get("/stopwatches").json()["stopwatches"] == []
