# tests/unit/test_announcers.py
import json
import logging

import pytest

from core.events import Event, announcement_event, announcement_kind, event_dump
from core.timing.stopwatch import start_link
from plugins.announcers.echo.impl import EchoAnnouncer
from plugins.announcers.jsonl.impl import JsonlAnnouncer
from plugins.announcers.null.impl import NullAnnouncer
from sdk.logging import JsonlWriter, configure_logging
from sdk.registry import REGISTRY, Registry


def _read_jsonl(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


def test_announcement_kind_follows_snapshot_shape():
    assert announcement_kind({"ticks": 1, "resolution": 10, "running": True, "msec": 10}) == "state"
    assert announcement_kind({"ticks": 1, "msec": 10}) == "tick"

    event = announcement_event("sw1", {"ticks": 2, "msec": 20})
    assert isinstance(event, Event)
    dumped = event_dump(event)
    assert dumped["kind"] == "tick"
    assert dumped["stopwatch"] == "sw1"
    assert dumped["data"] == {"ticks": 2, "msec": 20}
    assert dumped["id"] and dumped["ts_ms"] > 0


def test_jsonl_announcer_records_stopwatch_lifecycle(tmp_path, scheduler, run_ticks):
    path = tmp_path / "events.jsonl"
    announcer = JsonlAnnouncer("sw1", path=path)

    sw = start_link(scheduler=scheduler, announcer=announcer)
    sw.go()
    run_ticks(sw, 2)
    sw.terminate()
    announcer.close()
    announcer.close()

    events = _read_jsonl(path)
    assert [e["kind"] for e in events] == ["meta", "state", "state", "tick", "tick", "meta"]
    assert events[0]["data"] == {"status": "opened"}
    assert events[-1]["data"] == {"status": "closed"}
    assert events[4]["data"] == {"ticks": 2, "msec": 20}
    assert {e["stopwatch"] for e in events} == {"sw1"}


def test_echo_announcer_formats_both_shapes(capsys):
    echo = EchoAnnouncer("01ABCDEFGHJKMNPQRS")

    echo({"ticks": 3, "resolution": 10, "running": True, "msec": 30})
    echo({"ticks": 4, "msec": 40})

    out = capsys.readouterr().out.splitlines()
    assert out == [
        "[stopwatch MNPQRS] running ticks=3 resolution=10ms msec=30",
        "[stopwatch MNPQRS] ticks=4 msec=40",
    ]


def test_echo_announcer_can_skip_ticks(capsys):
    echo = EchoAnnouncer(ticks=False)

    echo({"ticks": 4, "msec": 40})
    echo({"ticks": 4, "resolution": 10, "running": False, "msec": 40})

    assert capsys.readouterr().out == "[stopwatch] stopped ticks=4 resolution=10ms msec=40\n"


def test_registry_resolves_announcer_plugins():
    assert REGISTRY.keys("announcer.") == ["announcer.echo", "announcer.jsonl", "announcer.null"]

    null = REGISTRY.announcer("null", "sw1")
    assert isinstance(null, NullAnnouncer)
    null({"ticks": 0, "msec": 0})
    assert null.count == 1


def test_registry_custom_target_and_unknown_name():
    registry = Registry()
    registry.register("announcer.echo2", "plugins.announcers.echo.impl:EchoAnnouncer")

    assert isinstance(registry.announcer("echo2", "x"), EchoAnnouncer)
    with pytest.raises(ImportError):
        registry.announcer("nope")


def test_jsonl_writer_refuses_writes_after_close(tmp_path):
    writer = JsonlWriter(tmp_path / "nested" / "out.jsonl", flush_every=2)
    writer.write({"a": 1})
    writer.close()

    assert writer.closed
    assert _read_jsonl(tmp_path / "nested" / "out.jsonl") == [{"a": 1}]
    with pytest.raises(ValueError):
        writer.write({"a": 2})


def test_configure_logging_accepts_names():
    root = logging.getLogger()
    previous = root.level
    try:
        configure_logging("debug")
        assert root.level == logging.DEBUG
        with pytest.raises(ValueError):
            configure_logging("chatty")
    finally:
        root.setLevel(previous)
