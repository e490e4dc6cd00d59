from __future__ import annotations
from contextlib import asynccontextmanager
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from typing import Any, Callable, Dict, List, Optional
import asyncio, json

from config.paths import get_paths
from core.timing.stopwatch import Stopwatch, start_link
from sdk.config import SDK_CONFIG
from sdk.registry import REGISTRY
from sdk.events import Ack, ChangeRequest, StopwatchOptions, StopwatchView, TimeReply
from sdk.ids import new_ulid
from sdk.runtime import ActorStoppedError, CallTimeoutError, Runtime


def _not_found() -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "not found"})


def _gone() -> JSONResponse:
    return JSONResponse(status_code=410, content={"error": "stopwatch is no longer running"})


def _timeout() -> JSONResponse:
    return JSONResponse(status_code=504, content={"error": "stopwatch did not reply in time"})


def create_app(runtime: Optional[Runtime] = None, scheduler_factory: Optional[Callable[[], Any]] = None) -> FastAPI:
    runtime = runtime or Runtime()
    announcers: Dict[str, Any] = {}

    def close_announcer(stopwatch_id: str) -> None:
        announcer = announcers.pop(stopwatch_id, None)
        if announcer is not None and hasattr(announcer, "close"):
            announcer.close()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        runtime.shutdown()
        for stopwatch_id in list(announcers):
            close_announcer(stopwatch_id)

    app = FastAPI(title="Stopwatch API", lifespan=lifespan)
    app.state.runtime = runtime

    def lookup(stopwatch_id: str) -> Optional[Stopwatch]:
        try:
            return runtime.get(stopwatch_id)  # type: ignore[return-value]
        except KeyError:
            return None

    def view(stopwatch: Stopwatch) -> StopwatchView:
        return StopwatchView(id=stopwatch.id, **stopwatch.snapshot())

    @app.post("/stopwatches", status_code=201)
    def create_stopwatch(options: Optional[StopwatchOptions] = None):
        options = options or StopwatchOptions()
        stopwatch_id = new_ulid()
        announcer_name = options.announcer or SDK_CONFIG.announcer
        try:
            announcer = REGISTRY.announcer(announcer_name, stopwatch_id)
        except (ImportError, AttributeError):
            return JSONResponse(status_code=400, content={"error": f"unknown announcer: {announcer_name}"})
        announcers[stopwatch_id] = announcer
        scheduler = scheduler_factory() if scheduler_factory else None
        try:
            stopwatch = start_link(
                actor_id=stopwatch_id,
                scheduler=scheduler,
                ticks=options.ticks,
                running=options.running,
                resolution=options.resolution,
                announcer=announcer,
            )
        except Exception:
            close_announcer(stopwatch_id)
            raise
        runtime.spawn(stopwatch)
        return {"id": stopwatch.id}

    @app.get("/stopwatches")
    def list_stopwatches():
        items = []
        for stopwatch_id in runtime.ids():
            stopwatch = lookup(stopwatch_id)
            if stopwatch is None or not stopwatch.alive:
                continue
            try:
                items.append(view(stopwatch).model_dump())
            except (ActorStoppedError, CallTimeoutError):
                continue
        return {"stopwatches": items}

    @app.get("/stopwatches/{stopwatch_id}")
    def get_stopwatch(stopwatch_id: str):
        stopwatch = lookup(stopwatch_id)
        if stopwatch is None:
            return _not_found()
        try:
            return view(stopwatch)
        except ActorStoppedError:
            return _gone()
        except CallTimeoutError:
            return _timeout()

    def command(stopwatch_id: str, name: str):
        stopwatch = lookup(stopwatch_id)
        if stopwatch is None:
            return _not_found()
        try:
            getattr(stopwatch, name)()
        except ActorStoppedError:
            return _gone()
        return JSONResponse(status_code=202, content=Ack(status="accepted").model_dump())

    @app.post("/stopwatches/{stopwatch_id}/go")
    def go(stopwatch_id: str):
        return command(stopwatch_id, "go")

    @app.post("/stopwatches/{stopwatch_id}/stop")
    def stop(stopwatch_id: str):
        return command(stopwatch_id, "stop")

    @app.post("/stopwatches/{stopwatch_id}/clear")
    def clear(stopwatch_id: str):
        return command(stopwatch_id, "clear")

    @app.get("/stopwatches/{stopwatch_id}/time")
    def time(stopwatch_id: str):
        stopwatch = lookup(stopwatch_id)
        if stopwatch is None:
            return _not_found()
        try:
            return TimeReply(id=stopwatch.id, ticks=stopwatch.time())
        except ActorStoppedError:
            return _gone()
        except CallTimeoutError:
            return _timeout()

    @app.post("/stopwatches/{stopwatch_id}/request")
    def request(stopwatch_id: str, body: ChangeRequest):
        stopwatch = lookup(stopwatch_id)
        if stopwatch is None:
            return _not_found()
        try:
            status = stopwatch.request(body.changes, path=body.path, context=body.context)
        except ActorStoppedError:
            return _gone()
        except CallTimeoutError:
            return _timeout()
        return Ack(status=status)

    @app.delete("/stopwatches/{stopwatch_id}")
    def delete_stopwatch(stopwatch_id: str):
        try:
            runtime.terminate(stopwatch_id)
        except KeyError:
            return _not_found()
        close_announcer(stopwatch_id)
        return Ack(status="terminated")

    @app.get("/stopwatches/{stopwatch_id}/events")
    def get_events(stopwatch_id: str, limit: int = 200):
        f = get_paths().stopwatch_events_path(stopwatch_id)
        if not f.exists():
            return _not_found()
        # tail last N lines
        lines: List[str] = f.read_text(encoding="utf-8").splitlines()[-limit:]
        events = [json.loads(x) for x in lines if x.strip()]
        return {"events": events}

    @app.websocket("/ws/stopwatches/{stopwatch_id}/events")
    async def ws_events(ws: WebSocket, stopwatch_id: str):
        f = get_paths().stopwatch_events_path(stopwatch_id)
        # lines written once the client is connected are streamed
        last_size = f.stat().st_size if f.exists() else None
        await ws.accept()
        if last_size is None:
            await ws.send_text(json.dumps({"type": "error", "msg": "not found"}))
            await ws.close()
            return
        try:
            while True:
                try:
                    await asyncio.wait_for(ws.receive_text(), timeout=0.25)
                except asyncio.TimeoutError:
                    pass
                cur = f.stat().st_size
                if cur > last_size:
                    with open(f, "r", encoding="utf-8") as fh:
                        fh.seek(last_size)
                        chunk = fh.read()
                        for line in chunk.splitlines():
                            if line.strip():
                                await ws.send_text(line)
                    last_size = cur
        except WebSocketDisconnect:
            return

    return app


app = create_app()
