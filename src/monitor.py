import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Response, WebSocket, WebSocketDisconnect
from fastapi.responses import ORJSONResponse

from abstractions.registry import Subscriber
from config.config import Config
from config.institutions import load_institutions
from config.logging_config import setup_logging
from core.baseline_tracker import BaselineTracker
from core.cycle_log_sink import JsonLinesCycleSink
from core.cycle_scheduler import CycleScheduler
from core.live_fanout import LiveFanout
from core.metrics_manager import MetricsManager
from core.severity_scorer import SeverityScorer
from core.snapshot_store import SnapshotStore
from core.source_resolver import SourceResolver
from probes.aggregator_probe import AggregatorProbe
from probes.direct_probe import DirectProbe
from probes.official_status_probe import OfficialStatusProbe

setup_logging()
logger = logging.getLogger(__name__)


class WebSocketSubscriber(Subscriber):
    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def send(self, message: str):
        await self.websocket.send_text(message)


institutions = load_institutions()

# One pooled client shared by every probe; redirects are capped here
client = httpx.AsyncClient(max_redirects=Config.MAX_REDIRECTS)

resolver = SourceResolver(
    DirectProbe(client),
    status_probe=OfficialStatusProbe(client),
    aggregator_probe=AggregatorProbe(client),
)
baseline_tracker = BaselineTracker(institutions)
snapshot_store = SnapshotStore()
fanout = LiveFanout()
metrics_manager = MetricsManager()

scheduler = CycleScheduler(
    institutions,
    resolver,
    baseline_tracker,
    snapshot_store,
    scorer=SeverityScorer(),
    fanout=fanout,
    sink=JsonLinesCycleSink(),
    metrics=metrics_manager,
)


@asynccontextmanager
async def lifespan(app):
    await fanout.start()
    await scheduler.start()
    yield
    await scheduler.stop()
    await fanout.stop()
    await client.aclose()


app = FastAPI(lifespan=lifespan, default_response_class=ORJSONResponse)


@app.get("/api/status")
async def current_status():
    # Never waits on an in-flight cycle: serves the last committed snapshot
    return snapshot_store.as_document()


@app.get("/api/institutions")
async def list_institutions():
    return [i.model_dump() for i in institutions]


@app.get("/metrics")
def metrics():
    return Response(metrics_manager.export(), media_type=MetricsManager.CONTENT_TYPE)


@app.websocket("/ws")
async def live_updates(websocket: WebSocket):
    await websocket.accept()
    subscriber = WebSocketSubscriber(websocket)
    await fanout.connect(subscriber)
    try:
        # Client messages are ignored; receiving only detects disconnects
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("WebSocket client closed the connection")
    finally:
        await fanout.disconnect(subscriber)


if __name__ == "__main__":
    import uvicorn

    logger.info(
        f"Monitoring {len(institutions)} institutions every {Config.INTERVAL_SECONDS}s "
        f"on port {Config.PORT}"
    )
    uvicorn.run(app, host="0.0.0.0", port=Config.PORT, log_config=None)
