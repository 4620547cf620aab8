"""Run API routes: start/stop commands and snapshot delivery.

Endpoints:
    POST /v1/run/start       Start a run for an objective
    POST /v1/run/stop        Abandon the current run, back to IDLE
    GET  /v1/run             Current snapshot
    GET  /v1/run/events      Server-Sent Events, one per published snapshot
    GET  /v1/run/document    Started steps rendered as one markdown document

The HTTP layer is a presentation adapter: it only sends start/stop and
reads snapshots. All run state lives in the Orchestrator.
"""

import asyncio
import logging
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse, StreamingResponse

from workflow_agent.executor.run_document import render_run_document
from workflow_agent.orchestrator.engine import Orchestrator
from workflow_agent.orchestrator.schemas import RunSnapshot, StartRunRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/run", tags=["run"])

SSE_HEARTBEAT_SECONDS = 15.0

# Set at startup by the app lifespan
_orchestrator: Optional[Orchestrator] = None


def init_orchestrator(orchestrator: Optional[Orchestrator]) -> None:
    global _orchestrator
    _orchestrator = orchestrator


def get_orchestrator() -> Orchestrator:
    if _orchestrator is None:
        raise HTTPException(status_code=503, detail="Orchestrator not initialized")
    return _orchestrator


@router.post("/start", status_code=202, response_model=RunSnapshot)
async def start_run(request: StartRunRequest):
    """Start planning and executing a new objective.

    Returns the PLANNING snapshot. Poll GET /v1/run or subscribe to
    GET /v1/run/events for progress.
    """
    if not request.objective.strip():
        raise HTTPException(status_code=422, detail="Objective must not be empty")

    orchestrator = get_orchestrator()
    if not orchestrator.start(request.objective):
        current = orchestrator.snapshot()
        raise HTTPException(
            status_code=409,
            detail=f"A run is already {current.app_state.value.lower()}. Stop it first.",
        )
    return orchestrator.snapshot()


@router.post("/stop", response_model=RunSnapshot)
async def stop_run():
    """Abandon the current run (if any) and reset to IDLE."""
    orchestrator = get_orchestrator()
    orchestrator.stop()
    return orchestrator.snapshot()


@router.get("", response_model=RunSnapshot)
async def get_run():
    """Current run snapshot. This is the polling endpoint."""
    return get_orchestrator().snapshot()


@router.get("/document", response_class=PlainTextResponse)
async def get_run_document():
    """All started steps as one markdown document."""
    return PlainTextResponse(
        render_run_document(get_orchestrator().snapshot()),
        media_type="text/markdown",
    )


def _format_event(snapshot: RunSnapshot) -> str:
    return f"event: snapshot\ndata: {snapshot.model_dump_json()}\n\n"


async def _sse_generator(
    orchestrator: Orchestrator,
    request: Optional[Request] = None,
) -> AsyncGenerator[str, None]:
    """Yield the current snapshot, then published ones, as SSE events.

    A slow client skips intermediate snapshots: each one supersedes the
    previous, so only the latest unsent snapshot is kept.
    """
    queue: asyncio.Queue[RunSnapshot] = asyncio.Queue(maxsize=1)

    def offer(snapshot: RunSnapshot) -> None:
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(snapshot)

    unsubscribe = orchestrator.subscribe(offer)
    try:
        yield _format_event(orchestrator.snapshot())
        while True:
            if request is not None and await request.is_disconnected():
                break
            try:
                snapshot = await asyncio.wait_for(queue.get(), timeout=SSE_HEARTBEAT_SECONDS)
            except asyncio.TimeoutError:
                # Keep the connection alive through proxies
                yield ": heartbeat\n\n"
                continue
            yield _format_event(snapshot)
    finally:
        unsubscribe()
        logger.debug("SSE subscriber detached")


@router.get("/events")
async def stream_run_events(request: Request):
    """SSE endpoint - streams a snapshot after every state change."""
    return StreamingResponse(
        _sse_generator(get_orchestrator(), request),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
