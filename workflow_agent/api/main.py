"""Workflow Agent API.

Serves one plan-then-execute orchestrator per process:
- Start/stop commands for a run
- Snapshot polling and Server-Sent Events for live step output
- Markdown export of the run
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from workflow_agent import __version__, config
from workflow_agent.api.routes import run
from workflow_agent.orchestrator.engine import Orchestrator
from workflow_agent.orchestrator.planner import PlanGenerator
from workflow_agent.executor.task_runner import TaskExecutor

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format=config.LOG_FORMAT,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(
        f"Creating orchestrator: planner={config.PLANNER_MODEL_ID}, "
        f"executor={config.MODEL_ID}"
    )
    orchestrator = Orchestrator(
        planner=PlanGenerator(model_id=config.PLANNER_MODEL_ID),
        executor=TaskExecutor(model_id=config.MODEL_ID),
    )
    run.init_orchestrator(orchestrator)
    logger.info("Workflow Agent API ready")
    yield
    # Shutdown
    logger.info("Shutting down Workflow Agent API")
    orchestrator.stop()
    run.init_orchestrator(None)


# Create FastAPI app
app = FastAPI(
    title="Workflow Agent API",
    description="""
## Plan-then-execute workflow automation

Turns one objective into an ordered plan of steps and executes them in
sequence, streaming each step's output and feeding completed steps forward
as context.

### Key Endpoints

- `POST /v1/run/start` - Start a run for an objective
- `POST /v1/run/stop` - Abandon the current run
- `GET /v1/run` - Current snapshot
- `GET /v1/run/events` - Live snapshots (Server-Sent Events)
- `GET /v1/run/document` - Run output as markdown
""",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(run.router, prefix="/v1")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Workflow Agent API",
        "version": __version__,
        "docs": "/docs",
        "endpoints": {
            "start": "POST /v1/run/start",
            "stop": "POST /v1/run/stop",
            "snapshot": "GET /v1/run",
            "events": "GET /v1/run/events",
            "document": "GET /v1/run/document",
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "planner_model": config.PLANNER_MODEL_ID,
        "executor_model": config.MODEL_ID,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "workflow_agent.api.main:app",
        host="0.0.0.0",
        port=8001,
        reload=True,
    )
