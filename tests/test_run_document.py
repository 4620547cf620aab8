"""Tests for the markdown run export."""

from workflow_agent.executor.run_document import render_run_document
from workflow_agent.orchestrator.schemas import (
    AppState,
    ErrorKind,
    RunError,
    RunSnapshot,
    TaskStatus,
)
from tests.helpers import make_task


def test_nothing_started_renders_empty():
    snapshot = RunSnapshot(
        run_id=1,
        app_state=AppState.EXECUTING,
        objective="Guide",
        tasks=(make_task("A", TaskStatus.PENDING),),
    )
    assert render_run_document(snapshot) == ""


def test_started_tasks_in_plan_order_without_pending():
    failed = make_task("B", TaskStatus.FAILED, "partial output")
    snapshot = RunSnapshot(
        run_id=1,
        app_state=AppState.FINISHED,
        objective="How to transition into an AI career",
        tasks=(
            make_task("A", TaskStatus.COMPLETED, "## Intro\nText\n\n"),
            failed,
            make_task("C", TaskStatus.PENDING),
        ),
        error=RunError(kind=ErrorKind.EXECUTION, message="upstream dropped", task_id=failed.id),
    )

    document = render_run_document(snapshot)

    assert document.startswith("# How to transition into an AI career\n")
    assert "1 / 3 steps completed" in document
    assert document.index("## Step 1: A") < document.index("## Step 2: B")
    assert "**Status**: Failed" in document
    assert "partial output" in document
    assert "Step 3" not in document
    assert document.rstrip().endswith("**Error**: upstream dropped")
