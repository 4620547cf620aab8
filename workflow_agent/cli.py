"""Command-line runner: plan and execute one objective, streaming to stdout.

Usage:
    workflow-agent "How to transition into an AI career in 2025"

    # Different models for planning and execution
    workflow-agent "Write a guide to X" --planner-model gemini-2.5-pro --model gemini-2.5-flash

Exit code is 0 when every step completed, 1 on a planning error or a
failed step. Ctrl-C stops the run.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional, TextIO

from workflow_agent import config
from workflow_agent.executor.task_runner import TaskExecutor
from workflow_agent.orchestrator.engine import Orchestrator
from workflow_agent.orchestrator.planner import PlanGenerator
from workflow_agent.orchestrator.schemas import (
    AppState,
    ErrorKind,
    RunSnapshot,
    TaskStatus,
)

logger = logging.getLogger(__name__)


class ConsolePrinter:
    """Snapshot listener that prints transitions and new output text."""

    def __init__(self, out: Optional[TextIO] = None):
        self._out = out if out is not None else sys.stdout
        self._state: Optional[AppState] = None
        self._statuses: dict[str, TaskStatus] = {}
        self._printed: dict[str, int] = {}

    def __call__(self, snapshot: RunSnapshot) -> None:
        if snapshot.app_state != self._state:
            self._state = snapshot.app_state
            if self._state == AppState.PLANNING:
                self._write("Planning...\n")
            elif self._state == AppState.EXECUTING:
                self._write(f"Plan ready: {snapshot.total_count} steps\n")
                for index, task in enumerate(snapshot.tasks, 1):
                    self._write(f"  {index}. {task.title}\n")

        for index, task in enumerate(snapshot.tasks, 1):
            previous = self._statuses.get(task.id, TaskStatus.PENDING)
            if task.status == TaskStatus.IN_PROGRESS and previous == TaskStatus.PENDING:
                self._write(f"\n=== Step {index}/{snapshot.total_count}: {task.title} ===\n\n")

            printed = self._printed.get(task.id, 0)
            if len(task.result_content) > printed:
                self._write(task.result_content[printed:])
                self._printed[task.id] = len(task.result_content)

            if task.status != previous and task.status in (TaskStatus.COMPLETED, TaskStatus.FAILED):
                self._write(f"\n\n[{task.status.value}] {task.title}\n")
            self._statuses[task.id] = task.status

    def _write(self, text: str) -> None:
        self._out.write(text)
        self._out.flush()


async def run_objective(orchestrator: Orchestrator, objective: str) -> RunSnapshot:
    """Run one objective to completion and return the final snapshot."""
    unsubscribe = orchestrator.subscribe(ConsolePrinter())
    try:
        if not orchestrator.start(objective):
            raise ValueError("Objective must not be empty")
        try:
            return await orchestrator.wait_until_settled()
        except asyncio.CancelledError:
            orchestrator.stop()
            raise
    finally:
        unsubscribe()


def exit_code_for(snapshot: RunSnapshot) -> int:
    if snapshot.error is not None and snapshot.error.kind == ErrorKind.PLANNING:
        return 1
    if any(t.status == TaskStatus.FAILED for t in snapshot.tasks):
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workflow-agent",
        description="Plan an objective into steps and execute them with an LLM.",
    )
    parser.add_argument("objective", help="What you want researched or written")
    parser.add_argument(
        "--model",
        default=config.MODEL_ID,
        help=f"Model used to execute steps (default: {config.MODEL_ID})",
    )
    parser.add_argument(
        "--planner-model",
        default=None,
        help="Model used to generate the plan (default: same as --model)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format=config.LOG_FORMAT,
    )

    if not args.objective.strip():
        print("Error: objective must not be empty", file=sys.stderr)
        return 2

    orchestrator = Orchestrator(
        planner=PlanGenerator(model_id=args.planner_model or args.model),
        executor=TaskExecutor(model_id=args.model),
    )

    try:
        snapshot = asyncio.run(run_objective(orchestrator, args.objective))
    except KeyboardInterrupt:
        print("\nStopped.", file=sys.stderr)
        return 130

    if snapshot.error is not None:
        print(f"\nError: {snapshot.error.message}", file=sys.stderr)
    print(
        f"\n{snapshot.completed_count}/{snapshot.total_count} steps completed",
        file=sys.stderr,
    )
    return exit_code_for(snapshot)


if __name__ == "__main__":
    sys.exit(main())
