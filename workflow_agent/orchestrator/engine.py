"""Plan-then-execute orchestrator.

The orchestrator owns a run from objective to finished task list:

1. start(objective) enters PLANNING and asks the PlanGenerator for steps
2. The plan is materialized as PENDING tasks and the run enters EXECUTING
3. Tasks run strictly one at a time, in plan order. Each task's fragment
   stream is drained into its result_content, publishing a snapshot per
   fragment so observers see output live
4. A failed task keeps its partial output, records the run error, and
   halts the sequence; later tasks stay PENDING
5. The run ends in FINISHED whether every task completed or one failed.
   A planning failure (including a malformed plan) returns to IDLE instead.
   An unexpected crash while executing fails the current task and finishes
   the run with an execution error

stop() is the only cancellation primitive. It cancels the run's token and
asyncio task (which closes the upstream stream) and resets state to IDLE.
Each run is a new generation; the state store drops any write tagged with
an older generation, so nothing from a stopped run can leak into the next.

All of this runs on one event loop. No locking is needed: the orchestrator
is the only writer and it never runs two tasks at once.
"""

import asyncio
import logging
from typing import Callable, Optional

from workflow_agent.executor.stream import (
    CancellationToken,
    FragmentStream,
    drain_stream,
)
from workflow_agent.executor.task_runner import TaskExecutor
from workflow_agent.orchestrator.planner import PlanGenerator
from workflow_agent.orchestrator.schemas import (
    AgentTask,
    AppState,
    ErrorKind,
    PlanStep,
    RunError,
    RunSnapshot,
    TaskStatus,
)
from workflow_agent.orchestrator.state_store import RunStateStore, SnapshotListener

logger = logging.getLogger(__name__)


class Orchestrator:
    """State machine driving one run at a time."""

    def __init__(
        self,
        planner: Optional[PlanGenerator] = None,
        executor: Optional[TaskExecutor] = None,
        store: Optional[RunStateStore] = None,
    ):
        self._planner = planner or PlanGenerator()
        self._executor = executor or TaskExecutor()
        self._store = store or RunStateStore()
        self._generation = self._store.run_id
        self._run_task: Optional[asyncio.Task] = None
        self._token: Optional[CancellationToken] = None

    # --- Read side ---

    def snapshot(self) -> RunSnapshot:
        return self._store.snapshot()

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Receive a snapshot after every state change."""
        return self._store.subscribe(listener)

    async def wait_until_settled(self) -> RunSnapshot:
        """Wait for the current run (if any) to end, then return the snapshot."""
        run_task = self._run_task
        if run_task is not None and not run_task.done():
            await asyncio.wait({run_task})
        return self.snapshot()

    # --- Commands ---

    def start(self, objective: str) -> bool:
        """Start a new run. Must be called from inside a running event loop.

        Returns False (and changes nothing) if the objective is empty or
        whitespace-only, or a run is already planning or executing.
        """
        if not objective or not objective.strip():
            logger.info("Ignoring start: objective is empty")
            return False

        current = self._store.snapshot()
        if current.is_active:
            logger.info(
                f"Ignoring start: run {current.run_id} is {current.app_state.value}"
            )
            return False

        self._generation += 1
        generation = self._generation
        token = CancellationToken()
        self._token = token

        self._store.reset(generation, app_state=AppState.PLANNING, objective=objective)
        logger.info(f"Run {generation} started: {objective[:120]!r}")

        self._run_task = asyncio.get_running_loop().create_task(
            self._run(generation, objective, token),
            name=f"workflow-run-{generation}",
        )
        self._run_task.add_done_callback(self._on_run_done)
        return True

    def stop(self) -> None:
        """Abandon the current run and return to IDLE.

        Cancels the run's token and asyncio task so the in-flight stream is
        closed, then discards all run state.
        """
        if self._token is not None:
            self._token.cancel()
        if self._run_task is not None and not self._run_task.done():
            self._run_task.cancel()

        stopped = self._generation
        self._generation += 1
        self._token = None
        self._run_task = None
        self._store.reset(self._generation)
        logger.info(f"Run {stopped} stopped; state reset to IDLE")

    # --- Run ---

    async def _run(self, generation: int, objective: str, token: CancellationToken) -> None:
        try:
            steps = await self._planner.generate(objective)
            # Accepts PlanStep instances or plain {title, description} mappings
            tasks = tuple(
                AgentTask.from_step(PlanStep.model_validate(step)) for step in steps
            )
        except Exception as e:
            logger.warning(f"Run {generation} planning failed: {e}")
            self._store.update(
                generation,
                app_state=AppState.IDLE,
                error=RunError(kind=ErrorKind.PLANNING, message=str(e)),
            )
            return

        if not self._store.update(generation, tasks=tasks, app_state=AppState.EXECUTING):
            return
        logger.info(f"Run {generation} plan materialized: {len(tasks)} tasks")

        try:
            await self._execute_tasks(generation, objective, tasks, token)
        except Exception as e:
            logger.exception(f"Run {generation} execution crashed: {e!r}")
            self._record_crash(generation, e)

        self._store.update(generation, app_state=AppState.FINISHED, current_task_id=None)
        snapshot = self._store.snapshot()
        if snapshot.run_id == generation:
            logger.info(
                f"Run {generation} finished: "
                f"{snapshot.completed_count}/{snapshot.total_count} tasks completed"
            )

    async def _execute_tasks(
        self,
        generation: int,
        objective: str,
        tasks: tuple[AgentTask, ...],
        token: CancellationToken,
    ) -> None:
        """Run each task in plan order, halting on the first failure."""
        for index, task in enumerate(tasks):
            if not self._store.transition_task(
                generation, task.id, TaskStatus.IN_PROGRESS, current_task_id=task.id
            ):
                return

            # Frozen as of now; later fragments of this task never reach it
            tasks_snapshot = self._store.snapshot().tasks
            label = f"run {generation} task {index + 1}/{len(tasks)}"

            stream = FragmentStream(
                self._executor.execute(
                    task,
                    tasks_snapshot,
                    objective,
                    cancellation_check=token.is_cancelled,
                ),
                token,
                label=label,
            )
            outcome = await drain_stream(
                stream,
                lambda fragment, task_id=task.id: self._store.append_fragment(
                    generation, task_id, fragment
                ),
            )

            if outcome.cancelled:
                logger.info(f"[{label}] Cancelled after {outcome.fragment_count} fragments")
                return

            if outcome.failed:
                logger.warning(
                    f"[{label}] '{task.title}' failed after "
                    f"{outcome.fragment_count} fragments: {outcome.error}"
                )
                self._store.transition_task(
                    generation,
                    task.id,
                    TaskStatus.FAILED,
                    error=RunError(
                        kind=ErrorKind.EXECUTION,
                        message=outcome.error or "Task failed",
                        task_id=task.id,
                    ),
                )
                return

            self._store.transition_task(generation, task.id, TaskStatus.COMPLETED)
            logger.info(
                f"[{label}] '{task.title}' completed: {outcome.fragment_count} fragments"
            )

    def _record_crash(self, generation: int, exc: Exception) -> None:
        """Fail the in-progress task (if any) and record an execution error."""
        snapshot = self._store.snapshot()
        if snapshot.run_id != generation:
            return
        task_id = snapshot.current_task_id
        error = RunError(
            kind=ErrorKind.EXECUTION,
            message=f"Run failed: {exc}",
            task_id=task_id,
        )
        task = snapshot.get_task(task_id) if task_id else None
        if task is not None and task.status == TaskStatus.IN_PROGRESS:
            self._store.transition_task(generation, task_id, TaskStatus.FAILED, error=error)
        else:
            self._store.update(generation, error=error)

    def _on_run_done(self, run_task: asyncio.Task) -> None:
        if run_task.cancelled():
            return
        exc = run_task.exception()
        if exc is None:
            return
        logger.error(f"Run task {run_task.get_name()} crashed: {exc!r}")

        # A crashed run must not stay PLANNING or EXECUTING
        snapshot = self._store.snapshot()
        if run_task is self._run_task and snapshot.is_active:
            self._store.update(
                snapshot.run_id,
                app_state=AppState.IDLE,
                current_task_id=None,
                error=RunError(kind=ErrorKind.EXECUTION, message=f"Run failed: {exc}"),
            )
