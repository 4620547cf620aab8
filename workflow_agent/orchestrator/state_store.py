"""Run state store: the single source of truth for a run.

Holds the current RunSnapshot and notifies subscribers after every change.
Only the Orchestrator writes to it; everyone else reads snapshots.

Every write is tagged with the run_id (generation) it belongs to. Writes
for a generation other than the current one are dropped, so callbacks from
a run that was stopped or replaced can never touch the new state.
"""

import logging
from typing import Callable, Optional

from workflow_agent.orchestrator.schemas import (
    ALLOWED_TRANSITIONS,
    AgentTask,
    AppState,
    RunSnapshot,
    TaskStatus,
)

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[RunSnapshot], None]


class RunStateStore:
    """Snapshot holder with subscribe/notify."""

    def __init__(self):
        self._snapshot = RunSnapshot()
        self._listeners: list[SnapshotListener] = []

    def snapshot(self) -> RunSnapshot:
        return self._snapshot

    @property
    def run_id(self) -> int:
        return self._snapshot.run_id

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # --- Writes (orchestrator only) ---

    def reset(
        self,
        run_id: int,
        app_state: AppState = AppState.IDLE,
        objective: Optional[str] = None,
    ) -> RunSnapshot:
        """Replace all run state with a fresh snapshot for a new generation."""
        return self._publish(
            RunSnapshot(run_id=run_id, app_state=app_state, objective=objective)
        )

    def update(self, run_id: int, **changes) -> bool:
        """Apply top-level changes (app_state, tasks, current_task_id, error).

        Returns False if run_id is stale and the write was dropped.
        """
        if not self._is_current(run_id, "update"):
            return False
        self._publish(self._snapshot.model_copy(update=changes))
        return True

    def transition_task(
        self,
        run_id: int,
        task_id: str,
        status: TaskStatus,
        **changes,
    ) -> bool:
        """Move a task to a new status, enforcing forward-only transitions.

        Extra keyword arguments are applied to the snapshot itself
        (e.g. current_task_id) in the same publish.

        Raises:
            ValueError: If the task is unknown or the transition goes backward.
        """
        if not self._is_current(run_id, f"transition of {task_id}"):
            return False

        task = self._require_task(task_id)
        if status not in ALLOWED_TRANSITIONS[task.status]:
            raise ValueError(
                f"Illegal transition for task {task_id}: "
                f"{task.status.value} -> {status.value}"
            )

        updated = task.model_copy(update={"status": status})
        self._publish(self._replace_task(updated, **changes))
        return True

    def append_fragment(self, run_id: int, task_id: str, fragment: str) -> bool:
        """Append a fragment to an in-progress task's result_content.

        Fragments for terminal tasks are dropped: content is frozen once a
        task completes or fails.
        """
        if not self._is_current(run_id, f"fragment for {task_id}"):
            return False

        task = self._require_task(task_id)
        if task.status != TaskStatus.IN_PROGRESS:
            logger.warning(
                f"Dropped fragment for task {task_id}: status is {task.status.value}"
            )
            return False

        updated = task.model_copy(
            update={"result_content": task.result_content + fragment}
        )
        self._publish(self._replace_task(updated))
        return True

    # --- Internals ---

    def _is_current(self, run_id: int, what: str) -> bool:
        if run_id != self._snapshot.run_id:
            logger.debug(
                f"Dropped stale {what}: run {run_id} (current run {self._snapshot.run_id})"
            )
            return False
        return True

    def _require_task(self, task_id: str) -> AgentTask:
        task = self._snapshot.get_task(task_id)
        if task is None:
            raise ValueError(f"Unknown task: {task_id}")
        return task

    def _replace_task(self, updated: AgentTask, **changes) -> RunSnapshot:
        tasks = tuple(updated if t.id == updated.id else t for t in self._snapshot.tasks)
        return self._snapshot.model_copy(update={"tasks": tasks, **changes})

    def _publish(self, snapshot: RunSnapshot) -> RunSnapshot:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            if self._snapshot is not snapshot:
                # A listener wrote to the store; the newer snapshot has
                # already reached every listener
                break
            try:
                listener(snapshot)
            except Exception as e:
                # An observer must not break the run
                logger.error(f"Snapshot listener {listener!r} failed: {e}")
        return snapshot
