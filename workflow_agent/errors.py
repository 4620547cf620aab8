"""Error taxonomy for a workflow run.

Two kinds of failure exist. A PlanningError aborts the run before any
task list exists and returns the orchestrator to IDLE. An ExecutionError
is localized to one task: that task is marked FAILED with its partial
output kept, and the remaining tasks never start.
"""

from typing import Optional


class WorkflowAgentError(Exception):
    """Base class for errors surfaced through the run's error slot."""


class PlanningError(WorkflowAgentError):
    """Plan generation failed: empty objective, upstream error, or a malformed plan."""


class ExecutionError(WorkflowAgentError):
    """A task's output stream failed partway through."""

    def __init__(self, message: str, task_id: Optional[str] = None):
        super().__init__(message)
        self.task_id = task_id
