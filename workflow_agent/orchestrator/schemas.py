"""Schemas for a plan-then-execute run.

PlanStep / PlanResponse describe what the planner returns. AgentTask is a
materialized plan step with identity, status and accumulated output.
RunSnapshot is the immutable point-in-time view published to observers
after every state change.

Tasks and snapshots are frozen: the orchestrator produces a new value for
each change instead of mutating in place, so a snapshot handed to an
observer can never change underneath it.
"""

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class AppState(str, Enum):
    """Lifecycle of a run."""
    IDLE = "IDLE"
    PLANNING = "PLANNING"
    EXECUTING = "EXECUTING"
    FINISHED = "FINISHED"


class TaskStatus(str, Enum):
    """Task execution states. Transitions only move forward."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})

# Allowed forward transitions; anything else is a programming error
ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.IN_PROGRESS: TERMINAL_STATUSES,
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


class PlanStep(BaseModel):
    """One step of a generated plan, before materialization."""

    title: str = Field(
        ...,
        description="Concise, action-oriented step title (e.g. 'Analyze Audience Persona')",
    )
    description: str = Field(
        ...,
        description="What this step will do",
    )


class PlanResponse(BaseModel):
    """Structured planner output: an ordered list of steps."""

    tasks: list[PlanStep]


def generate_task_id() -> str:
    return f"task-{uuid.uuid4().hex[:12]}"


class AgentTask(BaseModel):
    """A materialized plan step."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_task_id)
    title: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    result_content: str = Field(
        default="",
        description="Markdown output accumulated from the step's fragment stream",
    )

    @classmethod
    def from_step(cls, step: PlanStep) -> "AgentTask":
        return cls(title=step.title, description=step.description)


class ErrorKind(str, Enum):
    PLANNING = "planning"
    EXECUTION = "execution"


class RunError(BaseModel):
    """The most recent error of a run. Overwritten, never accumulated."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str
    task_id: Optional[str] = None


class RunSnapshot(BaseModel):
    """Immutable view of the run state at one instant."""

    model_config = ConfigDict(frozen=True)

    run_id: int = Field(
        default=0,
        description="Generation of the run this snapshot belongs to",
    )
    app_state: AppState = AppState.IDLE
    objective: Optional[str] = None
    tasks: tuple[AgentTask, ...] = ()
    current_task_id: Optional[str] = None
    error: Optional[RunError] = None

    @computed_field
    @property
    def completed_count(self) -> int:
        return sum(1 for t in self.tasks if t.status == TaskStatus.COMPLETED)

    @computed_field
    @property
    def total_count(self) -> int:
        return len(self.tasks)

    @property
    def is_active(self) -> bool:
        """True while planning or executing."""
        return self.app_state in (AppState.PLANNING, AppState.EXECUTING)

    @property
    def visible_tasks(self) -> list[AgentTask]:
        """Tasks that have started, in plan order."""
        return [t for t in self.tasks if t.status != TaskStatus.PENDING]

    def get_task(self, task_id: str) -> Optional[AgentTask]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None


class StartRunRequest(BaseModel):
    """Request to start a new run."""

    objective: str = Field(
        ...,
        description="What the user wants researched or written",
    )
