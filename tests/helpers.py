"""Test doubles for the planner, the task executor and LLM backends."""

import asyncio
from typing import Any, Iterable, Optional

from workflow_agent.orchestrator.schemas import AgentTask, PlanStep


class FakePlanner:
    """PlanGenerator stand-in returning fixed step titles."""

    def __init__(
        self,
        titles: Iterable[str] = (),
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.titles = list(titles)
        self.error = error
        self.gate = gate
        self.calls: list[str] = []

    async def generate(self, objective: str) -> list[PlanStep]:
        self.calls.append(objective)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return [
            PlanStep(title=title, description=f"Do {title}")
            for title in self.titles
        ]


class ScriptedExecutor:
    """TaskExecutor stand-in driven by a per-title script.

    Each script item is either a fragment (str), an exception to raise at
    that point, or an asyncio.Event to wait on before continuing.
    """

    def __init__(self, scripts: Optional[dict[str, list[Any]]] = None):
        self.scripts = scripts or {}
        self.calls: list[tuple[AgentTask, tuple[AgentTask, ...], str]] = []
        self.closed: list[str] = []

    async def execute(self, task, tasks_snapshot, objective, cancellation_check=None):
        self.calls.append((task, tuple(tasks_snapshot), objective))
        try:
            for item in self.scripts.get(task.title, [f"{task.title} output"]):
                await asyncio.sleep(0)
                if isinstance(item, asyncio.Event):
                    await item.wait()
                    continue
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.closed.append(task.title)

    @property
    def executed_titles(self) -> list[str]:
        return [task.title for task, _, _ in self.calls]


class FakeBackend:
    """ModelBackend stand-in for planner and task executor tests."""

    model_id = "fake-model"

    def __init__(
        self,
        json_text: str = "",
        fragments: Iterable[Any] = (),
        error: Optional[Exception] = None,
    ):
        self.json_text = json_text
        self.fragments = list(fragments)
        self.error = error
        self.json_calls: list[dict] = []
        self.stream_calls: list[dict] = []

    async def generate_json(self, system_prompt, user_message, **kwargs) -> str:
        self.json_calls.append({"system": system_prompt, "user": user_message, **kwargs})
        if self.error is not None:
            raise self.error
        return self.json_text

    async def stream_text(self, system_prompt, user_message, **kwargs):
        self.stream_calls.append({"system": system_prompt, "user": user_message, **kwargs})
        for item in self.fragments:
            await asyncio.sleep(0)
            if isinstance(item, BaseException):
                raise item
            yield item


def make_task(title: str, status, content: str = "") -> AgentTask:
    return AgentTask(
        title=title,
        description=f"Do {title}",
        status=status,
        result_content=content,
    )


async def settle(orchestrator):
    """Wait for the orchestrator's current run to end."""
    return await orchestrator.wait_until_settled()
