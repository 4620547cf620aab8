"""Prior-step context assembly for the executor.

The context broker reads the task list snapshot taken when a step began
and assembles the output of every completed step into the markdown block
the next LLM call reads as context.

Only COMPLETED steps with non-empty output are included, in plan order.
Pending, in-progress and failed steps never feed forward: a failed step's
partial output stays visible to the user but is not built upon.
"""

import logging
from typing import Iterable

from workflow_agent.orchestrator.schemas import AgentTask, TaskStatus

logger = logging.getLogger(__name__)

BLOCK_SEPARATOR = "\n\n---\n\n"


def select_context_tasks(tasks_snapshot: Iterable[AgentTask]) -> list[AgentTask]:
    """Tasks whose output is eligible as context, in plan order."""
    return [
        t for t in tasks_snapshot
        if t.status == TaskStatus.COMPLETED and t.result_content
    ]


def assemble_prior_context(tasks_snapshot: Iterable[AgentTask]) -> str:
    """Assemble completed steps' output into a single context string.

    Args:
        tasks_snapshot: The task list as it stood when the current step began

    Returns:
        Markdown with one ``### Completed Step: <title>`` block per eligible
        task, separated by horizontal rules. Empty string if none qualify.
    """
    blocks = [
        _format_step_block(task)
        for task in select_context_tasks(tasks_snapshot)
    ]
    if not blocks:
        return ""

    context = BLOCK_SEPARATOR.join(blocks)
    logger.debug(f"Assembled context: {len(blocks)} steps, {len(context):,} chars")
    return context


def _format_step_block(task: AgentTask) -> str:
    return f"### Completed Step: {task.title}\n{task.result_content}"
