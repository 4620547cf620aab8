"""Markdown export of a run.

Renders every started task (in progress, completed or failed) as one
document, in plan order, the same view the content feed shows. Pending
tasks are left out.
"""

import logging
from datetime import datetime, timezone

from workflow_agent.orchestrator.schemas import RunSnapshot, TaskStatus

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    TaskStatus.IN_PROGRESS: "In progress",
    TaskStatus.COMPLETED: "Completed",
    TaskStatus.FAILED: "Failed",
}


def render_run_document(snapshot: RunSnapshot) -> str:
    """Render a snapshot as a markdown document.

    Returns an empty string when no task has started yet.
    """
    visible = snapshot.visible_tasks
    if not visible:
        return ""

    lines = []
    if snapshot.objective:
        lines.append(f"# {snapshot.objective.strip()}")
        lines.append("")
    lines.append(
        f"_{snapshot.completed_count} / {snapshot.total_count} steps completed"
        f" · generated {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M')} UTC_"
    )
    lines.append("")

    for index, task in enumerate(snapshot.tasks, 1):
        if task.status == TaskStatus.PENDING:
            continue
        lines.append(f"## Step {index}: {task.title}")
        lines.append("")
        lines.append(f"**Status**: {STATUS_LABELS[task.status]}")
        lines.append("")
        if task.result_content:
            lines.append(task.result_content.rstrip())
            lines.append("")

    if snapshot.error:
        lines.append("---")
        lines.append("")
        lines.append(f"**Error**: {snapshot.error.message}")
        lines.append("")

    document = "\n".join(lines)
    logger.debug(f"Rendered run {snapshot.run_id}: {len(visible)} steps, {len(document):,} chars")
    return document
