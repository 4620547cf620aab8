"""Single-step execution: prompt assembly and streamed LLM output.

TaskExecutor.execute() builds the step prompt (objective, prior completed
steps as context, the step itself, step-kind instructions) and returns
the backend's text stream as an async iterator of fragments.

Any upstream failure while streaming surfaces as ExecutionError tagged
with the task id. Whatever was yielded before the failure has already
been delivered to the consumer and is not taken back.
"""

import logging
from typing import AsyncIterator, Callable, Optional, Sequence

from workflow_agent import config
from workflow_agent.errors import ExecutionError
from workflow_agent.executor.context_broker import assemble_prior_context
from workflow_agent.llm.backends import ModelBackend
from workflow_agent.llm.factory import get_backend
from workflow_agent.orchestrator.schemas import AgentTask

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are one agent in a multi-step content workflow. "
    "Execute exactly the step you are given and write in professional Markdown."
)

STEP_PROMPT_TEMPLATE = """You are executing a specific step in a content generation workflow.

**Global Goal**: Create content about "{objective}".

**Context (Previous Steps)**:
{prior_context}

**Current Step to Execute**:
Title: {title}
Description: {description}

**Instructions**:
1. Execute ONLY this specific step. Do not do the whole project.
2. If this is a **Research** step, simulate searching and provide bullet points with data/facts.
3. If this is a **Brief/Persona** step, define the target audience, tone, and key takeaways.
4. If this is a **Writing** step, write the actual content sections requested.
5. If this is a **Review** step, critique the previous content and provide a summary of quality checks.

**Output Style**:
- Use professional Markdown.
- Use Bold for emphasis.
- Use Lists for clarity.
- If writing a draft, ensure it is high quality and flows well from the previous context.
"""


def build_step_prompt(task: AgentTask, prior_context: str, objective: str) -> str:
    return STEP_PROMPT_TEMPLATE.format(
        objective=objective,
        prior_context=prior_context or "(none yet)",
        title=task.title,
        description=task.description,
    )


class TaskExecutor:
    """Produces the fragment stream for one task."""

    def __init__(
        self,
        backend: Optional[ModelBackend] = None,
        model_id: str = config.MODEL_ID,
        thinking_budget: Optional[int] = config.EXECUTION_THINKING_BUDGET,
        max_tokens: int = config.MAX_OUTPUT_TOKENS,
    ):
        self._backend = backend
        self._model_id = model_id
        self._thinking_budget = thinking_budget
        self._max_tokens = max_tokens

    @property
    def backend(self) -> ModelBackend:
        if self._backend is None:
            self._backend = get_backend(self._model_id)
        return self._backend

    async def execute(
        self,
        task: AgentTask,
        tasks_snapshot: Sequence[AgentTask],
        objective: str,
        cancellation_check: Optional[Callable[[], bool]] = None,
    ) -> AsyncIterator[str]:
        """Stream the output of one step.

        Args:
            task: The step to execute
            tasks_snapshot: The full task list as of the moment this step
                began; only its completed steps feed the context
            objective: The run's objective
            cancellation_check: Returns True once the run has been stopped

        Raises:
            ExecutionError: If the upstream call fails at any point
        """
        prior_context = assemble_prior_context(tasks_snapshot)
        user_message = build_step_prompt(task, prior_context, objective)
        label = f"step:{task.id}"

        logger.info(
            f"Executing step '{task.title}' ({task.id}), "
            f"{len(prior_context):,} chars of prior context"
        )

        try:
            async for fragment in self.backend.stream_text(
                SYSTEM_PROMPT,
                user_message,
                max_tokens=self._max_tokens,
                thinking_budget=self._thinking_budget,
                label=label,
                cancellation_check=cancellation_check,
            ):
                yield fragment
        except ExecutionError:
            raise
        except Exception as e:
            logger.error(f"[{label}] Step '{task.title}' failed: {e}")
            raise ExecutionError(
                f"Step '{task.title}' failed: {e}", task_id=task.id
            ) from e
