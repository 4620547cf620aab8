"""LLM-powered plan generation.

Breaks a user objective into an ordered list of steps (title + description)
modelled on a professional content agency workflow: brief and persona,
research, outline, drafting, review.

The planner is an LLM call, not Python engineering. The only checks made
here are structural: the response must parse as JSON and every step must
carry a title and a description. Step count (4-7) is a prompt hint and is
not enforced.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from workflow_agent import config
from workflow_agent.errors import PlanningError
from workflow_agent.llm.backends import ModelBackend
from workflow_agent.llm.client import parse_llm_json_response
from workflow_agent.llm.factory import get_backend
from workflow_agent.orchestrator.schemas import PlanResponse, PlanStep

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a precise planning algorithm. Break down tasks logically."

PLAN_PROMPT_TEMPLATE = """You are an expert project manager and content strategist.
The user wants to create a comprehensive piece of content about: "{objective}".

Your goal is to break this request down into a detailed, step-by-step workflow.
The workflow should mimic a professional content agency process.

Required Steps Structure (Create 4-7 detailed steps):
1. **Strategic Brief & Persona**: Define who the audience is and the core message.
2. **Deep Research**: specific research tasks (e.g., searching for recent data, trends, or platform rules).
3. **Structural Outline**: organizing the flow.
4. **Content Drafting**: The actual writing phase (can be split into sections if the topic is large).
5. **Review & Refinement**: Checking against constraints and polishing.

For each step, provide:
- A concise, action-oriented **title** (e.g., "Analyze Audience Persona", "Research 2025 AI Trends").
- A detailed **description** of what this agent step will do.

Return ONLY valid JSON matching this exact structure (no markdown fences, no explanation outside JSON):

{{"tasks": [{{"title": "...", "description": "..."}}]}}
"""


def build_plan_prompt(objective: str) -> str:
    return PLAN_PROMPT_TEMPLATE.format(objective=objective)


def parse_plan_response(raw_text: Optional[str]) -> list[PlanStep]:
    """Parse and validate the planner's JSON response.

    Raises:
        PlanningError: If the text is empty, not JSON, or any step lacks a
            title or description
    """
    if not raw_text or not raw_text.strip():
        raise PlanningError("No plan generated")

    try:
        data = parse_llm_json_response(raw_text)
    except ValueError as e:
        logger.error(f"Failed to parse plan response as JSON: {e}")
        logger.error(f"Raw response (first 500 chars): {raw_text[:500]}")
        raise PlanningError(
            f"LLM returned invalid JSON. First 200 chars: {raw_text[:200]}"
        ) from e

    try:
        plan = PlanResponse.model_validate(data)
    except ValidationError as e:
        raise PlanningError(f"Plan failed shape validation: {e}") from e

    return plan.tasks


class PlanGenerator:
    """Turns an objective into an ordered list of PlanSteps."""

    def __init__(
        self,
        backend: Optional[ModelBackend] = None,
        model_id: str = config.PLANNER_MODEL_ID,
        thinking_budget: Optional[int] = config.PLANNING_THINKING_BUDGET,
        max_tokens: int = config.MAX_OUTPUT_TOKENS,
    ):
        self._backend = backend
        self._model_id = model_id
        self._thinking_budget = thinking_budget
        self._max_tokens = max_tokens

    @property
    def backend(self) -> ModelBackend:
        # Created lazily so constructing a planner never needs credentials
        if self._backend is None:
            self._backend = get_backend(self._model_id)
        return self._backend

    async def generate(self, objective: str) -> list[PlanStep]:
        """Generate a plan for the objective.

        Raises:
            PlanningError: On an empty objective, an upstream failure, or a
                malformed response
        """
        if not objective or not objective.strip():
            raise PlanningError("Objective must not be empty")

        logger.info(f"Generating plan for objective: {objective[:120]!r}")

        try:
            raw_text = await self.backend.generate_json(
                SYSTEM_PROMPT,
                build_plan_prompt(objective),
                max_tokens=self._max_tokens,
                response_schema=PlanResponse,
                thinking_budget=self._thinking_budget,
                label="plan",
            )
        except PlanningError:
            raise
        except Exception as e:
            logger.error(f"Plan generation call failed: {e}")
            raise PlanningError(f"Plan generation failed: {e}") from e

        steps = parse_plan_response(raw_text)
        logger.info(f"Plan generated: {len(steps)} steps")
        return steps
