"""Tests for LLM plan generation."""

import json

import pytest

from workflow_agent.errors import PlanningError
from workflow_agent.orchestrator.planner import (
    PlanGenerator,
    build_plan_prompt,
    parse_plan_response,
)
from workflow_agent.orchestrator.schemas import PlanResponse
from tests.helpers import FakeBackend

PLAN_JSON = json.dumps({
    "tasks": [
        {"title": "Analyze Audience Persona", "description": "Define the reader."},
        {"title": "Research 2025 AI Trends", "description": "Collect recent data."},
        {"title": "Draft the Guide", "description": "Write every section."},
    ]
})


class TestParsePlanResponse:
    def test_valid_plan_keeps_order(self):
        steps = parse_plan_response(PLAN_JSON)
        assert [s.title for s in steps] == [
            "Analyze Audience Persona",
            "Research 2025 AI Trends",
            "Draft the Guide",
        ]
        assert steps[0].description == "Define the reader."

    def test_markdown_fences_are_stripped(self):
        steps = parse_plan_response(f"```json\n{PLAN_JSON}\n```")
        assert len(steps) == 3

    def test_empty_task_list_is_valid(self):
        assert parse_plan_response('{"tasks": []}') == []

    @pytest.mark.parametrize("raw", [None, "", "   \n"])
    def test_empty_response(self, raw):
        with pytest.raises(PlanningError, match="No plan generated"):
            parse_plan_response(raw)

    def test_invalid_json(self):
        with pytest.raises(PlanningError, match="invalid JSON"):
            parse_plan_response("Here is your plan: step one...")

    @pytest.mark.parametrize(
        "data",
        [
            {"tasks": [{"title": "Only a title"}]},
            {"tasks": [{"description": "Only a description"}]},
            {"steps": []},
            {"tasks": "not a list"},
        ],
    )
    def test_shape_validation(self, data):
        with pytest.raises(PlanningError, match="shape validation"):
            parse_plan_response(json.dumps(data))

    def test_top_level_array_rejected(self):
        with pytest.raises(PlanningError):
            parse_plan_response('[{"title": "a", "description": "b"}]')


class TestPlanGenerator:
    @pytest.mark.asyncio
    async def test_generate_calls_backend_with_schema(self):
        backend = FakeBackend(json_text=PLAN_JSON)
        planner = PlanGenerator(backend=backend, thinking_budget=2048, max_tokens=4000)

        steps = await planner.generate("How to transition into an AI career in 2025")

        assert len(steps) == 3
        call = backend.json_calls[0]
        assert "How to transition into an AI career in 2025" in call["user"]
        assert call["response_schema"] is PlanResponse
        assert call["thinking_budget"] == 2048
        assert call["max_tokens"] == 4000

    @pytest.mark.asyncio
    @pytest.mark.parametrize("objective", ["", "  "])
    async def test_empty_objective_never_calls_backend(self, objective):
        backend = FakeBackend(json_text=PLAN_JSON)
        with pytest.raises(PlanningError):
            await PlanGenerator(backend=backend).generate(objective)
        assert backend.json_calls == []

    @pytest.mark.asyncio
    async def test_upstream_error_becomes_planning_error(self):
        backend = FakeBackend(error=RuntimeError("503 Service Unavailable"))
        with pytest.raises(PlanningError, match="503 Service Unavailable") as exc_info:
            await PlanGenerator(backend=backend).generate("Objective")
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_unknown_model_becomes_planning_error(self):
        planner = PlanGenerator(model_id="gpt-unknown")
        with pytest.raises(PlanningError, match="Unknown model"):
            await planner.generate("Objective")

    def test_prompt_mentions_step_range_and_json(self):
        prompt = build_plan_prompt("Write a guide to X")
        assert '"Write a guide to X"' in prompt
        assert "4-7" in prompt
        assert '{"tasks": [{"title": "...", "description": "..."}]}' in prompt
