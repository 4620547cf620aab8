"""Shared LLM client utilities.

Provides the async backends (Google Gemini, Anthropic Claude) used by the
planner for structured plans and by the task executor for streamed output.
"""

from workflow_agent.llm.client import (
    parse_llm_json_response,
    require_api_key,
    strip_code_fences,
)
from workflow_agent.llm.backends import (
    AnthropicBackend,
    GeminiBackend,
    ModelBackend,
)
from workflow_agent.llm.factory import get_backend

__all__ = [
    "parse_llm_json_response",
    "require_api_key",
    "strip_code_fences",
    "ModelBackend",
    "AnthropicBackend",
    "GeminiBackend",
    "get_backend",
]
