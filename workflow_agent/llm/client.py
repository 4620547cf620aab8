"""Shared helpers for talking to LLM providers.

Used by every backend (credential lookup) and by the planner (parsing
structured JSON out of model text).
"""

import json
import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)


def require_api_key(*env_names: str) -> str:
    """Return the first API key found among the given environment variables.

    Raises:
        RuntimeError: If none of them is set
    """
    for name in env_names:
        value = os.environ.get(name)
        if value:
            return value
    raise RuntimeError(
        f"LLM service unavailable. Set the {' or '.join(env_names)} environment variable."
    )


def strip_code_fences(raw_text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if the model added one."""
    content = raw_text.strip()
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else content[3:]
    if content.endswith("```"):
        content = content.rsplit("```", 1)[0]
    return content.strip()


def parse_llm_json_response(raw_text: Optional[str]) -> dict:
    """Parse a JSON object from an LLM response.

    Models sometimes wrap JSON in markdown fences despite being asked not
    to; those are stripped before parsing.

    Raises:
        ValueError: If the text is empty or does not hold a JSON object
            (json.JSONDecodeError is a ValueError subclass)
    """
    if not raw_text or not raw_text.strip():
        raise ValueError("Empty response")

    data = json.loads(strip_code_fences(raw_text))
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data
