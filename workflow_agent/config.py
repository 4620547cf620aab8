"""Runtime configuration read from environment variables.

Defaults: Gemini 2.5 Flash for both planning and execution, a 2048-token
thinking budget while planning and no thinking while streaming step output.
"""

import os

DEFAULT_MODEL = "gemini-2.5-flash"

MODEL_ID = os.environ.get("WORKFLOW_AGENT_MODEL", DEFAULT_MODEL)
PLANNER_MODEL_ID = os.environ.get("WORKFLOW_AGENT_PLANNER_MODEL", MODEL_ID)

PLANNING_THINKING_BUDGET = int(
    os.environ.get("WORKFLOW_AGENT_PLANNING_THINKING_BUDGET", "2048")
)
EXECUTION_THINKING_BUDGET = int(
    os.environ.get("WORKFLOW_AGENT_EXECUTION_THINKING_BUDGET", "0")
)

MAX_OUTPUT_TOKENS = int(os.environ.get("WORKFLOW_AGENT_MAX_OUTPUT_TOKENS", "8192"))

LOG_LEVEL = os.environ.get("WORKFLOW_AGENT_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
