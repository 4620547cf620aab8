"""Workflow Agent - Plan-then-execute orchestration over an LLM backend.

Turns a single objective into an ordered plan of steps, then executes
each step in sequence, streaming partial output and threading the results
of completed steps into the steps that follow.
"""

__version__ = "0.1.0"
