"""Execution layer for a single plan step.

Architecture (bottom-up):
- context_broker: Assembles completed steps' output as markdown context
- stream: Cancellable fragment streams and explicit step outcomes
- task_runner: Builds the step prompt and streams the LLM's output
- run_document: Renders a run's started steps as one markdown document
"""
