"""Plan-then-execute orchestrator.

Given an objective, the orchestrator:
1. Calls an LLM (via PlanGenerator) to break it into ordered steps
2. Materializes the steps as tasks and runs them one at a time
3. Streams each task's output into its result, publishing snapshots
4. Feeds completed tasks' output forward as context for later tasks

The orchestrator is the only writer of run state; observers subscribe to
immutable snapshots (see state_store).
"""
