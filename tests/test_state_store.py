"""Tests for the run state store."""

import pytest

from workflow_agent.orchestrator.schemas import AgentTask, AppState, TaskStatus
from workflow_agent.orchestrator.state_store import RunStateStore


def _store_with_tasks(*titles, run_id=1):
    store = RunStateStore()
    store.reset(run_id, app_state=AppState.PLANNING, objective="Objective")
    tasks = tuple(AgentTask(title=t, description=f"Do {t}") for t in titles)
    store.update(run_id, tasks=tasks, app_state=AppState.EXECUTING)
    return store, tasks


class TestRunStateStore:
    def test_initial_snapshot_is_idle_and_empty(self):
        snapshot = RunStateStore().snapshot()
        assert snapshot.app_state == AppState.IDLE
        assert snapshot.tasks == ()
        assert snapshot.run_id == 0
        assert snapshot.completed_count == 0
        assert snapshot.total_count == 0

    def test_listeners_receive_every_change(self):
        store = RunStateStore()
        received = []
        store.subscribe(received.append)

        store.reset(1, app_state=AppState.PLANNING, objective="x")
        store.update(1, app_state=AppState.FINISHED)

        assert [s.app_state for s in received] == [AppState.PLANNING, AppState.FINISHED]

    def test_unsubscribe_stops_delivery(self):
        store = RunStateStore()
        received = []
        unsubscribe = store.subscribe(received.append)

        unsubscribe()
        unsubscribe()
        store.reset(1)

        assert received == []

    def test_stale_writes_are_dropped(self):
        store, tasks = _store_with_tasks("A", run_id=1)
        store.transition_task(1, tasks[0].id, TaskStatus.IN_PROGRESS)
        store.reset(2)

        assert store.append_fragment(1, tasks[0].id, "late") is False
        assert store.update(1, app_state=AppState.FINISHED) is False
        assert store.transition_task(1, tasks[0].id, TaskStatus.COMPLETED) is False
        assert store.snapshot().app_state == AppState.IDLE
        assert store.snapshot().tasks == ()

    def test_fragments_append_while_in_progress(self):
        store, tasks = _store_with_tasks("A")
        task_id = tasks[0].id
        store.transition_task(1, task_id, TaskStatus.IN_PROGRESS, current_task_id=task_id)

        store.append_fragment(1, task_id, "Hello, ")
        store.append_fragment(1, task_id, "world")

        snapshot = store.snapshot()
        assert snapshot.tasks[0].result_content == "Hello, world"
        assert snapshot.current_task_id == task_id

    def test_content_frozen_after_terminal_status(self):
        store, tasks = _store_with_tasks("A")
        task_id = tasks[0].id
        store.transition_task(1, task_id, TaskStatus.IN_PROGRESS)
        store.append_fragment(1, task_id, "done")
        store.transition_task(1, task_id, TaskStatus.COMPLETED)

        assert store.append_fragment(1, task_id, " extra") is False
        assert store.snapshot().tasks[0].result_content == "done"

    def test_fragment_for_pending_task_is_dropped(self):
        store, tasks = _store_with_tasks("A")
        assert store.append_fragment(1, tasks[0].id, "early") is False
        assert store.snapshot().tasks[0].result_content == ""

    @pytest.mark.parametrize(
        "path",
        [
            [TaskStatus.COMPLETED],
            [TaskStatus.IN_PROGRESS, TaskStatus.PENDING],
            [TaskStatus.IN_PROGRESS, TaskStatus.FAILED, TaskStatus.COMPLETED],
            [TaskStatus.IN_PROGRESS, TaskStatus.IN_PROGRESS],
        ],
    )
    def test_illegal_transitions_raise(self, path):
        store, tasks = _store_with_tasks("A")
        *legal, illegal = path
        for status in legal:
            store.transition_task(1, tasks[0].id, status)

        with pytest.raises(ValueError, match="Illegal transition"):
            store.transition_task(1, tasks[0].id, illegal)

    def test_unknown_task_raises(self):
        store, _ = _store_with_tasks("A")
        with pytest.raises(ValueError, match="Unknown task"):
            store.transition_task(1, "task-missing", TaskStatus.IN_PROGRESS)

    def test_failing_listener_does_not_break_others(self):
        store = RunStateStore()
        received = []

        def broken(snapshot):
            raise RuntimeError("observer bug")

        store.subscribe(broken)
        store.subscribe(received.append)
        store.reset(1, app_state=AppState.PLANNING)

        assert len(received) == 1

    def test_other_tasks_untouched_by_updates(self):
        store, tasks = _store_with_tasks("A", "B")
        store.transition_task(1, tasks[0].id, TaskStatus.IN_PROGRESS)
        store.append_fragment(1, tasks[0].id, "a")

        assert store.snapshot().tasks[1] == tasks[1]

    def test_write_from_listener_is_the_last_thing_everyone_sees(self):
        store = RunStateStore()
        store.reset(1, app_state=AppState.EXECUTING)
        later = []

        def reset_on_finish(snapshot):
            if snapshot.app_state == AppState.FINISHED:
                store.reset(2, app_state=AppState.PLANNING, objective="next")

        store.subscribe(reset_on_finish)
        store.subscribe(later.append)
        store.update(1, app_state=AppState.FINISHED)

        assert store.snapshot().run_id == 2
        assert later[-1] == store.snapshot()
        assert all(s.run_id == 2 for s in later)
