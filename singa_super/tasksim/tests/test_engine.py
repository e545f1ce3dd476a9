"""Tests for the simulation engine tick rules."""
from __future__ import annotations

import copy
import random

import pytest

from singa_super.tasksim.engine import (
    SequenceDraw,
    SimulationEngine,
    always_complete,
    derive_status,
    never_complete,
)
from singa_super.tasksim.models import (
    ExecutionStep,
    PipelineInvariantError,
    ServiceType,
    Task,
    TaskDescriptor,
    TaskStatus,
    check_pipeline,
)
from singa_super.tasksim.recipes import recipe_for
from singa_super.tasksim.seed import seed_registry
from singa_super.tasksim.store.memory import MemoryTaskRegistry

STATUS_RANK = {
    TaskStatus.PENDING: 0,
    TaskStatus.IN_PROGRESS: 1,
    TaskStatus.COMPLETED: 2,
    TaskStatus.FAILED: 2,
}


def _create(registry: MemoryTaskRegistry, service_type: ServiceType = ServiceType.TRANSPORT) -> Task:
    return registry.create(
        TaskDescriptor(title="Ride to Office", description="Raffles Place", service_type=service_type)
    )


def _statuses(task: Task):
    return [step.status for step in task.steps]


def test_transport_scenario_with_favourable_draws() -> None:
    registry = MemoryTaskRegistry()
    engine = SimulationEngine(draw=always_complete)
    task = _create(registry)

    assert task.status is TaskStatus.IN_PROGRESS
    assert _statuses(task) == [TaskStatus.IN_PROGRESS] + [TaskStatus.PENDING] * 4

    engine.tick(registry)
    task = registry.get(task.id)
    assert task.steps[0].status is TaskStatus.COMPLETED
    assert task.steps[1].status is TaskStatus.PENDING

    engine.tick(registry)
    task = registry.get(task.id)
    assert task.steps[1].status is TaskStatus.IN_PROGRESS
    assert task.steps[1].timestamp is not None

    for _ in range(20):
        engine.tick(registry)
        if registry.get(task.id).status is TaskStatus.COMPLETED:
            break

    done = registry.get(task.id)
    assert done.status is TaskStatus.COMPLETED
    assert all(step.status is TaskStatus.COMPLETED for step in done.steps)

    frozen = copy.deepcopy(done)
    for _ in range(5):
        assert engine.tick(registry) == 0
    assert registry.get(task.id) == frozen


def test_task_completes_on_the_tick_after_its_last_step() -> None:
    registry = MemoryTaskRegistry()
    engine = SimulationEngine(draw=always_complete)
    task = _create(registry)
    steps_in_recipe = len(task.steps)

    # complete step 1, then start and complete each later step
    for _ in range(2 * steps_in_recipe - 1):
        engine.tick(registry)

    finished_steps = registry.get(task.id)
    assert all(step.status is TaskStatus.COMPLETED for step in finished_steps.steps)
    assert finished_steps.status is TaskStatus.IN_PROGRESS
    assert registry.list_logs(task.id)[-1].event == "step_completed"
    assert registry.list_logs(task.id)[-1].details["task_status"] == TaskStatus.IN_PROGRESS.value

    assert engine.tick(registry) == 1
    assert registry.get(task.id).status is TaskStatus.COMPLETED
    assert registry.list_logs(task.id)[-1].event == "task_completed"
    assert engine.tick(registry) == 0


def test_step_is_never_started_and_completed_in_one_tick() -> None:
    registry = MemoryTaskRegistry()
    engine = SimulationEngine(draw=always_complete)
    task = _create(registry, ServiceType.HEALTH)

    engine.tick(registry)  # completes step 0
    engine.tick(registry)  # starts step 1
    snapshot = registry.get(task.id)
    assert _statuses(snapshot) == [
        TaskStatus.COMPLETED,
        TaskStatus.IN_PROGRESS,
        TaskStatus.PENDING,
        TaskStatus.PENDING,
    ]


def test_unfavourable_draw_keeps_step_in_progress() -> None:
    registry = MemoryTaskRegistry()
    engine = SimulationEngine(draw=never_complete)
    task = _create(registry)
    original = registry.get(task.id)

    for _ in range(10):
        assert engine.tick(registry) == 0

    assert registry.get(task.id) == original


def test_completion_keeps_the_start_timestamp() -> None:
    registry = MemoryTaskRegistry()
    engine = SimulationEngine(draw=always_complete)
    task = _create(registry)
    started_at = task.steps[0].timestamp

    engine.tick(registry)
    assert registry.get(task.id).steps[0].timestamp == started_at


def test_draw_is_only_consulted_for_running_steps() -> None:
    registry = MemoryTaskRegistry()
    draw = SequenceDraw([0.9, 0.1])
    engine = SimulationEngine(draw=draw)
    task = _create(registry)

    engine.tick(registry)  # 0.9 >= 0.7, still running
    assert registry.get(task.id).steps[0].status is TaskStatus.IN_PROGRESS
    engine.tick(registry)  # 0.1 < 0.7, completed
    assert registry.get(task.id).steps[0].status is TaskStatus.COMPLETED
    engine.tick(registry)  # pending step promoted, no draw
    assert draw.calls == 2


def test_idle_tasks_are_never_touched() -> None:
    registry = MemoryTaskRegistry()
    seed_registry(registry)
    registry.add(
        Task(
            id="queued",
            title="Queued",
            description="not started",
            service_type=ServiceType.GENERAL,
            status=TaskStatus.PENDING,
            steps=[ExecutionStep(id="q-1", label="Analyzing Request")],
        )
    )
    failed = _create(registry)
    registry.fail(failed.id, "cancelled")
    before = registry.list()

    engine = SimulationEngine(draw=always_complete)
    for _ in range(10):
        assert engine.tick(registry) == 0

    assert registry.list() == before


def test_all_completed_running_task_is_closed_out() -> None:
    registry = MemoryTaskRegistry()
    registry.add(
        Task(
            id="stale",
            title="Stale",
            description="steps finished, status lagging",
            service_type=ServiceType.MART,
            status=TaskStatus.IN_PROGRESS,
            steps=[ExecutionStep(id="s-1", label="Delivered", status=TaskStatus.COMPLETED)],
        )
    )
    engine = SimulationEngine(draw=never_complete)

    assert engine.tick(registry) == 1
    assert registry.get("stale").status is TaskStatus.COMPLETED
    assert registry.list_logs("stale")[-1].event == "task_completed"


def test_failed_active_step_has_no_transition() -> None:
    task = Task(
        id="stuck",
        title="Stuck",
        description="failed step",
        service_type=ServiceType.GENERAL,
        status=TaskStatus.IN_PROGRESS,
        steps=[
            ExecutionStep(id="s-1", label="Analyzing Request", status=TaskStatus.COMPLETED),
            ExecutionStep(id="s-2", label="Identifying Agent", status=TaskStatus.FAILED),
            ExecutionStep(id="s-3", label="Processing"),
        ],
    )
    engine = SimulationEngine(draw=always_complete)

    assert engine.advance(task) is None
    assert task.status is TaskStatus.IN_PROGRESS
    assert _statuses(task) == [TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.PENDING]


def test_derive_status() -> None:
    done = [ExecutionStep(id="a", label="a", status=TaskStatus.COMPLETED)]
    running = done + [ExecutionStep(id="b", label="b", status=TaskStatus.IN_PROGRESS)]
    assert derive_status(done) is TaskStatus.COMPLETED
    assert derive_status(running) is TaskStatus.IN_PROGRESS
    with pytest.raises(PipelineInvariantError):
        derive_status([])


def test_empty_pipeline_is_a_programmer_error() -> None:
    task = Task(
        id="empty",
        title="Empty",
        description="no steps",
        service_type=ServiceType.GENERAL,
        status=TaskStatus.IN_PROGRESS,
    )
    with pytest.raises(PipelineInvariantError):
        SimulationEngine().advance(task)


def test_invalid_probability_is_rejected() -> None:
    with pytest.raises(ValueError):
        SimulationEngine(completion_probability=1.5)


@pytest.mark.parametrize("seed", range(5))
def test_random_runs_preserve_invariants_and_terminate(seed) -> None:
    registry = MemoryTaskRegistry()
    engine = SimulationEngine(draw=random.Random(seed).random)
    ids = [_create(registry, service_type).id for service_type in ServiceType]

    previous = {task.id: task for task in registry.list()}
    for _ in range(400):
        engine.tick(registry)
        for task in registry.list():
            check_pipeline(task.steps)
            running = [step for step in task.steps if step.status is TaskStatus.IN_PROGRESS]
            assert len(running) <= 1

            before = previous[task.id]
            if before.status is TaskStatus.COMPLETED:
                assert task == before
            for old, new in zip(before.steps, task.steps):
                assert STATUS_RANK[new.status] >= STATUS_RANK[old.status]
            previous[task.id] = task
        if not registry.list(TaskStatus.IN_PROGRESS):
            break

    assert [task.status for task in registry.list()] == [TaskStatus.COMPLETED] * len(ids)


def test_expected_ticks_scale_with_pipeline_length() -> None:
    rng = random.Random(1234)
    engine = SimulationEngine(draw=rng.random)
    steps_in_recipe = len(recipe_for(ServiceType.TRANSPORT))
    runs = 200
    total = 0
    for _ in range(runs):
        registry = MemoryTaskRegistry()
        task = _create(registry)
        ticks = 0
        while registry.get(task.id).status is not TaskStatus.COMPLETED:
            engine.tick(registry)
            ticks += 1
            assert ticks < 200
        total += ticks

    mean = total / runs
    # One start tick per later step, a geometric(0.7) wait on each step and a closing tick.
    expected = steps_in_recipe + steps_in_recipe / 0.7
    assert expected * 0.8 < mean < expected * 1.2
