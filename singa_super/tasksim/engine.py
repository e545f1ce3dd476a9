"""Simulation engine: advances running tasks one pipeline stage per tick."""
from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Callable, Iterable, Iterator, Optional, Sequence

from attrs import define, field

from singa_super.tasksim.models import (
    ExecutionStep,
    PipelineInvariantError,
    RegistryClosedError,
    Task,
    TaskLog,
    TaskStatus,
    utcnow,
)
from singa_super.tasksim.store.interface import TaskRegistryProtocol

logger = logging.getLogger(__name__)

Draw = Callable[[], float]

DEFAULT_COMPLETION_PROBABILITY = 0.7


def always_complete() -> float:
    return 0.0


def never_complete() -> float:
    return 1.0


class SequenceDraw:
    """Replays a fixed list of draws, repeating the last one once exhausted."""

    def __init__(self, values: Iterable[float]) -> None:
        self._values = list(values)
        if not self._values:
            raise ValueError("SequenceDraw needs at least one value")
        self._iter: Iterator[float] = iter(self._values)
        self.calls = 0

    def __call__(self) -> float:
        self.calls += 1
        try:
            return next(self._iter)
        except StopIteration:
            return self._values[-1]


def derive_status(steps: Sequence[ExecutionStep]) -> TaskStatus:
    """A running task is COMPLETED exactly when every one of its steps is."""
    if not steps:
        raise PipelineInvariantError("cannot derive status of an empty pipeline")
    if all(step.status is TaskStatus.COMPLETED for step in steps):
        return TaskStatus.COMPLETED
    return TaskStatus.IN_PROGRESS


@define(slots=True)
class SimulationEngine:
    completion_probability: float = DEFAULT_COMPLETION_PROBABILITY
    draw: Draw = field(factory=lambda: random.random)
    clock: Callable[[], datetime] = utcnow

    def __attrs_post_init__(self) -> None:
        if not 0.0 <= self.completion_probability <= 1.0:
            raise ValueError(
                f"completion_probability must be within [0, 1], got {self.completion_probability}"
            )

    def advance(self, task: Task, now: Optional[datetime] = None) -> Optional[str]:
        """Apply at most one transition to ``task`` and return its event name."""
        if task.status is not TaskStatus.IN_PROGRESS:
            return None

        step = task.active_step
        if step is None:
            task.status = derive_status(task.steps)
            return "task_completed"

        event: Optional[str] = None
        if step.status is TaskStatus.PENDING:
            step.status = TaskStatus.IN_PROGRESS
            step.timestamp = now or self.clock()
            event = "step_started"
        elif step.status is TaskStatus.IN_PROGRESS:
            if self.draw() < self.completion_probability:
                step.status = TaskStatus.COMPLETED
                event = "step_completed"
        # FAILED steps have no outgoing transition.
        # The task itself is closed out on the tick after its last step completes.
        return event

    def tick(self, registry: TaskRegistryProtocol) -> int:
        """Run one pass over every task that is IN_PROGRESS right now."""
        now = self.clock()
        transitions = 0
        for task_id in registry.ids(TaskStatus.IN_PROGRESS):
            try:
                result = registry.mutate(task_id, lambda task: self._advance_logged(task, now))
            except KeyError:
                continue
            if result is None:
                continue
            transitions += 1
            try:
                registry.append_log(result)
            except RegistryClosedError:
                logger.debug("Registry closed during tick, dropping log for %s", task_id)
                break
            if result.details["task_status"] == TaskStatus.COMPLETED.value:
                logger.info("Task %s completed", task_id)
        logger.debug("Tick finished with %d transitions", transitions)
        return transitions

    def _advance_logged(self, task: Task, now: datetime) -> Optional[TaskLog]:
        step = task.active_step
        event = self.advance(task, now)
        if event is None:
            return None
        if step is None:
            message = "all steps completed"
        else:
            message = f"{step.label} -> {step.status.value}"
        logger.debug("Task %s: %s", task.id, message)
        return TaskLog(
            task_id=task.id,
            event=event,
            message=message,
            timestamp=now,
            details={
                "step_id": step.id if step is not None else None,
                "task_status": task.status.value,
            },
        )


__all__ = [
    "DEFAULT_COMPLETION_PROBABILITY",
    "Draw",
    "SequenceDraw",
    "SimulationEngine",
    "always_complete",
    "derive_status",
    "never_complete",
]
