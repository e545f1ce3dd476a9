"""In-memory task registry."""
from __future__ import annotations

import copy
import logging
import threading
import uuid
from typing import Callable, Dict, List, Optional, TypeVar

from attrs import define, field

from singa_super.tasksim.models import (
    RegistryClosedError,
    Task,
    TaskDescriptor,
    TaskLog,
    TaskStatus,
    check_pipeline,
    utcnow,
)
from singa_super.tasksim.recipes import generate_steps

logger = logging.getLogger(__name__)

T = TypeVar("T")


@define(slots=True)
class MemoryTaskRegistry:
    """Authoritative collection of tasks, keyed by id, in insertion order.

    Readers always receive deep copies; only :meth:`mutate` and :meth:`fail`
    touch the live objects, and both do so under the registry lock.
    """

    _tasks: Dict[str, Task] = field(factory=dict, init=False)
    _logs: List[TaskLog] = field(factory=list, init=False)
    _lock: threading.RLock = field(factory=threading.RLock, init=False)
    _closed: bool = field(default=False, init=False)

    @property
    def closed(self) -> bool:
        return self._closed

    def create(self, descriptor: TaskDescriptor) -> Task:
        now = utcnow()
        task = Task(
            id=f"task-{uuid.uuid4().hex}",
            title=descriptor.title,
            description=descriptor.description,
            service_type=descriptor.service_type,
            steps=generate_steps(descriptor.service_type, now),
            status=TaskStatus.IN_PROGRESS,
            timestamp=now,
            price=descriptor.price,
            eta=descriptor.eta,
            agent_name=descriptor.agent_name,
        )
        self.add(task)
        return copy.deepcopy(task)

    def add(self, task: Task) -> None:
        check_pipeline(task.steps)
        with self._lock:
            if self._closed:
                raise RegistryClosedError(f"cannot add task {task.id}: registry is closed")
            if task.id in self._tasks:
                raise ValueError(f"Task {task.id} already exists")
            self._tasks[task.id] = task
            self._logs.append(
                TaskLog(
                    task_id=task.id,
                    event="created",
                    message="task created",
                    details={
                        "service_type": task.service_type.value,
                        "steps": len(task.steps),
                    },
                )
            )
        logger.info("Task %s created (%s, %d steps)", task.id, task.service_type.value, len(task.steps))

    def get(self, task_id: str) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            return copy.deepcopy(task) if task is not None else None

    def list(self, status: Optional[TaskStatus] = None) -> List[Task]:
        with self._lock:
            return [
                copy.deepcopy(task)
                for task in self._tasks.values()
                if status is None or task.status is status
            ]

    def ids(self, status: Optional[TaskStatus] = None) -> List[str]:
        with self._lock:
            return [
                task_id
                for task_id, task in self._tasks.items()
                if status is None or task.status is status
            ]

    def mutate(self, task_id: str, transform: Callable[[Task], T]) -> Optional[T]:
        with self._lock:
            if self._closed:
                logger.debug("Ignoring mutation of %s on closed registry", task_id)
                return None
            task = self._tasks.get(task_id)
            if task is None:
                raise KeyError(f"Task {task_id} not found")
            return transform(task)

    def fail(self, task_id: str, reason: str) -> Optional[Task]:
        """Mark a running task as failed.

        The active step becomes FAILED with ``reason`` as its details and the
        task leaves IN_PROGRESS for good. Terminal tasks are returned as-is.
        """

        def _fail(task: Task) -> Task:
            if task.status is not TaskStatus.IN_PROGRESS:
                return copy.deepcopy(task)
            step = task.active_step
            if step is not None:
                step.status = TaskStatus.FAILED
                step.timestamp = step.timestamp or utcnow()
                step.details = reason
            task.status = TaskStatus.FAILED
            self._logs.append(
                TaskLog(
                    task_id=task.id,
                    event="task_failed",
                    message=reason,
                    details={"step_id": step.id if step else None},
                )
            )
            logger.warning("Task %s failed: %s", task.id, reason)
            return copy.deepcopy(task)

        with self._lock:
            if task_id not in self._tasks:
                return None
            return self.mutate(task_id, _fail)

    def count_by_status(self) -> Dict[TaskStatus, int]:
        counts = {status: 0 for status in TaskStatus}
        with self._lock:
            for task in self._tasks.values():
                counts[task.status] += 1
        return counts

    def append_log(self, log: TaskLog) -> None:
        with self._lock:
            if self._closed:
                raise RegistryClosedError("registry is closed")
            self._logs.append(log)

    def list_logs(self, task_id: str) -> List[TaskLog]:
        with self._lock:
            return [log for log in self._logs if log.task_id == task_id]

    def close(self) -> None:
        with self._lock:
            self._closed = True


__all__ = ["MemoryTaskRegistry"]
