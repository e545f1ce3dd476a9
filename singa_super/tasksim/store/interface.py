"""Registry protocol shared by the engine, scheduler and runtime."""
from __future__ import annotations

from typing import Callable, Dict, List, Optional, Protocol, TypeVar

from singa_super.tasksim.models import Task, TaskDescriptor, TaskLog, TaskStatus

T = TypeVar("T")


class TaskRegistryProtocol(Protocol):
    def create(self, descriptor: TaskDescriptor) -> Task: ...

    def add(self, task: Task) -> None: ...

    def get(self, task_id: str) -> Optional[Task]: ...

    def list(self, status: Optional[TaskStatus] = None) -> List[Task]: ...

    def ids(self, status: Optional[TaskStatus] = None) -> List[str]: ...

    def mutate(self, task_id: str, transform: Callable[[Task], T]) -> Optional[T]: ...

    def fail(self, task_id: str, reason: str) -> Optional[Task]: ...

    def count_by_status(self) -> Dict[TaskStatus, int]: ...

    def append_log(self, log: TaskLog) -> None: ...

    def list_logs(self, task_id: str) -> List[TaskLog]: ...

    def close(self) -> None: ...


__all__ = ["TaskRegistryProtocol"]
