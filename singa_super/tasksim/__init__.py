"""Task simulator package."""

from .engine import SimulationEngine, derive_status
from .models import ExecutionStep, ServiceType, Task, TaskDescriptor, TaskLog, TaskStatus
from .scheduler import TaskTicker
from .store.memory import MemoryTaskRegistry

__all__ = [
    "ExecutionStep",
    "MemoryTaskRegistry",
    "ServiceType",
    "SimulationEngine",
    "Task",
    "TaskDescriptor",
    "TaskLog",
    "TaskStatus",
    "TaskTicker",
    "derive_status",
]
