"""Sample activity-feed history loaded when the simulator starts."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from singa_super.tasksim.models import ExecutionStep, ServiceType, Task, TaskStatus, utcnow
from singa_super.tasksim.store.interface import TaskRegistryProtocol

QUICK_SUGGESTIONS: Tuple[str, ...] = (
    "Ride to Office",
    "Chicken Rice @ Maxwell",
    "Pay Bills",
)


def _completed_steps(task_id: str, start: datetime, offsets: Sequence[Tuple[str, int]]) -> List[ExecutionStep]:
    return [
        ExecutionStep(
            id=f"{task_id}-{index + 1}",
            label=label,
            status=TaskStatus.COMPLETED,
            timestamp=start + timedelta(seconds=offset),
        )
        for index, (label, offset) in enumerate(offsets)
    ]


def demo_tasks(now: Optional[datetime] = None) -> List[Task]:
    now = now or utcnow()
    grocery_start = now - timedelta(seconds=100)
    ride_start = now - timedelta(seconds=2000)
    return [
        Task(
            id="1",
            title="Grocery Delivery",
            description="FairPrice Finest - 12 items",
            service_type=ServiceType.MART,
            status=TaskStatus.COMPLETED,
            timestamp=grocery_start,
            agent_name="MartBot",
            price="S$45.20",
            steps=_completed_steps(
                "1",
                grocery_start,
                [("Order Received", 0), ("Shopper Assigned", 10), ("Items Packed", 20), ("Delivered", 40)],
            ),
        ),
        Task(
            id="2",
            title="Ride to Changi Airport",
            description="Terminal 3, Door 4",
            service_type=ServiceType.TRANSPORT,
            status=TaskStatus.COMPLETED,
            timestamp=ride_start,
            agent_name="TransportBot",
            price="S$24.50",
            steps=_completed_steps(
                "2",
                ride_start,
                [("Request Received", 0), ("Driver Assigned", 100), ("Arrived at Destination", 500)],
            ),
        ),
    ]


def seed_registry(registry: TaskRegistryProtocol, now: Optional[datetime] = None) -> int:
    """Insert the demo history, skipping tasks that are already present."""
    added = 0
    for task in demo_tasks(now):
        if registry.get(task.id) is not None:
            continue
        registry.add(task)
        added += 1
    return added


__all__ = ["QUICK_SUGGESTIONS", "demo_tasks", "seed_registry"]
