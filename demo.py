"""Demo: submit a few requests and watch the simulator advance them."""
from __future__ import annotations

import asyncio
import logging
import sys

from singa_super.tasksim.models import TaskStatus
from singa_super.tasksim.runtime import TaskSimService
from singa_super.tasksim.seed import QUICK_SUGGESTIONS

logging.basicConfig(level=logging.INFO)


def render(service: TaskSimService) -> None:
    for task in service.list_tasks():
        bar = "".join("#" if step.status is TaskStatus.COMPLETED else "." for step in task.steps)
        active = task.active_step.label if task.active_step else "-"
        print(f"  [{bar:<5}] {task.status.value:<11} {task.title} ({task.service_type.value}) :: {active}")
    print(f"  summary: {service.summary()}")


async def main(requests) -> None:
    service = TaskSimService.from_global_config()
    ticking = service.autostart()
    try:
        for text in requests:
            await service.create_task(text)
        for _ in range(20):
            await asyncio.sleep(service.tick_interval)
            if not ticking:
                service.tick()
            render(service)
            if not service.list_tasks(TaskStatus.IN_PROGRESS):
                break
    finally:
        await service.aclose()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1:] or list(QUICK_SUGGESTIONS)))
