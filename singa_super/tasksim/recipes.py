"""Step recipes: the canonical execution pipeline for each service type."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from singa_super.tasksim.models import ExecutionStep, ServiceType, TaskStatus, utcnow


GENERAL_RECIPE: Tuple[str, ...] = (
    "Analyzing Request",
    "Identifying Agent",
    "Processing",
    "Finalizing Task",
)

RECIPES: Dict[ServiceType, Tuple[str, ...]] = {
    ServiceType.TRANSPORT: (
        "Request Received",
        "Locating Nearby Drivers",
        "Driver Assigned",
        "Driver En Route",
        "Arrived at Pickup",
    ),
    ServiceType.FOOD: (
        "Order Placed",
        "Merchant Confirming",
        "Preparing Food",
        "Rider Picked Up",
        "Delivered",
    ),
    ServiceType.MART: (
        "Order Received",
        "Shopper Assigned",
        "Picking Items",
        "Checkout Complete",
        "Out for Delivery",
    ),
    ServiceType.HEALTH: (
        "Appointment Requested",
        "Checking Doctor Availability",
        "Slot Reserved",
        "Confirmation Sent",
    ),
    ServiceType.FINANCE: GENERAL_RECIPE,
    ServiceType.DELIVERY: GENERAL_RECIPE,
    ServiceType.GENERAL: GENERAL_RECIPE,
}

# Every service type has a recipe and none of them is empty.
assert all(RECIPES.get(service_type) for service_type in ServiceType)


def recipe_for(service_type: ServiceType) -> Tuple[str, ...]:
    return RECIPES[ServiceType.coerce(service_type)]


def generate_steps(service_type: ServiceType, now: Optional[datetime] = None) -> List[ExecutionStep]:
    """Build a fresh pipeline: the first step starts immediately, the rest wait."""
    now = now or utcnow()
    stamp = int(now.timestamp() * 1000)
    return [
        ExecutionStep(
            id=f"step-{stamp}-{index}",
            label=label,
            status=TaskStatus.IN_PROGRESS if index == 0 else TaskStatus.PENDING,
            timestamp=now if index == 0 else None,
        )
        for index, label in enumerate(recipe_for(service_type))
    ]


__all__ = ["GENERAL_RECIPE", "RECIPES", "generate_steps", "recipe_for"]
