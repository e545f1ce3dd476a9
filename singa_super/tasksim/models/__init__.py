"""Data models for the task simulator."""
from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from attrs import define, field, setters


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ServiceType(str, enum.Enum):
    TRANSPORT = "TRANSPORT"
    FOOD = "FOOD"
    MART = "MART"
    HEALTH = "HEALTH"
    FINANCE = "FINANCE"
    DELIVERY = "DELIVERY"
    GENERAL = "GENERAL"

    @classmethod
    def coerce(cls, value: Any) -> "ServiceType":
        """Map a loosely formatted value onto a service type, defaulting to GENERAL."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.GENERAL


class PipelineInvariantError(AssertionError):
    """A step pipeline is in a state the engine can never produce."""


class DescriptorError(ValueError):
    """A resolver payload could not be turned into a TaskDescriptor."""


class RegistryClosedError(RuntimeError):
    """The task registry has been torn down."""


@define(slots=True)
class ExecutionStep:
    id: str = field(on_setattr=setters.frozen)
    label: str = field(on_setattr=setters.frozen)
    status: TaskStatus = TaskStatus.PENDING
    timestamp: Optional[datetime] = None
    details: Optional[str] = None


@define(slots=True)
class Task:
    id: str = field(on_setattr=setters.frozen)
    title: str = field(on_setattr=setters.frozen)
    description: str = field(on_setattr=setters.frozen)
    service_type: ServiceType = field(on_setattr=setters.frozen)
    steps: List[ExecutionStep] = field(factory=list)
    status: TaskStatus = TaskStatus.IN_PROGRESS
    timestamp: datetime = field(factory=utcnow, on_setattr=setters.frozen)
    price: Optional[str] = field(default=None, on_setattr=setters.frozen)
    eta: Optional[str] = field(default=None, on_setattr=setters.frozen)
    agent_name: Optional[str] = field(default=None, on_setattr=setters.frozen)

    @property
    def active_step(self) -> Optional[ExecutionStep]:
        for step in self.steps:
            if step.status is not TaskStatus.COMPLETED:
                return step
        return None

    @property
    def progress(self) -> float:
        if not self.steps:
            return 0.0
        done = sum(1 for step in self.steps if step.status is TaskStatus.COMPLETED)
        return done / len(self.steps)


@define(slots=True, frozen=True)
class TaskDescriptor:
    """Structured request produced by an intent resolver.

    The wire shape is the JSON object ``{title, description, serviceType,
    price?, eta?, mcpAgentName?}``.
    """

    title: str
    description: str
    service_type: ServiceType = ServiceType.GENERAL
    price: Optional[str] = None
    eta: Optional[str] = None
    agent_name: Optional[str] = None
    is_fallback: bool = False

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TaskDescriptor":
        if not isinstance(payload, Mapping):
            raise DescriptorError(f"expected a JSON object, got {type(payload).__name__}")

        missing = [
            key
            for key in ("title", "description", "serviceType")
            if not str(payload.get(key) or "").strip()
        ]
        if missing:
            raise DescriptorError(f"missing required fields: {', '.join(missing)}")

        return cls(
            title=str(payload["title"]).strip(),
            description=str(payload["description"]).strip(),
            service_type=ServiceType.coerce(payload["serviceType"]),
            price=_optional_str(payload.get("price")),
            eta=_optional_str(payload.get("eta")),
            agent_name=_optional_str(payload.get("mcpAgentName")),
        )

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "serviceType": self.service_type.value,
        }
        if self.price is not None:
            payload["price"] = self.price
        if self.eta is not None:
            payload["eta"] = self.eta
        if self.agent_name is not None:
            payload["mcpAgentName"] = self.agent_name
        return payload


@define(slots=True)
class TaskLog:
    task_id: str
    event: str
    message: str
    timestamp: datetime = field(factory=utcnow)
    details: Optional[Dict[str, Any]] = None


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def check_pipeline(steps: Sequence[ExecutionStep]) -> None:
    """Validate the one-active-step ordering of a pipeline."""
    if not steps:
        raise PipelineInvariantError("task has no execution steps")

    seen_open = False
    for index, step in enumerate(steps):
        if seen_open:
            if step.status is not TaskStatus.PENDING:
                raise PipelineInvariantError(
                    f"step {index} ({step.label!r}) is {step.status.value} after the active step"
                )
            continue
        if step.status in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS):
            seen_open = True


__all__ = [
    "DescriptorError",
    "ExecutionStep",
    "PipelineInvariantError",
    "RegistryClosedError",
    "ServiceType",
    "Task",
    "TaskDescriptor",
    "TaskLog",
    "TaskStatus",
    "check_pipeline",
    "utcnow",
]
