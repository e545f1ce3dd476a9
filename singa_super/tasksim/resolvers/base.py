"""Intent resolver interface and the deterministic fallback descriptor."""
from __future__ import annotations

import abc

from attrs import define

from singa_super.tasksim.models import ServiceType, TaskDescriptor

FALLBACK_TITLE = "Request Received"
FALLBACK_PRICE = "-"
FALLBACK_ETA = "Calculating..."
FALLBACK_AGENT = "SupportAgent"


def fallback_descriptor(text: str) -> TaskDescriptor:
    """Descriptor used whenever a request cannot be interpreted."""
    return TaskDescriptor(
        title=FALLBACK_TITLE,
        description=text,
        service_type=ServiceType.GENERAL,
        price=FALLBACK_PRICE,
        eta=FALLBACK_ETA,
        agent_name=FALLBACK_AGENT,
        is_fallback=True,
    )


@define(init=False)
class IntentResolver(abc.ABC):
    """Turns a free-text request into a :class:`TaskDescriptor`.

    Implementations never raise for bad input or remote failures; they return
    :func:`fallback_descriptor` instead.
    """

    @abc.abstractmethod
    async def resolve(self, text: str) -> TaskDescriptor:
        raise NotImplementedError

    async def shutdown(self) -> None:
        return None


@define(slots=True)
class StaticIntentResolver(IntentResolver):
    """Offline resolver: every request becomes a GENERAL fallback task."""

    async def resolve(self, text: str) -> TaskDescriptor:
        return fallback_descriptor(text)


__all__ = [
    "FALLBACK_AGENT",
    "FALLBACK_ETA",
    "FALLBACK_PRICE",
    "FALLBACK_TITLE",
    "IntentResolver",
    "StaticIntentResolver",
    "fallback_descriptor",
]
