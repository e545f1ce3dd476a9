"""Runtime glue: registry, engine, ticker and intent resolver behind one service."""
from __future__ import annotations

import asyncio
import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional

from omegaconf import OmegaConf

from singa_super.tasksim.engine import DEFAULT_COMPLETION_PROBABILITY, Draw, SimulationEngine
from singa_super.tasksim.models import RegistryClosedError, Task, TaskStatus
from singa_super.tasksim.resolvers.base import IntentResolver, StaticIntentResolver
from singa_super.tasksim.resolvers.llm_resolver import LLMIntentResolver
from singa_super.tasksim.scheduler import DEFAULT_TICK_INTERVAL, TaskTicker
from singa_super.tasksim.seed import seed_registry
from singa_super.tasksim.store.interface import TaskRegistryProtocol
from singa_super.tasksim.store.memory import MemoryTaskRegistry

logger = logging.getLogger(__name__)

DEFAULT_THINKING_DELAY = 0.6


def _to_dict(data: Any) -> Dict[str, Any]:
    if data is None:
        return {}
    if isinstance(data, dict):
        return data
    try:
        return OmegaConf.to_container(data, resolve=True)  # type: ignore[return-value]
    except Exception:
        return {}


class TaskSimService:
    """Configure and run the task simulator from a plain dict or Hydra config."""

    def __init__(
        self,
        config: Optional[Any] = None,
        *,
        llm_conf: Optional[Any] = None,
        registry: Optional[TaskRegistryProtocol] = None,
        resolver: Optional[IntentResolver] = None,
        draw: Optional[Draw] = None,
    ) -> None:
        cfg = _to_dict(config)

        self.tick_interval = float(cfg.get("tick_interval", DEFAULT_TICK_INTERVAL))
        self.completion_probability = float(
            cfg.get("completion_probability", DEFAULT_COMPLETION_PROBABILITY)
        )
        self.thinking_delay = max(0.0, float(cfg.get("thinking_delay", DEFAULT_THINKING_DELAY)))
        self.auto_start = bool(cfg.get("auto_start", True))

        self.registry: TaskRegistryProtocol = registry if registry is not None else MemoryTaskRegistry()
        self.resolver: IntentResolver = resolver or self._create_resolver(cfg.get("resolver"), llm_conf)
        self.engine = SimulationEngine(
            completion_probability=self.completion_probability,
            draw=draw or random.Random(cfg.get("seed")).random,
        )
        self.ticker = TaskTicker(self.registry, self.engine, tick_interval=self.tick_interval)

        self._started = False
        self._closed = False
        self._pending_requests = 0

        if cfg.get("seed_demo_tasks", False):
            added = seed_registry(self.registry)
            logger.info("Seeded %d demo tasks", added)

    @classmethod
    def from_global_config(cls) -> "TaskSimService":
        try:
            from singa_super.utils.hydra_config.init import conf  # type: ignore
        except Exception:
            logger.warning("Hydra config unavailable, using defaults", exc_info=True)
            return cls({})
        return cls(getattr(conf, "tasksim", None), llm_conf=getattr(conf, "llm", None))

    @property
    def is_processing(self) -> bool:
        return self._pending_requests > 0

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        if self._started or self._closed:
            return
        self.ticker.start()
        self._started = True

    def autostart(self) -> bool:
        """Start background ticking when `auto_start` is configured; report whether it runs."""
        if self.auto_start:
            self.start()
        return self._started

    def tick(self) -> int:
        return self.ticker.run_once()

    async def create_task(self, text: str) -> Optional[Task]:
        """Resolve ``text`` into a task and register it.

        Returns ``None`` only when the service was stopped while the resolver
        was still working.
        """
        self._pending_requests += 1
        try:
            if self.thinking_delay:
                await asyncio.sleep(self.thinking_delay)
            descriptor = await self.resolver.resolve(text)
        finally:
            self._pending_requests -= 1

        try:
            task = self.registry.create(descriptor)
        except RegistryClosedError:
            logger.warning("Dropping late request %r: simulator already stopped", text)
            return None
        logger.info(
            "Created task %s %r (%s%s)",
            task.id,
            task.title,
            task.service_type.value,
            ", fallback" if descriptor.is_fallback else "",
        )
        return task

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.registry.get(task_id)

    def list_tasks(self, status: Optional[TaskStatus] = None) -> List[Task]:
        return self.registry.list(status)

    def summary(self) -> Dict[str, int]:
        return {status.value: count for status, count in self.registry.count_by_status().items()}

    def fail_task(self, task_id: str, reason: str) -> Optional[Task]:
        return self.registry.fail(task_id, reason)

    def stop(self) -> None:
        if self._closed:
            return
        try:
            self.ticker.shutdown()
        finally:
            self._started = False
            self._closed = True
            self.registry.close()

    async def aclose(self) -> None:
        self.stop()
        await self.resolver.shutdown()

    def _create_resolver(self, cfg: Optional[Dict[str, Any]], llm_conf: Optional[Any]) -> IntentResolver:
        cfg = _to_dict(cfg)
        kind = str(cfg.get("kind", "static")).lower()
        if kind == "static":
            return StaticIntentResolver()
        if kind != "llm":
            raise ValueError(f"unknown resolver kind: {kind!r}")

        kwargs: Dict[str, Any] = {}
        retry_limit = cfg.get("retry_limit")
        if retry_limit is not None:
            kwargs["retry_limit"] = int(retry_limit)
        timeout = cfg.get("timeout")
        if timeout is not None:
            kwargs["timeout"] = float(timeout)
        config_path = cfg.get("config_path")
        if config_path:
            kwargs["config_path"] = Path(str(config_path)).expanduser()
        if llm_conf is not None:
            kwargs["llm_conf"] = llm_conf
        return LLMIntentResolver(**kwargs)


__all__ = ["TaskSimService"]
