"""Resolver that asks a chat model to structure the user's request."""
from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from attrs import define

from singa_super.tasksim.models import DescriptorError, TaskDescriptor
from singa_super.tasksim.resolvers.base import IntentResolver, fallback_descriptor

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "system_prompt": (
        "You are the automation engine for a Singaporean Super App called \"SingaSuper\".\n"
        "Interpret the user's request and convert it into a structured task.\n"
        "If the request is unclear, default to GENERAL service type.\n"
        "Valid Service Types: TRANSPORT, FOOD, MART, HEALTH, FINANCE, DELIVERY, GENERAL."
    ),
    "output_schema": (
        "Respond with a single JSON object with the keys title, description, "
        "serviceType, and optionally price, eta, mcpAgentName."
    ),
    "params": {"temperature": 0.2, "max_tokens": 400},
}


@define(init=False, slots=False)
class LLMIntentResolver(IntentResolver):
    """Resolve intents with an async agent exposing ``generate(prompt, **params)``.

    Any failure (agent error, timeout, non-JSON or incomplete reply) is retried
    up to ``retry_limit`` times and then replaced by the fallback descriptor.
    """

    def __init__(
        self,
        agent: Optional[Any] = None,
        *,
        retry_limit: int = 0,
        timeout: float = 20.0,
        config_path: Optional[Path] = None,
        template_config: Optional[Mapping[str, Any]] = None,
        llm_conf: Optional[Any] = None,
    ) -> None:
        self._agent = agent
        self._llm_conf = llm_conf
        self.retry_limit = max(0, int(retry_limit))
        self.timeout = float(timeout) if timeout else None
        self._template_config = template_config or self._load_config(config_path)

    async def resolve(self, text: str) -> TaskDescriptor:
        prompt = text.strip()
        if not prompt:
            return fallback_descriptor(text)

        system_prompt = self._render_system_prompt()
        params = dict(self._template_config.get("params") or {})

        attempts = 0
        start_time = time.perf_counter()
        last_error: Optional[str] = None
        while attempts <= self.retry_limit:
            attempts += 1
            try:
                response = await asyncio.wait_for(
                    self._call_agent(prompt, system_prompt, params),
                    timeout=self.timeout,
                )
                descriptor = TaskDescriptor.from_payload(self._extract_payload(response))
                logger.info(
                    "Intent resolved as %s in %d attempt(s), %.0f ms",
                    descriptor.service_type.value,
                    attempts,
                    (time.perf_counter() - start_time) * 1000,
                )
                return descriptor
            except asyncio.TimeoutError:
                last_error = f"agent call timed out after {self.timeout}s"
            except Exception as exc:  # pylint: disable=broad-except
                last_error = str(exc) or exc.__class__.__name__
            logger.warning("Intent resolution attempt %d failed: %s", attempts, last_error)
            if attempts > self.retry_limit:
                break
            await asyncio.sleep(min(0.5 * attempts, 2.0))

        logger.warning("Falling back to a general task after %d attempt(s): %s", attempts, last_error)
        return fallback_descriptor(text)

    async def shutdown(self) -> None:
        agent = self._agent
        if agent is not None and hasattr(agent, "shutdown"):
            await agent.shutdown()

    async def _call_agent(self, text: str, system_prompt: str, params: Dict[str, Any]) -> Any:
        agent = await self._ensure_agent()
        try:
            return await agent.generate(text, system_prompt=system_prompt, **params)
        except TypeError as exc:
            if "unexpected keyword argument" in str(exc):
                return await agent.generate(f"{system_prompt}\n\n{text}")
            raise

    async def _ensure_agent(self) -> Any:
        if self._agent is not None:
            return self._agent
        from singa_super.llm.openai_native import build_agent

        self._agent = build_agent(self._llm_conf)
        return self._agent

    def _render_system_prompt(self) -> str:
        parts = [
            str(self._template_config.get("system_prompt") or "").strip(),
            str(self._template_config.get("output_schema") or "").strip(),
        ]
        return "\n\n".join(part for part in parts if part)

    def _extract_payload(self, response: Any) -> Mapping[str, Any]:
        raw: Any = response
        if hasattr(response, "text") and not isinstance(response, (str, dict)):
            raw = str(getattr(response, "text"))
        if isinstance(raw, dict) and "choices" in raw:
            raw = raw["choices"][0]["message"]["content"]
        if isinstance(raw, str):
            raw = self._loads(raw)
        if not isinstance(raw, dict):
            raise DescriptorError(f"agent returned {type(raw).__name__}, expected a JSON object")
        return raw

    @staticmethod
    def _loads(text: str) -> Any:
        text = text.strip()
        if text.startswith("```"):
            text = text.strip("`")
            if text.lower().startswith("json"):
                text = text[4:]
        if not text:
            raise DescriptorError("agent returned an empty response")
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise DescriptorError(f"agent response is not valid JSON: {exc}") from exc

    def _load_config(self, config_path: Optional[Path]) -> Mapping[str, Any]:
        if config_path is None:
            config_path = Path(__file__).resolve().parents[3] / "conf" / "tasksim" / "intent_resolver.yaml"
        try:
            with open(config_path, "r", encoding="utf-8") as handle:
                return yaml.safe_load(handle) or DEFAULT_CONFIG
        except FileNotFoundError:
            return DEFAULT_CONFIG
        except Exception as exc:  # pragma: no cover - config errors should not be silent
            raise RuntimeError(f"failed to load intent resolver config: {exc}") from exc


__all__ = ["DEFAULT_CONFIG", "LLMIntentResolver"]
