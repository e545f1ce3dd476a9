"""Async chat-completion client used to turn free text into task descriptors."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, List, Optional

from attrs import define, field
from dotenv import load_dotenv
from omegaconf import OmegaConf
from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


@define
class OpenAINativeAgent:
    """Thin wrapper around the official async OpenAI client.

    Any OpenAI-compatible endpoint works (DeepSeek, a local Ollama, ...) by
    setting ``base_url``.
    """

    model: str = DEFAULT_MODEL
    temperature: float = 0.2
    base_url: Optional[str] = None
    json_mode: bool = True
    api_key: Optional[str] = field(default=None, repr=False)

    client: AsyncOpenAI = field(init=False, repr=False)

    def __attrs_post_init__(self) -> None:
        self._load_env()
        api_key = self.api_key or self._resolve_api_key()
        if not api_key:
            raise RuntimeError("No API key found; set OPENAI_API_KEY, DEEPSEEK_API_KEY or LLM_API_KEY.")

        client_kwargs: Dict[str, Any] = {"api_key": api_key}
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        self.client = AsyncOpenAI(**client_kwargs)

    @staticmethod
    def _load_env() -> None:
        load_dotenv()
        repo_root = Path(__file__).resolve().parents[2]
        load_dotenv(repo_root / ".env")

    async def generate(self, user_input: str, system_prompt: Optional[str] = None, **params: Any) -> str:
        messages: List[Dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_input})

        request: Dict[str, Any] = {
            "model": self.model,
            "temperature": self.temperature,
            "messages": messages,
        }
        if self.json_mode:
            request["response_format"] = {"type": "json_object"}
        request.update({key: value for key, value in params.items() if value is not None})

        start = perf_counter()
        response = await self.client.chat.completions.create(**request)
        logger.info("Timings(openai=%.3fs, model=%s)", perf_counter() - start, self.model)

        content = response.choices[0].message.content
        return content.strip() if content else ""

    async def shutdown(self) -> None:
        try:
            await self.client.close()
        except Exception:
            logger.warning("Failed to close OpenAI client", exc_info=True)

    @staticmethod
    def _resolve_api_key() -> Optional[str]:
        for env_name in ("OPENAI_API_KEY", "DEEPSEEK_API_KEY", "LLM_API_KEY"):
            value = os.getenv(env_name)
            if value:
                return value
        return None


def build_agent(llm_conf: Optional[Any] = None) -> OpenAINativeAgent:
    if llm_conf is None:
        from singa_super.utils.hydra_config.init import conf

        llm_conf = conf.llm
    elif isinstance(llm_conf, dict):
        llm_conf = OmegaConf.create(llm_conf)
    return OpenAINativeAgent(
        model=getattr(llm_conf, "model_name", None) or DEFAULT_MODEL,
        temperature=float(getattr(llm_conf, "temperature", 0.2)),
        base_url=getattr(llm_conf, "base_url", None),
    )


__all__ = ["OpenAINativeAgent", "build_agent"]
