"""Intent resolver exports."""
from .base import IntentResolver, StaticIntentResolver, fallback_descriptor
from .llm_resolver import LLMIntentResolver

__all__ = [
    "IntentResolver",
    "LLMIntentResolver",
    "StaticIntentResolver",
    "fallback_descriptor",
]
