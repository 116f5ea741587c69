"""
Adapters for text-generation backends.

Provider-agnostic architecture: Protocol defines WHAT, implementations define HOW.
"""

from .base import BaseAdapter, GenerationAdapter
from .errors import AdapterError, AdapterTimeoutError, BackendError, ConfigError
from .gemini import GeminiAdapter
from .host import HostContext, HostRuntimeAdapter
from .openai_compat import DeepSeekAdapter, OpenAICompatAdapter

__all__ = [
    "AdapterError",
    "AdapterTimeoutError",
    "BackendError",
    "BaseAdapter",
    "ConfigError",
    "DeepSeekAdapter",
    "GeminiAdapter",
    "GenerationAdapter",
    "HostContext",
    "HostRuntimeAdapter",
    "OpenAICompatAdapter",
]
