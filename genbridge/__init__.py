"""
genbridge - one generate/stream_generate contract over many text-generation backends.
"""

from genbridge.adapters import (
    AdapterError,
    AdapterTimeoutError,
    BackendError,
    ConfigError,
    HostContext,
)
from genbridge.config import AdapterConfig, Message
from genbridge.manager import AdapterManager, create_adapter

__version__ = "0.1.0"

__all__ = [
    "AdapterConfig",
    "AdapterError",
    "AdapterManager",
    "AdapterTimeoutError",
    "BackendError",
    "ConfigError",
    "HostContext",
    "Message",
    "create_adapter",
]
