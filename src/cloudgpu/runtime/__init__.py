"""Remote runtime acquisition package."""

from .api import HttpRuntimeApi, RuntimeApi
from .manager import RuntimeManager
from .models import AssignedRuntime, AssignOptions, ProxyEndpoint, RuntimeState, RuntimeStatus, Variant

__all__ = [
    "AssignedRuntime",
    "AssignOptions",
    "HttpRuntimeApi",
    "ProxyEndpoint",
    "RuntimeApi",
    "RuntimeManager",
    "RuntimeState",
    "RuntimeStatus",
    "Variant",
]
