"""Python client stubs for interacting with the linked-context API."""

from .client import ContextClient, ContextRequest
from .async_client import AsyncContextClient

__all__ = ["ContextClient", "ContextRequest", "AsyncContextClient"]
