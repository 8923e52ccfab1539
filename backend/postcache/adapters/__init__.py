"""Adaptadores hacia servicios externos (API JSONPlaceholder)."""

from postcache.adapters.placeholder_client import JsonPlaceholderClient, UpstreamError

__all__ = ["JsonPlaceholderClient", "UpstreamError"]
