"""Repositorios de persistencia (cache local de posts)."""

from postcache.repositories.post_store import CacheIOError, PostStore

__all__ = ["CacheIOError", "PostStore"]
