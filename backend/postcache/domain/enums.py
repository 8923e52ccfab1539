"""Enums de dominio: entornos y tipos de refresco."""

from __future__ import annotations

from enum import Enum


class Environment(str, Enum):
    """Entornos logicos soportados; cada uno tiene su propio perfil."""

    DEVELOPMENT = "DEVELOPMENT"
    STAGING = "STAGING"
    PRODUCTION = "PRODUCTION"

    @classmethod
    def parse(cls, raw: str | None) -> "Environment | None":
        """Interpreta alias cortos (dev/stage/prod) y nombres completos."""
        value = (raw or "").strip().lower()
        if value in {"dev", "development"}:
            return cls.DEVELOPMENT
        if value in {"stage", "staging"}:
            return cls.STAGING
        if value in {"prod", "production"}:
            return cls.PRODUCTION
        return None


class RefreshType(str, Enum):
    """Operaciones que compiten por el flag de refresco."""

    QUICK = "quick_refresh"
    HARD = "hard_refresh"
    CLEAR = "clear_posts"
    GET_POSTS = "get_posts"
