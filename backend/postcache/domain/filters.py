"""Filtros de consulta sobre listas de posts (funcion pura)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, TypeVar

from postcache.domain.models import Post
from postcache.logging_utils import get_logger

logger = get_logger(__name__)

FETCH_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

P = TypeVar("P", bound=Post)


@dataclass(frozen=True)
class PostFilters:
    min_id: Optional[int] = None
    max_id: Optional[int] = None
    title_contains: Optional[str] = None
    body_contains: Optional[str] = None
    fetch_date_after: Optional[str] = None

    def is_empty(self) -> bool:
        return (
            self.min_id is None
            and self.max_id is None
            and not (self.title_contains or "").strip()
            and not (self.body_contains or "").strip()
            and not (self.fetch_date_after or "").strip()
        )


def _naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def parse_filter_date(raw: str | None) -> datetime | None:
    """Parsea el valor de `fetchDateAfter` (ISO, p.ej. 2024-05-01T10:00:00)."""
    value = (raw or "").strip()
    if not value:
        return None
    return _naive(datetime.fromisoformat(value))


def parse_fetch_date(raw: str | None) -> datetime | None:
    """Parsea el fetchDate guardado en cache; None si falta o es invalido."""
    if not raw:
        return None
    try:
        return datetime.strptime(raw, FETCH_DATE_FORMAT)
    except ValueError:
        return None


def format_fetch_date(value: datetime | None = None) -> str:
    return (value or datetime.now()).strftime(FETCH_DATE_FORMAT)


def _contains(haystack: str, needle: str | None) -> bool:
    text = (needle or "").strip()
    if not text:
        return True
    return text.lower() in haystack.lower()


def apply_filters(posts: Sequence[P], filters: PostFilters | None) -> List[P]:
    """Aplica los filtros con semantica AND; el orden de entrada se conserva.

    Un `fetch_date_after` no parseable desactiva solo ese filtro.
    """
    if filters is None or filters.is_empty():
        return list(posts)

    after: datetime | None = None
    if (filters.fetch_date_after or "").strip():
        try:
            after = parse_filter_date(filters.fetch_date_after)
        except ValueError as exc:
            logger.warning(
                "Ignoring fetchDateAfter=%r (unparseable): %s", filters.fetch_date_after, exc
            )

    out: List[P] = []
    for post in posts:
        if filters.min_id is not None and post.id < filters.min_id:
            continue
        if filters.max_id is not None and post.id > filters.max_id:
            continue
        if not _contains(post.title, filters.title_contains):
            continue
        if not _contains(post.body, filters.body_contains):
            continue
        if after is not None:
            fetched = parse_fetch_date(post.fetch_date)
            if fetched is None or not fetched > after:
                continue
        out.append(post)
    return out
