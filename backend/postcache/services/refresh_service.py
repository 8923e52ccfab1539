"""Coordinador de refresco: cache en disco vs. upstream.

Decide cuando leer del directorio de cache y cuando ir a la API, combina las
relaciones (usuario + comentarios) de cada post y evita refrescos concurrentes
con un unico flag compartido (`RefreshGate`).
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from threading import Lock
from typing import Iterator, List, Optional, Sequence

from postcache.adapters.placeholder_client import JsonPlaceholderClient, UpstreamError
from postcache.config import get_config, settings
from postcache.domain.enums import Environment, RefreshType
from postcache.domain.filters import PostFilters, apply_filters, format_fetch_date
from postcache.domain.models import (
    CachedPost,
    ClearResult,
    Comment,
    HardRefreshResult,
    Post,
    PostsResult,
    PostWithRelations,
    QuickRefreshResult,
    RefreshState,
    SaveAllResult,
    SaveResult,
    any_has_relations,
)
from postcache.logging_utils import get_logger
from postcache.repositories.post_store import PostStore

logger = get_logger(__name__)


class RefreshInProgressError(RuntimeError):
    """Ya hay una operacion de refresco en curso; lleva la foto del estado."""

    def __init__(self, state: RefreshState) -> None:
        super().__init__("Refresh already in progress")
        self.state = state


def _now_ms() -> int:
    return int(time.time() * 1000)


class RefreshGate:
    """Flag de refresco de proceso: test-and-set atomico bajo un lock."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._state = RefreshState()

    def snapshot(self) -> RefreshState:
        with self._lock:
            return self._state.model_copy()

    def begin(
        self, refresh_type: RefreshType, with_relations: Optional[bool] = None
    ) -> RefreshState:
        """Marca el inicio de un refresco o lanza `RefreshInProgressError`."""
        with self._lock:
            if self._state.is_refreshing:
                raise RefreshInProgressError(self._state.model_copy())
            self._state = RefreshState(
                is_refreshing=True,
                refresh_start_time=_now_ms(),
                refresh_type=refresh_type,
                with_relations=with_relations,
            )
            return self._state.model_copy()

    def try_begin(
        self, refresh_type: RefreshType, with_relations: Optional[bool] = None
    ) -> bool:
        try:
            self.begin(refresh_type, with_relations)
        except RefreshInProgressError:
            return False
        return True

    def end(self) -> None:
        with self._lock:
            self._state = RefreshState()

    @contextmanager
    def hold(
        self, refresh_type: RefreshType, with_relations: Optional[bool] = None
    ) -> Iterator[RefreshState]:
        state = self.begin(refresh_type, with_relations)
        try:
            yield state
        finally:
            self.end()


class RefreshCoordinator:
    """Operaciones de alto nivel sobre la cache de posts.

    Los fallos al descargar relaciones de un post no abortan el lote: el post
    se guarda sin relaciones.
    """

    def __init__(
        self,
        client: JsonPlaceholderClient,
        store: PostStore,
        gate: RefreshGate | None = None,
        relation_workers: int = 1,
    ) -> None:
        self._client = client
        self._store = store
        self._gate = gate or RefreshGate()
        self._relation_workers = max(1, relation_workers)

    @property
    def store(self) -> PostStore:
        return self._store

    @property
    def gate(self) -> RefreshGate:
        return self._gate

    def close(self) -> None:
        self._client.close()

    def refresh_status(self) -> RefreshState:
        return self._gate.snapshot()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _attach_relations(self, post: Post) -> CachedPost:
        try:
            user = self._client.get_user(post.user_id)
            comments = self._client.get_comments(post.id)
        except UpstreamError as exc:
            logger.warning("Relations unavailable for post %s, keeping bare post: %s", post.id, exc)
            return post.as_post()
        return PostWithRelations(
            user_id=post.user_id,
            id=post.id,
            title=post.title,
            body=post.body,
            user=user,
            comments=comments,
        )

    def _prepare_one(self, post: Post, with_relations: bool) -> CachedPost:
        prepared = self._attach_relations(post) if with_relations else post.as_post()
        return prepared.model_copy(update={"fetch_date": format_fetch_date()})

    def _prepare(self, posts: Sequence[Post], with_relations: bool) -> List[CachedPost]:
        if not with_relations or self._relation_workers == 1 or len(posts) < 2:
            return [self._prepare_one(post, with_relations) for post in posts]
        with ThreadPoolExecutor(max_workers=self._relation_workers) as ex:
            return list(ex.map(lambda post: self._prepare_one(post, with_relations), posts))

    def _persist(self, posts: Sequence[CachedPost]) -> List[CachedPost]:
        """Guarda cada post y devuelve los que se escribieron."""
        written: List[CachedPost] = []
        for post in posts:
            if self._store.write_post(post):
                written.append(post)
        if len(written) != len(posts):
            logger.warning("Saved %s of %s posts", len(written), len(posts))
        return written

    def _fetch_and_cache_all(self) -> List[CachedPost]:
        upstream = self._client.list_posts()
        prepared = self._prepare(upstream, with_relations=True)
        self._persist(prepared)
        logger.info("Fetched and cached %s posts", len(prepared))
        return prepared

    # ------------------------------------------------------------------
    # Refresh-class operations
    # ------------------------------------------------------------------
    def quick_refresh(self, with_relations: bool = False) -> QuickRefreshResult:
        """Descarga solo los posts que aun no estan en cache."""
        with self._gate.hold(RefreshType.QUICK, with_relations):
            existing = set(self._store.saved_ids())
            upstream = self._client.list_posts()
            new_posts = [post for post in upstream if post.id not in existing]
            written = self._persist(self._prepare(new_posts, with_relations))
            logger.info(
                "Quick refresh: checked=%s added=%s (relations=%s)",
                len(upstream),
                len(written),
                with_relations,
            )
            return QuickRefreshResult(
                total_checked=len(upstream),
                total_added=len(written),
                posts=[post.as_post() for post in written],
            )

    def hard_refresh(self, with_relations: bool = False) -> HardRefreshResult:
        """Vacia la cache y vuelve a descargar todos los posts."""
        with self._gate.hold(RefreshType.HARD, with_relations):
            if not self._store.clear_all():
                logger.warning("Could not clear %s before hard refresh", self._store.directory)
            upstream = self._client.list_posts()
            prepared = self._prepare(upstream, with_relations)
            written = self._persist(prepared)
            logger.info(
                "Hard refresh: fetched=%s refreshed=%s (relations=%s)",
                len(upstream),
                len(written),
                with_relations,
            )
            return HardRefreshResult(
                total_fetched=len(upstream),
                total_refreshed=len(written),
                posts=[post.as_post() for post in prepared],
            )

    def clear_posts(self) -> RefreshState:
        """Toma y libera el flag como `clear_posts` sin tocar la cache."""
        with self._gate.hold(RefreshType.CLEAR) as state:
            logger.info("clear_posts acquired the refresh flag; nothing to clear")
            return state

    def get_posts(
        self, force_refresh: bool = False, filters: PostFilters | None = None
    ) -> PostsResult:
        """Lista posts filtrados desde cache o, si se fuerza o esta vacia, desde upstream."""
        posts: List[CachedPost]
        if force_refresh:
            with self._gate.hold(RefreshType.GET_POSTS, True):
                posts = self._fetch_or_cached()
        elif self._store.is_empty():
            posts = self._fetch_and_cache_all()
        else:
            posts = self._store.read_all()

        filtered = apply_filters(posts, filters)
        return PostsResult(
            posts=[post.as_post() for post in filtered],
            has_relations=any_has_relations(filtered),
        )

    def _fetch_or_cached(self) -> List[CachedPost]:
        try:
            return self._fetch_and_cache_all()
        except UpstreamError as exc:
            if self._store.is_empty():
                raise
            logger.warning("Upstream unavailable, serving cached posts: %s", exc)
            return self._store.read_all()

    # ------------------------------------------------------------------
    # Single post
    # ------------------------------------------------------------------
    def get_post(
        self, post_id: int, force_refresh: bool = False, with_relations: bool = False
    ) -> CachedPost:
        """Devuelve un post desde cache o lo descarga y lo guarda."""
        if not force_refresh:
            cached = self._store.read_one(post_id)
            if cached is not None:
                return cached if with_relations else cached.as_post()

        try:
            post = self._client.get_post(post_id)
        except UpstreamError as exc:
            cached = self._store.read_one(post_id) if force_refresh else None
            if cached is None:
                raise
            logger.warning("Upstream unavailable, serving cached post %s: %s", post_id, exc)
            return cached if with_relations else cached.as_post()

        prepared = self._prepare_one(post, with_relations)
        self._store.write_post(prepared)
        return prepared

    def get_comments(self, post_id: int) -> List[Comment]:
        return self._client.get_comments(post_id)

    def save_post(self, post_id: int, with_relations: bool = False) -> SaveResult:
        post = self._client.get_post(post_id)
        prepared = self._prepare_one(post, with_relations)
        saved = self._store.write_post(prepared)
        return SaveResult(
            success=saved,
            message="Post saved successfully" if saved else "Failed to save post",
            file_path=str(self._store.path_for(post_id)),
            post=prepared,
        )

    def save_all(self, with_relations: bool = False) -> SaveAllResult:
        upstream = self._client.list_posts()
        written = self._persist(self._prepare(upstream, with_relations))
        return SaveAllResult(
            total_posts=len(upstream),
            saved_posts=len(written),
            directory=str(self._store.directory),
        )

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------
    def saved_post_ids(self) -> List[int]:
        return self._store.saved_ids()

    def is_saved(self, post_id: int) -> bool:
        return self._store.exists(post_id)

    def delete_post(self, post_id: int) -> bool:
        return self._store.delete_one(post_id)

    def clear_cache(self) -> ClearResult:
        before = self._store.count()
        success = self._store.clear_all()
        after = self._store.count()
        return ClearResult(
            success=success,
            message=(
                "Output directory cleared successfully"
                if success
                else "Failed to clear output directory"
            ),
            directory=str(self._store.directory),
            files_removed=before - after,
            files_remaining=after,
        )

    def build_archive(self, post_ids: Sequence[int] | None = None) -> Optional[Path]:
        return self._store.build_archive(post_ids)


def build_coordinator(env: Environment | None = None) -> RefreshCoordinator:
    """Crea cliente + store + coordinador con la configuracion del entorno."""
    cfg = get_config(env)
    client = JsonPlaceholderClient(cfg.api_base_url, timeout_sec=cfg.request_timeout_sec)
    store = PostStore(cfg.output_directory)
    logger.debug(
        "Coordinator for %s: upstream=%s cache=%s",
        cfg.environment.value,
        cfg.api_base_url,
        cfg.output_directory,
    )
    return RefreshCoordinator(client, store, relation_workers=settings.relation_workers)
