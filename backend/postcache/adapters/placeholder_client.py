"""Cliente de la API REST de JSONPlaceholder (posts, comentarios, usuarios)."""

from __future__ import annotations

from typing import Any, List, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from postcache.domain.models import Comment, Post, User
from postcache.logging_utils import get_logger

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


class UpstreamError(RuntimeError):
    """La API externa no responde, responde con error o con un cuerpo invalido."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class JsonPlaceholderClient:
    """Acceso sincrono al upstream; cada metodo devuelve modelos ya validados."""

    def __init__(
        self,
        base_url: str,
        timeout_sec: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=self._base_url,
            headers={"Accept": "application/json"},
            timeout=timeout_sec,
            follow_redirects=True,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "JsonPlaceholderClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def list_posts(self) -> List[Post]:
        return self._get_list("posts", Post)

    def get_post(self, post_id: int) -> Post:
        return self._get_one(f"posts/{post_id}", Post)

    def get_comments(self, post_id: int) -> List[Comment]:
        return self._get_list(f"posts/{post_id}/comments", Comment)

    def get_user(self, user_id: int) -> User:
        return self._get_one(f"users/{user_id}", User)

    def _request_json(self, path: str) -> Any:
        url = f"{self._base_url}/{path.lstrip('/')}"
        logger.debug("GET %s", url)
        try:
            resp = self._client.get(url)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            raise UpstreamError(
                f"Upstream request failed ({status_code}): GET /{path}", status_code
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Upstream unreachable: GET /{path}: {exc}") from exc
        try:
            return resp.json()
        except ValueError as exc:
            content_type = resp.headers.get("content-type") or "unknown"
            raise UpstreamError(
                f"Unexpected upstream response (non-JSON; content-type={content_type})",
                resp.status_code,
            ) from exc

    def _get_one(self, path: str, model: Type[M]) -> M:
        data = self._request_json(path)
        if not isinstance(data, dict):
            raise UpstreamError(f"Invalid upstream response for /{path} (expected JSON object)")
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise UpstreamError(f"Invalid {model.__name__} payload from /{path}: {exc}") from exc

    def _get_list(self, path: str, model: Type[M]) -> List[M]:
        data = self._request_json(path)
        if not isinstance(data, list):
            raise UpstreamError(f"Invalid upstream response for /{path} (expected JSON array)")
        try:
            items = [model.model_validate(item) for item in data]
        except ValidationError as exc:
            raise UpstreamError(f"Invalid {model.__name__} payload from /{path}: {exc}") from exc
        logger.debug("GET /%s -> %s items", path, len(items))
        return items
