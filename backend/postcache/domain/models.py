"""Modelos canonicos del dominio (Pydantic).

Los campos son snake_case en Python y camelCase en JSON (disco y HTTP), igual
que los devuelve JSONPlaceholder.
"""

from __future__ import annotations

from typing import Any, List, Optional, Union, cast

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from postcache.domain.enums import RefreshType


class CamelModel(BaseModel):
    """Base comun: alias camelCase, acepta ambos nombres e ignora claves extra."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Geo(CamelModel):
    lat: Optional[str] = None
    lng: Optional[str] = None


class Address(CamelModel):
    street: Optional[str] = None
    suite: Optional[str] = None
    city: Optional[str] = None
    zipcode: Optional[str] = None
    geo: Optional[Geo] = None


class Company(CamelModel):
    name: str
    catch_phrase: Optional[str] = None
    bs: Optional[str] = None


class User(CamelModel):
    """Autor de un post; se embebe por valor, nunca se cachea aparte."""

    id: int
    name: str
    username: str
    email: str
    phone: Optional[str] = None
    website: Optional[str] = None
    company: Optional[Company] = None
    address: Optional[Address] = None


class Comment(CamelModel):
    post_id: int
    id: int
    name: str
    email: str
    body: str


class Post(CamelModel):
    """Post tal y como lo devuelve el upstream, mas la fecha de descarga."""

    user_id: int
    id: int
    title: str
    body: str
    fetch_date: Optional[str] = None

    @property
    def has_relations(self) -> bool:
        return False

    def as_post(self) -> "Post":
        return self


class PostWithRelations(Post):
    """Post con su usuario y comentarios embebidos."""

    user: Optional[User] = None
    comments: Optional[List[Comment]] = None

    @property
    def has_relations(self) -> bool:
        return self.user is not None or bool(self.comments)

    def as_post(self) -> Post:
        """Proyeccion a Post sin relaciones."""
        return Post(
            user_id=self.user_id,
            id=self.id,
            title=self.title,
            body=self.body,
            fetch_date=self.fetch_date,
        )


CachedPost = Union[Post, PostWithRelations]


def parse_cached_post(raw: Any) -> CachedPost:
    """Interpreta el contenido de un fichero de cache.

    Intenta primero la forma rica (PostWithRelations); si no trae relaciones
    devuelve un Post simple. Si la forma rica no valida se reintenta como Post.
    Lanza `ValidationError` si el contenido no es ni siquiera un Post.
    """
    try:
        rich = PostWithRelations.model_validate(raw)
    except ValidationError:
        return Post.model_validate(raw)
    if rich.has_relations:
        return rich
    return rich.as_post()


def any_has_relations(posts: List[CachedPost]) -> bool:
    return any(post.has_relations for post in posts)


class RefreshState(CamelModel):
    """Foto del flag de refresco compartido."""

    is_refreshing: bool = False
    refresh_start_time: Optional[int] = None
    refresh_type: Optional[RefreshType] = None
    with_relations: Optional[bool] = None


class PostsResult(CamelModel):
    posts: List[Post] = Field(default_factory=lambda: cast(List[Post], []))
    has_relations: bool = False


class QuickRefreshResult(CamelModel):
    success: bool = True
    total_checked: int
    total_added: int
    posts: List[Post] = Field(default_factory=lambda: cast(List[Post], []))


class HardRefreshResult(CamelModel):
    success: bool = True
    total_fetched: int
    total_refreshed: int = 0
    posts: List[Post] = Field(default_factory=lambda: cast(List[Post], []))


class SaveResult(CamelModel):
    success: bool
    message: str
    file_path: str
    post: Optional[Post] = None


class SaveAllResult(CamelModel):
    success: bool = True
    total_posts: int
    saved_posts: int
    directory: str


class ClearResult(CamelModel):
    success: bool
    message: str
    directory: str
    files_removed: int
    files_remaining: int
