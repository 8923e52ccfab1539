from __future__ import annotations

from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Path, Query, Request
from fastapi.responses import FileResponse

from postcache.domain.filters import PostFilters
from postcache.services.refresh_service import RefreshCoordinator

router = APIRouter()

_FALSE_VALUES = {"false", "0", "no", "off"}

PostId = Annotated[int, Path(ge=1, description="Id numerico del post")]


def _flag(raw: Optional[str]) -> bool:
    """Flag de query: presente = true, salvo false/0/no/off."""
    if raw is None:
        return False
    return raw.strip().lower() not in _FALSE_VALUES


def _bool_param(raw: Optional[str]) -> bool:
    """Booleano explicito: solo `true` (sin distinguir mayusculas) es true."""
    return (raw or "").strip().lower() == "true"


def _parse_ids(raw: Optional[str]) -> List[int]:
    ids: List[int] = []
    for token in (raw or "").split(","):
        token = token.strip()
        if token.isdigit():
            ids.append(int(token))
    return ids


def _coordinator(request: Request) -> RefreshCoordinator:
    return request.app.state.coordinator


@router.get("/posts")
def list_posts(
    request: Request,
    refresh: Optional[str] = None,
    min_id: Optional[int] = Query(None, alias="minId"),
    max_id: Optional[int] = Query(None, alias="maxId"),
    title_contains: Optional[str] = Query(None, alias="titleContains"),
    body_contains: Optional[str] = Query(None, alias="bodyContains"),
    fetch_date_after: Optional[str] = Query(None, alias="fetchDateAfter"),
) -> Dict[str, Any]:
    filters = PostFilters(
        min_id=min_id,
        max_id=max_id,
        title_contains=title_contains,
        body_contains=body_contains,
        fetch_date_after=fetch_date_after,
    )
    result = _coordinator(request).get_posts(force_refresh=_flag(refresh), filters=filters)
    return result.to_json_dict()


@router.get("/posts/download-zip")
def download_zip(
    request: Request,
    ids: Optional[str] = None,
    with_relations: Optional[str] = Query(None, alias="withRelations"),
) -> FileResponse:
    # Los ficheros se empaquetan tal cual estan en cache; withRelations solo se acepta.
    zip_path = _coordinator(request).build_archive(_parse_ids(ids) or None)
    if zip_path is None:
        raise HTTPException(
            status_code=400,
            detail="No posts available to download or error creating ZIP file",
        )
    return FileResponse(zip_path, media_type="application/zip", filename=zip_path.name)


@router.get("/posts/{post_id}")
def get_post(
    request: Request,
    post_id: PostId,
    refresh: Optional[str] = None,
    with_relations: Optional[str] = Query(None, alias="withRelations"),
) -> Dict[str, Any]:
    post = _coordinator(request).get_post(
        post_id, force_refresh=_flag(refresh), with_relations=_bool_param(with_relations)
    )
    return post.to_json_dict()


@router.get("/posts/{post_id}/comments")
def get_comments(request: Request, post_id: PostId) -> List[Dict[str, Any]]:
    return [comment.to_json_dict() for comment in _coordinator(request).get_comments(post_id)]


@router.get("/posts/{post_id}/is-saved")
def is_saved(request: Request, post_id: PostId) -> Dict[str, Any]:
    return {"postId": post_id, "isSaved": _coordinator(request).is_saved(post_id)}


@router.get("/saved-posts")
def saved_posts(request: Request) -> Dict[str, Any]:
    ids = _coordinator(request).saved_post_ids()
    return {"total": len(ids), "posts": ids}


@router.post("/posts/save/{post_id}")
def save_post(
    request: Request,
    post_id: PostId,
    with_relations: Optional[str] = Query(None, alias="withRelations"),
) -> Dict[str, Any]:
    result = _coordinator(request).save_post(post_id, with_relations=_bool_param(with_relations))
    if not result.success:
        raise HTTPException(status_code=500, detail=result.message)
    return result.model_dump(mode="json", by_alias=True, exclude={"post"})


@router.post("/posts/save-all")
def save_all(
    request: Request,
    with_relations: Optional[str] = Query(None, alias="withRelations"),
) -> Dict[str, Any]:
    return _coordinator(request).save_all(with_relations=_bool_param(with_relations)).to_json_dict()


@router.post("/posts/quick-refresh")
def quick_refresh(
    request: Request,
    with_relations: Optional[str] = Query(None, alias="withRelations"),
) -> Dict[str, Any]:
    result = _coordinator(request).quick_refresh(with_relations=_bool_param(with_relations))
    return result.to_json_dict()


@router.post("/posts/hard-refresh")
def hard_refresh(
    request: Request,
    with_relations: Optional[str] = Query(None, alias="withRelations"),
) -> Dict[str, Any]:
    result = _coordinator(request).hard_refresh(with_relations=_bool_param(with_relations))
    return result.to_json_dict()


@router.post("/posts/clear")
def clear_posts(request: Request) -> Dict[str, Any]:
    state = _coordinator(request).clear_posts().to_json_dict()
    return {
        "success": True,
        "message": "Nothing to clear",
        "refreshType": state["refreshType"],
    }


@router.delete("/posts/{post_id}")
def delete_post(request: Request, post_id: PostId) -> Dict[str, Any]:
    if not _coordinator(request).delete_post(post_id):
        raise HTTPException(status_code=404, detail="Post file not found")
    return {"success": True, "message": "Post deleted successfully", "postId": post_id}


@router.delete("/posts")
def clear_cache(request: Request) -> Dict[str, Any]:
    result = _coordinator(request).clear_cache()
    if not result.success:
        raise HTTPException(status_code=500, detail=result.message)
    return result.to_json_dict()
