"""Cache de posts en disco: un fichero JSON por post (`<id>.json`)."""

from __future__ import annotations

import json
import os
import tempfile
import zipfile
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, List, Optional, Sequence

from pydantic import ValidationError

from postcache.domain.models import CachedPost, parse_cached_post
from postcache.logging_utils import get_logger

logger = get_logger(__name__)

_SUFFIX = ".json"


class CacheIOError(OSError):
    """Fallo de lectura/escritura/borrado de un fichero de cache."""


def _read_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as exc:
        raise CacheIOError(f"Cannot read {path}: {exc}") from exc


def _write_json(path: Path, payload: dict[str, Any]) -> None:
    # Un temporal propio por escritura; escritores concurrentes del mismo id no lo comparten.
    tmp_name: Optional[str] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        os.replace(tmp_name, path)
    except OSError as exc:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
        raise CacheIOError(f"Cannot write {path}: {exc}") from exc


def _post_id(path: Path) -> Optional[int]:
    try:
        return int(path.stem)
    except ValueError:
        return None


class PostStore:
    """Acceso al directorio de cache de posts.

    Las operaciones masivas toleran fallos parciales: un fichero que no se
    puede leer o borrar se registra en el log y se salta.
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)
        self._lock = Lock()

    @property
    def directory(self) -> Path:
        with self._lock:
            return self._directory

    def relocate(self, directory: str | Path) -> None:
        """Apunta el store a otro directorio; no migra ficheros existentes."""
        with self._lock:
            self._directory = Path(directory)
        logger.info("Post cache relocated to %s", directory)

    def ensure_directory(self) -> Path:
        directory = self.directory
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def path_for(self, post_id: int) -> Path:
        return self.directory / f"{post_id}{_SUFFIX}"

    def list_files(self) -> List[Path]:
        """Ficheros `*.json` del directorio, ordenados por id numerico."""
        directory = self.directory
        if not directory.is_dir():
            return []
        files = [p for p in directory.iterdir() if p.is_file() and p.suffix == _SUFFIX]
        return sorted(files, key=lambda p: (_post_id(p) is None, _post_id(p) or 0, p.name))

    def saved_ids(self) -> List[int]:
        ids = (_post_id(path) for path in self.list_files())
        return [post_id for post_id in ids if post_id is not None and post_id > 0]

    def count(self) -> int:
        return len(self.list_files())

    def is_empty(self) -> bool:
        return not self.list_files()

    def exists(self, post_id: int) -> bool:
        return self.path_for(post_id).is_file()

    def write_post(self, post: CachedPost) -> bool:
        """Guarda (sobrescribe) el post; devuelve False si falla la escritura."""
        path = self.path_for(post.id)
        try:
            _write_json(path, post.to_json_dict())
        except CacheIOError as exc:
            logger.error("Failed to write post %s: %s", post.id, exc)
            return False
        logger.debug("Saved post %s to %s", post.id, path)
        return True

    def _read_path(self, path: Path) -> CachedPost:
        raw = _read_json(path)
        try:
            return parse_cached_post(raw)
        except ValidationError as exc:
            raise CacheIOError(f"Invalid post content in {path.name}: {exc}") from exc

    def read_one(self, post_id: int) -> Optional[CachedPost]:
        path = self.path_for(post_id)
        if not path.is_file():
            logger.debug("Post file does not exist: %s", path)
            return None
        try:
            return self._read_path(path)
        except CacheIOError as exc:
            logger.error("Failed to read post %s: %s", post_id, exc)
            return None

    def read_all(self) -> List[CachedPost]:
        posts: List[CachedPost] = []
        for path in self.list_files():
            try:
                posts.append(self._read_path(path))
            except CacheIOError as exc:
                logger.warning("Skipping unreadable cache file %s: %s", path.name, exc)
        return posts

    def delete_one(self, post_id: int) -> bool:
        path = self.path_for(post_id)
        if not path.is_file():
            logger.warning("Post file does not exist: %s", path)
            return False
        try:
            path.unlink()
        except OSError as exc:
            logger.error("Failed to delete %s: %s", path, exc)
            return False
        logger.info("Deleted post file %s", path)
        return True

    def clear_all(self) -> bool:
        """Borra todos los `*.json`; crea el directorio si no existe."""
        directory = self.directory
        try:
            if not directory.exists():
                directory.mkdir(parents=True, exist_ok=True)
                logger.info("Created output directory %s", directory)
                return True
        except OSError as exc:
            logger.error("Failed to create output directory %s: %s", directory, exc)
            return False

        deleted = 0
        for path in self.list_files():
            try:
                path.unlink()
                deleted += 1
            except OSError as exc:
                logger.warning("Failed to delete %s: %s", path, exc)
        logger.info("Cleared output directory %s (%s files removed)", directory, deleted)
        return True

    def build_archive(self, post_ids: Sequence[int] | None = None) -> Optional[Path]:
        """Crea `posts_<timestamp>.zip` con los posts seleccionados (o todos).

        Devuelve None, sin dejar fichero, si no hay nada que archivar.
        """
        directory = self.directory
        if not directory.is_dir():
            logger.error("Output directory does not exist: %s", directory)
            return None

        files = self.list_files()
        if post_ids:
            wanted = set(post_ids)
            files = [p for p in files if _post_id(p) in wanted]
        if not files:
            logger.warning("No cache files match the archive selection in %s", directory)
            return None

        stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        zip_path = directory / f"posts_{stamp}.zip"
        try:
            with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                for path in files:
                    zf.write(path, arcname=path.name)
        except OSError as exc:
            logger.error("Failed to create archive %s: %s", zip_path, exc)
            zip_path.unlink(missing_ok=True)
            return None
        logger.info("Created archive %s (%s files)", zip_path, len(files))
        return zip_path
