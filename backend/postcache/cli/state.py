"""Estado persistente del CLI (entorno elegido y toggle de relaciones)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

from postcache.config import REPO_ROOT, settings
from postcache.domain.enums import Environment
from postcache.logging_utils import get_logger

logger = get_logger(__name__)


class CliState(BaseModel):
    environment: Optional[Environment] = None
    with_relations: bool = False


def state_path() -> Path:
    path = Path(settings.cli_state_path)
    if path.is_absolute():
        return path
    return (REPO_ROOT / path).resolve()


def load_state(path: Path | None = None) -> CliState:
    """Lee el estado; un fichero ausente o corrupto equivale al estado por defecto."""
    path = path or state_path()
    if not path.exists():
        return CliState()
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return CliState.model_validate(payload)
    except (OSError, ValueError, ValidationError) as exc:
        logger.warning("Ignoring unreadable CLI state %s: %s", path, exc)
        return CliState()


def save_state(state: CliState, path: Path | None = None) -> None:
    path = path or state_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(".tmp")
    tmp_path.write_text(
        json.dumps(state.model_dump(mode="json"), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    tmp_path.replace(path)
