from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from postcache.config import APP_VERSION, get_config, update_output_directory
from postcache.domain.filters import format_fetch_date
from postcache.logging_utils import get_logger

router = APIRouter()

logger = get_logger(__name__)


class OutputDirectoryRequest(BaseModel):
    output_directory: str = Field(alias="outputDirectory")


def _environment_info(request: Request) -> Dict[str, Any]:
    cfg = get_config(request.app.state.environment)
    return {
        "environment": cfg.environment.value,
        "version": APP_VERSION,
        "outputDirectory": cfg.output_directory,
        "lastFetchTime": format_fetch_date(),
    }


@router.get("/info")
def environment_info(request: Request) -> Dict[str, Any]:
    return _environment_info(request)


@router.get("/refresh-status")
def refresh_status(request: Request) -> Dict[str, Any]:
    return request.app.state.coordinator.refresh_status().to_json_dict()


@router.post("/config/output-directory")
def set_output_directory(request: Request, payload: OutputDirectoryRequest) -> Dict[str, Any]:
    new_directory = payload.output_directory.strip()
    if not new_directory:
        raise HTTPException(status_code=400, detail="outputDirectory is required")
    try:
        Path(new_directory).mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("Cannot create output directory %s: %s", new_directory, exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    update_output_directory(request.app.state.environment, new_directory)
    request.app.state.store.relocate(new_directory)
    return {
        "success": True,
        "message": "Output directory updated successfully",
        "config": _environment_info(request),
    }
