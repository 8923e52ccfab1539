"""Configuracion central de postcache.

Lee variables de entorno (y `backend/postcache/.env`) con pydantic-settings y
resuelve el perfil de cada entorno (dev/staging/prod).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from threading import Lock
from typing import Dict, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from postcache.domain.enums import Environment

APP_VERSION = "1.0.0"

# Paths
PACKAGE_DIR = Path(__file__).resolve().parent
if PACKAGE_DIR.parent.name == "backend":
    REPO_ROOT = PACKAGE_DIR.parent.parent
else:
    REPO_ROOT = PACKAGE_DIR.parent

ENV_PATH = PACKAGE_DIR / ".env"
ENV_EXAMPLE = PACKAGE_DIR / ".env.example"


def _ensure_env_file() -> None:
    """Crear `backend/postcache/.env` desde su `.env.example` si falta."""
    if ENV_PATH.exists():
        return
    if not ENV_EXAMPLE.exists():
        return
    try:
        ENV_PATH.write_text(ENV_EXAMPLE.read_text(encoding="utf-8"), encoding="utf-8")
    except OSError:
        # Instalaciones de solo lectura: se usan las variables de entorno.
        return


_ensure_env_file()


@dataclass(frozen=True)
class EnvironmentProfile:
    """Valores por defecto de un entorno."""

    api_base_url: str
    output_directory: str
    logging_enabled: bool
    request_timeout_sec: float
    server_port: int
    cors_allowed_origins: tuple[str, ...]


_PROFILES: Dict[Environment, EnvironmentProfile] = {
    Environment.DEVELOPMENT: EnvironmentProfile(
        api_base_url="https://jsonplaceholder.typicode.com",
        output_directory="./posts",
        logging_enabled=True,
        request_timeout_sec=30.0,
        server_port=8080,
        cors_allowed_origins=("http://localhost:3000", "http://localhost:5173"),
    ),
    Environment.STAGING: EnvironmentProfile(
        api_base_url="https://jsonplaceholder.typicode.com",
        output_directory="./posts_staging",
        logging_enabled=True,
        request_timeout_sec=20.0,
        server_port=8080,
        cors_allowed_origins=("https://staging.jsonplaceholder-app.example",),
    ),
    Environment.PRODUCTION: EnvironmentProfile(
        api_base_url="https://jsonplaceholder.typicode.com",
        output_directory="./posts",
        logging_enabled=False,
        request_timeout_sec=10.0,
        server_port=8080,
        cors_allowed_origins=("https://jsonplaceholder-app.example",),
    ),
}


class Settings(BaseSettings):
    """Parametros de configuracion de la aplicacion.

    Los campos vacios o `None` delegan en el perfil del entorno activo.
    """

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="allow",
    )

    ########################################
    # App
    ########################################
    app_name: str = Field(default="Post Cache", validation_alias="APP_NAME")
    app_env: str = Field(default="dev", validation_alias="APP_ENV")

    ########################################
    # Upstream / cache
    ########################################
    api_base_url: str = Field(default="", validation_alias="API_BASE_URL")
    output_dir: str = Field(default="", validation_alias="OUTPUT_DIR")
    request_timeout_sec: float | None = Field(default=None, validation_alias="REQUEST_TIMEOUT_SEC")
    relation_workers: int = Field(
        default=1,
        validation_alias="RELATION_WORKERS",
        description="Workers para descargar user/comments por post (1 = secuencial).",
    )

    ########################################
    # Server
    ########################################
    server_host: str = Field(default="127.0.0.1", validation_alias="SERVER_HOST")
    server_port: int | None = Field(default=None, validation_alias="SERVER_PORT")

    ########################################
    # CLI
    ########################################
    cli_state_path: str = Field(
        default="./data/cache/postcache_cli.json", validation_alias="CLI_STATE_PATH"
    )

    ########################################
    # Logging
    ########################################
    log_enabled: bool | None = Field(default=None, validation_alias="LOG_ENABLED")
    log_to_file: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    log_file_name: str = Field(default="postcache.log", validation_alias="LOG_FILE_NAME")
    log_debug: bool = Field(default=False, validation_alias="LOG_DEBUG")

    def environment(self) -> Environment:
        """Entorno activo segun APP_ENV (por defecto DEVELOPMENT)."""
        return Environment.parse(self.app_env) or Environment.DEVELOPMENT

    def logging_enabled(self) -> bool:
        """LOG_ENABLED explicito o, si no existe, el valor del perfil."""
        if self.log_enabled is not None:
            return self.log_enabled
        return _PROFILES[self.environment()].logging_enabled


settings = Settings()


@dataclass(frozen=True)
class AppConfig:
    """Configuracion resuelta para un entorno concreto."""

    environment: Environment
    api_base_url: str
    output_directory: str
    logging_enabled: bool
    request_timeout_sec: float
    server_port: int
    cors_allowed_origins: List[str]


_OUTPUT_DIR_OVERRIDES: Dict[Environment, str] = {}
_OVERRIDES_LOCK = Lock()


def get_profile(env: Environment) -> EnvironmentProfile:
    return _PROFILES[env]


def get_config(env: Environment | None = None) -> AppConfig:
    """Resuelve perfil + overrides de settings + override de directorio en runtime."""
    env = env or settings.environment()
    profile = _PROFILES[env]
    if settings.output_dir.strip():
        profile = replace(profile, output_directory=settings.output_dir.strip())
    with _OVERRIDES_LOCK:
        custom_dir = _OUTPUT_DIR_OVERRIDES.get(env)
    return AppConfig(
        environment=env,
        api_base_url=settings.api_base_url.strip() or profile.api_base_url,
        output_directory=custom_dir or profile.output_directory,
        logging_enabled=settings.logging_enabled(),
        request_timeout_sec=settings.request_timeout_sec or profile.request_timeout_sec,
        server_port=settings.server_port or profile.server_port,
        cors_allowed_origins=list(profile.cors_allowed_origins),
    )


def update_output_directory(env: Environment, new_directory: str) -> str:
    """Fija el directorio de salida de `env` para el resto del proceso."""
    with _OVERRIDES_LOCK:
        _OUTPUT_DIR_OVERRIDES[env] = new_directory
    return new_directory


def reset_output_directories() -> None:
    with _OVERRIDES_LOCK:
        _OUTPUT_DIR_OVERRIDES.clear()


def reload_settings() -> None:
    """Recarga `settings` desde entorno/.env."""
    new_settings = Settings()
    for field_name in Settings.model_fields:
        setattr(settings, field_name, getattr(new_settings, field_name))
