"""Logging de postcache.

El perfil de entorno decide si hay logging (`logging_enabled`) y su nombre
aparece en cada linea. `LOG_TO_FILE`, `LOG_FILE_NAME` y `LOG_DEBUG` eligen
destino y nivel. La configuracion se aplica una vez por proceso; la API y la
CLI la fuerzan de nuevo tras recargar settings.
"""

from __future__ import annotations

import atexit
import logging
from dataclasses import dataclass
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from queue import Queue
from threading import RLock
from typing import Optional

from postcache.config import REPO_ROOT, Settings, get_profile, settings
from postcache.domain.enums import Environment

_ROOT_LOGGER = "postcache"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_lock = RLock()
_active: Optional["LogSetup"] = None
_listener: Optional[QueueListener] = None


@dataclass(frozen=True)
class LogSetup:
    environment: Environment
    enabled: bool
    debug: bool = False
    file_path: Optional[Path] = None

    @classmethod
    def from_settings(cls, cfg: Settings) -> "LogSetup":
        return cls.for_environment(cfg.environment(), cfg)

    @classmethod
    def for_environment(cls, env: Environment, cfg: Settings = settings) -> "LogSetup":
        """LOG_ENABLED explicito manda; si no, decide el perfil de `env`."""
        enabled = cfg.log_enabled
        if enabled is None:
            enabled = get_profile(env).logging_enabled
        return cls(
            environment=env,
            enabled=enabled,
            debug=cfg.log_debug,
            file_path=_resolve_path(cfg.log_file_name) if cfg.log_to_file else None,
        )

    @property
    def level(self) -> int:
        return logging.DEBUG if self.debug else logging.INFO

    def formatter(self) -> logging.Formatter:
        where = " | %(filename)s:%(lineno)d" if self.debug else ""
        fmt = (
            f"%(asctime)s | %(levelname)s | {self.environment.value} | %(name)s{where} | %(message)s"
        )
        return logging.Formatter(fmt, _DATE_FORMAT)


def _resolve_path(file_name: str | Path) -> Path:
    """Rutas relativas van a `<repo>/logs/`."""
    path = Path(str(file_name).strip() or "postcache.log")
    if path.is_absolute():
        return path
    return (REPO_ROOT / "logs" / path).resolve()


def _file_handler(setup: LogSetup, path: Path) -> logging.Handler:
    global _listener
    path.parent.mkdir(parents=True, exist_ok=True)
    sink = logging.FileHandler(path, encoding="utf-8", delay=True)
    sink.setFormatter(setup.formatter())
    queue: Queue[logging.LogRecord] = Queue(-1)
    _listener = QueueListener(queue, sink, respect_handler_level=True)
    _listener.start()
    return QueueHandler(queue)


def _detach(logger: logging.Logger) -> None:
    global _listener
    if _listener is not None:
        _listener.stop()
        for handler in _listener.handlers:
            handler.close()
        _listener = None
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def shutdown_logging() -> None:
    """Vacia el fichero de log pendiente y deja el logger sin configurar."""
    global _active
    with _lock:
        _detach(logging.getLogger(_ROOT_LOGGER))
        _active = None


atexit.register(shutdown_logging)


def configure_logging(force: bool = False, setup: Optional[LogSetup] = None) -> LogSetup:
    """Aplica la configuracion de logging del entorno activo.

    Sin `force` solo actua la primera vez. Con `force` relee settings y
    reconstruye los handlers si algo cambio.
    """
    global _active
    with _lock:
        if _active is not None and not force and setup is None:
            return _active
        wanted = setup or LogSetup.from_settings(settings)
        if wanted == _active:
            return wanted

        logger = logging.getLogger(_ROOT_LOGGER)
        _detach(logger)
        logger.propagate = False
        if not wanted.enabled:
            logger.disabled = True
            logger.setLevel(logging.CRITICAL + 1)
            logger.addHandler(logging.NullHandler())
        else:
            logger.disabled = False
            logger.setLevel(wanted.level)
            handler: logging.Handler
            if wanted.file_path is not None:
                handler = _file_handler(wanted, wanted.file_path)
            else:
                handler = logging.StreamHandler()
                handler.setFormatter(wanted.formatter())
            handler.setLevel(wanted.level)
            logger.addHandler(handler)
        _active = wanted
        return wanted


def get_logger(name: str | None = None) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name or _ROOT_LOGGER)
