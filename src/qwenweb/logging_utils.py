"""Process logging for the gateway: one file under the configured log directory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

__all__ = ["configure_logging", "parse_level"]

_MANAGED_HANDLER_FLAG = "_qwenweb_managed_handler"

# Client libraries that log every upstream request at INFO.
_CHATTY_LOGGERS = ("httpx", "httpcore")

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _lookup_level(level: Union[str, int]) -> Optional[int]:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else None


def parse_level(level: Union[str, int]) -> int:
    """Map ``"debug"``/``"INFO"``/``20`` to a logging level; unknown names give INFO."""

    resolved = _lookup_level(level)
    return logging.INFO if resolved is None else resolved


def _remove_managed_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, _MANAGED_HANDLER_FLAG, False):
            logger.removeHandler(handler)
            handler.close()


def _managed(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    setattr(handler, _MANAGED_HANDLER_FLAG, True)
    return handler


def configure_logging(
    log_dir: Union[str, Path],
    level: Union[str, int] = "INFO",
    *,
    log_name: str = "qwen_gateway",
    include_console: bool = True,
) -> Path:
    """Route root logging to ``<log_dir>/<log_name>.log`` (and stderr).

    Handlers from an earlier call are replaced; handlers installed by anything
    else stay attached. Upstream client chatter is held at WARNING unless the
    gateway itself runs at DEBUG.
    """

    numeric_level = parse_level(level)
    target_directory = Path(log_dir).expanduser()
    target_directory.mkdir(parents=True, exist_ok=True)
    log_path = target_directory / f"{log_name}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    _remove_managed_handlers(root_logger)

    root_logger.addHandler(
        _managed(logging.FileHandler(log_path, encoding="utf-8"), numeric_level)
    )
    if include_console:
        root_logger.addHandler(_managed(logging.StreamHandler(), numeric_level))

    chatty_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(chatty_level)

    if _lookup_level(level) is None:
        logging.getLogger(__name__).warning("Unknown log level %r; using INFO", level)

    logging.captureWarnings(True)
    return log_path
