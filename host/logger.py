"""Logging utilities for the plugin host.

``setup_logging`` configures the root logger from a ``LoggingConfig`` (or a
plain mapping with the same keys). Plugins never touch the root logger: they
receive a :class:`PluginLogger` that tags every record with the plugin name.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import LoggingConfig

DEFAULT_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with ``extra`` fields (such as ``plugin``) inlined."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class PluginLogger(logging.LoggerAdapter):
    """Logger handed to plugins; tags every record with the plugin name.

    Exposes ``info``/``warn``/``error``/``debug`` as plugins expect, with
    ``warn`` kept as an alias of ``warning``.
    """

    def __init__(self, plugin_name: str, logger: logging.Logger | None = None) -> None:
        super().__init__(
            logger or logging.getLogger(f"plugins.{plugin_name}"),
            {"plugin": plugin_name},
        )
        self.plugin_name = plugin_name

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs

    def warn(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.warning(msg, *args, **kwargs)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def setup_logging(config: LoggingConfig | Mapping[str, Any] | None = None) -> None:
    """Replace the root logger's handlers according to ``config``.

    Calling it again closes the handlers installed by the previous call.

    Args:
        config: ``LoggingConfig`` or mapping with ``level``, ``format``,
            ``file_path`` and ``json_format``.
    """
    if config is None:
        options: dict[str, Any] = {}
    elif isinstance(config, Mapping):
        options = dict(config)
    else:
        options = config.model_dump()

    formatter: logging.Formatter
    if options.get("json_format"):
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(str(options.get("format") or DEFAULT_FORMAT))

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    file_path = options.get("file_path")
    if isinstance(file_path, str) and file_path:
        handlers.append(logging.FileHandler(file_path, encoding="utf-8"))

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()

    root.setLevel(_parse_level(options.get("level", "INFO")))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)


def _parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    parsed = logging.getLevelName(str(level).upper())
    return parsed if isinstance(parsed, int) else logging.INFO
