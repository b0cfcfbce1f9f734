from __future__ import annotations
import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, Union

from runscripts.config import const
from runscripts.domain import Event
from runscripts.ports import EventBus

ROOT_LOGGER = "runscripts"

_ROTATE_BYTES = 5_000_000
_ROTATE_BACKUPS = 3


class JsonFormatter(logging.Formatter):
    """Одна запись лога = одна JSON-строка; поля из extra={"extra": {...}} поднимаются на верхний уровень."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        fields = getattr(record, "extra", None)
        if isinstance(fields, dict):
            entry.update(fields)
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    # для неизвестного имени getLevelName вернёт строку "Level X"
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def _attach(logger: logging.Logger, handler: logging.Handler) -> None:
    handler.setFormatter(JsonFormatter())
    handler.setLevel(logger.level)
    logger.addHandler(handler)


def setup_logging(level: Union[str, int] = "INFO", log_dir: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Логгер "runscripts":
      - stderr всегда
      - {log_dir}/runscripts.log с ротацией, если log_dir задан
    Повторный вызов заменяет обработчики, а не добавляет.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    logger.setLevel(_level(level))

    _attach(logger, logging.StreamHandler())

    logfile: Optional[Path] = None
    if log_dir:
        logfile = Path(log_dir) / const.LOG_FILE_NAME
        logfile.parent.mkdir(parents=True, exist_ok=True)
        _attach(logger, RotatingFileHandler(logfile, maxBytes=_ROTATE_BYTES, backupCount=_ROTATE_BACKUPS, encoding="utf-8"))

    # вывод скриптов печатает CLI; корневой логгер приложения сюда не пишет
    logger.propagate = False
    logger.debug("logging.initialized", extra={"extra": {"logfile": str(logfile) if logfile else None}})
    return logger


def _event_level(ev: Event) -> int:
    if ev.type.endswith(".error"):
        return logging.ERROR
    if ev.type == "script.exit" and not ev.payload.get("success", True):
        return logging.WARNING
    return logging.INFO


def attach_event_logger(bus: EventBus, logger: Optional[logging.Logger] = None) -> None:
    """Пишет каждое событие шины в лог: тип события как сообщение, payload в полях записи."""
    target = logger or logging.getLogger(f"{ROOT_LOGGER}.events")

    def _on_event(ev: Event) -> None:
        target.log(
            _event_level(ev),
            ev.type,
            extra={"extra": {"source": ev.source, "ts": ev.ts, "payload": dict(ev.payload)}},
        )

    bus.subscribe("", _on_event)
