# src/bookmeter/utils/logging_config.py
"""
Run log files for bookmeter.

Usage:
    from bookmeter.utils.logging_config import Logger, LogFiles

    Logger.info("wish: 3 inserted", file=LogFiles.SYNC)
    Logger.error("sync rolled back", file=LogFiles.ERROR)

Every line carries the id of the sync run that wrote it (see ``set_run_id``).

Environment variables:
    BOOKMETER_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
    BOOKMETER_LOG_DIR: base directory for log files (default: logs/)
    BOOKMETER_LOG_MAX_BYTES: size per file before rotation (default: 5MB)
    BOOKMETER_LOG_BACKUP_COUNT: rotated files kept (default: 3)
"""

from __future__ import annotations

import inspect
import os
import uuid
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

import yaml

_run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_FILE = "bookmeter.log"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 3
LINE_FORMAT = "{timestamp} [{level}] [{run_id}] {filename}:{lineno} - {message}"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_CONFIG_FILE = Path(__file__).parent / "log_config.yaml"

LOG_LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}

_DEFAULT_FILES = {
    "sync": "sync/sync.log",
    "enrich": "enrich/enrich.log",
    "error": "errors/error.log",
}


class _LogFilesMeta(type):
    def __getattr__(cls, name: str) -> str:
        files = cls._load()
        key = name.lower()
        if key in files:
            return files[key]
        raise AttributeError(f"Log file '{name}' not found in config")


class LogFiles(metaclass=_LogFilesMeta):
    """
    Named log files from ``log_config.yaml`` (``files`` section).

    ``LogFiles.SYNC`` resolves the ``sync`` entry; unknown names raise
    AttributeError, while ``LogFiles.get`` falls back to ``<name>/<name>.log``.
    """

    _files: Optional[Dict[str, str]] = None

    @classmethod
    def _load(cls) -> Dict[str, str]:
        if cls._files is None:
            files = dict(_DEFAULT_FILES)
            if LOG_CONFIG_FILE.exists():
                with open(LOG_CONFIG_FILE, "r", encoding="utf-8") as f:
                    config = yaml.safe_load(f) or {}
                files.update({str(k).lower(): str(v) for k, v in (config.get("files") or {}).items()})
            cls._files = files
        return cls._files

    @classmethod
    def get(cls, name: str) -> str:
        return cls._load().get(name.lower(), f"{name}/{name}.log")


_settings: Dict[str, object] = {}
_handlers: Dict[str, RotatingFileHandler] = {}


def _settings_from_env() -> Dict[str, object]:
    return {
        "level": os.environ.get("BOOKMETER_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        "base_dir": os.environ.get("BOOKMETER_LOG_DIR", DEFAULT_LOG_DIR),
        "max_bytes": int(os.environ.get("BOOKMETER_LOG_MAX_BYTES", DEFAULT_MAX_BYTES)),
        "backup_count": int(os.environ.get("BOOKMETER_LOG_BACKUP_COUNT", DEFAULT_BACKUP_COUNT)),
    }


def _handler_for(file: Optional[str]) -> RotatingFileHandler:
    path = Path(str(_settings["base_dir"])) / (file or DEFAULT_LOG_FILE)
    key = str(path)
    if key not in _handlers:
        path.parent.mkdir(parents=True, exist_ok=True)
        _handlers[key] = RotatingFileHandler(
            filename=key,
            maxBytes=int(_settings["max_bytes"]),
            backupCount=int(_settings["backup_count"]),
            encoding="utf-8",
        )
    return _handlers[key]


def _write(level: str, message: str, file: Optional[str]) -> None:
    if not _settings:
        Logger.init()
    if LOG_LEVELS.get(level, 0) < LOG_LEVELS.get(str(_settings["level"]), 0):
        return

    # Two frames up: the Logger method, then its caller.
    frame = inspect.currentframe()
    caller = frame.f_back.f_back if frame and frame.f_back else None
    filename = os.path.basename(caller.f_code.co_filename) if caller else "unknown"
    lineno = caller.f_lineno if caller else 0

    line = LINE_FORMAT.format(
        timestamp=datetime.now().strftime(DATE_FORMAT),
        level=level,
        run_id=_run_id_var.get() or "-",
        filename=filename,
        lineno=lineno,
        message=message,
    )
    handler = _handler_for(file)
    if handler.maxBytes and handler.stream.tell() + len(line) >= handler.maxBytes:
        handler.doRollover()
    handler.stream.write(line + "\n")
    handler.stream.flush()


class Logger:
    """Static file logger; initializes itself from the environment on first use."""

    @staticmethod
    def init(
        level: Optional[str] = None,
        base_dir: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
    ) -> None:
        Logger.close()
        _settings.clear()
        _settings.update(_settings_from_env())
        if level:
            _settings["level"] = level.upper()
        if base_dir:
            _settings["base_dir"] = base_dir
        if max_bytes:
            _settings["max_bytes"] = max_bytes
        if backup_count:
            _settings["backup_count"] = backup_count

    @staticmethod
    def debug(message: str, file: Optional[str] = None) -> None:
        _write("DEBUG", message, file)

    @staticmethod
    def info(message: str, file: Optional[str] = None) -> None:
        _write("INFO", message, file)

    @staticmethod
    def warning(message: str, file: Optional[str] = None) -> None:
        _write("WARNING", message, file)

    @staticmethod
    def error(message: str, file: Optional[str] = None) -> None:
        _write("ERROR", message, file)

    @staticmethod
    def close() -> None:
        for handler in _handlers.values():
            handler.close()
        _handlers.clear()


def new_run_id(list_type: str = "sync") -> str:
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    return f"{list_type}-{timestamp}-{uuid.uuid4().hex[:8]}"


def set_run_id(run_id: Optional[str] = None) -> str:
    rid = run_id or new_run_id()
    _run_id_var.set(rid)
    return rid


def get_run_id() -> Optional[str]:
    return _run_id_var.get()


def clear_run_id() -> None:
    _run_id_var.set(None)
