"""Structured logging for the bridge.

Tagged loggers render key/value or JSON lines to stderr and/or a log file.
The bridge is a library, so nothing is written until a host calls
``Log.configure`` (or ``Log.configure_from_env``).
"""

import json
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Set, TextIO

from ..core.global_paths import GlobalPath

LEVEL_ENV = "AGENT_SDK_BRIDGE_LOG_LEVEL"
FORMAT_ENV = "AGENT_SDK_BRIDGE_LOG_FORMAT"
LOG_FILE_NAME = "bridge.log"


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def priority(self) -> int:
        return list(LogLevel).index(self)

    @classmethod
    def parse(cls, value: Optional[str]) -> "LogLevel":
        if value is None:
            return cls.INFO
        text = value.strip().lower()
        if text == "warning":
            text = "warn"
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"invalid log level: {value}") from None


class LogFormat(str, Enum):
    KV = "kv"
    JSON = "json"

    @classmethod
    def parse(cls, value: Optional[str]) -> "LogFormat":
        if value is None:
            return cls.KV
        text = value.strip().lower()
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"invalid log format: {value}") from None


@dataclass
class LogConfig:
    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.KV
    console: bool = False
    file: bool = False
    log_file_path: Optional[str] = None
    _file_handle: Optional[TextIO] = None


_config = LogConfig()


def _normalize(value: Any) -> Any:
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    if isinstance(value, (dict, list, tuple, int, float, bool)) or value is None:
        return value
    return str(value)


def _kv_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    text = str(value)
    if text == "" or "=" in text or any(ch.isspace() for ch in text):
        return json.dumps(text, ensure_ascii=False)
    return text


class Logger:
    """Tagged logger; tags are merged into every line it writes."""

    def __init__(self, tags: Optional[Dict[str, Any]] = None):
        self.tags = tags or {}
        self._once: Set[str] = set()

    def _render(self, level: LogLevel, message: Any, extra: Optional[Dict[str, Any]]) -> str:
        fields = {
            key: _normalize(value)
            for key, value in {**self.tags, **(extra or {})}.items()
            if value is not None
        }
        payload = {
            "time": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "level": level.value,
            "msg": _normalize(message),
            **fields,
        }
        if _config.format == LogFormat.JSON:
            return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str) + "\n"
        return " ".join(
            [payload["time"], *(f"{key}={_kv_value(value)}" for key, value in payload.items() if key != "time")]
        ) + "\n"

    def _emit(self, level: LogLevel, message: Any, extra: Optional[Dict[str, Any]]) -> None:
        if not (_config.console or _config.file) or level.priority < _config.level.priority:
            return
        line = self._render(level, message, extra)
        if _config.console:
            sys.stderr.write(line)
            sys.stderr.flush()
        if _config._file_handle is not None:
            _config._file_handle.write(line)
            _config._file_handle.flush()

    def debug(self, message: Any = None, extra: Optional[Dict[str, Any]] = None) -> None:
        self._emit(LogLevel.DEBUG, message, extra)

    def info(self, message: Any = None, extra: Optional[Dict[str, Any]] = None) -> None:
        self._emit(LogLevel.INFO, message, extra)

    def warn(self, message: Any = None, extra: Optional[Dict[str, Any]] = None) -> None:
        self._emit(LogLevel.WARN, message, extra)

    def error(self, message: Any = None, extra: Optional[Dict[str, Any]] = None) -> None:
        self._emit(LogLevel.ERROR, message, extra)

    def once(self, site: str, message: Any = None, extra: Optional[Dict[str, Any]] = None) -> bool:
        """Warn the first time ``site`` is reported on this logger.

        Returns True when the warning was recorded, False for repeats.
        """
        if site in self._once:
            return False
        self._once.add(site)
        self.warn(message, {"site": site, **(extra or {})})
        return True

    def clone(self) -> "Logger":
        """Same tags, fresh once-set."""
        return Logger(tags=self.tags.copy())


class Log:
    """Logger factory and process-wide sink configuration."""

    _loggers: Dict[str, Logger] = {}

    @classmethod
    def create(cls, tags: Optional[Dict[str, Any]] = None) -> Logger:
        """Loggers tagged with a ``service`` are shared per service name."""
        tags = tags or {}
        service = tags.get("service")
        if not isinstance(service, str) or not service:
            return Logger(tags=tags)
        if service not in cls._loggers:
            cls._loggers[service] = Logger(tags=tags)
        return cls._loggers[service]

    @classmethod
    def configure(
        cls,
        *,
        level: Optional[LogLevel] = None,
        format: Optional[LogFormat] = None,
        console: Optional[bool] = None,
        file: Optional[bool] = None,
    ) -> None:
        if level is not None:
            _config.level = level
        if format is not None:
            _config.format = format
        if console is not None:
            _config.console = console
        if file is not None:
            _config.file = file

        cls.close()
        _config.log_file_path = None
        if _config.file:
            log_dir = Path(GlobalPath.log())
            log_dir.mkdir(parents=True, exist_ok=True)
            log_path = log_dir / LOG_FILE_NAME
            _config.log_file_path = str(log_path)
            _config._file_handle = log_path.open("a", encoding="utf-8")

    @classmethod
    def configure_from_env(cls) -> None:
        """Enable console logging when ``AGENT_SDK_BRIDGE_LOG_LEVEL`` is set."""
        level = os.environ.get(LEVEL_ENV)
        if level:
            cls.configure(
                level=LogLevel.parse(level),
                format=LogFormat.parse(os.environ.get(FORMAT_ENV)),
                console=True,
            )

    @classmethod
    def file(cls) -> str:
        return _config.log_file_path or ""

    @classmethod
    def reset(cls) -> None:
        """Back to the silent defaults."""
        cls.close()
        _config.level = LogLevel.INFO
        _config.format = LogFormat.KV
        _config.console = False
        _config.file = False
        _config.log_file_path = None

    @classmethod
    def close(cls) -> None:
        if _config._file_handle is not None:
            _config._file_handle.close()
            _config._file_handle = None
