from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "crit": logging.CRITICAL,
    "critical": logging.CRITICAL,
}

_TAGS = {
    logging.DEBUG: "[debug]",
    logging.INFO: "[info]",
    logging.WARNING: "[warn]",
    logging.ERROR: "[error]",
    logging.CRITICAL: "[crit]",
}

LOG_FORMAT = "%(asctime)s %(level_tag)s %(name)s: %(message)s"


def _level_tag(levelno: int) -> str:
    return _TAGS.get(levelno, f"[lvl{levelno}]")


def parse_level(value: Any, default: int = logging.INFO) -> int:
    """Map a level name such as 'warn' or 'debug' to a logging constant."""
    return _LEVELS.get(str(value).strip().lower(), default)


class BracketLevelFormatter(logging.Formatter):
    """Formatter that adds bracketed lowercase level tags and UTC timestamps."""

    def formatTime(self, record, datefmt=None):
        """Format the record's creation time as UTC ISO-8601 with Z suffix."""
        return datetime.fromtimestamp(record.created, timezone.utc).strftime(
            "%Y-%m-%dT%H:%M:%SZ"
        )

    def format(self, record):
        record.level_tag = _level_tag(record.levelno)
        return super().format(record)


class SyslogFormatter(logging.Formatter):
    """Formatter for syslog output without timestamps (syslog adds its own)."""

    def format(self, record):
        record.level_tag = _level_tag(record.levelno)
        return f"dohfront: {record.level_tag} {record.name}: {record.getMessage()}"


def _add_file_handler(root: logging.Logger, file_path: str, formatter) -> None:
    path = os.path.abspath(os.path.expanduser(file_path.strip()))
    os.makedirs(os.path.dirname(path), exist_ok=True)
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(formatter)
    root.addHandler(handler)


def _add_syslog_handler(root: logging.Logger, syslog_cfg: Any) -> None:
    address = "/dev/log"
    if isinstance(syslog_cfg, dict):
        address = str(syslog_cfg.get("address", address))
    try:
        handler = logging.handlers.SysLogHandler(address=address)
    except OSError as e:
        root.warning("Failed to configure syslog at %s: %s", address, e)
        return
    handler.setFormatter(SyslogFormatter())
    root.addHandler(handler)


def init_logging(cfg: Optional[Dict[str, Any]]) -> None:
    """
    Initialize logging from the `logging` section of the config.

    Args:
        cfg: Logging configuration dictionary with optional keys:
            - level: debug, info, warn, error, crit (default: info)
            - stderr: boolean to log to stderr (default: True)
            - file: string path to log file (optional)
            - syslog: true, or a dict with a unix socket address (optional)

    Example config:
        {
            "level": "info",
            "stderr": True,
            "file": "./dohfront.log",
            "syslog": {"address": "/dev/log"}
        }
    """
    cfg = cfg or {}
    formatter = BracketLevelFormatter(fmt=LOG_FORMAT)

    root = logging.getLogger()
    root.setLevel(parse_level(cfg.get("level", "info")))

    # Remove existing handlers to avoid duplicates
    for h in list(root.handlers):
        root.removeHandler(h)

    if cfg.get("stderr", True):
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        root.addHandler(stderr_handler)

    file_path = cfg.get("file")
    if isinstance(file_path, str) and file_path.strip():
        _add_file_handler(root, file_path, formatter)

    syslog_cfg = cfg.get("syslog")
    if syslog_cfg:
        _add_syslog_handler(root, syslog_cfg)

    logging.captureWarnings(True)
