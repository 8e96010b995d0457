"""
Brief: Tests for dohfront.config.logging_config.init_logging and formatters.

Inputs:
  - None

Outputs:
  - None
"""

import logging
import logging.handlers
from pathlib import Path

from dohfront.config.logging_config import (
    BracketLevelFormatter,
    SyslogFormatter,
    _add_syslog_handler,
    init_logging,
    parse_level,
)


def test_init_logging_adds_stderr_handler():
    """
    Brief: init_logging configures root logger with stderr handler by default.

    Inputs:
      - cfg: minimal dict with level

    Outputs:
      - None: Asserts StreamHandler present and level applied
    """
    init_logging({"level": "debug"})
    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert any(type(h) is logging.StreamHandler for h in root.handlers)


def test_init_logging_without_stderr():
    init_logging({"stderr": False})
    assert logging.getLogger().handlers == []


def test_init_logging_file_handler_writes(tmp_path):
    """
    Brief: init_logging creates the file (and parent dirs) and writes formatted entries.

    Inputs:
      - cfg: nested file path and level

    Outputs:
      - None: Asserts file created and contains tagged message
    """
    log_path = tmp_path / "logs" / "dohfront.log"
    init_logging({"level": "info", "file": str(log_path), "stderr": False})
    logging.getLogger("dohfront.test").info("file message")
    for h in logging.getLogger().handlers:
        h.flush()
    content = Path(log_path).read_text()
    assert "file message" in content
    assert "[info] dohfront.test:" in content


def test_init_logging_syslog_handler(monkeypatch):
    """
    Brief: syslog accepts true (default socket) or a mapping naming the socket path.

    Inputs:
      - monkeypatch: replaces SysLogHandler with a recorder

    Outputs:
      - None: Asserts the address used and the syslog formatter attached
    """
    created = []

    class _FakeSyslog(logging.Handler):
        def __init__(self, address=None):
            super().__init__()
            created.append(address)

        def emit(self, record):
            pass

    monkeypatch.setattr(logging.handlers, "SysLogHandler", _FakeSyslog)
    init_logging({"stderr": False, "syslog": True})
    init_logging({"stderr": False, "syslog": {"address": "/run/systemd/journal/dev-log"}})
    assert created == ["/dev/log", "/run/systemd/journal/dev-log"]
    (h,) = logging.getLogger().handlers
    assert isinstance(h.formatter, SyslogFormatter)


def test_syslog_unavailable_warns_and_adds_nothing(monkeypatch):
    def _fail(address=None):
        raise OSError("no such socket")

    records = []

    class _Collect(logging.Handler):
        def emit(self, record):
            records.append(record.getMessage())

    monkeypatch.setattr(logging.handlers, "SysLogHandler", _fail)
    target = logging.getLogger("dohfront.test.syslog")
    target.propagate = False
    collector = _Collect()
    target.addHandler(collector)
    try:
        _add_syslog_handler(target, {"address": "/nonexistent"})
    finally:
        target.removeHandler(collector)
    assert target.handlers == []
    assert records == ["Failed to configure syslog at /nonexistent: no such socket"]


def test_parse_level_names_and_default():
    assert parse_level("WARN") == logging.WARNING
    assert parse_level("crit") == logging.CRITICAL
    assert parse_level("nonsense") == logging.INFO


def test_formatters_tag_levels():
    rec = logging.LogRecord("dohfront.x", logging.WARNING, __file__, 1, "hi %s", ("there",), None)
    line = BracketLevelFormatter(fmt="%(asctime)s %(level_tag)s %(name)s: %(message)s").format(rec)
    assert line.endswith("[warn] dohfront.x: hi there")
    assert line[:4].isdigit() and "Z " in line

    rec2 = logging.LogRecord("dohfront.x", 5, __file__, 1, "low", (), None)
    assert SyslogFormatter().format(rec2) == "dohfront: [lvl5] dohfront.x: low"
