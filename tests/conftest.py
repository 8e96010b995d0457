"""
Brief: Global pytest configuration enforcing a per-test 10s timeout and
shared DNS fixtures.

Inputs:
  - None

Outputs:
  - None
"""

import logging
import os
import signal
import sys

import pytest
from dnslib import QTYPE, RR, A, DNSRecord

# Ensure 'src' is on sys.path so 'dohfront' package is importable in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)


def _alarm_handler(signum, frame):
    """
    Brief: Signal handler that raises TimeoutError when alarm triggers.

    Inputs:
      - signum: signal number (int)
      - frame: current frame (ignored)

    Outputs:
      - None: Raises TimeoutError to fail the test
    """
    raise TimeoutError("Test exceeded 10 seconds")


# Install handler if supported on this platform
if hasattr(signal, "SIGALRM"):
    signal.signal(signal.SIGALRM, _alarm_handler)


@pytest.fixture(autouse=True)
def enforce_test_timeout():
    """
    Brief: Enforce a hard 10-second timeout for each test.

    Inputs:
      - None

    Outputs:
      - None: Cancels alarm after test
    """
    if hasattr(signal, "SIGALRM"):
        signal.alarm(10)
        try:
            yield
        finally:
            signal.alarm(0)
    else:
        # Fallback: no-op on platforms without SIGALRM
        yield


@pytest.fixture(autouse=True)
def restore_root_logging():
    """
    Brief: Drop handlers installed by init_logging and restore the root level.

    Inputs:
      - None

    Outputs:
      - None
    """
    from dohfront.config.logging_config import BracketLevelFormatter, SyslogFormatter

    root = logging.getLogger()
    level = root.level
    yield
    for h in list(root.handlers):
        if isinstance(h.formatter, (BracketLevelFormatter, SyslogFormatter)):
            root.removeHandler(h)
            h.close()
    root.setLevel(level)


def make_query(name="example.com", qtype="A", txid=0x1234) -> DNSRecord:
    q = DNSRecord.question(name, qtype)
    q.header.id = txid
    return q


def make_answer(query: DNSRecord, txid: int, ip: str = "93.184.216.34") -> bytes:
    """
    Brief: Build an upstream-style A answer for query with a chosen ID.

    Inputs:
      - query: DNSRecord question being answered
      - txid: ID the synthetic upstream puts in its header
      - ip: IPv4 address for the single answer record

    Outputs:
      - bytes: packed DNS response
    """
    r = query.reply()
    r.header.id = txid
    r.add_answer(RR(query.q.qname, QTYPE.A, rdata=A(ip), ttl=300))
    return r.pack()


class FakeUpstream:
    """
    Brief: In-memory stand-in for DoHClient recording every request.

    Inputs:
      - responder: callable(FrontedRequest) -> bytes, may raise

    Outputs:
      - object with fetch() and a `requests` list
    """

    def __init__(self, responder):
        self.responder = responder
        self.requests = []

    def fetch(self, request):
        self.requests.append(request)
        return self.responder(request)


@pytest.fixture
def upstream_cfg():
    from dohfront.config.config_parser import UpstreamConfig

    return UpstreamConfig(front="youtube.com")
