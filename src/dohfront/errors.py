"""Exception taxonomy for dohfront.

Brief:
  Two tiers of failure exist. Fatal errors (configuration and listener socket
  problems) stop the process. Per-query errors (QueryError and subclasses)
  drop a single query: the handler logs them once and sends nothing back, so
  the client observes a timeout.
"""


class DohFrontError(Exception):
    """Base class for all dohfront errors."""


class ConfigError(DohFrontError):
    """Invalid or incomplete configuration."""


class ListenerError(DohFrontError):
    """
    Brief: Unrecoverable failure of the UDP listener.

    Inputs:
    - message: description, usually wrapping the underlying OSError

    Outputs:
    - Exception instance
    """


class QueryError(DohFrontError):
    """
    Brief: A failure confined to one query.

    Inputs:
    - message: description of the failure

    Outputs:
    - Exception instance

    Notes:
    - ``reason`` is a short stable identifier used in log lines and tests.
    """

    reason = "query_error"


class MalformedMessage(QueryError):
    """Bytes did not parse as a DNS message."""

    reason = "malformed"


class NoQuestion(QueryError):
    """The query carried no question."""

    reason = "no_question"


class UnsupportedMultiQuestion(QueryError):
    """The query carried more than one question."""

    reason = "multi_question"


class EncodeFailure(QueryError):
    """A DNS message could not be serialized."""

    reason = "encode_failure"


class DoHError(QueryError):
    """
    Brief: DNS-over-HTTPS upstream error.

    Inputs:
    - message: Description of the error

    Outputs:
    - Exception instance
    """

    reason = "doh_error"


class DoHTransportError(DoHError):
    """Network or TLS failure while talking to the upstream."""

    reason = "transport"


class DoHStatusError(DoHError):
    """
    Brief: Upstream answered with a status other than 200.

    Inputs:
    - status: HTTP status code
    - http_reason: HTTP reason phrase
    - body: response body (may be empty)

    Outputs:
    - Exception instance whose message includes the body only when non-empty
    """

    reason = "http_status"

    def __init__(self, status: int, http_reason: str = "", body: bytes = b""):
        self.status = status
        self.http_reason = http_reason
        self.body = body
        msg = f"Non-OK HTTP response: {status} {http_reason}".rstrip()
        if body:
            msg = f"{msg} ({body!r})"
        super().__init__(msg)


class EmptyResponse(DoHError):
    """Upstream answered 200 with an empty body."""

    reason = "empty_body"
