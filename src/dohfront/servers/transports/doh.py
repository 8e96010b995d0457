import http.client
import importlib.metadata
import logging
import ssl
import urllib.parse
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ...errors import DoHStatusError, DoHTransportError, EmptyResponse

try:
    DOHFRONT_VERSION = importlib.metadata.version("dohfront")
except importlib.metadata.PackageNotFoundError:  # pragma: no cover - running from a source checkout
    DOHFRONT_VERSION = "unknown"

DNS_MESSAGE = "application/dns-message"
DEFAULT_DOH_HOST = "dns.google.com"
DEFAULT_RESOLVE_PATH = "/resolve"

logger = logging.getLogger("dohfront.transports.doh")


@dataclass(frozen=True)
class FrontedRequest:
    """
    Brief: A domain-fronted DoH GET request for a single question.

    Inputs:
    - front: TLS server name; used for the TCP connection, SNI and certificate
      validation
    - host_header: HTTP Host header naming the DoH provider behind the front
    - name: question name (fully qualified)
    - qtype: numeric question type
    - path: resource path on the front
    - port: TCP port on the front

    Outputs:
    - FrontedRequest instance

    Example:
        >>> r = FrontedRequest("youtube.com", "dns.google.com", "example.com.", 1)
        >>> r.target
        '/resolve?name=example.com.&type=1&ct=application/dns-message'
    """

    front: str
    host_header: str
    name: str
    qtype: int
    path: str = DEFAULT_RESOLVE_PATH
    port: int = 443

    @property
    def params(self) -> Tuple[Tuple[str, str], ...]:
        return (("name", self.name), ("type", str(int(self.qtype))), ("ct", DNS_MESSAGE))

    @property
    def target(self) -> str:
        return self.path + "?" + urllib.parse.urlencode(self.params, safe="/")

    @property
    def url(self) -> str:
        netloc = self.front if self.port == 443 else f"{self.front}:{self.port}"
        return f"https://{netloc}{self.target}"

    @property
    def headers(self) -> Dict[str, str]:
        # The Host header always names the DoH provider, never the front.
        return {
            "Accept": DNS_MESSAGE,
            "User-Agent": f"dohfront v{DOHFRONT_VERSION}",
            "Host": self.host_header,
        }


@dataclass(frozen=True)
class DoHResponse:
    status: int
    reason: str
    body: bytes


def _build_ssl_ctx(ca_file: Optional[str] = None) -> ssl.SSLContext:
    """
    Brief: Build an SSLContext with standard certificate validation.

    Inputs:
    - ca_file: optional CA bundle path

    Outputs:
    - ssl.SSLContext

    Example:
        >>> _build_ssl_ctx(None)  # doctest: +ELLIPSIS
        <ssl.SSLContext...>
    """
    return (
        ssl.create_default_context(cafile=ca_file)
        if ca_file
        else ssl.create_default_context()
    )


def doh_get(
    request: FrontedRequest,
    *,
    timeout_ms: int = 2000,
    ca_file: Optional[str] = None,
    tls: bool = True,
) -> DoHResponse:
    """
    Brief: Perform one domain-fronted DoH GET using the standard library.

    Inputs:
    - request: FrontedRequest describing the front, Host header and question
    - timeout_ms: socket timeout applied to connect and each read
    - ca_file: optional CA bundle for certificate validation
    - tls: when False, use plain HTTP (local test stubs only)

    Outputs:
    - DoHResponse with status, reason and full body

    Notes:
    - The TLS handshake and certificate check use request.front; only the
      Host header names the DoH provider.
    - Raises DoHTransportError for network/TLS errors. Status codes are not
      checked here; see DoHClient.fetch.
    """
    timeout = timeout_ms / 1000.0
    hdrs = request.headers
    try:
        if tls:
            conn = http.client.HTTPSConnection(
                request.front,
                request.port,
                timeout=timeout,
                context=_build_ssl_ctx(ca_file),
            )
        else:
            conn = http.client.HTTPConnection(
                request.front,
                request.port,
                timeout=timeout,
            )
        try:
            logger.debug(
                "GET %s %s",
                request.url,
                " ".join(f"{k}: {v};" for k, v in hdrs.items()),
            )
            conn.request("GET", request.target, headers=hdrs)
            resp = conn.getresponse()
            data = resp.read()
            return DoHResponse(resp.status, resp.reason, data)
        finally:
            conn.close()
    except ssl.SSLError as e:
        raise DoHTransportError(f"TLS error: {e}") from e
    except (OSError, http.client.HTTPException) as e:
        raise DoHTransportError(f"Network error: {e}") from e


class DoHClient:
    """
    Brief: Upstream client issuing fronted DoH requests with fixed settings.

    Inputs:
    - timeout_ms: per-request timeout
    - ca_file: optional CA bundle
    - tls: use HTTPS (True) or plain HTTP for local stubs (False)

    Outputs:
    - DoHClient instance; fetch(request) returns a non-empty 200 body

    Example:
        >>> client = DoHClient(timeout_ms=1500)
        >>> client.timeout_ms
        1500
    """

    def __init__(
        self,
        timeout_ms: int = 2000,
        ca_file: Optional[str] = None,
        *,
        tls: bool = True,
    ):
        self.timeout_ms = int(timeout_ms)
        self.ca_file = ca_file
        self.tls = tls

    def fetch(self, request: FrontedRequest) -> bytes:
        """
        Brief: Issue request and return the response body.

        Inputs:
        - request: FrontedRequest

        Outputs:
        - bytes: body of a 200 response

        Raises:
        - DoHTransportError on network/TLS failure
        - DoHStatusError on any status other than 200
        - EmptyResponse when a 200 response has no body
        """
        resp = doh_get(
            request, timeout_ms=self.timeout_ms, ca_file=self.ca_file, tls=self.tls
        )
        if resp.status != http.client.OK:
            raise DoHStatusError(resp.status, resp.reason, resp.body)
        if not resp.body:
            raise EmptyResponse("Empty HTTPS response body")
        return resp.body
