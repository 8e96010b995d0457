import errno
import logging
import socket
import socketserver
import threading
from dataclasses import dataclass
from typing import Optional, Tuple

from ..buffer_pool import BufferPool
from ..codec import qtype_name
from ..errors import ListenerError, QueryError
from ..resolver import QueryContext, UpstreamClient, format_peer, resolve_datagram

logger = logging.getLogger("dohfront.server")

# Read errors after which the listening socket is still usable. On some
# platforms an ICMP port-unreachable for an earlier reply surfaces as
# ECONNREFUSED/ECONNRESET on the next read.
_TRANSIENT_READ_ERRNOS = frozenset(
    {
        errno.EINTR,
        errno.EAGAIN,
        errno.EWOULDBLOCK,
        errno.ECONNREFUSED,
        errno.ECONNRESET,
        errno.EHOSTUNREACH,
        errno.ENETUNREACH,
    }
)


def split_host_port(address: str) -> Tuple[str, int]:
    """
    Brief: Split 'host:port' or '[v6]:port' into its parts.

    Inputs:
    - address: listen address string

    Outputs:
    - (host, port)

    Example:
        >>> split_host_port("0.0.0.0:5353")
        ('0.0.0.0', 5353)
        >>> split_host_port("[::1]:53")
        ('::1', 53)
    """
    address = str(address).strip()
    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep or not rest.startswith(":"):
            raise ValueError(f"invalid listen address {address!r}")
        port_str = rest[1:]
    else:
        host, sep, port_str = address.rpartition(":")
        if not sep:
            raise ValueError(f"listen address {address!r} is missing a port")
        if ":" in host:
            raise ValueError(f"IPv6 listen address {address!r} must be bracketed")
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"invalid port in listen address {address!r}") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range in listen address {address!r}")
    return host, port


def resolve_listen_address(address: str) -> Tuple[int, tuple]:
    """
    Brief: Resolve a listen address string to a socket family and address.

    Inputs:
    - address: 'host:port'; an empty host means all IPv4 interfaces

    Outputs:
    - (address_family, sockaddr) suitable for FrontedUDPServer

    Raises:
    - ListenerError when the address is malformed or does not resolve
    """
    try:
        host, port = split_host_port(address)
    except ValueError as e:
        raise ListenerError(str(e)) from e
    try:
        infos = socket.getaddrinfo(
            host or "0.0.0.0",
            port,
            socket.AF_UNSPEC,
            socket.SOCK_DGRAM,
            0,
            socket.AI_PASSIVE,
        )
    except socket.gaierror as e:
        raise ListenerError(f"Unable to resolve UDP address {address}: {e}") from e
    family, _, _, _, sockaddr = infos[0]
    return family, sockaddr


@dataclass
class Datagram:
    """
    Brief: One received datagram held in a pooled buffer.

    Inputs:
    - buffer: bytearray checked out from the server's BufferPool
    - length: number of bytes read into buffer
    - socket: listening socket the datagram arrived on (used for the reply)
    """

    buffer: bytearray
    length: int
    socket: socket.socket

    def payload(self) -> bytes:
        with memoryview(self.buffer) as view:
            return view[: self.length].tobytes()


class FrontedDNSHandler(socketserver.BaseRequestHandler):
    """
    Handles one UDP DNS query on its own thread.

    Failures of any pipeline stage are logged here, once, with the query's
    tag, and the query is dropped without a reply.
    """

    def handle(self) -> None:
        datagram: Datagram = self.request
        ctx = QueryContext(self.client_address)
        try:
            reply = resolve_datagram(
                datagram.payload(), ctx, self.server.upstream, self.server.client
            )
        except QueryError as e:
            logger.warning("[%s] %s", ctx.tag, e)
            return

        try:
            datagram.socket.sendto(reply, self.client_address)
        except OSError as e:
            logger.warning("[%s] Error sending response: %s", ctx.tag, e)
            return
        logger.info(
            "[%s] %s %s", format_peer(self.client_address), ctx.qname, qtype_name(ctx.qtype)
        )


class FrontedUDPServer(socketserver.ThreadingUDPServer):
    """
    Brief: UDP listener translating each datagram into a fronted DoH query.

    Inputs:
    - server_address: sockaddr to bind
    - upstream: UpstreamConfig-like object (front, host_header, path, port)
    - client: UpstreamClient used to issue DoH requests
    - pool: BufferPool for receive buffers (a private 2048-byte pool by default)
    - max_inflight: upper bound on concurrently processed queries
    - address_family: socket family; inferred from server_address when None

    Outputs:
    - bound server; call serve_forever() to run

    Notes:
    - The serving loop is the only reader of the socket. Each datagram is read
      into a pooled buffer, handed to a new daemon thread, and the buffer is
      returned in shutdown_request(), which socketserver runs on every exit
      path of a request.
    - Transient read errors are logged and skipped. Any other read error
      raises ListenerError out of serve_forever().
    """

    daemon_threads = True
    block_on_close = False

    def __init__(
        self,
        server_address,
        upstream,
        client: UpstreamClient,
        *,
        pool: Optional[BufferPool] = None,
        max_inflight: int = 256,
        address_family: Optional[int] = None,
        handler_cls=FrontedDNSHandler,
        bind_and_activate: bool = True,
    ):
        if max_inflight < 1:
            raise ValueError("max_inflight must be >= 1")
        if address_family is not None:
            self.address_family = address_family
        elif ":" in str(server_address[0]):
            self.address_family = socket.AF_INET6
        self.upstream = upstream
        self.client = client
        self.pool = pool if pool is not None else BufferPool(2048)
        self.max_packet_size = self.pool.buffer_size
        self._inflight = threading.BoundedSemaphore(max_inflight)
        super().__init__(server_address, handler_cls, bind_and_activate)

    def get_request(self):
        buf = self.pool.acquire()
        try:
            n, addr = self.socket.recvfrom_into(buf)
        except OSError as e:
            self.pool.release(buf)
            if e.errno in _TRANSIENT_READ_ERRNOS:
                logger.warning("Error getting UDP query: %s", e)
                raise
            raise ListenerError(f"Error getting UDP query: {e}") from e
        return Datagram(buf, n, self.socket), addr

    def process_request(self, request, client_address):
        # Blocks the serving loop only while max_inflight queries are running.
        self._inflight.acquire()
        try:
            super().process_request(request, client_address)
        except BaseException:
            self._inflight.release()
            raise

    def process_request_thread(self, request, client_address):
        try:
            super().process_request_thread(request, client_address)
        finally:
            self._inflight.release()

    def shutdown_request(self, request):
        self.pool.release(request.buffer)

    def handle_error(self, request, client_address):
        logger.exception(
            "Unhandled error processing query from %s", format_peer(client_address)
        )
