"""Per-query translation pipeline: DNS datagram -> fronted DoH -> DNS reply."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from dnslib import DNSQuestion

from . import codec
from .errors import MalformedMessage
from .servers.transports.doh import FrontedRequest

logger = logging.getLogger("dohfront.resolver")


class UpstreamClient(Protocol):
    def fetch(self, request: FrontedRequest) -> bytes: ...


def format_peer(peer: Any) -> str:
    """Render a socket address as host:port ([host]:port for IPv6)."""
    if isinstance(peer, tuple) and len(peer) >= 2:
        host, port = peer[0], peer[1]
        if ":" in str(host):
            return f"[{host}]:{port}"
        return f"{host}:{port}"
    return str(peer)


@dataclass
class QueryContext:
    """
    Brief: Mutable per-query state used for log correlation.

    Inputs:
    - peer: client socket address

    Outputs:
    - QueryContext whose tag starts as the peer and is refined to
      '<peer>-<name>/<TYPE>' once the question is known
    """

    peer: Any
    tag: str = ""
    qname: str = ""
    qtype: int = 0
    txid: int = 0

    def __post_init__(self) -> None:
        if not self.tag:
            self.tag = format_peer(self.peer)

    def bind_question(self, question: DNSQuestion, txid: int) -> None:
        self.qname = str(question.qname)
        self.qtype = int(question.qtype)
        self.txid = txid
        self.tag = f"{format_peer(self.peer)}-{codec.question_tag(question)}"


def build_request(question: DNSQuestion, upstream) -> FrontedRequest:
    """
    Brief: Derive the fronted DoH request for a question.

    Inputs:
    - question: the query's single DNSQuestion
    - upstream: object exposing front, host_header, path and port
      (UpstreamConfig in practice)

    Outputs:
    - FrontedRequest with name/type taken verbatim from the question and the
      Host header fixed to upstream.host_header
    """
    return FrontedRequest(
        front=upstream.front,
        host_header=upstream.host_header,
        name=str(question.qname),
        qtype=int(question.qtype),
        path=upstream.path,
        port=int(upstream.port),
    )


def resolve_datagram(
    data: bytes, ctx: QueryContext, upstream, client: UpstreamClient
) -> bytes:
    """
    Brief: Translate one DNS query datagram into a reply via fronted DoH.

    Inputs:
    - data: raw datagram bytes
    - ctx: QueryContext for the sender; updated with the question as soon as
      it is known
    - upstream: UpstreamConfig-like object (front, host_header, path, port)
    - client: object with fetch(FrontedRequest) -> bytes

    Outputs:
    - bytes: wire-format DNS response carrying the query's transaction ID

    Notes:
    - Each stage raises a QueryError subclass on failure and nothing later
      runs; the caller logs it and drops the query.
    - The upstream's own transaction ID is always discarded.
    """
    query = codec.decode(data)
    question = codec.validate_single_question(query)
    ctx.bind_question(question, query.header.id)

    request = build_request(question, upstream)
    body = client.fetch(request)

    try:
        response = codec.decode(body)
    except MalformedMessage as e:
        raise MalformedMessage(f"Invalid DNS response {body!r}: {e}") from e
    codec.set_transaction_id(response, ctx.txid)
    return codec.encode(response)
