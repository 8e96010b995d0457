"""DNS wire-format helpers built on dnslib.

Brief:
  Decode datagrams into dnslib.DNSRecord objects, enforce the one-question
  rule, rewrite transaction IDs and pack records back to wire bytes. Every
  failure is reported as a QueryError subclass so the caller can drop the
  query through a single handler.
"""

from __future__ import annotations

import logging
from typing import Union

from dnslib import QTYPE, DNSQuestion, DNSRecord

from .errors import EncodeFailure, MalformedMessage, NoQuestion, UnsupportedMultiQuestion

logger = logging.getLogger("dohfront.codec")

WireLike = Union[bytes, bytearray, memoryview]


def decode(wire: WireLike) -> DNSRecord:
    """
    Brief: Parse DNS wire bytes into a DNSRecord.

    Inputs:
    - wire: bytes-like DNS message

    Outputs:
    - DNSRecord

    Raises:
    - MalformedMessage when the bytes do not parse as a DNS message.

    Example:
        >>> rec = decode(DNSRecord.question("example.com", "A").pack())
        >>> str(rec.q.qname)
        'example.com.'
    """
    try:
        return DNSRecord.parse(bytes(wire))
    except Exception as e:
        raise MalformedMessage(f"Invalid DNS message: {e}") from e


def validate_single_question(record: DNSRecord) -> DNSQuestion:
    """
    Brief: Ensure a record carries exactly one question and return it.

    Inputs:
    - record: decoded DNSRecord

    Outputs:
    - DNSQuestion: the only question in the record

    Raises:
    - NoQuestion when the record has zero questions.
    - UnsupportedMultiQuestion when it has more than one.
    """
    count = len(record.questions)
    if count == 0:
        raise NoQuestion("No questions in query")
    if count > 1:
        raise UnsupportedMultiQuestion(
            f"Got {count} questions in query, but only 1 question is supported"
        )
    return record.questions[0]


def set_transaction_id(record: DNSRecord, txid: int) -> None:
    """Overwrite the header ID of record with the low 16 bits of txid."""
    record.header.id = int(txid) & 0xFFFF


def encode(record: DNSRecord) -> bytes:
    """
    Brief: Pack a DNSRecord to wire bytes.

    Inputs:
    - record: DNSRecord to serialize

    Outputs:
    - bytes ready for a UDP sendto

    Raises:
    - EncodeFailure when dnslib cannot pack the record.
    """
    try:
        return record.pack()
    except Exception as e:
        raise EncodeFailure(f"Error packing DNS response: {e}") from e


def qtype_name(qtype: int) -> str:
    """Return the mnemonic for a numeric record type, e.g. 1 -> 'A'."""
    return QTYPE.get(qtype, f"TYPE{qtype}")


def question_tag(question: DNSQuestion) -> str:
    """Return '<name>/<TYPE>' for use in log tags."""
    return f"{question.qname}/{qtype_name(question.qtype)}"
