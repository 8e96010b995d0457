"""
Brief: Tests for dohfront.codec decode/validate/ID/encode helpers.

Inputs:
  - None

Outputs:
  - None
"""

import pytest
from dnslib import QTYPE, DNSHeader, DNSQuestion, DNSRecord

from dohfront import codec
from dohfront.errors import (
    EncodeFailure,
    MalformedMessage,
    NoQuestion,
    QueryError,
    UnsupportedMultiQuestion,
)

from conftest import make_query


def test_decode_valid_query():
    """
    Brief: decode() returns a DNSRecord with the original ID and question.

    Inputs:
      - wire: packed A query for example.com

    Outputs:
      - None: Asserts ID, name and type survive decoding
    """
    rec = codec.decode(make_query(txid=0x1234).pack())
    assert rec.header.id == 0x1234
    assert str(rec.q.qname) == "example.com."
    assert rec.q.qtype == QTYPE.A


@pytest.mark.parametrize(
    "wire",
    [b"", b"\x12", b"\x12\x34\x01\x00\x00\x01", b"\x00" * 11, b"\x12\x34" + b"\xff" * 30],
)
def test_decode_malformed_raises(wire):
    """
    Brief: decode() maps every parse failure to MalformedMessage.

    Inputs:
      - wire: truncated or garbage bytes

    Outputs:
      - None: Asserts MalformedMessage (a QueryError) is raised
    """
    with pytest.raises(MalformedMessage) as ei:
        codec.decode(wire)
    assert isinstance(ei.value, QueryError)
    assert ei.value.reason == "malformed"


def test_decode_accepts_memoryview_and_bytearray():
    wire = make_query().pack()
    assert codec.decode(memoryview(wire)).header.id == 0x1234
    assert codec.decode(bytearray(wire)).header.id == 0x1234


def test_validate_single_question_returns_question():
    rec = make_query("example.org", "AAAA")
    q = codec.validate_single_question(rec)
    assert str(q.qname) == "example.org."
    assert q.qtype == QTYPE.AAAA


def test_validate_single_question_zero_and_many():
    """
    Brief: zero questions and two questions fail with distinct errors.

    Inputs:
      - records: header-only record and a two-question record

    Outputs:
      - None: Asserts NoQuestion and UnsupportedMultiQuestion respectively
    """
    empty = DNSRecord(DNSHeader(id=7))
    with pytest.raises(NoQuestion):
        codec.validate_single_question(empty)

    multi = make_query()
    multi.add_question(DNSQuestion("example.net", QTYPE.A))
    with pytest.raises(UnsupportedMultiQuestion) as ei:
        codec.validate_single_question(multi)
    assert "2 questions" in str(ei.value)


def test_zero_question_wire_decodes_then_fails_validation():
    wire = DNSRecord(DNSHeader(id=9)).pack()
    rec = codec.decode(wire)
    with pytest.raises(NoQuestion):
        codec.validate_single_question(rec)


def test_set_transaction_id_overwrites_and_masks():
    rec = make_query(txid=0x9999)
    codec.set_transaction_id(rec, 0x1234)
    assert rec.header.id == 0x1234
    codec.set_transaction_id(rec, 0x1FFFF)
    assert rec.header.id == 0xFFFF


def test_encode_roundtrip_keeps_id():
    rec = make_query(txid=0x4242)
    wire = codec.encode(rec)
    assert wire[:2] == b"\x42\x42"
    back = codec.decode(wire)
    assert str(back.q.qname) == str(rec.q.qname)
    assert back.q.qtype == rec.q.qtype


def test_encode_failure_wraps_pack_errors():
    """
    Brief: encode() converts pack errors into EncodeFailure.

    Inputs:
      - record: question whose qtype is not an integer

    Outputs:
      - None: Asserts EncodeFailure is raised
    """
    rec = make_query()
    rec.q.qtype = "not-a-number"
    with pytest.raises(EncodeFailure):
        codec.encode(rec)


def test_question_tag_and_qtype_name():
    q = make_query("example.com", "MX").q
    assert codec.question_tag(q) == "example.com./MX"
    assert codec.qtype_name(1) == "A"
    assert codec.qtype_name(65000).endswith("65000")
