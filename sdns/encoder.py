"""Serialisation of a :class:`~sdns.packet.Packet` into wire format."""

from __future__ import annotations

import struct
from collections.abc import Sequence

from .defs import (
    DEFAULT_PACKET_SIZE,
    PACKSIZE,
    DNSClass,
    Header,
    OptCode,
    PacketError,
    RRType,
    Section,
)
from .packet import Packet, Question, ResourceRecord

HEADER_LEN = 12
MAX_LABEL_LEN = 63

_MASK16 = 0xFFFF
_MASK32 = 0xFFFFFFFF
_HEAD = struct.Struct(">6H")
_QR = struct.Struct(">HH")
_RR = struct.Struct(">HHIH")
_SOA_TAIL = struct.Struct(">5I")
_OPT = struct.Struct(">HH")
_ECS_HEAD = struct.Struct(">HBB")
_KEEPALIVE = struct.Struct(">H")

_ANSWER_SECTIONS = (Section.AN, Section.NS, Section.NR)
_ADDRESS_TYPES = (RRType.A, RRType.AAAA)
_NAME_TYPES = (RRType.CNAME, RRType.PTR, RRType.NS)


def encode_domain(domain: str) -> bytes:
    """Encode a dotted name as length-prefixed labels.

    The terminating zero label is appended only when the name holds at
    least one character besides dots; the empty name encodes as a single
    zero byte.
    """
    raw = domain.encode("utf-8")
    out = bytearray()
    for label in raw.split(b"."):
        if len(label) > MAX_LABEL_LEN:
            raise PacketError(f"label is too long in {domain!r}")
        out.append(len(label))
        out += label
    if raw.replace(b".", b""):
        out.append(0)
    return bytes(out)


def encode_header(header: Header, counts: Sequence[int]) -> bytes:
    """Encode the 12-byte header with question, answer, authority and additional counts."""
    counts = tuple(counts)
    if len(counts) != 4:
        raise PacketError("header needs exactly four section counts")
    if any(not 0 <= count <= _MASK16 for count in counts):
        raise PacketError("section count is out of range")
    return _HEAD.pack(header.ident & _MASK16, header.flags(), *counts)


def _encode_question(question: Question) -> bytes:
    return encode_domain(question.domain) + _QR.pack(
        question.qtype & _MASK16, question.qclass & _MASK16
    )


def _record_data(record: ResourceRecord) -> bytes:
    if record.rtype in _ADDRESS_TYPES:
        return record.as_address()
    if record.rtype in _NAME_TYPES:
        return encode_domain(record.as_domain())
    if record.rtype == RRType.SOA:
        soa = record.as_soa()
        return (
            encode_domain(soa.mname)
            + encode_domain(soa.rname)
            + _SOA_TAIL.pack(
                soa.serial & _MASK32,
                soa.refresh & _MASK32,
                soa.retry & _MASK32,
                soa.expire & _MASK32,
                soa.minimum & _MASK32,
            )
        )
    raise PacketError(f"records of type {record.rtype} cannot be encoded")


def _encode_record(record: ResourceRecord) -> bytes:
    rdata = _record_data(record)
    if len(rdata) > _MASK16:
        raise PacketError("record data is too long")
    return (
        encode_domain(record.domain)
        + _RR.pack(record.rtype & _MASK16, DNSClass.IN, record.ttl & _MASK32, len(rdata))
        + rdata
    )


def _encode_option(record: ResourceRecord) -> bytes:
    if record.rtype == OptCode.ECS:
        ecs = record.as_ecs()
        data = _ECS_HEAD.pack(
            ecs.family & _MASK16, ecs.source_prefix & 0xFF, ecs.scope_prefix & 0xFF
        ) + ecs.address_bytes()
    elif record.rtype == OptCode.TCP_KEEPALIVE:
        timeout = record.as_tcp_keepalive()
        data = _KEEPALIVE.pack(timeout) if timeout else b""
    else:
        raise PacketError(f"option {record.rtype} cannot be encoded")
    return _OPT.pack(int(record.rtype), len(data)) + data


def _encode_opt_record(packet: Packet, options: list[ResourceRecord]) -> bytes:
    rdata = b"".join(_encode_option(option) for option in options)
    if len(rdata) > _MASK16:
        raise PacketError("option data is too long")
    payload = max(packet.payload_size, DEFAULT_PACKET_SIZE) & _MASK16
    return encode_domain("") + _RR.pack(RRType.OPT, payload, 0, len(rdata)) + rdata


def encode(packet: Packet, size: int = PACKSIZE) -> bytes:
    """Encode ``packet``; raise PacketError if it does not fit in ``size`` bytes."""
    if size < HEADER_LEN:
        raise PacketError(f"buffer of {size} bytes cannot hold a header")

    questions = packet.questions()
    body = bytearray()
    for question in questions:
        body += _encode_question(question)

    counts = [len(questions)]
    for section in _ANSWER_SECTIONS:
        records = packet.records(section)
        for record in records:
            body += _encode_record(record)
        counts.append(len(records))

    options = packet.records(Section.OPT)
    if options or packet.payload_size > 0:
        body += _encode_opt_record(packet, options)
        counts[3] += 1

    total = HEADER_LEN + len(body)
    if total > size:
        raise PacketError(f"encoded packet needs {total} bytes, only {size} available")
    return encode_header(packet.header, counts) + bytes(body)