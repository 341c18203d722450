"""Parsing of wire-format DNS messages into :class:`~sdns.packet.Packet` objects."""

from __future__ import annotations

import struct

from .defs import (
    MAX_CNAME_LEN,
    PACKSIZE,
    RR_A_LEN,
    RR_AAAA_LEN,
    SOA,
    ECS,
    Header,
    OptCode,
    PacketError,
    RRType,
    Section,
)
from .packet import Packet

HEADER_LEN = 12
MAX_POINTER_JUMPS = 4

_HEAD = struct.Struct(">6H")
_QR = struct.Struct(">HH")
_TTL_RDLEN = struct.Struct(">IH")
_SOA_TAIL = struct.Struct(">5I")
_OPT = struct.Struct(">HH")
_ECS_HEAD = struct.Struct(">HBB")

_COMPRESSED = 0xC0
_POINTER_MASK = 0x3FFF


def _decode_name(data: bytes, offset: int, size: int) -> tuple[str, int]:
    """Decode a possibly compressed name whose text must stay under ``size - 1`` bytes."""
    end = len(data)
    out = bytearray()
    pos = offset
    resume: int | None = None
    jumps = 0

    while True:
        if pos >= end or pos < 0:
            raise PacketError(f"domain name runs past the end of the data at {pos}")
        if len(out) >= size - 1:
            raise PacketError("domain name is too long")
        if jumps > MAX_POINTER_JUMPS:
            raise PacketError("too many consecutive compression pointers")

        length = data[pos]
        if length == 0:
            pos += 1
            break

        if length >= _COMPRESSED:
            if pos + 2 > end:
                raise PacketError("compression pointer is truncated")
            target = int.from_bytes(data[pos:pos + 2], "big") & _POINTER_MASK
            if resume is None:
                resume = pos + 2
            if target > end:
                raise PacketError(f"compression pointer {target} is out of range")
            pos = target
            jumps += 1
            continue

        jumps = 0
        if out:
            out.append(0x2E)
        pos += 1
        room = size - 1 - len(out)
        copy_len = min(length, room)
        if pos + copy_len > end:
            raise PacketError("label runs past the end of the data")
        out += data[pos:pos + copy_len]
        pos += length

    # Names are handled as C strings: anything after an embedded NUL is lost.
    name = bytes(out).split(b"\0", 1)[0].decode("utf-8", "replace")
    return name, resume if resume is not None else pos


def decode_domain(data: bytes, offset: int = 0) -> tuple[str, int]:
    """Decode the name at ``offset``; return it and the offset just after it."""
    return _decode_name(bytes(data), offset, MAX_CNAME_LEN)


def decode_header(data: bytes) -> tuple[Header, tuple[int, int, int, int]]:
    """Decode the 12-byte header; return it and the four section counts."""
    if len(data) < HEADER_LEN:
        raise PacketError(f"header needs {HEADER_LEN} bytes, got {len(data)}")
    ident, flags, qd, an, ns, nr = _HEAD.unpack_from(data, 0)
    return Header.from_flags(ident, flags), (qd, an, ns, nr)


class _Cursor:
    """Read position over a message."""

    def __init__(self, data: bytes, pos: int = 0) -> None:
        self.data = data
        self.pos = pos

    @property
    def left(self) -> int:
        return len(self.data) - self.pos

    def need(self, count: int, what: str) -> None:
        if self.left < count:
            raise PacketError(f"not enough data for {what}: need {count}, have {self.left}")

    def unpack(self, fmt: struct.Struct, what: str) -> tuple:
        self.need(fmt.size, what)
        values = fmt.unpack_from(self.data, self.pos)
        self.pos += fmt.size
        return values

    def take(self, count: int, what: str) -> bytes:
        self.need(count, what)
        chunk = self.data[self.pos:self.pos + count]
        self.pos += count
        return chunk

    def name(self, size: int = MAX_CNAME_LEN) -> str:
        name, self.pos = _decode_name(self.data, self.pos, size)
        return name


def _decode_question(cur: _Cursor, packet: Packet) -> None:
    domain = cur.name()
    qtype, qclass = cur.unpack(_QR, f"question {domain!r}")
    packet.add_domain(domain, qtype, qclass)


def _decode_ecs(cur: _Cursor) -> ECS:
    family, source, scope = cur.unpack(_ECS_HEAD, "client-subnet option")
    length = (source + 7) // 8
    if length > RR_AAAA_LEN:
        raise PacketError(f"client-subnet prefix {source} is too long")
    addr = cur.take(length, "client-subnet address")
    return ECS(family=family, source_prefix=source, scope_prefix=scope, addr=addr)


def _decode_options(cur: _Cursor, packet: Packet, ttl: int, rr_len: int) -> None:
    if (ttl >> 16) & 0xFFFF:
        raise PacketError("extended rcode is invalid")
    start = cur.pos
    while cur.pos - start < rr_len:
        code, opt_len = cur.unpack(_OPT, "option header")
        cur.need(opt_len, f"option {code}")
        if code == OptCode.ECS:
            packet.add_opt_ecs(_decode_ecs(cur))
        else:
            cur.pos += opt_len


def _decode_record(cur: _Cursor, packet: Packet, section: Section) -> None:
    domain = cur.name()
    qtype, qclass = cur.unpack(_QR, f"record {domain!r}")
    ttl, rr_len = cur.unpack(_TTL_RDLEN, f"record {domain!r}")
    start = cur.pos

    if qtype == RRType.A:
        packet.add_a(section, domain, ttl, cur.take(RR_A_LEN, f"A record {domain!r}"))
    elif qtype == RRType.AAAA:
        packet.add_aaaa(section, domain, ttl, cur.take(RR_AAAA_LEN, f"AAAA record {domain!r}"))
    elif qtype == RRType.CNAME:
        packet.add_cname(section, domain, ttl, cur.name())
    elif qtype == RRType.NS:
        packet.add_ns(section, domain, ttl, cur.name())
    elif qtype == RRType.PTR:
        packet.add_ptr(section, domain, ttl, cur.name())
    elif qtype == RRType.SOA:
        mname = cur.name(MAX_CNAME_LEN - 1)
        rname = cur.name(MAX_CNAME_LEN - 1)
        serial, refresh, retry, expire, minimum = cur.unpack(_SOA_TAIL, f"SOA record {domain!r}")
        packet.add_soa(section, domain, ttl, SOA(mname, rname, serial, refresh, retry, expire, minimum))
    elif qtype == RRType.OPT:
        _decode_options(cur, packet, ttl, rr_len)
        if cur.pos - start != rr_len:
            raise PacketError(f"option length mismatch for {domain!r}")
        packet.set_payload_size(qclass)
    else:
        cur.need(rr_len, f"record of type {qtype}")
        cur.pos += rr_len

    if cur.pos - start != rr_len:
        raise PacketError(
            f"length mismatch for {domain!r}: read {cur.pos - start}, expected {rr_len}"
        )


def decode(data: bytes, maxsize: int = PACKSIZE) -> Packet:
    """Decode a wire-format message into a packet with a size budget of ``maxsize``."""
    data = bytes(data)
    packet = Packet(Header(), maxsize)
    header, (qd, an, ns, nr) = decode_header(data)
    packet.header = header

    cur = _Cursor(data, HEADER_LEN)
    for _ in range(qd):
        _decode_question(cur, packet)
    for section, count in ((Section.AN, an), (Section.NS, ns), (Section.NR, nr)):
        for _ in range(count):
            _decode_record(cur, packet, section)
    return packet