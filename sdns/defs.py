"""Shared DNS definitions: sections, record types, codes and small records."""

from __future__ import annotations

import enum
from dataclasses import dataclass

RR_A_LEN = 4
RR_AAAA_LEN = 16
MAX_CNAME_LEN = 256
MAX_OPT_LEN = 256
IN_PACKSIZE = 512 * 4
PACKSIZE = 512 * 10
DEFAULT_PACKET_SIZE = 512

ADDR_FAMILY_IP = 1
ADDR_FAMILY_IPV6 = 2
OPT_ECS_FAMILY_IPV4 = 1
OPT_ECS_FAMILY_IPV6 = 2

QR_MASK = 0x8000
OPCODE_MASK = 0x7800
AA_MASK = 0x0400
TC_MASK = 0x0200
RD_MASK = 0x0100
RA_MASK = 0x0080
RCODE_MASK = 0x000F


class PacketError(ValueError):
    """Raised when a packet cannot be built, encoded or decoded."""


class Section(enum.IntEnum):
    """Sections of a packet that hold records."""

    QD = 0
    AN = 1
    NS = 2
    NR = 3
    OPT = 4


class RRType(enum.IntEnum):
    A = 1
    NS = 2
    CNAME = 5
    SOA = 6
    PTR = 12
    MX = 15
    TXT = 16
    AAAA = 28
    SRV = 33
    OPT = 41
    SSHFP = 44
    SPF = 99
    AXFR = 252
    ALL = 255


class DNSClass(enum.IntEnum):
    IN = 1
    ANY = 255


class OptCode(enum.IntEnum):
    ECS = 8
    TCP_KEEPALIVE = 11
    ALL = 255


class Opcode(enum.IntEnum):
    QUERY = 0
    IQUERY = 1
    STATUS = 2
    NOTIFY = 4
    UPDATE = 5


class RCode(enum.IntEnum):
    NOERROR = 0
    FORMERR = 1
    SERVFAIL = 2
    NXDOMAIN = 3
    NOTIMP = 4
    REFUSED = 5
    YXDOMAIN = 6
    YXRRSET = 7
    NXRRSET = 8
    NOTAUTH = 9
    NOTZONE = 10
    BADVERS = 16


@dataclass
class Header:
    """Identification and flag fields of a packet header."""

    ident: int = 0
    qr: bool = False
    opcode: int = 0
    aa: bool = False
    tc: bool = False
    rd: bool = False
    ra: bool = False
    rcode: int = 0

    def flags(self) -> int:
        """Return the 16-bit flags word; oversized fields are masked."""
        fields = (int(self.qr) << 15) & QR_MASK
        fields |= (int(self.opcode) << 11) & OPCODE_MASK
        fields |= (int(self.aa) << 10) & AA_MASK
        fields |= (int(self.tc) << 9) & TC_MASK
        fields |= (int(self.rd) << 8) & RD_MASK
        fields |= (int(self.ra) << 7) & RA_MASK
        fields |= int(self.rcode) & RCODE_MASK
        return fields

    @classmethod
    def from_flags(cls, ident: int, flags: int) -> Header:
        """Build a header from an identifier and a flags word."""
        return cls(
            ident=ident & 0xFFFF,
            qr=bool(flags & QR_MASK),
            opcode=(flags & OPCODE_MASK) >> 11,
            aa=bool(flags & AA_MASK),
            tc=bool(flags & TC_MASK),
            rd=bool(flags & RD_MASK),
            ra=bool(flags & RA_MASK),
            rcode=flags & RCODE_MASK,
        )


@dataclass
class SOA:
    """Start-of-authority record data."""

    mname: str
    rname: str
    serial: int = 0
    refresh: int = 0
    retry: int = 0
    expire: int = 0
    minimum: int = 0


@dataclass
class ECS:
    """EDNS client-subnet option."""

    family: int
    source_prefix: int
    scope_prefix: int = 0
    addr: bytes = b""

    def address_bytes(self) -> bytes:
        """Return the address bytes covered by the source prefix."""
        length = (self.source_prefix + 7) // 8
        if self.source_prefix < 0 or length > RR_AAAA_LEN:
            raise PacketError("ECS source prefix is out of range")
        return bytes(self.addr[:length]).ljust(length, b"\0")