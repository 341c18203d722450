"""In-memory DNS packet: header, questions and records grouped by section."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Union

from .defs import (
    DEFAULT_PACKET_SIZE,
    MAX_CNAME_LEN,
    PACKSIZE,
    RR_A_LEN,
    RR_AAAA_LEN,
    SOA,
    DNSClass,
    ECS,
    Header,
    OptCode,
    PacketError,
    RRType,
    Section,
)

# Bookkeeping cost of the packet itself and of each stored record; the
# packet's size budget covers these as well as the record contents.
_PACKET_OVERHEAD = 44
_RR_OVERHEAD = 8
_QR_HEAD = 4  # qtype, qclass
_RR_HEAD = 10  # qtype, qclass, ttl, rdlength
_OPT_HEAD = 4  # option code, option length
_SOA_FIXED = 20

_ANSWER_SECTIONS = (Section.AN, Section.NS, Section.NR)
_ADDRESS_TYPES = (RRType.A, RRType.AAAA)
_NAME_TYPES = (RRType.CNAME, RRType.PTR, RRType.NS)

RecordValue = Union[bytes, str, SOA, ECS, int]


def _name_size(name: str) -> int:
    return len(name.encode("utf-8")) + 1


def _check_name(name: str) -> str:
    if "\0" in name:
        raise PacketError("domain name contains a NUL character")
    if _name_size(name) > MAX_CNAME_LEN:
        raise PacketError(f"domain name is too long: {name[:32]}...")
    return name


@dataclass(frozen=True)
class Question:
    """One entry of the question section."""

    domain: str
    qtype: int
    qclass: int = DNSClass.IN

    def storage_size(self) -> int:
        return _name_size(self.domain) + _QR_HEAD


@dataclass(frozen=True)
class ResourceRecord:
    """A record of the answer, authority, additional or option section.

    For option records ``rtype`` holds the option code.
    """

    section: Section
    rtype: int
    domain: str
    ttl: int
    value: RecordValue

    def _is_option(self, code: OptCode) -> bool:
        return self.section is Section.OPT and self.rtype == code

    def as_address(self) -> bytes:
        """Address bytes of an A or AAAA record."""
        if self.section is Section.OPT or self.rtype not in _ADDRESS_TYPES:
            raise PacketError(f"record of type {self.rtype} holds no address")
        return bytes(self.value)

    def as_domain(self) -> str:
        """Target name of a CNAME, PTR or NS record."""
        if self.section is Section.OPT or self.rtype not in _NAME_TYPES:
            raise PacketError(f"record of type {self.rtype} holds no domain name")
        return str(self.value)

    def as_soa(self) -> SOA:
        """Copy of the data of an SOA record."""
        if self.section is Section.OPT or self.rtype != RRType.SOA:
            raise PacketError(f"record of type {self.rtype} holds no SOA data")
        return dataclasses.replace(self.value)

    def as_ecs(self) -> ECS:
        """Copy of a client-subnet option."""
        if not self._is_option(OptCode.ECS):
            raise PacketError("record is not a client-subnet option")
        return dataclasses.replace(self.value)

    def as_tcp_keepalive(self) -> int:
        """Timeout of a TCP keepalive option; 0 when none was given."""
        if not self._is_option(OptCode.TCP_KEEPALIVE):
            raise PacketError("record is not a TCP keepalive option")
        return int(self.value)

    def rdata_size(self) -> int:
        """Size of the record data as the packet stores it."""
        if self.section is Section.OPT:
            if self.rtype == OptCode.ECS:
                return _OPT_HEAD + 4 + len(self.value.address_bytes())
            return _OPT_HEAD + (2 if self.value else 0)
        if self.rtype in _ADDRESS_TYPES:
            return len(self.value)
        if self.rtype in _NAME_TYPES:
            return _name_size(self.value)
        if self.rtype == RRType.SOA:
            return _name_size(self.value.mname) + _name_size(self.value.rname) + _SOA_FIXED
        return len(bytes(self.value))

    def storage_size(self) -> int:
        return _name_size(self.domain) + _RR_HEAD + self.rdata_size()


class Packet:
    """A DNS message under construction or after decoding.

    ``size`` bounds how much record data the packet may hold; adding past
    it raises :class:`PacketError`.
    """

    def __init__(self, header: Header | None = None, size: int = PACKSIZE) -> None:
        if size < _PACKET_OVERHEAD:
            raise PacketError(f"packet size {size} is too small")
        self.header = dataclasses.replace(header) if header is not None else Header()
        self.size = size
        self.payload_size = 0
        self._questions: list[Question] = []
        self._records: dict[Section, list[ResourceRecord]] = {
            section: [] for section in Section if section is not Section.QD
        }
        self._used = 0

    @property
    def used(self) -> int:
        """Bytes of the size budget taken by stored entries."""
        return self._used

    def _reserve(self, cost: int) -> None:
        if self._used + cost > self.size - _PACKET_OVERHEAD - _RR_OVERHEAD:
            raise PacketError("packet is full")
        self._used += cost + _RR_OVERHEAD

    def questions(self) -> list[Question]:
        """Questions in the order they were added."""
        return list(self._questions)

    def records(self, section: Section) -> list[ResourceRecord]:
        """Records of one section in the order they were added."""
        section = Section(section)
        if section is Section.QD:
            raise PacketError("the question section holds questions, not records")
        return list(self._records[section])

    def add_domain(self, domain: str, qtype: int, qclass: int = DNSClass.IN) -> Question:
        """Add a question."""
        question = Question(_check_name(domain), int(qtype), int(qclass))
        self._reserve(question.storage_size())
        self._questions.append(question)
        return question

    def _add(self, section: Section, rtype: int, domain: str, ttl: int, value: RecordValue) -> ResourceRecord:
        section = Section(section)
        if section not in _ANSWER_SECTIONS:
            raise PacketError(f"records cannot be added to section {section.name}")
        record = ResourceRecord(section, rtype, _check_name(domain), int(ttl), value)
        self._reserve(record.storage_size())
        self._records[section].append(record)
        return record

    def _add_address(self, section: Section, rtype: RRType, domain: str, ttl: int, addr: bytes, length: int) -> ResourceRecord:
        addr = bytes(addr)
        if len(addr) != length:
            raise PacketError(f"{rtype.name} address must be {length} bytes, got {len(addr)}")
        return self._add(section, rtype, domain, ttl, addr)

    def add_a(self, section: Section, domain: str, ttl: int, addr: bytes) -> ResourceRecord:
        """Add an IPv4 address record."""
        return self._add_address(section, RRType.A, domain, ttl, addr, RR_A_LEN)

    def add_aaaa(self, section: Section, domain: str, ttl: int, addr: bytes) -> ResourceRecord:
        """Add an IPv6 address record."""
        return self._add_address(section, RRType.AAAA, domain, ttl, addr, RR_AAAA_LEN)

    def add_cname(self, section: Section, domain: str, ttl: int, cname: str) -> ResourceRecord:
        """Add a canonical-name record."""
        return self._add(section, RRType.CNAME, domain, ttl, _check_name(cname))

    def add_ptr(self, section: Section, domain: str, ttl: int, name: str) -> ResourceRecord:
        """Add a pointer record."""
        return self._add(section, RRType.PTR, domain, ttl, _check_name(name))

    def add_ns(self, section: Section, domain: str, ttl: int, name: str) -> ResourceRecord:
        """Add a name-server record."""
        return self._add(section, RRType.NS, domain, ttl, _check_name(name))

    def add_soa(self, section: Section, domain: str, ttl: int, soa: SOA) -> ResourceRecord:
        """Add a start-of-authority record."""
        _check_name(soa.mname)
        _check_name(soa.rname)
        return self._add(section, RRType.SOA, domain, ttl, dataclasses.replace(soa))

    def _add_option(self, code: OptCode, value: RecordValue) -> ResourceRecord:
        record = ResourceRecord(Section.OPT, code, "", 0, value)
        self._reserve(record.storage_size())
        self._records[Section.OPT].append(record)
        return record

    def add_opt_ecs(self, ecs: ECS) -> ResourceRecord:
        """Add a client-subnet option."""
        addr = ecs.address_bytes()
        return self._add_option(OptCode.ECS, dataclasses.replace(ecs, addr=addr))

    def add_opt_tcp_keepalive(self, timeout: int) -> ResourceRecord:
        """Add a TCP keepalive option; a timeout of 0 carries no data."""
        if not 0 <= timeout <= 0xFFFF:
            raise PacketError(f"keepalive timeout {timeout} is out of range")
        return self._add_option(OptCode.TCP_KEEPALIVE, int(timeout))

    def set_payload_size(self, payload_size: int) -> None:
        """Set the advertised UDP payload size, at least 512."""
        self.payload_size = max(int(payload_size), DEFAULT_PACKET_SIZE)