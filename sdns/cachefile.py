"""Saving a :class:`~sdns.cache.DNSCache` to disk and loading it back."""

from __future__ import annotations

import enum
import os
import struct
from pathlib import Path

from .cache import CacheAddr, CacheEntry, CachePacket, CacheType, DNSCache
from .defs import MAX_CNAME_LEN, RR_AAAA_LEN

MAGIC_NUMBER = 0x6548634163536E44
MAGIC_CACHE_DATA = 0x44615461
CACHE_VERSION = "sdns-cache-1"
VERSION_LEN = 32
MAX_DATA_SIZE = 1024 * 8

_MASK32 = 0xFFFFFFFF

# magic, version, number of records
FILE_HEADER = struct.Struct(">Q32sI")
# magic, record type, domain, ttl, hitnum, speed, hitnum step, insert time, qtype
RECORD_HEADER = struct.Struct(">IB256siiiiqi")
# cache flag, cache type, data size
DATA_HEADER = struct.Struct(">IBI")
# cname ttl, soa, address length, cname, address
_ADDR_DATA = struct.Struct(">IBB256s16s")


class CacheFileError(Exception):
    """Raised when a cache file cannot be written or read back."""


class _RecordType(enum.IntEnum):
    ACTIVE = 0
    INACTIVE = 1


def _pack_name(name: str) -> bytes:
    return name.encode("utf-8")[:MAX_CNAME_LEN - 1]


def _unpack_name(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", "replace")


def _encode_data(data: CacheAddr | CachePacket) -> tuple[int, int, bytes]:
    if isinstance(data, CachePacket):
        return data.cache_flag, CacheType.PACKET, data.data
    body = _ADDR_DATA.pack(
        data.cname_ttl & _MASK32,
        int(bool(data.soa)),
        len(data.addr),
        _pack_name(data.cname),
        bytes(data.addr),
    )
    return data.cache_flag, data.cache_type, body


def _decode_data(flag: int, cache_type: int, body: bytes) -> CacheAddr | CachePacket:
    try:
        kind = CacheType(cache_type)
    except ValueError as exc:
        raise CacheFileError(f"unknown cache data type {cache_type}") from exc

    if kind is CacheType.PACKET:
        try:
            return CachePacket(flag, body)
        except ValueError as exc:
            raise CacheFileError(str(exc)) from exc

    if len(body) != _ADDR_DATA.size:
        raise CacheFileError("address data has the wrong size")
    cname_ttl, soa, addr_len, cname, addr = _ADDR_DATA.unpack(body)
    if addr_len > RR_AAAA_LEN:
        raise CacheFileError(f"address length {addr_len} is invalid")
    return CacheAddr(
        cache_flag=flag,
        cache_type=kind,
        cname=_unpack_name(cname),
        cname_ttl=cname_ttl,
        soa=bool(soa),
        addr=addr[:addr_len],
    )


def _encode_entry(entry: CacheEntry, record_type: _RecordType) -> bytes:
    flag, cache_type, body = _encode_data(entry.data)
    if len(body) > MAX_DATA_SIZE:
        raise CacheFileError(f"cache data for {entry.domain!r} is too large")
    head = RECORD_HEADER.pack(
        MAGIC_CACHE_DATA,
        record_type,
        _pack_name(entry.domain),
        entry.ttl,
        entry.hitnum,
        entry.speed,
        entry.hitnum_update_add,
        entry.insert_time,
        int(entry.qtype),
    )
    return head + DATA_HEADER.pack(flag & _MASK32, int(cache_type), len(body)) + body


def save_cache(cache: DNSCache, path: str | os.PathLike) -> int:
    """Write every entry to ``path``, newest first; return how many were written."""
    records = bytearray()
    count = 0
    for record_type, inactive in ((_RecordType.ACTIVE, False), (_RecordType.INACTIVE, True)):
        for entry in reversed(cache.entries(inactive)):
            records += _encode_entry(entry, record_type)
            count += 1

    version = CACHE_VERSION.encode("ascii")[:VERSION_LEN - 1]
    head = FILE_HEADER.pack(MAGIC_NUMBER, version, count)
    try:
        Path(path).write_bytes(head + bytes(records))
    except OSError as exc:
        raise CacheFileError(f"cannot write cache file {os.fspath(path)}: {exc}") from exc
    return count


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def take(self, count: int, what: str) -> bytes:
        if len(self.data) - self.pos < count:
            raise CacheFileError(f"cache file is truncated in {what}")
        chunk = self.data[self.pos:self.pos + count]
        self.pos += count
        return chunk

    def unpack(self, fmt: struct.Struct, what: str) -> tuple:
        return fmt.unpack(self.take(fmt.size, what))


def load_cache(cache: DNSCache, path: str | os.PathLike) -> int:
    """Restore entries saved by :func:`save_cache`; return how many were loaded.

    A missing or unreadable file loads nothing and is not an error.
    """
    try:
        data = Path(path).read_bytes()
    except OSError:
        return 0

    reader = _Reader(data)
    magic, version, number = reader.unpack(FILE_HEADER, "file header")
    if magic != MAGIC_NUMBER:
        raise CacheFileError("cache file is invalid")
    if _unpack_name(version) != CACHE_VERSION:
        raise CacheFileError("cache version is different")

    loaded = 0
    for _ in range(number):
        (rmagic, rtype, domain, ttl, hitnum, speed, step, insert_time, qtype) = reader.unpack(
            RECORD_HEADER, "record header"
        )
        if rmagic != MAGIC_CACHE_DATA:
            raise CacheFileError("record magic is invalid")
        flag, cache_type, size = reader.unpack(DATA_HEADER, "data header")
        if size > MAX_DATA_SIZE:
            raise CacheFileError("record data may be invalid")
        body = reader.take(size, "record data")
        entry = CacheEntry(
            domain=_unpack_name(domain),
            qtype=qtype,
            ttl=ttl,
            data=_decode_data(flag, cache_type, body),
            speed=speed,
            hitnum=hitnum,
            hitnum_update_add=step,
            insert_time=insert_time,
        )
        cache.restore(entry, inactive=rtype != _RecordType.ACTIVE)
        loaded += 1
    return loaded