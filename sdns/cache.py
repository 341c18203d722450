"""In-memory cache of DNS answers with active and inactive lists."""

from __future__ import annotations

import enum
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field

from .defs import MAX_CNAME_LEN, RR_A_LEN, RR_AAAA_LEN

CACHE_TTL_MIN = 30
CACHE_MAX_HITNUM = 5000
CACHE_HITNUM_STEP = 2
CACHE_HITNUM_STEP_MAX = 6
_INITIAL_HITNUM = 3

_Key = tuple[str, int]


def _clip_name(name: str) -> str:
    return name[:MAX_CNAME_LEN - 1]


class CacheType(enum.IntEnum):
    NONE = 0
    ADDR = 1
    PACKET = 2


@dataclass
class CacheAddr:
    """Cached address answer, optionally with a CNAME or marked as SOA."""

    cache_flag: int = 0
    cache_type: CacheType = CacheType.NONE
    cname: str = ""
    cname_ttl: int = 0
    soa: bool = False
    addr: bytes = b""

    def set_addr(self, cache_flag: int, cname: str | None, cname_ttl: int, addr: bytes) -> None:
        """Store an IPv4 or IPv6 address; other lengths raise ValueError."""
        addr = bytes(addr)
        if len(addr) not in (RR_A_LEN, RR_AAAA_LEN):
            raise ValueError(f"invalid address length {len(addr)}")
        self.addr = addr
        if cname is not None:
            self.cname = _clip_name(cname)
            self.cname_ttl = cname_ttl
        self.cache_flag = cache_flag
        self.cache_type = CacheType.ADDR

    def set_soa(self, cache_flag: int, cname: str | None, cname_ttl: int) -> None:
        """Mark the data as a negative (SOA) answer."""
        self.addr = b""
        if cname is not None:
            self.cname = _clip_name(cname)
            self.cname_ttl = cname_ttl
        self.cache_flag = cache_flag
        self.soa = True
        self.cache_type = CacheType.ADDR


@dataclass
class CachePacket:
    """Cached raw packet."""

    cache_flag: int
    data: bytes
    cache_type: CacheType = field(default=CacheType.PACKET, init=False)

    def __post_init__(self) -> None:
        self.data = bytes(self.data)
        if not self.data:
            raise ValueError("packet data is empty")


CacheData = CacheAddr | CachePacket


@dataclass(eq=False)
class CacheEntry:
    """One cached answer with its bookkeeping."""

    domain: str
    qtype: int
    ttl: int
    data: CacheData
    speed: int = 0
    hitnum: int = _INITIAL_HITNUM
    hitnum_update_add: int = CACHE_HITNUM_STEP
    insert_time: int = 0
    del_pending: bool = False

    @property
    def key(self) -> _Key:
        return (self.domain, int(self.qtype))


class DNSCache:
    """Bounded cache of answers keyed by domain and query type."""

    def __init__(
        self,
        size: int,
        enable_inactive: bool = False,
        inactive_list_expired: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.size = size
        self.enable_inactive = bool(enable_inactive)
        self.inactive_list_expired = inactive_list_expired
        self._clock = clock
        self._active: OrderedDict[_Key, CacheEntry] = OrderedDict()
        self._inactive: OrderedDict[_Key, CacheEntry] = OrderedDict()
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._active) + len(self._inactive)

    def _now(self) -> int:
        return int(self._clock())

    def _find(self, key: _Key) -> CacheEntry | None:
        return self._active.get(key) or self._inactive.get(key)

    def _unlink(self, entry: CacheEntry) -> bool:
        for table in (self._active, self._inactive):
            if table.get(entry.key) is entry:
                del table[entry.key]
                return True
        return False

    def _add(self, entry: CacheEntry, inactive: bool) -> CacheEntry:
        existing = self.lookup(entry.domain, entry.qtype)
        with self._lock:
            if existing is not None:
                self._unlink(existing)
            table = self._inactive if inactive else self._active
            table[entry.key] = entry
            if len(self) > self.size:
                victims = self._inactive or self._active
                if victims:
                    victims.popitem(last=False)
        return entry

    def insert(self, domain: str, ttl: int, qtype: int, speed: int, data: CacheData) -> CacheEntry | None:
        """Add an answer; returns None when the cache is disabled."""
        if data is None or domain is None:
            raise ValueError("domain and data are required")
        if self.size <= 0:
            return None
        entry = CacheEntry(
            domain=_clip_name(domain),
            qtype=qtype,
            ttl=max(ttl, CACHE_TTL_MIN),
            data=data,
            speed=speed,
            insert_time=self._now(),
        )
        return self._add(entry, inactive=False)

    def replace(self, domain: str, ttl: int, qtype: int, speed: int, data: CacheData) -> CacheEntry | None:
        """Update an existing answer in place, or insert it."""
        if self.size <= 0:
            return None
        entry = self.lookup(domain, qtype)
        if entry is None:
            return self.insert(domain, ttl, qtype, speed, data)
        with self._lock:
            entry.del_pending = False
            entry.ttl = max(ttl, CACHE_TTL_MIN)
            entry.qtype = qtype
            entry.speed = speed
            entry.insert_time = self._now()
            entry.data = data
            self._unlink(entry)
            self._active[entry.key] = entry
        return entry

    def lookup(self, domain: str, qtype: int) -> CacheEntry | None:
        """Return the cached entry, dropping it if expired and inactive is off."""
        if self.size <= 0:
            return None
        now = self._now()
        with self._lock:
            entry = self._find((_clip_name(domain), int(qtype)))
            if entry is None:
                return None
            if not self.enable_inactive and now - entry.insert_time > entry.ttl:
                self._unlink(entry)
                return None
            return entry

    def delete(self, entry: CacheEntry) -> None:
        """Remove an entry from the cache."""
        with self._lock:
            self._unlink(entry)

    def get_ttl(self, entry: CacheEntry) -> int:
        """Seconds left before the entry expires, never negative."""
        return max(0, entry.insert_time + entry.ttl - self._now())

    def is_soa(self, entry: CacheEntry | None) -> bool:
        """Whether the entry holds a negative (SOA) address answer."""
        if entry is None:
            return False
        data = entry.data
        return isinstance(data, CacheAddr) and data.cache_type is CacheType.ADDR and data.soa

    def hitnum_dec_get(self, entry: CacheEntry) -> int:
        """Decrease the hit counter and return its new value."""
        with self._lock:
            entry.hitnum -= 1
            if entry.hitnum_update_add > CACHE_HITNUM_STEP:
                entry.hitnum_update_add -= 1
            return entry.hitnum

    def update(self, entry: CacheEntry) -> None:
        """Record a hit: move to the newest position and raise the counter."""
        with self._lock:
            if not self._unlink(entry):
                return
            self._active[entry.key] = entry
            entry.hitnum = min(entry.hitnum + entry.hitnum_update_add, CACHE_MAX_HITNUM)
            if entry.hitnum_update_add < CACHE_HITNUM_STEP_MAX:
                entry.hitnum_update_add += 1

    def invalidate(self, callback: Callable[[CacheEntry], None] | None = None, ttl_pre: int = 0) -> None:
        """Expire entries and call ``callback`` on those about to expire."""
        if self.size <= 0:
            return
        now = self._now()
        pending: list[CacheEntry] = []
        with self._lock:
            for entry in list(self._active.values()):
                ttl = entry.insert_time + entry.ttl - now
                if 0 < ttl < ttl_pre and callback is not None and not entry.del_pending:
                    entry.del_pending = True
                    pending.append(entry)
                    continue
                if ttl < 0:
                    del self._active[entry.key]
                    if self.enable_inactive and not self.is_soa(entry):
                        self._inactive[entry.key] = entry
            if self.enable_inactive and self.inactive_list_expired != 0:
                self._remove_expired(now)

        for entry in pending:
            callback(entry)

    def _remove_expired(self, now: int) -> None:
        for entry in list(self._inactive.values()):
            ttl = entry.insert_time + entry.ttl - now
            if ttl > 0 or self.inactive_list_expired + ttl > 0:
                continue
            del self._inactive[entry.key]

    def entries(self, inactive: bool = False) -> list[CacheEntry]:
        """Entries of the active or inactive list, oldest first."""
        with self._lock:
            table = self._inactive if inactive else self._active
            return list(table.values())

    def restore(self, entry: CacheEntry, inactive: bool = False) -> CacheEntry:
        """Put a previously saved entry back, keeping its bookkeeping."""
        entry.domain = _clip_name(entry.domain)
        return self._add(entry, inactive=inactive)

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._active.clear()
            self._inactive.clear()