import pytest

from sdns.cache import (
    CACHE_HITNUM_STEP,
    CACHE_MAX_HITNUM,
    CACHE_TTL_MIN,
    CacheAddr,
    CacheEntry,
    CachePacket,
    CacheType,
    DNSCache,
)
from sdns.defs import RRType


class FakeClock:
    def __init__(self, now=1000):
        self.now = now

    def __call__(self):
        return self.now


def make_addr(addr=bytes([192, 0, 2, 1])):
    data = CacheAddr()
    data.set_addr(0, None, 0, addr)
    return data


@pytest.fixture
def clock():
    return FakeClock()


def test_insert_and_lookup(clock):
    cache = DNSCache(10, clock=clock)
    cache.insert("example.com", 300, RRType.A, 5, make_addr())
    entry = cache.lookup("example.com", RRType.A)
    assert entry.domain == "example.com"
    assert entry.ttl == 300
    assert entry.speed == 5
    assert entry.data.addr == bytes([192, 0, 2, 1])
    assert cache.lookup("example.com", RRType.AAAA) is None


def test_ttl_clamped_to_minimum(clock):
    cache = DNSCache(10, clock=clock)
    entry = cache.insert("example.com", 1, RRType.A, 0, make_addr())
    assert entry.ttl == CACHE_TTL_MIN
    assert cache.get_ttl(entry) == CACHE_TTL_MIN


def test_expired_entry_dropped(clock):
    cache = DNSCache(10, clock=clock)
    cache.insert("example.com", 60, RRType.A, 0, make_addr())
    clock.now += 61
    assert cache.lookup("example.com", RRType.A) is None
    assert len(cache) == 0


def test_expired_entry_kept_when_inactive_enabled(clock):
    cache = DNSCache(10, enable_inactive=True, clock=clock)
    entry = cache.insert("example.com", 60, RRType.A, 0, make_addr())
    clock.now += 100
    assert cache.lookup("example.com", RRType.A) is entry
    assert cache.get_ttl(entry) == 0


def test_disabled_cache(clock):
    cache = DNSCache(0, clock=clock)
    assert cache.insert("example.com", 60, RRType.A, 0, make_addr()) is None
    assert cache.lookup("example.com", RRType.A) is None
    assert len(cache) == 0


def test_insert_requires_data(clock):
    cache = DNSCache(10, clock=clock)
    with pytest.raises(ValueError):
        cache.insert("example.com", 60, RRType.A, 0, None)


def test_eviction_removes_oldest(clock):
    cache = DNSCache(2, clock=clock)
    for name in ("a.example.com", "b.example.com", "c.example.com"):
        cache.insert(name, 60, RRType.A, 0, make_addr())
    assert len(cache) == 2
    assert cache.lookup("a.example.com", RRType.A) is None
    assert [e.domain for e in cache.entries()] == ["b.example.com", "c.example.com"]


def test_insert_same_key_replaces(clock):
    cache = DNSCache(10, clock=clock)
    cache.insert("example.com", 60, RRType.A, 0, make_addr())
    second = cache.insert("example.com", 90, RRType.A, 0, make_addr(bytes([198, 51, 100, 1])))
    assert len(cache) == 1
    assert cache.lookup("example.com", RRType.A) is second


def test_replace_updates_in_place(clock):
    cache = DNSCache(10, clock=clock)
    first = cache.insert("example.com", 60, RRType.A, 0, make_addr())
    cache.insert("other.example.com", 60, RRType.A, 0, make_addr())
    clock.now += 10
    new_data = make_addr(bytes([198, 51, 100, 9]))
    result = cache.replace("example.com", 120, RRType.A, 7, new_data)
    assert result is first
    assert first.data is new_data
    assert first.insert_time == clock.now
    assert cache.entries()[-1] is first


def test_replace_inserts_when_missing(clock):
    cache = DNSCache(10, clock=clock)
    entry = cache.replace("example.com", 60, RRType.A, 0, make_addr())
    assert cache.lookup("example.com", RRType.A) is entry


def test_update_raises_hitnum_and_step(clock):
    cache = DNSCache(10, clock=clock)
    entry = cache.insert("example.com", 60, RRType.A, 0, make_addr())
    before, step = entry.hitnum, entry.hitnum_update_add
    assert step == CACHE_HITNUM_STEP
    cache.update(entry)
    assert entry.hitnum == before + step
    assert entry.hitnum_update_add == step + 1


def test_update_caps_hitnum(clock):
    cache = DNSCache(10, clock=clock)
    entry = cache.insert("example.com", 60, RRType.A, 0, make_addr())
    for _ in range(2000):
        cache.update(entry)
    assert entry.hitnum == CACHE_MAX_HITNUM


def test_hitnum_dec_get(clock):
    cache = DNSCache(10, clock=clock)
    entry = cache.insert("example.com", 60, RRType.A, 0, make_addr())
    cache.update(entry)
    hit = entry.hitnum
    assert cache.hitnum_dec_get(entry) == hit - 1
    assert entry.hitnum_update_add == CACHE_HITNUM_STEP


def test_invalidate_calls_callback_once(clock):
    cache = DNSCache(10, clock=clock)
    entry = cache.insert("example.com", 60, RRType.A, 0, make_addr())
    seen = []
    clock.now += 55
    cache.invalidate(seen.append, 10)
    cache.invalidate(seen.append, 10)
    assert seen == [entry]
    assert entry.del_pending


def test_invalidate_moves_expired_to_inactive(clock):
    cache = DNSCache(10, enable_inactive=True, clock=clock)
    entry = cache.insert("example.com", 60, RRType.A, 0, make_addr())
    soa = CacheAddr()
    soa.set_soa(0, None, 0)
    cache.insert("nx.example.com", 60, RRType.A, 0, soa)
    clock.now += 100
    cache.invalidate(None, 0)
    assert cache.entries(inactive=True) == [entry]
    assert cache.entries() == []


def test_invalidate_drops_expired_inactive(clock):
    cache = DNSCache(10, enable_inactive=True, inactive_list_expired=50, clock=clock)
    cache.insert("example.com", 60, RRType.A, 0, make_addr())
    clock.now += 100
    cache.invalidate(None, 0)
    assert len(cache) == 1
    clock.now += 20
    cache.invalidate(None, 0)
    assert len(cache) == 0


def test_delete(clock):
    cache = DNSCache(10, clock=clock)
    entry = cache.insert("example.com", 60, RRType.A, 0, make_addr())
    cache.delete(entry)
    assert cache.lookup("example.com", RRType.A) is None


def test_is_soa(clock):
    cache = DNSCache(10, clock=clock)
    soa = CacheAddr()
    soa.set_soa(3, "alias.example.com", 20)
    entry = cache.insert("example.com", 60, RRType.A, 0, soa)
    plain = cache.insert("b.example.com", 60, RRType.A, 0, make_addr())
    assert cache.is_soa(entry)
    assert not cache.is_soa(plain)
    assert not cache.is_soa(None)
    assert soa.cache_type is CacheType.ADDR and soa.cname == "alias.example.com"


def test_set_addr_rejects_bad_length():
    with pytest.raises(ValueError):
        CacheAddr().set_addr(0, None, 0, b"\x01\x02\x03")


def test_set_addr_ipv6():
    data = CacheAddr()
    data.set_addr(1, "alias.example.com", 40, bytes(range(16)))
    assert data.addr == bytes(range(16))
    assert data.cname_ttl == 40
    assert data.cache_type is CacheType.ADDR


def test_cache_packet():
    packet = CachePacket(2, b"\x00\x01")
    assert packet.cache_type is CacheType.PACKET
    with pytest.raises(ValueError):
        CachePacket(2, b"")


def test_restore_and_clear(clock):
    cache = DNSCache(10, clock=clock)
    entry = CacheEntry("example.com", RRType.A, 60, make_addr(), hitnum=42, insert_time=clock.now)
    cache.restore(entry, inactive=True)
    assert cache.entries(inactive=True) == [entry]
    assert cache.lookup("example.com", RRType.A).hitnum == 42
    cache.clear()
    assert len(cache) == 0