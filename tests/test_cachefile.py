import struct

import pytest

from sdns.cache import CacheAddr, CachePacket, CacheType, DNSCache
from sdns.cachefile import (
    DATA_HEADER,
    FILE_HEADER,
    MAGIC_NUMBER,
    MAX_DATA_SIZE,
    RECORD_HEADER,
    CacheFileError,
    load_cache,
    save_cache,
)


def _cache(size=10):
    return DNSCache(size, enable_inactive=True, clock=lambda: 1000.0)


def _addr(addr, cname=None):
    data = CacheAddr()
    data.set_addr(7, cname, 60, addr)
    return data


@pytest.fixture
def filled():
    cache = _cache()
    cache.insert("a.example.com", 300, 1, 12, _addr(b"\x01\x02\x03\x04", "alias.example.com"))
    cache.insert("b.example.com", 120, 28, 5, _addr(bytes(range(16))))
    cache.insert("c.example.com", 90, 1, 0, CachePacket(3, b"\x00\x01raw"))
    soa = CacheAddr()
    soa.set_soa(1, None, 0)
    cache.insert("d.example.com", 40, 1, 0, soa)
    return cache


def test_round_trip_restores_entries(filled, tmp_path):
    path = tmp_path / "cache.bin"
    assert save_cache(filled, path) == 4
    restored = _cache()
    assert load_cache(restored, path) == 4

    entry = restored.lookup("a.example.com", 1)
    assert entry.ttl == 300
    assert entry.speed == 12
    assert entry.insert_time == 1000
    assert entry.data == filled.lookup("a.example.com", 1).data

    assert restored.lookup("b.example.com", 28).data.addr == bytes(range(16))
    packet = restored.lookup("c.example.com", 1).data
    assert isinstance(packet, CachePacket)
    assert packet.data == b"\x00\x01raw"
    assert packet.cache_flag == 3
    assert restored.is_soa(restored.lookup("d.example.com", 1))


def test_load_reverses_list_order(filled, tmp_path):
    path = tmp_path / "cache.bin"
    save_cache(filled, path)
    restored = _cache()
    load_cache(restored, path)
    original = [e.domain for e in filled.entries()]
    assert [e.domain for e in restored.entries()] == original[::-1]


def test_inactive_entries_stay_inactive(tmp_path):
    cache = _cache()
    cache.insert("live.example.com", 100, 1, 0, _addr(b"\x0a\x00\x00\x01"))
    old = cache.insert("old.example.com", 100, 1, 0, _addr(b"\x0a\x00\x00\x02"))
    cache.delete(old)
    cache.restore(old, inactive=True)
    path = tmp_path / "cache.bin"
    save_cache(cache, path)

    restored = _cache()
    load_cache(restored, path)
    assert [e.domain for e in restored.entries(inactive=True)] == ["old.example.com"]
    assert [e.domain for e in restored.entries()] == ["live.example.com"]


def test_hit_counters_preserved(filled, tmp_path):
    entry = filled.lookup("a.example.com", 1)
    filled.update(entry)
    filled.update(entry)
    path = tmp_path / "cache.bin"
    save_cache(filled, path)
    restored = _cache()
    load_cache(restored, path)
    back = restored.lookup("a.example.com", 1)
    assert back.hitnum == entry.hitnum
    assert back.hitnum_update_add == entry.hitnum_update_add


def test_file_header_fields(filled, tmp_path):
    path = tmp_path / "cache.bin"
    save_cache(filled, path)
    data = path.read_bytes()
    assert data[:8] == struct.pack(">Q", MAGIC_NUMBER)
    magic, _version, count = FILE_HEADER.unpack_from(data)
    assert magic == 0x6548634163536E44
    assert count == 4


def test_empty_cache_round_trip(tmp_path):
    path = tmp_path / "cache.bin"
    assert save_cache(_cache(), path) == 0
    restored = _cache()
    assert load_cache(restored, path) == 0
    assert len(restored) == 0


def test_missing_file_loads_nothing(tmp_path):
    cache = _cache()
    assert load_cache(cache, tmp_path / "absent.bin") == 0
    assert len(cache) == 0


def test_bad_file_magic(filled, tmp_path):
    path = tmp_path / "cache.bin"
    save_cache(filled, path)
    data = bytearray(path.read_bytes())
    data[0] ^= 0xFF
    path.write_bytes(bytes(data))
    with pytest.raises(CacheFileError):
        load_cache(_cache(), path)


def test_version_mismatch(filled, tmp_path):
    path = tmp_path / "cache.bin"
    save_cache(filled, path)
    data = bytearray(path.read_bytes())
    data[8:40] = b"other".ljust(32, b"\0")
    path.write_bytes(bytes(data))
    with pytest.raises(CacheFileError):
        load_cache(_cache(), path)


def test_bad_record_magic(filled, tmp_path):
    path = tmp_path / "cache.bin"
    save_cache(filled, path)
    data = bytearray(path.read_bytes())
    data[FILE_HEADER.size] ^= 0xFF
    path.write_bytes(bytes(data))
    restored = _cache()
    with pytest.raises(CacheFileError):
        load_cache(restored, path)
    assert len(restored) == 0


def test_oversized_record_data(filled, tmp_path):
    path = tmp_path / "cache.bin"
    save_cache(filled, path)
    data = bytearray(path.read_bytes())
    offset = FILE_HEADER.size + RECORD_HEADER.size + 5
    data[offset:offset + 4] = struct.pack(">I", MAX_DATA_SIZE + 1)
    path.write_bytes(bytes(data))
    with pytest.raises(CacheFileError):
        load_cache(_cache(), path)


def test_truncated_file(filled, tmp_path):
    path = tmp_path / "cache.bin"
    save_cache(filled, path)
    data = path.read_bytes()
    path.write_bytes(data[:-3])
    restored = _cache()
    with pytest.raises(CacheFileError):
        load_cache(restored, path)
    assert len(restored) == 3


def test_unknown_data_type(filled, tmp_path):
    path = tmp_path / "cache.bin"
    save_cache(filled, path)
    data = bytearray(path.read_bytes())
    data[FILE_HEADER.size + RECORD_HEADER.size + 4] = 9
    path.write_bytes(bytes(data))
    with pytest.raises(CacheFileError):
        load_cache(_cache(), path)


def test_save_to_missing_directory(filled, tmp_path):
    with pytest.raises(CacheFileError):
        save_cache(filled, tmp_path / "no" / "such" / "cache.bin")


def test_load_respects_cache_size(filled, tmp_path):
    path = tmp_path / "cache.bin"
    save_cache(filled, path)
    small = _cache(size=2)
    assert load_cache(small, path) == 4
    assert len(small) == 2


def test_record_data_header_matches_type(filled, tmp_path):
    path = tmp_path / "cache.bin"
    save_cache(filled, path)
    data = path.read_bytes()
    _flag, cache_type, _size = DATA_HEADER.unpack_from(data, FILE_HEADER.size + RECORD_HEADER.size)
    newest = filled.entries()[-1]
    assert cache_type == newest.data.cache_type
    assert CacheType(cache_type) is CacheType.ADDR