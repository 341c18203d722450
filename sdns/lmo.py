"""LMO translation archives: hashing, lookup and per-language catalogs."""

from __future__ import annotations

import fnmatch
import os
import struct
from bisect import bisect_left
from dataclasses import dataclass
from pathlib import Path

_MASK = 0xFFFFFFFF
_WHITESPACE = frozenset(b" \t\n\v\f\r")
_CANON_LIMIT = 4096
_ENTRY = struct.Struct(">IIII")
_TRAILER = struct.Struct(">I")
_LANG_LEN = 5


def _as_bytes(data: bytes | str) -> bytes:
    return data.encode("utf-8", "surrogateescape") if isinstance(data, str) else bytes(data)


def _signed(byte: int) -> int:
    # Tail bytes are read as plain (signed) char.
    return byte - 256 if byte >= 128 else byte


def sfh_hash(data: bytes | str) -> int:
    """Compute the SuperFastHash of ``data``; empty input hashes to 0."""
    data = _as_bytes(data)
    size = len(data)
    if size == 0:
        return 0

    h = size & _MASK
    rem = size & 3
    body = size - rem

    for low, high in struct.iter_unpack("<HH", data[:body]):
        h = (h + low) & _MASK
        tmp = ((high << 11) ^ h) & _MASK
        h = ((h << 16) ^ tmp) & _MASK
        h = (h + (h >> 11)) & _MASK

    tail = data[body:]
    if rem == 3:
        h = (h + struct.unpack_from("<H", tail)[0]) & _MASK
        h ^= (h << 16) & _MASK
        h ^= (_signed(tail[2]) << 18) & _MASK
        h = (h + (h >> 11)) & _MASK
    elif rem == 2:
        h = (h + struct.unpack_from("<H", tail)[0]) & _MASK
        h ^= (h << 11) & _MASK
        h = (h + (h >> 17)) & _MASK
    elif rem == 1:
        h = (h + _signed(tail[0])) & _MASK
        h ^= (h << 10) & _MASK
        h = (h + (h >> 1)) & _MASK

    h ^= (h << 3) & _MASK
    h = (h + (h >> 5)) & _MASK
    h ^= (h << 4) & _MASK
    h = (h + (h >> 17)) & _MASK
    h ^= (h << 25) & _MASK
    h = (h + (h >> 6)) & _MASK
    return h


def canon_hash(text: bytes | str) -> int:
    """Hash ``text`` after collapsing whitespace runs and trimming the ends."""
    data = _as_bytes(text)
    if len(data) >= _CANON_LIMIT:
        return 0

    out = bytearray()
    prev_space = True
    for byte in data:
        if byte in _WHITESPACE:
            if not prev_space:
                out.append(0x20)
            prev_space = True
        else:
            out.append(byte)
            prev_space = False

    if out and out[-1] == 0x20:
        del out[-1]
    return sfh_hash(bytes(out))


@dataclass(frozen=True)
class LmoEntry:
    """One index entry of an archive."""

    key_id: int
    val_id: int
    offset: int
    length: int


class Archive:
    """A loaded LMO archive: value data followed by a sorted index."""

    def __init__(self, data: bytes, entries: list[LmoEntry], path: str | None = None):
        self._data = data
        self.entries: tuple[LmoEntry, ...] = tuple(entries)
        self._keys = [entry.key_id for entry in self.entries]
        self.path = path

    @classmethod
    def from_bytes(cls, data: bytes) -> Archive:
        """Parse an archive held in memory; raise ValueError if malformed."""
        data = bytes(data)
        size = len(data)
        if size < _TRAILER.size:
            raise ValueError("archive is too short")
        (idx_offset,) = _TRAILER.unpack_from(data, size - _TRAILER.size)
        if idx_offset >= size or idx_offset > size - _TRAILER.size:
            raise ValueError("archive index offset is out of range")
        count = (size - idx_offset - _TRAILER.size) // _ENTRY.size
        index = data[idx_offset:idx_offset + count * _ENTRY.size]
        entries = [LmoEntry(*fields) for fields in _ENTRY.iter_unpack(index)]
        return cls(data, entries)

    @classmethod
    def open(cls, path: str | os.PathLike) -> Archive:
        """Load an archive from a file."""
        archive = cls.from_bytes(Path(path).read_bytes())
        archive.path = os.fspath(path)
        return archive

    def find(self, key_hash: int) -> LmoEntry | None:
        """Return the index entry for ``key_hash``, or None."""
        pos = bisect_left(self._keys, key_hash)
        if pos < len(self._keys) and self._keys[pos] == key_hash:
            return self.entries[pos]
        return None

    def lookup(self, key_hash: int) -> bytes | None:
        """Return the translated value stored under ``key_hash``, or None."""
        entry = self.find(key_hash)
        if entry is None:
            return None
        return self._data[entry.offset:entry.offset + entry.length]

    def close(self) -> None:
        """Release the archive contents."""
        self._data = b""
        self.entries = ()
        self._keys = []

    def __enter__(self) -> Archive:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class CatalogRegistry:
    """Per-language collections of archives, one of them active."""

    def __init__(self) -> None:
        self._catalogs: dict[str, list[Archive]] = {}
        self.active: str | None = None

    @property
    def languages(self) -> list[str]:
        return list(self._catalogs)

    def load_catalog(self, lang: str, directory: str | os.PathLike) -> None:
        """Load every ``*.<lang>.lmo`` archive in ``directory`` as a catalog."""
        try:
            self.change_catalog(lang)
            return
        except KeyError:
            pass

        if directory is None:
            raise ValueError("no catalog directory given")

        pattern = f"*.{lang}.lmo"
        archives: list[Archive] = []
        for name in sorted(os.listdir(directory)):
            if not fnmatch.fnmatchcase(name, pattern):
                continue
            try:
                archive = Archive.open(os.path.join(directory, name))
            except (OSError, ValueError):
                continue
            archives.insert(0, archive)

        key = lang[:_LANG_LEN]
        self._catalogs[key] = archives
        if self.active is None:
            self.active = key

    def change_catalog(self, lang: str) -> None:
        """Make a loaded catalog active; raise KeyError if it is not loaded."""
        if lang not in self._catalogs:
            raise KeyError(lang)
        self.active = lang

    def translate(self, key: bytes | str) -> bytes | None:
        """Look ``key`` up in the active catalog; None when untranslated."""
        if self.active is None:
            raise LookupError("no active catalog")
        key_hash = canon_hash(key)
        for archive in self._catalogs[self.active]:
            value = archive.lookup(key_hash)
            if value is not None:
                return value
        return None

    def close_catalog(self, lang: str) -> None:
        """Unload a catalog and close its archives."""
        archives = self._catalogs.pop(lang, None)
        if archives is None:
            return
        for archive in archives:
            archive.close()
        if self.active == lang:
            self.active = None