"""Jenkins hash (lookup3 variant) over bytes and 32-bit words."""

from __future__ import annotations

import struct
from collections.abc import Sequence

JHASH_INITVAL = 0xDEADBEEF
_MASK = 0xFFFFFFFF
_BLOCK = struct.Struct("<3I")


def rol32(word: int, shift: int) -> int:
    """Rotate a 32-bit value left by ``shift`` bits."""
    word &= _MASK
    return ((word << shift) | (word >> ((-shift) & 31))) & _MASK


def _mix(a: int, b: int, c: int) -> tuple[int, int, int]:
    a = ((a - c) & _MASK) ^ rol32(c, 4)
    c = (c + b) & _MASK
    b = ((b - a) & _MASK) ^ rol32(a, 6)
    a = (a + c) & _MASK
    c = ((c - b) & _MASK) ^ rol32(b, 8)
    b = (b + a) & _MASK
    a = ((a - c) & _MASK) ^ rol32(c, 16)
    c = (c + b) & _MASK
    b = ((b - a) & _MASK) ^ rol32(a, 19)
    a = (a + c) & _MASK
    c = ((c - b) & _MASK) ^ rol32(b, 4)
    b = (b + a) & _MASK
    return a, b, c


def _final(a: int, b: int, c: int) -> int:
    c = ((c ^ b) - rol32(b, 14)) & _MASK
    a = ((a ^ c) - rol32(c, 11)) & _MASK
    b = ((b ^ a) - rol32(a, 25)) & _MASK
    c = ((c ^ b) - rol32(b, 16)) & _MASK
    a = ((a ^ c) - rol32(c, 4)) & _MASK
    b = ((b ^ a) - rol32(a, 14)) & _MASK
    c = ((c ^ b) - rol32(b, 24)) & _MASK
    return c


def jhash(key: bytes, initval: int = 0) -> int:
    """Hash an arbitrary byte string; words are read little-endian."""
    key = bytes(key)
    length = len(key)
    a = b = c = (JHASH_INITVAL + length + initval) & _MASK

    pos = 0
    while length - pos > 12:
        x, y, z = _BLOCK.unpack_from(key, pos)
        a, b, c = _mix((a + x) & _MASK, (b + y) & _MASK, (c + z) & _MASK)
        pos += 12

    tail = key[pos:]
    if not tail:
        return c
    x, y, z = _BLOCK.unpack(tail.ljust(12, b"\0"))
    return _final((a + x) & _MASK, (b + y) & _MASK, (c + z) & _MASK)


def jhash2(words: Sequence[int], initval: int = 0) -> int:
    """Hash a sequence of 32-bit words."""
    words = [w & _MASK for w in words]
    length = len(words)
    a = b = c = (JHASH_INITVAL + (length << 2) + initval) & _MASK

    pos = 0
    while length - pos > 3:
        x, y, z = words[pos:pos + 3]
        a, b, c = _mix((a + x) & _MASK, (b + y) & _MASK, (c + z) & _MASK)
        pos += 3

    tail = words[pos:]
    if not tail:
        return c
    x, y, z = tail + [0] * (3 - len(tail))
    return _final((a + x) & _MASK, (b + y) & _MASK, (c + z) & _MASK)


def _jhash_nwords(a: int, b: int, c: int, initval: int) -> int:
    initval &= _MASK
    return _final((a + initval) & _MASK, (b + initval) & _MASK, (c + initval) & _MASK)


def jhash_3words(a: int, b: int, c: int, initval: int = 0) -> int:
    """Hash exactly three 32-bit words."""
    return _jhash_nwords(a, b, c, initval + JHASH_INITVAL + (3 << 2))


def jhash_2words(a: int, b: int, initval: int = 0) -> int:
    """Hash exactly two 32-bit words."""
    return _jhash_nwords(a, b, 0, initval + JHASH_INITVAL + (2 << 2))


def jhash_1word(a: int, initval: int = 0) -> int:
    """Hash a single 32-bit word."""
    return _jhash_nwords(a, 0, 0, initval + JHASH_INITVAL + (1 << 2))