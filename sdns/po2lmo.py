"""Conversion of gettext PO files into LMO archives."""

from __future__ import annotations

import enum
import itertools
import os
import struct
import sys
from collections.abc import Iterable, Iterator
from pathlib import Path

from .lmo import LmoEntry, sfh_hash

_ENTRY = struct.Struct(">IIII")
_TRAILER = struct.Struct(">I")


class PoSyntaxError(ValueError):
    """Raised when a PO file cannot be parsed."""


class _State(enum.IntEnum):
    IDLE = 0
    EMPTY_MSGID = 1
    MSGID = 2
    MSGSTR = 3
    DONE = 4


def extract_string(src: str) -> str | None:
    """Return the quoted text of a PO line, or None if it has no quote.

    Only ``\\"`` and ``\\\\`` are unescaped; other escapes stay as written.
    """
    start = src.find('"')
    if start < 0:
        return None

    out: list[str] = []
    escaped = False
    for ch in src[start + 1:]:
        if escaped:
            if ch in '"\\':
                out[-1] = ch
            else:
                out.append(ch)
            escaped = False
        elif ch == "\\":
            out.append(ch)
            escaped = True
        elif ch == '"':
            break
        else:
            out.append(ch)
    return "".join(out)


def parse_po(lines: Iterable[str]) -> Iterator[tuple[str, str]]:
    """Yield ``(msgid, msgstr)`` pairs where both are non-empty."""
    state = _State.IDLE
    key = val = ""

    for line in itertools.chain(lines, [None]):
        if line is None:
            if state < _State.MSGID:
                break
            line = ""

        if state is _State.IDLE and line.startswith('msgid "'):
            text = extract_string(line)
            if text is None:
                raise PoSyntaxError("Syntax error in msgid")
            key = text
            state = _State.MSGID if text else _State.EMPTY_MSGID
        elif state in (_State.EMPTY_MSGID, _State.MSGID):
            text = extract_string(line)
            if state is _State.MSGID or line.startswith('msgstr "'):
                if text is None:
                    state = _State.DONE
                else:
                    val = text
                    state = _State.MSGSTR
            elif text is None:
                state = _State.MSGID
            else:
                key += text
        elif state is _State.MSGSTR:
            text = extract_string(line)
            if text is None:
                state = _State.DONE
            else:
                val += text

        if state is _State.DONE:
            if key and val:
                yield key, val
            state = _State.IDLE
            key = val = ""


def _encode(text: str | bytes) -> bytes:
    return text.encode("utf-8", "surrogateescape") if isinstance(text, str) else bytes(text)


def build_lmo(pairs: Iterable[tuple[str, str]]) -> bytes:
    """Build archive bytes from pairs; empty bytes when nothing is stored."""
    values = bytearray()
    entries: list[LmoEntry] = []
    for key, val in pairs:
        key_bytes, val_bytes = _encode(key), _encode(val)
        if not key_bytes or not val_bytes:
            continue
        key_id, val_id = sfh_hash(key_bytes), sfh_hash(val_bytes)
        if key_id == val_id:
            continue
        entries.append(LmoEntry(key_id, val_id, len(values), len(val_bytes)))
        values += val_bytes + bytes(-len(val_bytes) % 4)

    if not entries:
        return b""

    entries.sort(key=lambda entry: entry.key_id)
    index = b"".join(
        _ENTRY.pack(e.key_id, e.val_id, e.offset, e.length) for e in entries
    )
    return bytes(values) + index + _TRAILER.pack(len(values))


def convert(input_path: str | os.PathLike, output_path: str | os.PathLike) -> bool:
    """Convert a PO file; return whether an output file was written."""
    with open(input_path, encoding="utf-8", errors="surrogateescape", newline="") as src:
        data = build_lmo(parse_po(src))

    output = Path(output_path)
    if data:
        output.write_bytes(data)
        return True
    output.unlink(missing_ok=True)
    return False


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point: ``po2lmo input.po output.lmo``."""
    args = sys.argv[1:] if argv is None else list(argv)
    usage = "Usage: po2lmo input.po output.lmo"
    if len(args) != 2:
        print(usage, file=sys.stderr)
        return 1
    try:
        convert(args[0], args[1])
    except PoSyntaxError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except OSError:
        print(usage, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())