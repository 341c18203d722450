# sdns

Building blocks for DNS forwarders and caches, in pure Python with no runtime dependencies.

## What is in the package

- `sdns.defs` holds the shared definitions:
  - the enums `Section`, `RRType`, `DNSClass`, `OptCode`, `Opcode` and `RCode`
  - the `Header`, `SOA` and `ECS` dataclasses
  - the `PacketError` exception
- `sdns.packet` provides `Packet`, an in-memory message, together with `Question` and `ResourceRecord`.
  - A packet holds questions and records of the types A, AAAA, CNAME, PTR, NS and SOA.
  - It can also carry the EDNS client-subnet and TCP-keepalive options, and an advertised UDP payload size.
  - A packet has a size budget. Adding past that budget raises `PacketError`.
- `sdns.encoder` provides `encode(packet, size)`, which writes a packet in wire format. It also provides `encode_domain` and `encode_header`.
- `sdns.decoder` provides `decode(data, maxsize)`, which reads a wire-format message into a `Packet`. It also provides `decode_domain` and `decode_header`. Name compression pointers are followed.
- `sdns.cache` provides `DNSCache`, a cache of answers keyed by domain and query type. It has:
  - a size bound, evicting the oldest entry
  - hit counters (`update`, `hitnum_dec_get`)
  - a minimum TTL of 30 seconds
  - pre-expiry callbacks (`invalidate`)
  - an optional list of expired ("inactive") entries

  Cached data is either a `CacheAddr` (an address, or a negative SOA answer, with an optional CNAME) or a `CachePacket` (raw packet bytes).
- `sdns.cachefile` provides `save_cache` and `load_cache`, which write a cache to a file and read it back. Failures raise `CacheFileError`.
- `sdns.jhash` provides the Jenkins hash functions: `jhash`, `jhash2`, `jhash_1word`, `jhash_2words`, `jhash_3words` and `rol32`.
- `sdns.lmo` reads LMO translation archives.
  - `sfh_hash` and `canon_hash` compute the hashes.
  - `Archive` is a single archive file.
  - `CatalogRegistry` holds one catalog per language.
- `sdns.po2lmo` compiles gettext `.po` files into LMO archives. It provides `extract_string`, `parse_po`, `build_lmo`, `convert` and the `sdns-po2lmo` command.

## Installation

```
pip install .
```

For development and tests:

```
pip install .[test]
pytest
```

## Building and reading a packet

```python
from sdns.defs import Header, RRType, DNSClass, Section
from sdns.packet import Packet
from sdns.encoder import encode
from sdns.decoder import decode

query = Packet(Header(ident=0x1234, rd=True))
query.add_domain("example.com", RRType.A, DNSClass.IN)
query.add_a(Section.AN, "example.com", 300, bytes([192, 0, 2, 1]))

wire = encode(query)
reply = decode(wire)
for record in reply.records(Section.AN):
    print(record.domain, record.ttl, record.as_address())
```

`encode` emits an OPT record when the packet has options or when a payload size has been set with `set_payload_size`. That OPT record is counted in the additional section.

## Caching answers

```python
from sdns.cache import DNSCache, CacheAddr
from sdns.defs import RRType

cache = DNSCache(size=1024)
data = CacheAddr()
data.set_addr(0, None, 0, bytes([192, 0, 2, 1]))
cache.insert("example.com", 300, RRType.A, 10, data)

entry = cache.lookup("example.com", RRType.A)
print(cache.get_ttl(entry))
```

By default, `lookup` drops an entry once its TTL has passed. Pass `enable_inactive=True` to keep expired entries instead: `invalidate` moves them to the inactive list, and `inactive_list_expired` limits how long they stay there.

A `clock` callable can be passed to the cache to control the time it sees.

To keep the cache across restarts:

```python
from sdns.cachefile import save_cache, load_cache

save_cache(cache, "dns.cache")
load_cache(cache, "dns.cache")
```

A missing file loads nothing. A file with a wrong magic number, a different format version or truncated records raises `CacheFileError`.

## Translation catalogs

Compile a `.po` file into an LMO archive:

```
sdns-po2lmo input.po output.lmo
```

If no entry has both a non-empty msgid and a non-empty msgstr, no output file is written.

Look up translations at run time:

```python
from sdns.lmo import CatalogRegistry

registry = CatalogRegistry()
registry.load_catalog("de", "i18n")   # loads every *.de.lmo file in the directory
print(registry.translate("Save"))     # bytes, or None when untranslated
```

Keys are hashed after whitespace runs are collapsed and the ends are trimmed. `translate` raises `LookupError` when no catalog is active.

## What the package does not do

- There is no resolver, server or network code. The package only builds, encodes and decodes messages, and caches answers; sending and receiving them is left to the caller.
- The decoder does not keep every record type:
  - records of types other than A, AAAA, CNAME, PTR, NS, SOA and OPT are skipped
  - of the EDNS options, only client subnet is kept
- The encoder raises `PacketError` for record types it does not know.
- The cache file format belongs to this package. It is not shared with other tools.