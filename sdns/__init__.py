"""DNS packet codec and answer cache, Jenkins hashing, and LMO translation catalogs."""

__version__ = "0.1.0"