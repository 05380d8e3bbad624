"""Identifier existence store: Bloom-filter index, arena memory domains, sharded SQLite storage and HTTP request handling."""

__version__ = "1.0.0"