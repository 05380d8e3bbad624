"""Identifier index: a SHA-256 based Bloom filter backed by an exact set."""

from __future__ import annotations

import enum
import threading
from collections.abc import Iterator

from akkonstore.hashing import sha256

# A SHA-256 digest yields eight 32-bit chunks.
_MAX_HASHES = 8
_CHUNK_HEX = 8


class BloomFilter:
    """Probabilistic set membership over a fixed-size bit array."""

    def __init__(self, size_in_bits: int, num_hashes: int) -> None:
        if size_in_bits <= 0:
            raise ValueError("size_in_bits must be positive")
        if not 0 <= num_hashes <= 255:
            raise ValueError("num_hashes must be between 0 and 255")
        self._size = size_in_bits
        self._num_hashes = num_hashes
        self._bits = bytearray((size_in_bits + 7) // 8)

    @property
    def size(self) -> int:
        return self._size

    @property
    def num_hashes(self) -> int:
        return self._num_hashes

    def _positions(self, item: str) -> Iterator[int]:
        digest = sha256(item)
        for i in range(min(self._num_hashes, _MAX_HASHES)):
            chunk = digest[i * _CHUNK_HEX:(i + 1) * _CHUNK_HEX]
            yield int(chunk, 16) % self._size

    def add(self, item: str) -> None:
        for pos in self._positions(item):
            self._bits[pos >> 3] |= 1 << (pos & 7)

    def possibly_contains(self, item: str) -> bool:
        return all(self._bits[pos >> 3] & (1 << (pos & 7)) for pos in self._positions(item))

    def __contains__(self, item: str) -> bool:
        return self.possibly_contains(item)


class QueryResult(enum.Enum):
    DEFINITELY_NO = 0
    PROBABLY_YES = 1
    DEFINITELY_YES = 2


class QueryEngine:
    """Answers membership queries with a Bloom filter in front of an exact set."""

    BITS_PER_ITEM = 10
    NUM_HASHES = 7

    def __init__(self, expected_items: int) -> None:
        self._filter = BloomFilter(expected_items * self.BITS_PER_ITEM, self.NUM_HASHES)
        self._exact: set[str] = set()
        self._lock = threading.Lock()

    def insert(self, item: str) -> None:
        with self._lock:
            self._filter.add(item)
            self._exact.add(item)

    def query(self, item: str) -> QueryResult:
        with self._lock:
            if not self._filter.possibly_contains(item):
                return QueryResult.DEFINITELY_NO
            if item in self._exact:
                return QueryResult.DEFINITELY_YES
            return QueryResult.PROBABLY_YES

    def __len__(self) -> int:
        with self._lock:
            return len(self._exact)