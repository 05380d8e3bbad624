"""Bump allocator over a fixed buffer with canary-guarded blocks."""

from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass

ALIGNMENT = 64
CANARY_SIZE = 64
CANARY_BYTE = 0xDB
DEFAULT_CAPACITY = 1024 * 1024

_CANARY = bytes([CANARY_BYTE]) * CANARY_SIZE


class ArenaExhaustedError(MemoryError):
    """The arena has no room left for the requested block."""


class MemoryCorruptionError(RuntimeError):
    """A canary guarding an allocation was overwritten."""


class AccessViolationError(RuntimeError):
    """An access fell outside the arena's designated space."""


@dataclass(frozen=True)
class _Allocation:
    offset: int
    size: int


class ArenaAllocator:
    """Hands out 64-byte aligned blocks, each wrapped in 64-byte canaries.

    Addresses are offsets into the arena's buffer. ``on_alarm`` is called
    with a message whenever corruption or an access violation is detected.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        on_alarm: Callable[[str], None] | None = None,
    ) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self._capacity = capacity
        self._buffer = bytearray(capacity)
        self._used = 0
        self._allocations: list[_Allocation] = []
        self._on_alarm = on_alarm

    @property
    def allocated(self) -> int:
        return self._used

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def allocation_count(self) -> int:
        return len(self._allocations)

    def allocate(self, size: int) -> int:
        """Reserve ``size`` bytes and return the block's aligned address."""
        if size < 0:
            raise ValueError("size must not be negative")
        padding = -self._used % ALIGNMENT
        header = self._used + padding
        total = header + CANARY_SIZE + size + CANARY_SIZE
        if total > self._capacity:
            raise ArenaExhaustedError(f"arena exhausted: {total} > {self._capacity}")

        user = header + CANARY_SIZE
        footer = user + size
        self._buffer[header:user] = _CANARY
        self._buffer[footer:footer + CANARY_SIZE] = _CANARY
        self._used = total
        self._allocations.append(_Allocation(user, size))
        return user

    def reset(self) -> None:
        """Forget every allocation; the buffer itself is left untouched."""
        self._used = 0
        self._allocations.clear()

    def verify(self) -> None:
        """Check every block's canaries, raising on the first damaged one."""
        for alloc in self._allocations:
            header = self._buffer[alloc.offset - CANARY_SIZE:alloc.offset]
            if header != _CANARY:
                self._alarm(MemoryCorruptionError, "canary corrupted at header prefix")
            end = alloc.offset + alloc.size
            footer = self._buffer[end:end + CANARY_SIZE]
            if footer != _CANARY:
                self._alarm(MemoryCorruptionError, "canary corrupted at footer suffix")

    def check_access(self, address: int | None, size: int) -> None:
        """Raise if ``size`` bytes at ``address`` leave the arena's space."""
        if address is None:
            return
        if address < 0 or address + size > self._capacity:
            self._alarm(AccessViolationError, "address out of designated space")

    def write(self, address: int, data: bytes) -> None:
        payload = bytes(data)
        self.check_access(address, len(payload))
        self._buffer[address:address + len(payload)] = payload

    def read(self, address: int, size: int) -> bytes:
        self.check_access(address, size)
        return bytes(self._buffer[address:address + size])

    def _alarm(self, error: type[Exception], detail: str) -> None:
        message = f"{'Memory corruption' if error is MemoryCorruptionError else 'Memory access violation'}: {detail}"
        print(f"[ALARM] {message}", file=sys.stderr, flush=True)
        if self._on_alarm is not None:
            self._on_alarm(message)
        raise error(message)