"""Memory domains: one arena per runtime purpose, with fixed capacities."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from akkonstore.arena import ArenaAllocator

VERSION = "1.0.0"

THREAD_POOL_SIZE = 8

RUNTIME_MEMORY_CAPACITY = 10 * 1024 * 1024
REQUEST_MEMORY_CAPACITY = 5 * 1024 * 1024
RESERVED_MEMORY_CAPACITY = 1 * 1024 * 1024
VERIFICATION_MEMORY_CAPACITY = 2 * 1024 * 1024
LIFECYCLE_MEMORY_CAPACITY = 2 * 1024 * 1024

RAM_POOL_SIZE = RUNTIME_MEMORY_CAPACITY
MAP_POOL_SIZE = REQUEST_MEMORY_CAPACITY
HEAP_POOL_SIZE = RESERVED_MEMORY_CAPACITY


class RuntimeDomain(enum.Enum):
    RUNTIME = 0        # static resources needed to run
    REQUEST = 1        # transient allocations for incoming queries
    RESERVED = 2       # held back for future extensions
    VERIFICATION = 3   # online vulnerability data
    LIFECYCLE = 4      # security state and lockdown handling


_CAPACITIES = {
    RuntimeDomain.RUNTIME: RUNTIME_MEMORY_CAPACITY,
    RuntimeDomain.REQUEST: REQUEST_MEMORY_CAPACITY,
    RuntimeDomain.RESERVED: RESERVED_MEMORY_CAPACITY,
    RuntimeDomain.VERIFICATION: VERIFICATION_MEMORY_CAPACITY,
    RuntimeDomain.LIFECYCLE: LIFECYCLE_MEMORY_CAPACITY,
}


@dataclass(frozen=True)
class DomainStats:
    allocated: int
    capacity: int
    allocations: int


class MemoryManager:
    """Owns a separate arena for each runtime domain."""

    def __init__(self) -> None:
        self._domains = {domain: ArenaAllocator(cap) for domain, cap in _CAPACITIES.items()}

    def domain(self, domain: RuntimeDomain) -> ArenaAllocator:
        return self._domains[domain]

    def reset_domain(self, domain: RuntimeDomain) -> None:
        self._domains[domain].reset()

    def stats(self) -> dict[RuntimeDomain, DomainStats]:
        return {
            domain: DomainStats(arena.allocated, arena.capacity, arena.allocation_count)
            for domain, arena in self._domains.items()
        }

    def print_stats(self) -> None:
        print("\n=== Memory Manager Stats ===")
        for domain, stat in self.stats().items():
            print(
                f"{domain.name}: {stat.allocated} / {stat.capacity} bytes"
                f" ({stat.allocations} allocations)"
            )