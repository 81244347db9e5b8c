#!/usr/bin/env python3
# sphmerc/cache.py
"""
Resolution table cache for the spherical mercator engine.

Each distinct tile size gets exactly one table of per-zoom scale factors:
- bc: pixels per degree of longitude
- cc: pixels per radian
- zc: half the world extent in pixels
- ac: the full world extent in pixels

Tables are built lazily, once, and shared by every engine using that size.
Thread-safe: lookup, build and insert happen under one lock.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from typing import Dict, Tuple

log = logging.getLogger(__name__)

# Zoom levels 0..29
ZOOM_LEVELS = 30


# -------------------------
# ResolutionTable
# -------------------------

@dataclass(frozen=True)
class ResolutionTable:
    """Immutable per-zoom scale factors for one tile size."""

    tile_size: int
    bc: Tuple[float, ...]
    cc: Tuple[float, ...]
    zc: Tuple[float, ...]
    ac: Tuple[float, ...]

    @classmethod
    def build(cls, tile_size: int) -> "ResolutionTable":
        sizes = [float(tile_size * 2 ** z) for z in range(ZOOM_LEVELS)]
        return cls(
            tile_size=tile_size,
            bc=tuple(s / 360.0 for s in sizes),
            cc=tuple(s / (2 * math.pi) for s in sizes),
            zc=tuple(s / 2 for s in sizes),
            ac=tuple(sizes),
        )


# -------------------------
# ResolutionCache
# -------------------------

class ResolutionCache:
    """
    Memoizing factory of ResolutionTable keyed by tile size.
    No eviction: the set of tile sizes in use is tiny.
    """

    def __init__(self):
        self._tables: Dict[int, ResolutionTable] = {}
        self._lock = threading.Lock()

    def get_or_build(self, tile_size: int) -> ResolutionTable:
        with self._lock:
            table = self._tables.get(tile_size)
            if table is None:
                table = ResolutionTable.build(tile_size)
                self._tables[tile_size] = table
                log.debug("Built resolution table for tile size %d", tile_size)
            return table

    def __contains__(self, tile_size: int) -> bool:
        with self._lock:
            return tile_size in self._tables

    def __len__(self) -> int:
        with self._lock:
            return len(self._tables)


# Process-wide instance shared by all engines
_CACHE = ResolutionCache()


def get_table(tile_size: int) -> ResolutionTable:
    """Return the shared table for tile_size, building it on first use."""
    return _CACHE.get_or_build(tile_size)


__all__ = [
    "ZOOM_LEVELS",
    "ResolutionTable",
    "ResolutionCache",
    "get_table",
]
