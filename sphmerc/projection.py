#!/usr/bin/env python3
# sphmerc/projection.py
"""
Spherical (Web) Mercator projection engine.

Converts between longitude/latitude, Mercator meters, pixel coordinates
and tile indices at zoom levels 0..29 for a configurable tile size.
Supports XYZ (origin top-left) and TMS (origin bottom-left) tile addressing.

Usage:
    from sphmerc.projection import SphericalMercator, Style
    merc = SphericalMercator(tile_size=256, style=Style.TMS)
    merc.px((-179, 85), 9)          # -> (364.0, 215.0)
    merc.xyz((-180, -85.05, 180, 85.05), 0)
"""

from __future__ import annotations

import logging
import math
import numbers
from enum import Enum
from typing import Any, Iterator, Sequence, Tuple, Union

from sphmerc.cache import ZOOM_LEVELS, ResolutionTable, get_table

log = logging.getLogger(__name__)

__all__ = [
    "EARTH_RADIUS_M",
    "MAX_EXTENT",
    "MAX_LAT",
    "DEFAULT_TILE_SIZE",
    "WGS84",
    "WEB_MERCATOR",
    "ProjectionInputError",
    "Style",
    "SphericalMercator",
    "forward",
    "inverse",
]

R2D = 180.0 / math.pi
D2R = math.pi / 180.0

# WGS84 / Web Mercator sphere radius
EARTH_RADIUS_M = 6378137.0
# Projected half-width of the world; reached at +-MAX_LAT
MAX_EXTENT = 20037508.342789244
MAX_LAT = 85.0511287798066

DEFAULT_TILE_SIZE = 256

WGS84 = "WGS84"
WEB_MERCATOR = "900913"

_SRS_ALIASES = {
    "WGS84": WGS84,
    "EPSG:4326": WGS84,
    "4326": WGS84,
    "900913": WEB_MERCATOR,
    "EPSG:900913": WEB_MERCATOR,
    "EPSG:3857": WEB_MERCATOR,
    "3857": WEB_MERCATOR,
}

LonLat = Tuple[float, float]
Pixel = Tuple[float, float]
Meters = Tuple[float, float]
BBox = Tuple[float, float, float, float]
TileRange = Tuple[int, int, int, int]


class ProjectionInputError(ValueError):
    """Raised when an argument is outside the engine's input domain."""


class Style(str, Enum):
    """Tile addressing style."""

    XYZ = "xyz"   # y grows southward from the top
    TMS = "tms"   # y grows northward from the bottom

    @classmethod
    def parse(cls, value: Union["Style", str]) -> "Style":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ProjectionInputError(f"unknown tile addressing style {value!r} (expected 'xyz' or 'tms')") from None


# -------------------------
# Input checks
# -------------------------

def _is_int(v: Any) -> bool:
    return isinstance(v, numbers.Integral) and not isinstance(v, bool)


def _check_zoom(zoom: Any) -> int:
    if not _is_int(zoom):
        raise ProjectionInputError(f"zoom must be an integer, got {zoom!r}")
    zoom = int(zoom)
    if not 0 <= zoom < ZOOM_LEVELS:
        raise ProjectionInputError(f"zoom must be in [0, {ZOOM_LEVELS}), got {zoom}")
    return zoom


def _check_tile_index(name: str, v: Any) -> int:
    if not _is_int(v):
        raise ProjectionInputError(f"tile {name} must be an integer, got {v!r}")
    return int(v)


def _floats(value: Any, arity: int, what: str) -> Tuple[float, ...]:
    try:
        n = len(value)
    except TypeError:
        raise ProjectionInputError(f"{what} must be a sequence of {arity} numbers, got {value!r}") from None
    if n != arity:
        raise ProjectionInputError(f"{what} must have {arity} values, got {n}")
    try:
        out = tuple(float(v) for v in value)
    except (TypeError, ValueError) as exc:
        raise ProjectionInputError(f"{what} must be a sequence of {arity} numbers, got {value!r}") from exc
    if not all(math.isfinite(v) for v in out):
        raise ProjectionInputError(f"{what} must be finite, got {value!r}")
    return out


def _parse_srs(srs: Any) -> str:
    key = str(srs).strip().upper()
    if key not in _SRS_ALIASES:
        raise ProjectionInputError(f"unknown srs {srs!r} (expected WGS84 or 900913)")
    return _SRS_ALIASES[key]


# -------------------------
# Numeric helpers
# -------------------------

def _round(v: float) -> float:
    """Round half away from zero, exactly."""
    if not math.isfinite(v):
        return v
    t = math.trunc(v)
    # v - t is exact for any float with a fractional part
    if abs(v - t) >= 0.5:
        t += 1 if v > 0 else -1
    return float(t)


def _exp(v: float) -> float:
    try:
        return math.exp(v)
    except OverflowError:
        return math.inf


def _clamp(n: float, lo: float, hi: float) -> float:
    return max(min(n, hi), lo)


# -------------------------
# Continuous projection
# -------------------------

def forward(ll: Sequence[float]) -> Meters:
    """Project lon/lat degrees to Mercator meters, clamped to the world extent."""
    lon, lat = _floats(ll, 2, "lon/lat")
    x = EARTH_RADIUS_M * lon * D2R
    t = math.tan(math.pi * 0.25 + 0.5 * lat * D2R)
    if t > 0:
        y = EARTH_RADIUS_M * math.log(t)
    else:
        # tan underflows to zero (or flips sign) at and past the poles
        y = -MAX_EXTENT if lat < 0 else MAX_EXTENT
    return _clamp(x, -MAX_EXTENT, MAX_EXTENT), _clamp(y, -MAX_EXTENT, MAX_EXTENT)


def inverse(xy: Sequence[float]) -> LonLat:
    """Unproject Mercator meters to lon/lat degrees. No clamping."""
    x, y = _floats(xy, 2, "mercator x/y")
    lon = x * R2D / EARTH_RADIUS_M
    lat = (math.pi * 0.5 - 2.0 * math.atan(_exp(-y / EARTH_RADIUS_M))) * R2D
    return lon, lat


# -------------------------
# SphericalMercator
# -------------------------

class SphericalMercator:
    """
    Tile-grid aware projection engine.

    Instances are immutable; every conversion is a pure function of its
    arguments and the shared resolution table for the tile size.
    """

    __slots__ = ("_tile_size", "_style", "_table")

    def __init__(self, tile_size: int = DEFAULT_TILE_SIZE, style: Union[Style, str] = Style.XYZ):
        if not _is_int(tile_size) or tile_size <= 0:
            raise ProjectionInputError(f"tile size must be a positive integer, got {tile_size!r}")
        self._tile_size = int(tile_size)
        self._style = Style.parse(style)
        self._table: ResolutionTable = get_table(self._tile_size)

    @classmethod
    def from_config(cls, cfg) -> "SphericalMercator":
        """Build an engine from the 'projection' section of a Config."""
        p = cfg["projection"]
        merc = cls(tile_size=p.get("tile_size", DEFAULT_TILE_SIZE), style=p.get("style", Style.XYZ))
        log.debug("Projection engine from config: %r", merc)
        return merc

    # --- Read-only properties

    @property
    def tile_size(self) -> int:
        return self._tile_size

    @property
    def style(self) -> Style:
        return self._style

    @property
    def tms(self) -> bool:
        return self._style is Style.TMS

    @property
    def table(self) -> ResolutionTable:
        return self._table

    def __repr__(self) -> str:
        return f"SphericalMercator(tile_size={self._tile_size}, style={self._style.value!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SphericalMercator):
            return NotImplemented
        return self._tile_size == other._tile_size and self._style is other._style

    def __hash__(self) -> int:
        return hash((self._tile_size, self._style))

    # -------------
    # Pixel <-> lon/lat
    # -------------

    def px(self, ll: Sequence[float], zoom: int) -> Pixel:
        """
        Convert lon/lat to whole pixel coordinates at zoom.
        Pixels are capped at the world extent; they are not floored at zero.
        """
        zoom = _check_zoom(zoom)
        lon, lat = _floats(ll, 2, "lon/lat")
        t = self._table
        d = t.zc[zoom]
        # keep log-odds finite at the poles
        f = _clamp(math.sin(D2R * lat), -0.9999, 0.9999)
        x = _round(d + lon * t.bc[zoom])
        y = _round(d + 0.5 * math.log((1 + f) / (1 - f)) * -t.cc[zoom])
        return min(x, t.ac[zoom]), min(y, t.ac[zoom])

    def ll(self, px: Sequence[float], zoom: int) -> LonLat:
        """Convert pixel coordinates at zoom to lon/lat."""
        zoom = _check_zoom(zoom)
        x, y = _floats(px, 2, "pixel")
        t = self._table
        g = (y - t.zc[zoom]) / -t.cc[zoom]
        lon = (x - t.zc[zoom]) / t.bc[zoom]
        lat = R2D * (2 * math.atan(_exp(g)) - 0.5 * math.pi)
        return lon, lat

    # -------------
    # Tiles
    # -------------

    def bbox(self, x: int, y: int, zoom: int, srs: str = WGS84) -> BBox:
        """
        Bounds of tile (x, y, zoom) as (west, south, east, north).
        Returned in lon/lat, or in Mercator meters when srs is 900913.
        """
        zoom = _check_zoom(zoom)
        x = _check_tile_index("x", x)
        y = _check_tile_index("y", y)
        srs = _parse_srs(srs)
        if self.tms:
            y = (2 ** zoom - 1) - y
        size = self._tile_size
        # lower-left has the larger pixel y
        lon0, lat0 = self.ll((x * size, (y + 1) * size), zoom)
        lon1, lat1 = self.ll(((x + 1) * size, y * size), zoom)
        bounds = (lon0, lat0, lon1, lat1)
        if srs == WEB_MERCATOR:
            return self.convert(bounds, WEB_MERCATOR)
        return bounds

    def xyz(self, bbox: Sequence[float], zoom: int, srs: str = WGS84) -> TileRange:
        """
        Inclusive tile range (min_x, min_y, max_x, max_y) covering bbox at zoom.

        Lower bounds are floored at 0. Upper bounds are not capped at
        2**zoom - 1; callers clamp if they need valid indices.
        """
        zoom = _check_zoom(zoom)
        srs = _parse_srs(srs)
        w, s, e, n = _floats(bbox, 4, "bbox")
        if srs == WEB_MERCATOR:
            w, s, e, n = self.convert((w, s, e, n), WGS84)

        ll_px = self.px((w, s), zoom)
        ur_px = self.px((e, n), zoom)
        size = float(self._tile_size)
        # a point on a tile edge belongs to the tile below/left
        x0 = math.floor(ll_px[0] / size)
        x1 = math.floor((ur_px[0] - 1) / size)
        y0 = math.floor(ur_px[1] / size)
        y1 = math.floor((ll_px[1] - 1) / size)

        min_x = max(0, min(x0, x1))
        min_y = max(0, min(y0, y1))
        # pole clamping can push both raw bounds below zero
        max_x = max(min_x, x0, x1)
        max_y = max(min_y, y0, y1)

        if self.tms:
            top = 2 ** zoom - 1
            min_y, max_y = top - max_y, top - min_y
        return min_x, min_y, max_x, max_y

    def tiles(self, bbox: Sequence[float], zoom: int, srs: str = WGS84) -> Iterator[Tuple[int, int, int]]:
        """Yield every (x, y, zoom) in the range returned by xyz, row by row."""
        min_x, min_y, max_x, max_y = self.xyz(bbox, zoom, srs=srs)
        for y in range(min_y, max_y + 1):
            for x in range(min_x, max_x + 1):
                yield x, y, zoom

    # -------------
    # Continuous projection
    # -------------

    def forward(self, ll: Sequence[float]) -> Meters:
        return forward(ll)

    def inverse(self, xy: Sequence[float]) -> LonLat:
        return inverse(xy)

    def convert(self, bbox: Sequence[float], to: str) -> BBox:
        """Convert a bbox between WGS84 and 900913 (Mercator meters)."""
        to = _parse_srs(to)
        b = _floats(bbox, 4, "bbox")
        if to == WEB_MERCATOR:
            return forward(b[:2]) + forward(b[2:])
        return inverse(b[:2]) + inverse(b[2:])
