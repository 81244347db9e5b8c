#!/usr/bin/env python3
# sphmerc/cli.py
"""
Command line entry point for sphmerc.
Loads configuration, builds a SphericalMercator and runs one conversion.

    sphmerc px -179 85 -z 9
    sphmerc --tms xyz -180 -85.05112877980659 180 85.0511287798066 -z 0
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, Sequence

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.styles import BaseStyle

from sphmerc.config import Config
from sphmerc.logging_conf import setup_logging
from sphmerc.projection import ProjectionInputError, SphericalMercator, Style
from sphmerc.styles import make_style
from sphmerc.version import version_info

log = logging.getLogger(__name__)


# -------------------------
# Output
# -------------------------

def _fmt(v: float, precision: Optional[int]) -> str:
    if isinstance(v, int):
        return str(v)
    if precision is not None:
        return f"{v:.{precision}f}"
    return repr(v)


def _emit(values: Sequence[float], style: BaseStyle, precision: Optional[int] = None) -> None:
    text = " ".join(_fmt(v, precision) for v in values)
    print_formatted_text(HTML("<value>{}</value>").format(text), style=style, file=sys.stdout)


def _error(msg: str, style: BaseStyle) -> None:
    print_formatted_text(HTML("<error>error:</error> {}").format(msg), style=style, file=sys.stderr)


# -------------------------
# Commands
# -------------------------

def cmd_px(merc: SphericalMercator, args: argparse.Namespace, style: BaseStyle) -> int:
    x, y = merc.px((args.lon, args.lat), args.zoom)
    # pixels are whole numbers
    _emit([int(x), int(y)], style)
    return 0


def cmd_ll(merc: SphericalMercator, args: argparse.Namespace, style: BaseStyle) -> int:
    _emit(merc.ll((args.x, args.y), args.zoom), style, args.precision)
    return 0


def cmd_bbox(merc: SphericalMercator, args: argparse.Namespace, style: BaseStyle) -> int:
    _emit(merc.bbox(args.x, args.y, args.zoom, srs=args.srs), style, args.precision)
    return 0


def cmd_xyz(merc: SphericalMercator, args: argparse.Namespace, style: BaseStyle) -> int:
    _emit(merc.xyz(args.bounds, args.zoom, srs=args.srs), style)
    return 0


def cmd_tiles(merc: SphericalMercator, args: argparse.Namespace, style: BaseStyle) -> int:
    for x, y, z in merc.tiles(args.bounds, args.zoom, srs=args.srs):
        print_formatted_text(HTML("<tile>{}/{}/{}</tile>").format(z, x, y), style=style, file=sys.stdout)
    return 0


def cmd_forward(merc: SphericalMercator, args: argparse.Namespace, style: BaseStyle) -> int:
    _emit(merc.forward((args.lon, args.lat)), style, args.precision)
    return 0


def cmd_inverse(merc: SphericalMercator, args: argparse.Namespace, style: BaseStyle) -> int:
    _emit(merc.inverse((args.x, args.y)), style, args.precision)
    return 0


def cmd_convert(merc: SphericalMercator, args: argparse.Namespace, style: BaseStyle) -> int:
    _emit(merc.convert(args.bounds, args.to), style, args.precision)
    return 0


# -------------------------
# Parser
# -------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="sphmerc", description="Spherical mercator tile math")
    p.add_argument("--version", action="version", version=version_info())
    p.add_argument("--config", type=str, default=None, help="config file (default: $SPHMERC_CONFIG or per-user)")
    p.add_argument("--tile-size", dest="tile_size", type=int, default=None)
    p.add_argument("--tms", action="store_true", help="use TMS (bottom-left origin) tile rows")
    p.add_argument("--precision", type=int, default=None, help="digits after the decimal point")
    sub = p.add_subparsers(dest="command", required=True)

    pp = sub.add_parser("px", help="lon/lat to pixel")
    pp.add_argument("lon", type=float)
    pp.add_argument("lat", type=float)
    pp.add_argument("-z", "--zoom", type=int, required=True)
    pp.set_defaults(func=cmd_px)

    pl = sub.add_parser("ll", help="pixel to lon/lat")
    pl.add_argument("x", type=float)
    pl.add_argument("y", type=float)
    pl.add_argument("-z", "--zoom", type=int, required=True)
    pl.set_defaults(func=cmd_ll)

    pb = sub.add_parser("bbox", help="bounds of a tile")
    pb.add_argument("x", type=int)
    pb.add_argument("y", type=int)
    pb.add_argument("-z", "--zoom", type=int, required=True)
    pb.add_argument("--srs", type=str, default=None)
    pb.set_defaults(func=cmd_bbox)

    for name, func, helptext in (
        ("xyz", cmd_xyz, "tile range covering a bbox"),
        ("tiles", cmd_tiles, "list tiles covering a bbox as z/x/y"),
    ):
        pr = sub.add_parser(name, help=helptext)
        pr.add_argument("bounds", type=float, nargs=4, metavar=("WEST", "SOUTH", "EAST", "NORTH"))
        pr.add_argument("-z", "--zoom", type=int, required=True)
        pr.add_argument("--srs", type=str, default=None)
        pr.set_defaults(func=func)

    pf = sub.add_parser("forward", help="lon/lat to mercator meters")
    pf.add_argument("lon", type=float)
    pf.add_argument("lat", type=float)
    pf.set_defaults(func=cmd_forward)

    pi = sub.add_parser("inverse", help="mercator meters to lon/lat")
    pi.add_argument("x", type=float)
    pi.add_argument("y", type=float)
    pi.set_defaults(func=cmd_inverse)

    pc = sub.add_parser("convert", help="convert a bbox between WGS84 and 900913")
    pc.add_argument("bounds", type=float, nargs=4, metavar=("WEST", "SOUTH", "EAST", "NORTH"))
    pc.add_argument("--to", type=str, required=True)
    pc.set_defaults(func=cmd_convert)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = Config.load(args.config)
    setup_logging(cfg)
    style = make_style(cfg)

    proj = cfg["projection"]
    if args.tile_size is not None:
        proj["tile_size"] = args.tile_size
    if args.tms:
        proj["style"] = Style.TMS.value
    if hasattr(args, "srs") and args.srs is None:
        args.srs = proj["srs"]
    if args.precision is None:
        args.precision = cfg["output"].get("precision")

    try:
        merc = SphericalMercator.from_config(cfg)
        return args.func(merc, args, style)
    except ProjectionInputError as exc:
        log.debug("Rejected input for %s: %s", args.command, exc)
        _error(str(exc), style)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
