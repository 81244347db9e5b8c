#!/usr/bin/env python3
# sphmerc/styles.py
"""
Style definitions for sphmerc command line output.
Provides light, dark, and auto themes for prompt_toolkit.
"""

import os

from prompt_toolkit.styles import Style

from sphmerc.config import Config

BASE_DARK = {
    "label": "#888888",
    "value": "#00ff00 bold",
    "tile": "#00afff",
    "error": "#ff5f5f bold",
}
BASE_LIGHT = {
    "label": "#555555",
    "value": "#005f00 bold",
    "tile": "#0000af",
    "error": "#af0000 bold",
}


def make_style(cfg: Config) -> Style:
    out = cfg["output"]
    if not out.get("color", True):
        return Style([])

    theme = out.get("theme", "auto")
    if theme == "light":
        return Style.from_dict(BASE_LIGHT)
    if theme == "dark":
        return Style.from_dict(BASE_DARK)

    # Auto-detect via environment
    if os.getenv("TERM_THEME", "").lower() == "light":
        return Style.from_dict(BASE_LIGHT)
    return Style.from_dict(BASE_DARK)
