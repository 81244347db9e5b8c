#!/usr/bin/env python3
# sphmerc/version.py
"""
Version metadata for sphmerc.
"""

__version__ = "1.0.0"
__license__ = "MIT"

def version_info() -> str:
    """Return human-readable version string."""
    return f"sphmerc v{__version__} (spherical mercator tile math, {__license__} license)"
