#!/usr/bin/env python3
# sphmerc/config.py
"""
Config loader/saver and defaults for sphmerc.

Goals:
- Single JSON file per user.
- Safe atomic writes.
- Deep-merge of user config over defaults.
- Basic validation with sane fallbacks.

Usage:
    from sphmerc.config import Config, DEFAULT_CONFIG
    cfg = Config.load()                 # ~/.config/sphmerc/sphmerc.json or OS-specific
    tile_size = cfg["projection"]["tile_size"]
    cfg["projection"]["style"] = "tms"
    cfg.save()
"""

from __future__ import annotations

import copy
import json
import os
import platform
import shutil
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

# ----------------------------
# Defaults
# ----------------------------

DEFAULT_CONFIG: Dict[str, Any] = {
    "projection": {
        "tile_size": 256,                 # pixels per tile edge
        "style": "xyz",                   # xyz | tms
        "srs": "WGS84",                   # WGS84 | 900913, used by bbox/xyz
    },
    "output": {
        "theme": "auto",                  # auto | light | dark
        "color": True,
        "precision": None,                # digits after the point; None = repr
    },
    "logging": {
        "level": "WARNING",
        "file": None,                     # path or None
        "rotate_bytes": 5 * 1024 * 1024,
        "rotate_keep": 3,
    },
}

# ----------------------------
# Helpers
# ----------------------------

def _os_config_home() -> str:
    """Return per-OS config base directory."""
    if platform.system() == "Windows":
        base = os.environ.get("APPDATA") or os.path.expanduser("~\\AppData\\Roaming")
        return os.path.join(base, "sphmerc")
    if platform.system() == "Darwin":
        return os.path.join(os.path.expanduser("~/Library/Application Support"), "sphmerc")
    return os.path.join(os.path.expanduser("~/.config"), "sphmerc")

def _default_config_path() -> str:
    """Resolve default config path, honoring SPHMERC_CONFIG env override."""
    env = os.environ.get("SPHMERC_CONFIG")
    if env:
        return os.path.expanduser(env)
    return os.path.join(_os_config_home(), "sphmerc.json")

def _deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """Return deep-merged copy of dicts: values in b override a."""
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out

def _atomic_write_json(path: str, data: Dict[str, Any]) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp_cfg_", dir=os.path.dirname(path) or ".")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
            f.write("\n")
        os.replace(tmp, path)
    except Exception:
        # Clean temp on error
        try:
            os.remove(tmp)
        except OSError:
            pass
        raise

def _coerce_int(v: Any, default: int, minmax: Optional[Tuple[int, int]] = None) -> int:
    if isinstance(v, bool):
        return int(default)
    try:
        x = int(v)
    except (TypeError, ValueError):
        return int(default)
    if minmax:
        lo, hi = minmax
        if x < lo: x = lo
        if x > hi: x = hi
    return x

def _coerce_bool(v: Any, default: bool) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        s = v.strip().lower()
        if s in ("1", "true", "yes", "on"): return True
        if s in ("0", "false", "no", "off"): return False
    return default

# ----------------------------
# Validation
# ----------------------------

def _validate(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Return validated copy with fallbacks applied."""
    c = copy.deepcopy(_deep_merge(DEFAULT_CONFIG, cfg or {}))
    for section in DEFAULT_CONFIG:
        if not isinstance(c.get(section), dict):
            c[section] = dict(DEFAULT_CONFIG[section])

    # projection
    p = c["projection"]
    p["tile_size"] = _coerce_int(p.get("tile_size"), DEFAULT_CONFIG["projection"]["tile_size"], (1, 65536))
    style = str(p.get("style") or "").strip().lower()
    p["style"] = style if style in ("xyz", "tms") else DEFAULT_CONFIG["projection"]["style"]
    srs = str(p.get("srs") or "").strip().upper()
    p["srs"] = srs if srs in ("WGS84", "900913") else DEFAULT_CONFIG["projection"]["srs"]

    # output
    o = c["output"]
    if o.get("theme") not in ("auto", "light", "dark"):
        o["theme"] = DEFAULT_CONFIG["output"]["theme"]
    o["color"] = _coerce_bool(o.get("color"), DEFAULT_CONFIG["output"]["color"])
    prec = o.get("precision")
    o["precision"] = None if prec is None else _coerce_int(prec, 6, (0, 17))

    # logging
    lg = c["logging"]
    if lg.get("level") not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"):
        lg["level"] = DEFAULT_CONFIG["logging"]["level"]
    lf = lg.get("file")
    lg["file"] = str(lf) if lf else None
    lg["rotate_bytes"] = _coerce_int(lg.get("rotate_bytes"), DEFAULT_CONFIG["logging"]["rotate_bytes"], (256 * 1024, 50 * 1024 * 1024))
    lg["rotate_keep"]  = _coerce_int(lg.get("rotate_keep"), DEFAULT_CONFIG["logging"]["rotate_keep"], (0, 50))

    return c

# ----------------------------
# Public API
# ----------------------------

@dataclass
class Config:
    """Thin wrapper around a nested dict with load/save/merge."""
    data: Dict[str, Any] = field(default_factory=lambda: _validate(DEFAULT_CONFIG))
    path: str = field(default_factory=_default_config_path)

    # --- Mapping-style access
    def __getitem__(self, k: str) -> Any:
        return self.data[k]

    def __setitem__(self, k: str, v: Any) -> None:
        self.data[k] = v

    def get(self, k: str, default: Any = None) -> Any:
        return self.data.get(k, default)

    # --- Ops
    @classmethod
    def load(cls, path: Optional[str] = None, create_if_missing: bool = False) -> "Config":
        cfg_path = os.path.expanduser(path) if path else _default_config_path()
        if not os.path.exists(cfg_path):
            cfg = _validate(DEFAULT_CONFIG)
            if create_if_missing:
                _atomic_write_json(cfg_path, cfg)
            return cls(cfg, cfg_path)

        try:
            with open(cfg_path, "r", encoding="utf-8") as f:
                user_cfg = json.load(f)
            if not isinstance(user_cfg, dict):
                raise ValueError("config root must be an object")
        except (OSError, ValueError):
            # Corrupt file. Backup and regenerate.
            backup = cfg_path + ".corrupt.bak"
            try:
                shutil.copyfile(cfg_path, backup)
            except OSError:
                pass
            user_cfg = {}

        return cls(_validate(user_cfg), cfg_path)

    def save(self) -> None:
        """Persist to JSON atomically."""
        # Write validated data (defaults + diff) so file is complete and readable
        full = _validate(_deep_merge(DEFAULT_CONFIG, _diff(DEFAULT_CONFIG, self.data)))
        _atomic_write_json(self.path, full)
        self.data = full  # sync in-memory with normalized values

    def update(self, partial: Dict[str, Any]) -> None:
        """Deep-merge a partial config then validate."""
        merged = _deep_merge(self.data, partial)
        self.data = _validate(merged)

    def changed(self) -> Dict[str, Any]:
        """Keys that differ from DEFAULT_CONFIG."""
        return _diff(DEFAULT_CONFIG, self.data)

    # Convenience getters
    @property
    def tile_size(self) -> int:
        return self.data["projection"]["tile_size"]

    @property
    def style(self) -> str:
        return self.data["projection"]["style"]


def _diff(base: Dict[str, Any], cur: Dict[str, Any]) -> Dict[str, Any]:
    """Return nested dictionary of keys where cur differs from base."""
    out: Dict[str, Any] = {}
    for k in cur.keys() | base.keys():
        if k not in base:
            out[k] = cur[k]
            continue
        if k not in cur:
            continue
        vb = base[k]
        vc = cur[k]
        if isinstance(vb, dict) and isinstance(vc, dict):
            d = _diff(vb, vc)
            if d:
                out[k] = d
        elif vb != vc:
            out[k] = vc
    return out

__all__ = [
    "Config",
    "DEFAULT_CONFIG",
    "_default_config_path",
]
