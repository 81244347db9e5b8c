import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from sphmerc.cli import main
from sphmerc.config import Config
from sphmerc.logging_conf import setup_logging
from sphmerc.styles import make_style


@pytest.fixture
def cfg_path(tmp_path):
    return str(tmp_path / "cfg.json")


def run(capsys, cfg_path, *argv):
    code = main(["--config", cfg_path, *argv])
    out, err = capsys.readouterr()
    return code, out.strip(), err.strip()


def test_px(capsys, cfg_path):
    assert run(capsys, cfg_path, "px", "-179", "85", "-z", "9") == (0, "364 215", "")


def test_ll_with_precision(capsys, cfg_path):
    code, out, _ = run(capsys, cfg_path, "--precision", "5", "ll", "200", "200", "-z", "9")
    assert code == 0
    assert out == "-179.45068 85.00351"


def test_xyz_tms_world(capsys, cfg_path):
    code, out, _ = run(capsys, cfg_path, "--tms", "xyz", "-180", "-85.05112877980659", "180", "85.0511287798066", "-z", "0")
    assert code == 0
    assert out == "0 0 0 0"


def test_tiles_lists_zxy(capsys, cfg_path):
    code, out, _ = run(capsys, cfg_path, "tiles", "-180", "-85", "180", "85", "-z", "1")
    assert code == 0
    assert out.splitlines() == ["1/0/0", "1/1/0", "1/0/1", "1/1/1"]


def test_bbox_in_meters(capsys, cfg_path):
    code, out, _ = run(capsys, cfg_path, "--precision", "3", "bbox", "0", "0", "-z", "0", "--srs", "900913")
    assert code == 0
    assert out == "-20037508.343 -20037508.343 20037508.343 20037508.343"


def test_forward_and_inverse(capsys, cfg_path):
    code, out, _ = run(capsys, cfg_path, "--precision", "3", "forward", "-180", "-85.0511287798066")
    assert (code, out) == (0, "-20037508.343 -20037508.343")
    code, out, _ = run(capsys, cfg_path, "--precision", "4", "inverse", "-20037508.342789244", "-20037508.342789244")
    assert (code, out) == (0, "-180.0000 -85.0511")


def test_convert(capsys, cfg_path):
    code, out, _ = run(capsys, cfg_path, "--precision", "1", "convert", "-20037508.342789244", "0", "20037508.342789244", "0", "--to", "EPSG:4326")
    assert (code, out) == (0, "-180.0 0.0 180.0 0.0")


def test_config_supplies_defaults(capsys, cfg_path):
    with open(cfg_path, "w", encoding="utf-8") as f:
        json.dump({"projection": {"style": "tms", "tile_size": 512}}, f)
    code, out, _ = run(capsys, cfg_path, "xyz", "-180", "-85.05112877980659", "0", "0", "-z", "1")
    assert code == 0
    assert out == "0 0 0 0"


def test_invalid_zoom_exits_2(capsys, cfg_path):
    code, out, err = run(capsys, cfg_path, "px", "0", "0", "-z", "31")
    assert code == 2
    assert out == ""
    assert "zoom" in err


@pytest.mark.parametrize("lat", ["inf", "nan"])
def test_non_finite_input_exits_2(capsys, cfg_path, lat):
    code, out, err = run(capsys, cfg_path, "px", "0", lat, "-z", "1")
    assert code == 2
    assert out == ""
    assert "finite" in err


def test_invalid_tile_size_exits_2(capsys, cfg_path):
    code, _, err = run(capsys, cfg_path, "--tile-size", "0", "px", "0", "0", "-z", "1")
    assert code == 2
    assert "tile size" in err


def test_version(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--version"])
    assert exc.value.code == 0
    out = capsys.readouterr().out
    assert "sphmerc v" in out
    assert "MIT license" in out


def test_style_without_color():
    cfg = Config()
    cfg["output"]["color"] = False
    assert make_style(cfg).style_rules == []
    cfg["output"].update({"color": True, "theme": "light"})
    assert ("value", "#005f00 bold") in make_style(cfg).style_rules


def test_setup_logging_adds_rotating_file(tmp_path):
    cfg = Config()
    cfg["logging"]["file"] = str(tmp_path / "sphmerc.log")
    cfg["logging"]["level"] = "DEBUG"
    root = logging.getLogger()
    before = list(root.handlers)
    try:
        setup_logging(cfg)
        added = [h for h in root.handlers if h not in before]
        assert any(isinstance(h, RotatingFileHandler) for h in added)
        assert logging.getLogger("sphmerc").level == logging.DEBUG
    finally:
        for h in root.handlers[:]:
            if h not in before:
                root.removeHandler(h)
                h.close()
        logging.getLogger("sphmerc").setLevel(logging.NOTSET)
