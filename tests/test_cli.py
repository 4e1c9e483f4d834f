"""
Tests for the command-line interface.
"""

from __future__ import annotations

import argparse

import pytest
from PIL import Image

from mosaicwall.cli.main import main
from mosaicwall.cli.render_cli import parse_size

_FAST_YAML = """\
timing:
  intro_ms: 100
  group_ms: 200
  pause_ms: 100
  dot_ms: 200
  trailing_ms: 100
  jitter_ms: 50
  title_fade_ms: 100
  frame_interval_ms: 50
"""


@pytest.fixture
def fast_yaml(tmp_dir):
    path = tmp_dir / "fast.yaml"
    path.write_text(_FAST_YAML, encoding="utf-8")
    return path


class TestParseSize:
    def test_valid(self):
        assert parse_size("400x240") == (400, 240)
        assert parse_size("1280X720") == (1280, 720)

    def test_invalid(self):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_size("large")


class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "render" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as info:
            main(["--version"])
        assert info.value.code == 0
        assert "mosaicwall" in capsys.readouterr().out

    def test_render_without_images_fails(self, capsys):
        assert main(["render"]) == 1
        assert "no images" in capsys.readouterr().err

    def test_render_png(self, image_files, tmp_dir, fast_yaml):
        output = tmp_dir / "wall.png"
        argv = ["render", *map(str, image_files[:-1]), "--vip", str(image_files[-1]),
                "--size", "400x240", "--tiles", "50", "--seed", "5",
                "--config", str(fast_yaml), "-o", str(output)]
        assert main(argv) == 0
        with Image.open(output) as img:
            assert img.size == (400, 240)
            assert img.text["Seed"] == "5"

    def test_render_animation(self, image_files, tmp_dir, fast_yaml):
        output = tmp_dir / "wall.png"
        anim = tmp_dir / "reveal.gif"
        argv = ["render", *map(str, image_files), "--size", "400x240", "--tiles", "40",
                "--config", str(fast_yaml), "--no-title", "-o", str(output),
                "--animation", str(anim), "--fps", "10", "--animation-scale", "0.25"]
        assert main(argv) == 0
        with Image.open(anim) as img:
            assert img.size == (100, 60)
            assert img.n_frames > 1

    def test_bad_config(self, image_files, tmp_dir, capsys):
        bad = tmp_dir / "bad.yaml"
        bad.write_text("colours: {}\n", encoding="utf-8")
        assert main(["render", str(image_files[0]), "--config", str(bad)]) == 1
        assert "Unknown configuration sections" in capsys.readouterr().err
