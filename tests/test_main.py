"""CLI tests driving main() against image files on disk."""

import json

import numpy as np
import pytest
from PIL import Image

import main as cli
from dna import neutral_configuration
from processor import DecodeError


@pytest.fixture
def src_png(tmp_path):
    yy, xx = np.mgrid[0:24, 0:32]
    arr = np.dstack([xx * 8, yy * 10, np.full_like(xx, 90)]).astype(np.uint8)
    path = tmp_path / "in.png"
    Image.fromarray(arr, "RGB").save(path)
    return path


@pytest.fixture
def dark_warm_png(tmp_path):
    arr = np.zeros((100, 100, 3), np.uint8)
    arr[:80] = (60, 30, 10)
    arr[80:] = (255, 230, 200)
    path = tmp_path / "dark.png"
    Image.fromarray(arr, "RGB").save(path)
    return path


class TestHelpers:

    @pytest.mark.parametrize("raw, expected", [("12", 12), ("0.5", 0.5), ("true", True), ("BAROQUE", "BAROQUE")])
    def test_coerce(self, raw, expected):
        assert cli._coerce(raw) == expected

    def test_parse_kv_pairs(self):
        assert cli._parse_kv_pairs(["finition.master=50", "junk", "meta.artist = Vermeer"]) == {
            "finition.master": 50,
            "meta.artist": "Vermeer",
        }

    @pytest.mark.parametrize("w, h, scale, expected", [
        (100, 100, 4, 4),
        (4000, 3000, 4, 1),
        (1000, 500, 10, 7),
        (7680, 10, 2, 1),
        (10, 10, 0, 1),
    ])
    def test_export_scale_cap(self, w, h, scale, expected):
        assert cli._export_scale(w, h, scale) == expected

    def test_loader_decodes_to_rgba_and_downscales(self, src_png):
        img = cli.ImageLoader().load(src_png.read_bytes(), "image/png", max_size=16)
        assert img.mode == "RGBA"
        assert max(img.size) == 16

    def test_loader_shares_decode_error(self):
        with pytest.raises(DecodeError, match="Failed to decode image"):
            cli.ImageLoader().load(b"not an image", "image/png")

    def test_infer_format(self, tmp_path):
        assert cli._infer_format_from_path(tmp_path / "a.JPG") == "JPEG"
        assert cli._infer_format_from_path(tmp_path / "a.tiff") == "PNG"


class TestRun:

    def test_neutral_raw_roundtrip(self, src_png, tmp_path):
        out = tmp_path / "out.png"
        assert cli.main(["run", "--url", str(src_png), "--out", str(out), "--neutral", "--raw"]) == 0
        src = np.asarray(Image.open(src_png).convert("RGB"))
        got = np.asarray(Image.open(out).convert("RGB"))
        assert np.array_equal(src, got)

    def test_preset_with_scale_and_metadata(self, src_png, tmp_path):
        out = tmp_path / "nested" / "out.png"
        meta = tmp_path / "out.json"
        rc = cli.main([
            "run", "--url", src_png.as_uri(), "--out", str(out), "--preset", "caravaggio",
            "--seed", "1", "--scale", "2", "--metadata", str(meta),
        ])
        assert rc == 0
        assert Image.open(out).size == (64, 48)
        data = json.loads(meta.read_text(encoding="utf-8"))
        assert data["master"] == "caravaggio"
        assert data["version"] == "7.0.0"
        assert data["export"]["width"] == 64 and data["export"]["format"] == "png"
        assert data["dimensions"]["historicalConstraints"]["period"] == "BAROQUE"

    def test_config_file_and_overrides(self, src_png, tmp_path):
        cfg = tmp_path / "dna.json"
        cfg.write_text(neutral_configuration().to_json(), encoding="utf-8")
        out = tmp_path / "out.jpg"
        rc = cli.main([
            "run", "--url", str(src_png), "--out", str(out), "--config", str(cfg),
            "--extra", "finition.master=100", "finition.masterLustre=100",
        ])
        assert rc == 0
        assert Image.open(out).format == "JPEG"

    def test_missing_input_fails(self, tmp_path):
        assert cli.main(["run", "--url", str(tmp_path / "nope.png"), "--out", str(tmp_path / "o.png")]) == 1

    def test_undecodable_input_fails(self, tmp_path):
        bad = tmp_path / "bad.png"
        bad.write_bytes(b"not a png")
        assert cli.main(["run", "--url", str(bad), "--out", str(tmp_path / "o.png")]) == 1

    def test_unknown_preset_fails(self, src_png, tmp_path):
        assert cli.main(["run", "--url", str(src_png), "--out", str(tmp_path / "o.png"), "--preset", "dali"]) == 1

    def test_bad_override_fails(self, src_png, tmp_path):
        rc = cli.main(["run", "--url", str(src_png), "--out", str(tmp_path / "o.png"), "--extra", "finition.sparkle=3"])
        assert rc == 1


class TestOtherCommands:

    def test_list(self, capsys):
        assert cli.main(["list"]) == 0
        out = capsys.readouterr().out
        assert "gaussian_blur" in out
        assert "TemporalSpatial -> MaterialSpiritual" in out

    def test_presets(self, capsys):
        assert cli.main(["presets"]) == 0
        out = capsys.readouterr().out
        assert out.splitlines()[0].startswith("caravaggio")
        assert len(out.splitlines()) == 10

    def test_presets_show(self, capsys):
        assert cli.main(["presets", "--show", "vermeer"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["meta"]["artist"] == "Vermeer"

    def test_analyze_with_histogram(self, src_png, capsys):
        assert cli.main(["analyze", "--url", str(src_png), "--histogram"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert (data["width"], data["height"]) == (32, 24)
        assert len(data["histogram"]["luminance"]) == 256
        assert sum(data["histogram"]["r"]) == 32 * 24

    def test_detect_json(self, dark_warm_png, capsys):
        assert cli.main(["detect", "--url", str(dark_warm_png), "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["suggestedMaster"] == "caravaggio"
        assert data["alternatives"][0]["master"] == "rembrandt"

    def test_detect_apply(self, dark_warm_png, tmp_path, capsys):
        out = tmp_path / "styled.png"
        assert cli.main(["detect", "--url", str(dark_warm_png), "--apply", "--out", str(out), "--seed", "2"]) == 0
        assert "Suggested: Caravaggio (76%)" in capsys.readouterr().out
        assert Image.open(out).size == (100, 100)

    def test_detect_apply_needs_out(self, dark_warm_png):
        assert cli.main(["detect", "--url", str(dark_warm_png), "--apply"]) == 1

    def test_bench(self, src_png, capsys):
        assert cli.main(["bench", "--url", str(src_png), "--runs", "1", "--preset", "monet"]) == 0
        assert "monet @ 32x24: 1 run(s)" in capsys.readouterr().out
