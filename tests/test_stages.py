"""Tests for the six-stage pipeline."""

import numpy as np
import pytest

import filters as F
from conftest import solid
from dna import apply_overrides, default_configuration, neutral_configuration
from pixels import PixelBuffer
from stages import FINISHING_VIGNETTE, NEUTRAL_GRADE, PERIOD_GRADES, STAGES, period_grade, run_stages


@pytest.fixture
def photo() -> PixelBuffer:
    """Small image with shadows, midtones and highlights."""
    rng = np.random.default_rng(11)
    yy, xx = np.mgrid[0:20, 0:24]
    base = np.dstack([xx * 10, yy * 12, (xx + yy) * 5]).astype(np.float64)
    return PixelBuffer.from_array(base + rng.normal(0, 4, base.shape))


class TestStageTable:

    def test_order(self):
        assert [s.name for s in STAGES] == [
            "TemporalSpatial", "MaterialSpiritual", "LightRevelation",
            "GazePsychology", "HistoricalConstraints", "Finition",
        ]

    def test_every_sub_parameter_has_a_chain(self):
        cfg = default_configuration()
        for stage in STAGES:
            group = getattr(cfg, stage.attr)
            if stage.name == "HistoricalConstraints":
                continue
            assert [p for p, _ in stage.chains] == [n for n, _ in group.sub_parameters()]

    def test_only_grain_effects_take_rng(self):
        effects = [fx for stage in STAGES for _, chain in getattr(stage, "chains", ()) for fx in chain]
        assert effects
        assert any(fx.primitive is F.film_grain for fx in effects)
        for fx in effects:
            assert fx.uses_rng == (fx.primitive is F.film_grain)
        assert FINISHING_VIGNETTE.uses_rng is False


class TestPipeline:

    def test_neutral_without_finish_is_identity(self, photo):
        before = photo.copy()
        run_stages(photo, neutral_configuration(), finish=False)
        assert photo == before

    def test_master_zero_skips_group(self, photo):
        cfg = apply_overrides(neutral_configuration(), {
            "lightRevelation.lightAsDivineProof": 100,
            "lightRevelation.lightAsDramaticTools": 100,
        })
        before = photo.copy()
        run_stages(photo, cfg, finish=False)
        assert photo == before

    def test_gray_with_finition_only(self, gray_image):
        cfg = apply_overrides(neutral_configuration(), {"finition.master": 50, "finition.finalGlow": 50})
        run_stages(gray_image, cfg)
        assert gray_image.get_pixel(50, 50)[:3] == (128, 128, 128)
        assert gray_image.get_pixel(0, 0)[:3] == (120, 120, 120)

    def test_finishing_vignette_runs_with_finition_master_zero(self, gray_image):
        run_stages(gray_image, neutral_configuration())
        assert gray_image.get_pixel(0, 0)[0] == 120
        assert gray_image.get_pixel(50, 50)[0] == 128

    def test_seeded_runs_are_identical(self, photo):
        a, b = photo.copy(), photo.copy()
        run_stages(a, default_configuration(), np.random.default_rng(7))
        run_stages(b, default_configuration(), np.random.default_rng(7))
        assert a == b
        assert a != photo

    def test_alpha_preserved(self):
        buf = solid(16, 16, (90, 60, 40), alpha=123)
        run_stages(buf, default_configuration(), np.random.default_rng(0))
        assert (buf.pixels[..., 3] == 123).all()

    def test_highlight_boost_is_monotonic(self):
        means = []
        for level in (0, 50, 100):
            buf = solid(10, 10, (220, 220, 220))
            cfg = apply_overrides(neutral_configuration(), {
                "lightRevelation.master": 100,
                "lightRevelation.lightSymbolism": 0,
                "lightRevelation.lightAsDivineProof": level,
            })
            run_stages(buf, cfg, finish=False)
            means.append(buf.pixels[..., :3].mean())
        assert means[0] == 220
        assert means[0] <= means[1] <= means[2]

    def test_higher_master_pulls_further(self, photo):
        results = []
        for master in (0, 50, 100):
            buf = photo.copy()
            cfg = apply_overrides(neutral_configuration(), {
                "temporalSpatial.master": master,
                "temporalSpatial.atmosphericIndication": 100,
            })
            run_stages(buf, cfg, finish=False)
            results.append(np.abs(buf.rgb - photo.rgb).mean())
        assert results[0] == 0
        assert results[0] < results[1] < results[2]


class TestHistorical:

    def test_unknown_period_is_neutral(self):
        assert period_grade("PRE_RAPHAELITE") is PERIOD_GRADES["CONTEMPORARY"]
        assert period_grade("MODERN") == NEUTRAL_GRADE

    def test_golden_age_warms_midtones(self, gray_image):
        cfg = apply_overrides(neutral_configuration(), {
            "historicalConstraints.master": 100,
            "historicalConstraints.period": "GOLDEN_AGE",
            "historicalConstraints.fidelity": 100,
        })
        run_stages(gray_image, cfg, np.random.default_rng(1), finish=False)
        r, g, b = gray_image.pixels[..., :3].reshape(-1, 3).mean(axis=0)
        assert r - b > 8
        assert r > 128 > b

    def test_zero_fidelity_skips(self, gray_image):
        cfg = apply_overrides(neutral_configuration(), {
            "historicalConstraints.master": 100,
            "historicalConstraints.period": "BAROQUE",
        })
        before = gray_image.copy()
        run_stages(gray_image, cfg, finish=False)
        assert gray_image == before

    def test_modern_has_no_grade(self, gray_image):
        cfg = apply_overrides(neutral_configuration(), {
            "historicalConstraints.master": 100,
            "historicalConstraints.period": "MODERN",
            "historicalConstraints.fidelity": 100,
        })
        before = gray_image.copy()
        run_stages(gray_image, cfg, finish=False)
        assert gray_image == before
