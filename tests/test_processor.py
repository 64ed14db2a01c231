"""Tests for the Processor facade."""

import io

import numpy as np
import pytest
from PIL import Image

from dna import default_configuration, neutral_configuration
from pixels import PixelBuffer
from processor import DecodeError, NoImageLoaded, Processor


def png_bytes(size=(16, 12), color=(120, 80, 40)) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", size, color).save(out, format="PNG")
    return out.getvalue()


class TestLoading:

    @pytest.mark.parametrize("call", [
        lambda p: p.process(default_configuration()),
        lambda p: p.analyze(),
        lambda p: p.detect(),
        lambda p: p.dimensions,
    ])
    def test_requires_load(self, call):
        with pytest.raises(NoImageLoaded):
            call(Processor())

    def test_load_png_bytes(self):
        proc = Processor()
        proc.load(png_bytes())
        assert proc.loaded
        assert proc.dimensions == (16, 12)
        assert proc.original.get_pixel(3, 3) == (120, 80, 40, 255)

    def test_load_pil_and_array(self):
        proc = Processor()
        proc.load(Image.new("RGBA", (4, 5), (1, 2, 3, 4)))
        assert proc.dimensions == (4, 5)
        proc.load(np.zeros((3, 7, 3), np.uint8))
        assert proc.dimensions == (7, 3)

    @pytest.mark.parametrize("source", [b"definitely not an image", None, 42, np.zeros((2, 2, 5))])
    def test_decode_errors(self, source):
        with pytest.raises(DecodeError):
            Processor().load(source)

    def test_truncated_lazy_image(self):
        noisy = np.random.default_rng(0).integers(0, 256, size=(64, 64, 3), dtype=np.uint8)
        out = io.BytesIO()
        Image.fromarray(noisy, "RGB").save(out, format="PNG")
        truncated = out.getvalue()[:400]
        img = Image.open(io.BytesIO(truncated))  # header parses, pixels are not read yet
        with pytest.raises(DecodeError, match="Failed to decode image"):
            Processor().load(img)
        with pytest.raises(DecodeError):
            Processor().load(truncated)

    def test_failed_load_keeps_previous_image(self, gray_image):
        proc = Processor()
        proc.load(gray_image)
        with pytest.raises(DecodeError):
            proc.load(b"garbage")
        assert proc.dimensions == (100, 100)

    def test_load_copies_buffer(self, gray_image):
        proc = Processor()
        proc.load(gray_image)
        gray_image.set_pixel(0, 0, (0, 0, 0, 0))
        assert proc.original.get_pixel(0, 0) == (128, 128, 128, 255)


class TestProcessing:

    def test_original_never_mutated(self, gradient_image):
        proc = Processor()
        proc.load(gradient_image)
        proc.process(default_configuration(), seed=3)
        proc.process(default_configuration(), seed=4)
        assert proc.original == gradient_image

    def test_original_is_read_only(self, gray_image):
        proc = Processor()
        proc.load(gray_image)
        with pytest.raises(ValueError):
            proc.original.pixels[0, 0, 0] = 1

    def test_process_is_not_cumulative(self, gradient_image):
        proc = Processor()
        proc.load(gradient_image)
        first = proc.process(default_configuration(), seed=9)
        proc.process(default_configuration(), seed=1)
        again = proc.process(default_configuration(), seed=9)
        assert first == again

    def test_neutral_raw_is_identity(self, gradient_image):
        proc = Processor()
        proc.load(gradient_image)
        out = proc.process(neutral_configuration(), finish=False)
        assert out == gradient_image
        assert out is not proc.original

    def test_injected_rng(self, gradient_image):
        proc = Processor()
        proc.load(gradient_image)
        a = proc.process(default_configuration(), rng=np.random.default_rng(5))
        b = proc.process(default_configuration(), rng=np.random.default_rng(5))
        assert a == b

    def test_analyze_and_detect_use_original(self, gray_image):
        proc = Processor()
        proc.load(gray_image)
        assert proc.analyze().contrast == 0
        assert proc.detect().suggested_master == "turner"
