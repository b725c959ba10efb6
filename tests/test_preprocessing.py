"""
Tests for image preprocessing module.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


def encode(img):
    import cv2
    return cv2.imencode('.png', img)[1].tobytes()


class TestDecoding:
    """Test decoding and validation of raw bytes."""

    @pytest.fixture
    def sample_png(self):
        img = np.ones((120, 200, 3), dtype=np.uint8) * 255
        img[40:60, 20:180] = [0, 0, 0]
        return encode(img)

    def test_decode_color(self, sample_png):
        """Test decoding returns a 3-channel array."""
        from mathseek.utils.images import decode_image

        img = decode_image(sample_png)

        assert img.shape == (120, 200, 3)

    def test_decode_grayscale(self, sample_png):
        """Test decoding a grayscale image."""
        from mathseek.utils.images import decode_image

        img = decode_image(sample_png, grayscale=True)

        assert img.shape == (120, 200)

    def test_decode_garbage_raises(self):
        """Test decoding garbage bytes."""
        from mathseek.utils.images import decode_image
        from mathseek.exceptions import ImageError

        with pytest.raises(ImageError):
            decode_image(b"definitely not an image")

    def test_decode_empty_raises(self):
        """Test decoding empty bytes."""
        from mathseek.utils.images import decode_image
        from mathseek.exceptions import ImageError

        with pytest.raises(ImageError):
            decode_image(b"")

    def test_validate_image(self, sample_png):
        """Test image validation."""
        from mathseek.utils.images import validate_image

        assert validate_image(sample_png) is True
        assert validate_image(b"") is False
        assert validate_image(b"\x89PNG truncated") is False

    def test_get_image_dimensions(self, sample_png):
        """Test dimensions are reported as (width, height)."""
        from mathseek.utils.images import get_image_dimensions

        assert get_image_dimensions(sample_png) == (200, 120)


class TestSuitability:
    """Test suitability limits."""

    def test_suitable_image(self):
        """Test a suitable image passes."""
        from mathseek.utils.images import is_suitable_for_processing

        data = encode(np.ones((100, 100), dtype=np.uint8) * 255)

        assert is_suitable_for_processing(data)

    def test_too_small(self):
        """Test an image below the minimum size."""
        from mathseek.utils.images import is_suitable_for_processing

        data = encode(np.ones((40, 300), dtype=np.uint8) * 255)

        assert not is_suitable_for_processing(data)

    def test_minimum_dimension_accepted(self):
        """Test the minimum size is accepted."""
        from mathseek.utils.images import is_suitable_for_processing

        data = encode(np.ones((50, 50), dtype=np.uint8) * 255)

        assert is_suitable_for_processing(data)

    def test_too_large(self):
        """Test an image above the maximum size."""
        from mathseek.utils.images import is_suitable_for_processing

        data = encode(np.ones((60, 4100), dtype=np.uint8) * 255)

        assert not is_suitable_for_processing(data)

    def test_image_info(self):
        """Test image info fields."""
        from mathseek.utils.images import get_image_info

        data = encode(np.ones((80, 90), dtype=np.uint8) * 255)
        info = get_image_info(data)

        assert info["width"] == 90
        assert info["height"] == 80
        assert info["size"] == len(data)
        assert info["is_suitable"] is True


class TestPreprocessing:
    """Test image preprocessing functions."""

    @pytest.fixture
    def sample_color_image(self):
        """Create a sample color image."""
        img = np.ones((300, 400, 3), dtype=np.uint8) * 255
        img[50:60, 50:200] = [0, 0, 0]
        img[80:90, 50:180] = [0, 0, 0]
        return img

    def test_to_grayscale_already_gray(self):
        """Test that grayscale images are returned unchanged."""
        from mathseek.utils.images import to_grayscale

        img = np.ones((30, 40), dtype=np.uint8) * 128
        result = to_grayscale(img)

        np.testing.assert_array_equal(result, img)

    def test_to_grayscale_from_color(self, sample_color_image):
        """Test conversion from color to grayscale."""
        from mathseek.utils.images import to_grayscale

        result = to_grayscale(sample_color_image)

        assert len(result.shape) == 2
        assert result.shape[:2] == sample_color_image.shape[:2]

    def test_limit_size_within_bounds(self, sample_color_image):
        """Test small images are not resized."""
        from mathseek.utils.images import limit_size

        result = limit_size(sample_color_image)

        assert result is sample_color_image

    def test_limit_size_preserves_aspect(self):
        """Test downscaling keeps the aspect ratio."""
        from mathseek.utils.images import limit_size

        img = np.ones((1000, 4000), dtype=np.uint8) * 255
        result = limit_size(img, max_dimension=2048)

        assert result.shape == (512, 2048)

    def test_preprocess_produces_grayscale_png(self, sample_color_image):
        """Test preprocessing output is a single-channel PNG."""
        import cv2
        from mathseek.utils.images import preprocess_image

        processed = preprocess_image(encode(sample_color_image))

        assert processed.startswith(b"\x89PNG")
        img = cv2.imdecode(np.frombuffer(processed, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        assert img.ndim == 2
        assert img.shape == (300, 400)

    def test_preprocess_caps_dimension(self):
        """Test preprocessing caps the longest side."""
        import cv2
        from mathseek.utils.images import preprocess_image

        img = np.ones((100, 3000, 3), dtype=np.uint8) * 255
        processed = preprocess_image(encode(img))

        out = cv2.imdecode(np.frombuffer(processed, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        assert max(out.shape[:2]) == 2048

    def test_preprocess_invalid_raises(self):
        """Test preprocessing invalid bytes."""
        from mathseek.utils.images import preprocess_image
        from mathseek.exceptions import ImageError

        with pytest.raises(ImageError):
            preprocess_image(b"nope")


class TestBase64:
    """Test base64 helpers."""

    def test_data_url(self):
        """Test the base64 data URL."""
        from mathseek.utils.images import image_to_base64, base64_to_image

        data = encode(np.ones((60, 60), dtype=np.uint8) * 255)
        url = image_to_base64(data)

        assert url.startswith("data:image/png;base64,")
        assert base64_to_image(url) == data

    def test_invalid_base64(self):
        """Test invalid base64 is rejected."""
        from mathseek.utils.images import base64_to_image
        from mathseek.exceptions import ImageError

        with pytest.raises(ImageError):
            base64_to_image("not*base64!")

    def test_image_to_base64_rejects_invalid(self):
        """Test invalid image bytes are not encoded."""
        from mathseek.utils.images import image_to_base64
        from mathseek.exceptions import ImageError

        with pytest.raises(ImageError):
            image_to_base64(b"garbage")
