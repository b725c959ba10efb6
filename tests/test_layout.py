"""
Tests for layout analysis module.
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


class TestRegion:
    """Test Region class."""

    def test_region_properties(self):
        """Test region area and tuple form."""
        from mathseek.utils.models import Region

        region = Region(10, 20, 50, 40)

        assert region.area == 2000
        assert region.to_xywh() == (10, 20, 50, 40)
        assert region.to_dict() == {"x": 10, "y": 20, "width": 50, "height": 40}


class TestBlockAnalysis:
    """Test block iteration and classification."""

    def test_iter_blocks_clips_edges(self):
        """Test edge blocks are clipped to the image."""
        from mathseek.utils.layout import iter_blocks

        gray = np.ones((120, 75), dtype=np.uint8) * 255
        blocks = list(iter_blocks(gray, 50))

        # 3 rows x 2 columns
        assert len(blocks) == 6
        last_region, _ = blocks[-1]
        assert last_region.to_xywh() == (50, 100, 25, 20)

    def test_iter_blocks_integer_mean(self):
        """Test block means are truncated to integers."""
        from mathseek.utils.layout import iter_blocks

        gray = np.zeros((50, 50), dtype=np.uint8)
        gray[:, :25] = 255
        (_, mean), = list(iter_blocks(gray, 50))

        assert mean == 127

    def test_classify_blocks_thresholds(self):
        """Test dark blocks are formula-like and light-gray blocks text-like."""
        from mathseek.utils.layout import classify_blocks

        gray = np.ones((50, 150), dtype=np.uint8) * 255
        gray[:, 0:50] = 100     # formula-like
        gray[:, 50:100] = 220   # text-like
        # last block stays white: background

        formulas, texts = classify_blocks(gray)

        assert [r.x for r in formulas] == [0]
        assert [r.x for r in texts] == [50]

    def test_threshold_boundaries(self):
        """Test the formula and text luminance boundaries."""
        from mathseek.utils.layout import classify_blocks

        gray = np.ones((50, 100), dtype=np.uint8)
        gray[:, 0:50] = 200     # not below formula threshold -> text
        gray[:, 50:100] = 240   # not below content threshold -> background

        formulas, texts = classify_blocks(gray)

        assert formulas == []
        assert len(texts) == 1


class TestLayoutAnalysis:
    """Test layout analysis and input classification."""

    @pytest.fixture
    def blank_image(self):
        return encode(np.ones((200, 200), dtype=np.uint8) * 255)

    @pytest.fixture
    def single_formula_image(self):
        img = np.ones((200, 200), dtype=np.uint8) * 255
        img[50:100, 50:100] = 0
        return encode(img)

    @pytest.fixture
    def document_image(self):
        img = np.ones((200, 200), dtype=np.uint8) * 255
        img[0:50, 0:50] = 0
        img[100:150, 100:150] = 0
        img[150:200, 0:50] = 220
        return encode(img)

    def test_blank_is_single_formula(self, blank_image):
        """Test a blank image is a single formula."""
        from mathseek.utils.layout import analyze_layout, classify_input_type
        from mathseek.config import InputType

        layout = analyze_layout(blank_image)

        assert layout.total_regions == 0
        assert classify_input_type(blank_image) == InputType.SINGLE_FORMULA

    def test_single_region_is_single_formula(self, single_formula_image):
        """Test one region is a single formula."""
        from mathseek.utils.layout import analyze_layout, classify_input_type
        from mathseek.config import InputType

        layout = analyze_layout(single_formula_image)

        assert len(layout.formula_regions) == 1
        assert not layout.has_multiple_formulas
        assert not layout.has_text_content
        assert classify_input_type(single_formula_image) == InputType.SINGLE_FORMULA

    def test_document_detected(self, document_image):
        """Test several regions make a document."""
        from mathseek.utils.layout import analyze_layout, classify_input_type
        from mathseek.config import InputType

        layout = analyze_layout(document_image)

        assert layout.has_multiple_formulas
        assert layout.has_text_content
        assert classify_input_type(document_image) == InputType.DOCUMENT

    def test_deterministic(self, document_image):
        """Test layout analysis is deterministic."""
        from mathseek.utils.layout import analyze_layout

        assert analyze_layout(document_image) == analyze_layout(document_image)

    def test_layout_to_dict(self, document_image):
        """Test layout serialization."""
        from mathseek.utils.layout import analyze_layout

        result = analyze_layout(document_image).to_dict()

        assert len(result["formula_regions"]) == 2
        assert len(result["text_regions"]) == 1

    def test_debug_image_generation(self, document_image):
        """Test debug image is color and the size of the input."""
        from mathseek.utils.layout import analyze_layout, draw_layout_debug

        layout = analyze_layout(document_image)
        debug = draw_layout_debug(document_image, layout)

        assert debug.shape == (200, 200, 3)


class TestDetectionConfidence:
    """Test layout detection confidence."""

    def test_base_confidence(self):
        """Test the base detection confidence."""
        from mathseek.utils.layout import detection_confidence
        from mathseek.utils.models import ImageLayout

        layout = ImageLayout(has_multiple_formulas=False, has_text_content=False)

        assert detection_confidence(layout) == pytest.approx(0.5)

    def test_confidence_is_clamped(self):
        """Test detection confidence never exceeds one."""
        from mathseek.utils.layout import detection_confidence
        from mathseek.utils.models import ImageLayout, Region

        regions = [Region(0, 0, 50, 50) for _ in range(4)]
        layout = ImageLayout(
            has_multiple_formulas=True,
            has_text_content=True,
            formula_regions=regions,
        )

        assert detection_confidence(layout) == 1.0
