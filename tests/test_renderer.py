"""Tests for the PNG preview renderer and themes."""

from io import BytesIO

import pytest
from PIL import Image

from block_canvas import ingest_document
from block_canvas.models import EdgeStyle, NodeKind
from block_canvas.renderer import CanvasRenderer, _darken, _find_font, _fit_lines, _hex_to_rgb
from block_canvas.themes import DARK_THEME, EDGE_LEGEND, LIGHT_THEME, get_theme, kind_color


class TestRenderer:
    """Tests for rasterizing a composed canvas."""

    def test_empty_canvas(self, manager):
        png = CanvasRenderer(scale=0.1).render(manager.view())
        img = Image.open(BytesIO(png))
        assert img.size == (200, 200)

    def test_image_matches_canvas(self, manager, compute_document, pipeline_document):
        ingest_document(manager, compute_document)
        ingest_document(manager, pipeline_document)
        view = manager.view()
        png = CanvasRenderer(scale=0.25).render(view)
        img = Image.open(BytesIO(png))
        assert img.size == (int(view.canvas.width * 0.25), int(view.canvas.height * 0.25))

    def test_writes_file(self, manager, compute_document, tmp_path):
        ingest_document(manager, compute_document)
        output = tmp_path / "canvas.png"
        png = CanvasRenderer(scale=0.2, theme="dark").render(manager.view(), output_path=str(output))
        assert output.read_bytes() == png

    def test_background_color(self, manager):
        png = CanvasRenderer(scale=0.05).render(manager.view())
        img = Image.open(BytesIO(png)).convert("RGB")
        assert img.getpixel((0, 0)) == _hex_to_rgb(LIGHT_THEME.background)

    def test_unknown_theme(self):
        with pytest.raises(ValueError, match="Unknown theme"):
            CanvasRenderer(theme="neon")


class TestThemes:
    """Tests for palettes and color helpers."""

    def test_lookup(self):
        assert get_theme("light") is LIGHT_THEME
        assert get_theme("dark") is DARK_THEME

    def test_kind_colors_follow_hierarchy(self):
        assert kind_color(LIGHT_THEME, NodeKind.HIGH_LEVEL_GROUP) == LIGHT_THEME.high_level
        assert kind_color(LIGHT_THEME, NodeKind.INTERMEDIATE_GROUP) == LIGHT_THEME.intermediate
        assert kind_color(LIGHT_THEME, NodeKind.GRANULAR) == LIGHT_THEME.granular

    def test_legend_covers_every_edge_style(self):
        assert set(EDGE_LEGEND) == set(EdgeStyle)

    def test_hex_helpers(self):
        assert _hex_to_rgb("#fff") == (255, 255, 255)
        assert _darken("#ffffff", 0.5) == "#7f7f7f"


class TestFitLines:
    """Tests for fitting granular labels inside their circle."""

    @pytest.fixture
    def font(self):
        return _find_font(13)

    def test_short_label_single_line(self, font):
        assert _fit_lines("Ranker", font, 500) == ["Ranker"]

    def test_long_label_capped_at_three_lines(self, font):
        text = " ".join(["segment"] * 30)
        lines = _fit_lines(text, font, 80)
        assert len(lines) == 3
        assert lines[-1].endswith("...")

    def test_empty_label(self, font):
        assert _fit_lines("", font, 80) == []
