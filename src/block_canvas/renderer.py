"""Preview renderer using Pillow. Rasterizes a composed canvas to PNG."""

from __future__ import annotations

import math
from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw, ImageFont

from .composition import absolute_positions
from .models import CanvasView, EdgeStyle, LayoutEdge, LayoutNode, NodeKind
from .themes import ThemePalette, get_theme, kind_color


# --- Font handling ---

REGULAR_FONTS = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
)
BOLD_FONTS = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
)


def _find_font(size: int, bold: bool = False) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """First installed TrueType font, bold ones tried first when asked."""
    candidates = BOLD_FONTS + REGULAR_FONTS if bold else REGULAR_FONTS
    for fp in candidates:
        if Path(fp).exists():
            return ImageFont.truetype(fp, size)
    return ImageFont.load_default()


# --- Color helpers ---

def _hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """Convert hex color to RGB tuple. Supports both 3-char and 6-char hex."""
    hex_color = hex_color.lstrip("#")
    if len(hex_color) == 3:
        hex_color = hex_color[0]*2 + hex_color[1]*2 + hex_color[2]*2
    return tuple(int(hex_color[i:i+2], 16) for i in (0, 2, 4))


def _hex_to_rgba(hex_color: str, alpha: int = 255) -> tuple[int, int, int, int]:
    """Convert hex color to RGBA tuple."""
    r, g, b = _hex_to_rgb(hex_color)
    return (r, g, b, alpha)


def _darken(hex_color: str, factor: float = 0.8) -> str:
    """Darken a hex color."""
    r, g, b = _hex_to_rgb(hex_color)
    return f"#{int(r * factor):02x}{int(g * factor):02x}{int(b * factor):02x}"


# --- Drawing primitives ---

def _draw_arrow(
    draw: ImageDraw.ImageDraw,
    start: tuple[float, float],
    end: tuple[float, float],
    color: str,
    width: int = 2,
    arrow_size: int = 10,
):
    """Draw a line with an arrowhead."""
    draw.line([start, end], fill=color, width=width)

    dx = end[0] - start[0]
    dy = end[1] - start[1]
    length = math.sqrt(dx * dx + dy * dy)
    if length == 0:
        return

    udx = dx / length
    udy = dy / length

    ax = end[0] - arrow_size * udx + (arrow_size / 2) * udy
    ay = end[1] - arrow_size * udy - (arrow_size / 2) * udx
    bx = end[0] - arrow_size * udx - (arrow_size / 2) * udy
    by = end[1] - arrow_size * udy + (arrow_size / 2) * udx

    draw.polygon([(end[0], end[1]), (ax, ay), (bx, by)], fill=color)


def _text_width(font, text: str) -> float:
    left, _, right, _ = font.getbbox(text)
    return right - left


def _fit_lines(text: str, font, max_width: float, max_lines: int = 3) -> list[str]:
    """Pack words into at most ``max_lines`` lines; overflow ends in "..."."""
    lines: list[str] = []
    words = text.split()
    while words and len(lines) < max_lines:
        line = words.pop(0)
        while words and _text_width(font, f"{line} {words[0]}") <= max_width:
            line = f"{line} {words.pop(0)}"
        lines.append(line)

    if words and lines:
        last = lines[-1]
        while last and _text_width(font, last + "...") > max_width:
            last = last[:-1]
        lines[-1] = last + "..."
    return lines


# --- Main renderer ---

class CanvasRenderer:
    """Renders a ``CanvasView`` to a PNG image."""

    LABEL_PADDING_X = 12
    LABEL_PADDING_Y = 8
    EDGE_WIDTH = 2

    def __init__(self, scale: float = 1.0, theme: str = "light"):
        self.scale = scale
        self.theme: ThemePalette = get_theme(theme)
        self.font_body = _find_font(max(1, int(13 * scale)))
        self.font_label = _find_font(max(1, int(15 * scale)), bold=True)
        self.font_control = _find_font(max(1, int(18 * scale)), bold=True)

    def render(self, view: CanvasView, output_path: Optional[str] = None) -> bytes:
        """Render the canvas to PNG bytes. Optionally save to file."""
        img_width = max(1, int(view.canvas.width * self.scale))
        img_height = max(1, int(view.canvas.height * self.scale))

        img = Image.new("RGBA", (img_width, img_height), _hex_to_rgba(self.theme.background))
        draw = ImageDraw.Draw(img)

        positions = absolute_positions(view)
        nodes_by_id = {n.id: n for n in view.nodes}

        # Containers first, in list order (parents precede children)
        for node in view.nodes:
            if node.kind in (NodeKind.SYSTEM, NodeKind.HIGH_LEVEL_GROUP, NodeKind.INTERMEDIATE_GROUP):
                self._draw_container(draw, node, positions[node.id])

        for node in view.nodes:
            if node.kind == NodeKind.GRANULAR:
                self._draw_granular(draw, node, positions[node.id])

        # Edges above nodes, lower z-order first
        for edge in sorted(view.edges, key=lambda e: e.z_order):
            self._draw_edge(draw, edge, nodes_by_id, positions)

        for node in view.nodes:
            if node.kind == NodeKind.LABEL:
                self._draw_label(draw, node, nodes_by_id, positions[node.id])
            elif node.kind in (NodeKind.REMOVAL_CONTROL, NodeKind.DRAG_HANDLE):
                self._draw_control(draw, node, positions[node.id])

        buf = BytesIO()
        img.save(buf, format="PNG", optimize=True)
        png_bytes = buf.getvalue()

        if output_path:
            Path(output_path).write_bytes(png_bytes)

        return png_bytes

    def _box(self, node: LayoutNode, pos: tuple[float, float]) -> tuple[float, float, float, float]:
        s = self.scale
        x, y = pos
        return (x * s, y * s, (x + node.size.width) * s, (y + node.size.height) * s)

    def _draw_container(self, draw: ImageDraw.ImageDraw, node: LayoutNode, pos: tuple[float, float]):
        """Draw a system envelope or a block group."""
        color = kind_color(self.theme, node.kind)
        if node.kind == NodeKind.SYSTEM:
            fill = _hex_to_rgba(self.theme.system_fill)
            radius, width = 10, 2
        elif node.kind == NodeKind.HIGH_LEVEL_GROUP:
            fill = None
            radius, width = 8, 3
        else:
            fill = _hex_to_rgba(color, self.theme.intermediate_alpha)
            radius, width = 6, 2

        draw.rounded_rectangle(
            self._box(node, pos),
            radius=int(radius * self.scale),
            fill=fill,
            outline=color,
            width=max(1, int(width * self.scale)),
        )

    def _draw_label(
        self,
        draw: ImageDraw.ImageDraw,
        node: LayoutNode,
        nodes_by_id: dict[str, LayoutNode],
        pos: tuple[float, float],
    ):
        """Draw a title ribbon in the owning container's color."""
        owner = nodes_by_id.get(node.parent_id) if node.parent_id else None
        color = kind_color(self.theme, owner.kind) if owner else self.theme.system_border
        text = str(node.payload.get("label", ""))

        x1, y1, _, _ = self._box(node, pos)
        bbox = self.font_label.getbbox(text)
        text_w = bbox[2] - bbox[0]
        text_h = bbox[3] - bbox[1]
        px = self.LABEL_PADDING_X * self.scale
        py = self.LABEL_PADDING_Y * self.scale
        width = max(node.size.width * self.scale, text_w + 2 * px)
        height = max(node.size.height * self.scale, text_h + 2 * py)

        draw.rounded_rectangle(
            (x1, y1, x1 + width, y1 + height),
            radius=int(6 * self.scale),
            fill=_darken(color),
        )
        draw.text((x1 + px, y1 + (height - text_h) / 2 - bbox[1]), text,
                  fill=self.theme.label_text, font=self.font_label)

    def _draw_granular(self, draw: ImageDraw.ImageDraw, node: LayoutNode, pos: tuple[float, float]):
        """Draw a granular block as a labelled circle."""
        x1, y1, x2, y2 = self._box(node, pos)
        color = self.theme.granular
        draw.ellipse((x1, y1, x2, y2), fill=color, outline=_darken(color, 0.7),
                     width=max(1, int(2 * self.scale)))

        text = str(node.payload.get("label", ""))
        max_width = int((x2 - x1) * 0.8)
        lines = _fit_lines(text, self.font_body, max_width)
        line_height = int(16 * self.scale)
        top = (y1 + y2) / 2 - len(lines) * line_height / 2
        for i, line in enumerate(lines):
            bbox = self.font_body.getbbox(line)
            lw = bbox[2] - bbox[0]
            draw.text(((x1 + x2 - lw) / 2, top + i * line_height), line,
                      fill=self.theme.title_color, font=self.font_body)

    def _draw_control(self, draw: ImageDraw.ImageDraw, node: LayoutNode, pos: tuple[float, float]):
        """Draw the removal button or the drag-handle marker."""
        x1, y1, x2, y2 = self._box(node, pos)
        color = kind_color(self.theme, node.kind)
        draw.ellipse((x1, y1, x2, y2), fill=color, outline=_darken(color, 0.7))

        glyph = "×" if node.kind == NodeKind.REMOVAL_CONTROL else "+"
        bbox = self.font_control.getbbox(glyph)
        gw = bbox[2] - bbox[0]
        gh = bbox[3] - bbox[1]
        draw.text(((x1 + x2 - gw) / 2 - bbox[0], (y1 + y2 - gh) / 2 - bbox[1]), glyph,
                  fill=self.theme.label_text, font=self.font_control)

    def _draw_edge(
        self,
        draw: ImageDraw.ImageDraw,
        edge: LayoutEdge,
        nodes_by_id: dict[str, LayoutNode],
        positions: dict[str, tuple[float, float]],
    ):
        """Draw an edge between the rims of two granular circles."""
        source = nodes_by_id.get(edge.source)
        target = nodes_by_id.get(edge.target)
        if not source or not target:
            return

        s = self.scale
        sx = (positions[source.id][0] + source.size.width / 2) * s
        sy = (positions[source.id][1] + source.size.height / 2) * s
        tx = (positions[target.id][0] + target.size.width / 2) * s
        ty = (positions[target.id][1] + target.size.height / 2) * s

        dx, dy = tx - sx, ty - sy
        length = math.hypot(dx, dy)
        if length == 0:
            return
        ux, uy = dx / length, dy / length
        start = (sx + ux * source.size.width / 2 * s, sy + uy * source.size.height / 2 * s)
        end = (tx - ux * target.size.width / 2 * s, ty - uy * target.size.height / 2 * s)

        width = max(1, int(self.EDGE_WIDTH * s))
        if edge.arrowhead:
            _draw_arrow(draw, start, end, color=self.theme.edge_color, width=width,
                        arrow_size=max(4, int(10 * s)))
        else:
            draw.line([start, end], fill=self.theme.edge_color, width=width)

        if edge.style_class == EdgeStyle.INTERACTION_DEPENDENCY:
            # Round caps mark the undirected interaction style
            r = 3 * s
            for cx, cy in (start, end):
                draw.ellipse((cx - r, cy - r, cx + r, cy + r), fill=self.theme.edge_color)
