"""
Theme definitions for Block-Canvas.

Provides light and dark color palettes for rendering composed canvases.
Each theme defines colors for:
- Canvas background
- Block levels (high-level, intermediate, granular)
- System envelopes and their controls
- Edges
"""

from __future__ import annotations
from dataclasses import dataclass

from .models import EdgeStyle, NodeKind


@dataclass
class ThemePalette:
    """Color palette for a theme."""

    # Canvas
    background: str

    # Text
    title_color: str
    label_text: str

    # System envelope
    system_border: str
    system_fill: str

    # Block levels
    high_level: str
    intermediate: str
    intermediate_alpha: int
    granular: str

    # Controls
    removal_fill: str
    drag_handle_fill: str

    # Edges
    edge_color: str


# Muted pastels on an off-white canvas - default
LIGHT_THEME = ThemePalette(
    background="#fcfcfc",
    title_color="#333333",
    label_text="#ffffff",
    system_border="#B8C1AA",
    system_fill="#f4f6f0",
    high_level="#C1B8AA",
    intermediate="#AAB8C1",
    intermediate_alpha=179,
    granular="#B8AAC1",
    removal_fill="#ff3333",
    drag_handle_fill="#f0f0f0",
    edge_color="#555555",
)


# Catppuccin Mocha (dark theme)
DARK_THEME = ThemePalette(
    background="#11111b",
    title_color="#cdd6f4",
    label_text="#11111b",
    system_border="#45475a",
    system_fill="#181825",
    high_level="#f5c2e7",
    intermediate="#89b4fa",
    intermediate_alpha=120,
    granular="#cba6f7",
    removal_fill="#f38ba8",
    drag_handle_fill="#6c7086",
    edge_color="#a6adc8",
)


# Theme registry
THEMES: dict[str, ThemePalette] = {
    "light": LIGHT_THEME,
    "dark": DARK_THEME,
}


# What each edge class means; shown next to the canvas as a legend
EDGE_LEGEND: dict[EdgeStyle, str] = {
    EdgeStyle.DATA_DEPENDENCY: (
        "Defines how data flows through the system as a result of computations "
        "(output of one component used as input by another)."
    ),
    EdgeStyle.INTERACTION_DEPENDENCY: (
        "Defines how user-driven interactions affect downstream components by "
        "passing restrictions or filters rather than raw data."
    ),
}


def get_theme(name: str) -> ThemePalette:
    """Get a theme palette by name.

    Args:
        name: Theme name ("light" or "dark")

    Returns:
        ThemePalette for the requested theme

    Raises:
        ValueError: If theme name is not recognized
    """
    if name not in THEMES:
        valid = ", ".join(THEMES.keys())
        raise ValueError(f"Unknown theme '{name}'. Valid themes: {valid}")
    return THEMES[name]


def kind_color(theme: ThemePalette, kind: NodeKind) -> str:
    """Accent color for a node kind (the minimap coloring)."""
    if kind == NodeKind.HIGH_LEVEL_GROUP:
        return theme.high_level
    if kind == NodeKind.INTERMEDIATE_GROUP:
        return theme.intermediate
    if kind == NodeKind.GRANULAR:
        return theme.granular
    if kind == NodeKind.REMOVAL_CONTROL:
        return theme.removal_fill
    if kind == NodeKind.DRAG_HANDLE:
        return theme.drag_handle_fill
    return theme.system_border
