"""Style resolution: sparse overrides -> backend drawing options."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Tuple

from .models import DEFAULT_STYLE, ResolvedStyle, Style

FILL_STYLES = ("solid", "hachure", "cross-hatch")
DASH_PATTERNS = {
    "dashed": (8.0, 8.0),
    "dotted": (2.0, 4.0),
}


@dataclass(frozen=True)
class RenderOptions:
    """Options understood by :class:`aidraw.sketch.SketchCanvas`.

    ``fill`` is ``None`` when the shape is not filled and ``stroke_line_dash``
    is ``None`` for a continuous stroke.
    """

    stroke: str
    stroke_width: float
    roughness: float
    fill_style: str
    fill: Optional[str] = None
    stroke_line_dash: Optional[Tuple[float, ...]] = None

    def solid_fill(self, fill: str) -> "RenderOptions":
        return replace(self, fill=fill, fill_style="solid")


def merge_style(style: Optional[Style]) -> ResolvedStyle:
    if style is None:
        return DEFAULT_STYLE
    return ResolvedStyle(
        fill=_pick(style.fill, DEFAULT_STYLE.fill),
        stroke=_pick(style.stroke, DEFAULT_STYLE.stroke),
        stroke_width=_pick(style.stroke_width, DEFAULT_STYLE.stroke_width),
        stroke_style=_pick(style.stroke_style, DEFAULT_STYLE.stroke_style),
        fill_style=_pick(style.fill_style, DEFAULT_STYLE.fill_style),
        roughness=_pick(style.roughness, DEFAULT_STYLE.roughness),
        opacity=_pick(style.opacity, DEFAULT_STYLE.opacity),
    )


def style_to_options(style: Optional[Style]) -> RenderOptions:
    resolved = merge_style(style)
    fill_style = resolved.fill_style if resolved.fill_style in FILL_STYLES else "hachure"
    return RenderOptions(
        fill=None if resolved.fill == "transparent" else resolved.fill,
        stroke=resolved.stroke,
        stroke_width=resolved.stroke_width,
        roughness=resolved.roughness,
        fill_style=fill_style,
        stroke_line_dash=DASH_PATTERNS.get(resolved.stroke_style),
    )


def style_opacity(style: Optional[Style]) -> float:
    """Global alpha in ``[0, 1]`` for an element's draw calls."""
    return max(0.0, min(1.0, merge_style(style).opacity / 100.0))


def text_color(style: Optional[Style]) -> str:
    return merge_style(style).stroke


def _pick(value, default):
    return default if value is None else value


__all__ = ["RenderOptions", "merge_style", "style_opacity", "style_to_options", "text_color"]
