"""Raster drawing surface on top of Pillow with a canvas-style state stack."""
from __future__ import annotations

import io
import logging
import math
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

Affine = Tuple[float, float, float, float, float, float]
PointT = Tuple[float, float]
RGBA = Tuple[int, int, int, int]

GENERIC_FONT_FALLBACKS = {
    "sans-serif": ["Helvetica", "Arial", "Liberation Sans", "DejaVu Sans"],
    "serif": ["Times New Roman", "Times", "Liberation Serif", "DejaVu Serif"],
    "monospace": [
        "Courier New",
        "Courier",
        "Liberation Mono",
        "DejaVu Sans Mono",
    ],
}

TEXT_PAD = 2
MAX_TEXT_PIXELS = 1 << 24

_H_ANCHORS = {"left": "l", "center": "m", "right": "r"}
_V_ANCHORS = {"top": "a", "middle": "m", "bottom": "d", "alphabetic": "s"}


class FontResolver:
    """Caches Pillow fonts for CSS-style family lists."""

    FONT_DIRS = [
        Path("/System/Library/Fonts"),
        Path("/System/Library/Fonts/Supplemental"),
        Path("/Library/Fonts"),
        Path("~/Library/Fonts").expanduser(),
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        Path("C:/Windows/Fonts"),
    ]

    def __init__(self) -> None:
        self._font_cache: Dict[Tuple[str, int], ImageFont.FreeTypeFont] = {}
        self._font_paths: Dict[str, Optional[str]] = {}
        self._installed: Optional[List[Path]] = None

    def font(self, size: float, family_list: str) -> ImageFont.FreeTypeFont:
        key_size = max(1, int(round(size)))
        cache_key = (family_list.lower(), key_size)
        if cache_key in self._font_cache:
            return self._font_cache[cache_key]

        candidates: List[str] = []
        for family in _split_families(family_list):
            for name in GENERIC_FONT_FALLBACKS.get(family.lower(), [family]):
                resolved = self._locate_font(name)
                if resolved:
                    candidates.append(resolved)
        candidates.append("DejaVuSans.ttf")

        font = None
        for candidate in candidates:
            try:
                font = ImageFont.truetype(candidate, key_size)
                break
            except OSError:
                continue
        if font is None:
            font = ImageFont.load_default(size=key_size)

        self._font_cache[cache_key] = font
        return font

    def _locate_font(self, family: str) -> Optional[str]:
        key = family.lower()
        if key in self._font_paths:
            return self._font_paths[key]
        normalized = re.sub(r"[^a-z0-9]+", "", key)
        aliases = {normalized, normalized + "mt", normalized + "psmt"}
        best_match: Optional[Tuple[int, str]] = None
        for path in self._installed_fonts():
            if not normalized:
                break
            stem = re.sub(r"[^a-z0-9]+", "", path.stem.lower())
            if stem in aliases:
                score = 0
            elif stem.startswith(normalized):
                score = 1
            elif normalized in stem:
                score = 2
            else:
                continue
            if best_match is None or score < best_match[0]:
                best_match = (score, str(path))
        resolved = best_match[1] if best_match else None
        self._font_paths[key] = resolved
        return resolved

    def _installed_fonts(self) -> List[Path]:
        if self._installed is None:
            found: List[Path] = []
            for directory in self.FONT_DIRS:
                if not directory.exists():
                    continue
                try:
                    found.extend(sorted(directory.rglob("*.ttf")))
                except OSError:
                    continue
            self._installed = found
        return self._installed


_FONTS = FontResolver()


def _split_families(family_list: str) -> List[str]:
    return [part.strip().strip("'\"") for part in family_list.split(",") if part.strip()]


@dataclass(frozen=True)
class _State:
    transform: Affine
    alpha: float
    fill_style: str
    font_size: float
    font_family: str
    text_align: str
    text_baseline: str


class Surface:
    """A 2D canvas with save/restore, transforms, global alpha and text.

    Every primitive is rasterised on a layer clipped to its own bounds and then
    alpha-composited, so global alpha applies per draw call.
    """

    def __init__(self, width: int, height: int, fonts: Optional[FontResolver] = None) -> None:
        self.width = int(width)
        self.height = int(height)
        self._image = Image.new("RGBA", (self.width, self.height), (0, 0, 0, 0))
        self._fonts = fonts or _FONTS
        self._state = _State(
            transform=_identity_affine(),
            alpha=1.0,
            fill_style="#000000",
            font_size=10.0,
            font_family="sans-serif",
            text_align="left",
            text_baseline="alphabetic",
        )
        self._stack: List[_State] = []
        self._bad_colors: set = set()

    # State

    def save(self) -> None:
        self._stack.append(self._state)

    def restore(self) -> None:
        if self._stack:
            self._state = self._stack.pop()

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def global_alpha(self) -> float:
        return self._state.alpha

    def translate(self, tx: float, ty: float) -> None:
        self._set(transform=_mul_affine(self._state.transform, (1.0, 0.0, 0.0, 1.0, tx, ty)))

    def rotate(self, angle: float) -> None:
        cos_v = math.cos(angle)
        sin_v = math.sin(angle)
        self._set(transform=_mul_affine(self._state.transform, (cos_v, sin_v, -sin_v, cos_v, 0.0, 0.0)))

    def set_global_alpha(self, alpha: float) -> None:
        self._set(alpha=max(0.0, min(1.0, float(alpha))))

    def set_fill_style(self, color: str) -> None:
        self._set(fill_style=color)

    def set_font(self, size: float, family: str) -> None:
        self._set(font_size=float(size), font_family=family)

    def set_text_align(self, align: str) -> None:
        self._set(text_align=align)

    def set_text_baseline(self, baseline: str) -> None:
        self._set(text_baseline=baseline)

    def _set(self, **changes) -> None:
        self._state = replace(self._state, **changes)

    # Primitives

    def fill_rect(self, x: float, y: float, width: float, height: float) -> None:
        self.fill_polygon(
            [(x, y), (x + width, y), (x + width, y + height), (x, y + height)],
            self._state.fill_style,
        )

    def fill_polygon(self, points: Sequence[PointT], color: str) -> None:
        rgba = self._rgba(color)
        if rgba[3] == 0 or len(points) < 3:
            return
        device = [self._to_device(p) for p in points]

        def draw(canvas: ImageDraw.ImageDraw, shift: Callable[[PointT], PointT]) -> None:
            canvas.polygon([shift(p) for p in device], fill=rgba)

        self._draw_layer(device, 1.0, draw)

    def stroke_polyline(
        self,
        points: Sequence[PointT],
        color: str,
        width: float,
        dash: Optional[Sequence[float]] = None,
    ) -> None:
        rgba = self._rgba(color)
        if rgba[3] == 0 or len(points) < 2:
            return
        device = [self._to_device(p) for p in points]
        runs = _dash_polyline(device, dash) if dash else [device]
        line_width = max(1, int(round(width)))

        def draw(canvas: ImageDraw.ImageDraw, shift: Callable[[PointT], PointT]) -> None:
            for run in runs:
                if len(run) >= 2:
                    canvas.line([shift(p) for p in run], fill=rgba, width=line_width, joint="curve")

        self._draw_layer(device, line_width, draw)

    def fill_text(self, text: str, x: float, y: float) -> None:
        if not text:
            return
        rgba = self._rgba(self._state.fill_style)
        if rgba[3] == 0:
            return
        anchor = _H_ANCHORS.get(self._state.text_align, "l") + _V_ANCHORS.get(
            self._state.text_baseline, "s"
        )
        font, (left, top, right, bottom) = self._text_font(text, anchor)

        a, b, _c, _d, _e, _f = self._state.transform
        target_x, target_y = self._to_device((x, y))
        angle = math.atan2(b, a)
        if abs(angle) <= 1e-9:
            box_left = max(0, int(math.floor(target_x + left)) - TEXT_PAD)
            box_top = max(0, int(math.floor(target_y + top)) - TEXT_PAD)
            box_right = min(self.width, int(math.ceil(target_x + right)) + TEXT_PAD)
            box_bottom = min(self.height, int(math.ceil(target_y + bottom)) + TEXT_PAD)
            if box_right <= box_left or box_bottom <= box_top:
                return
            layer = Image.new("RGBA", (box_right - box_left, box_bottom - box_top), (0, 0, 0, 0))
            ImageDraw.Draw(layer).text(
                (target_x - box_left, target_y - box_top), text, font=font, fill=rgba, anchor=anchor
            )
            self._paste(layer, box_left, box_top)
            return

        # Map the canvas into the text's unrotated frame and rasterise only that window.
        cos_v = math.cos(angle)
        sin_v = math.sin(angle)
        local = [
            ((cx - target_x) * cos_v + (cy - target_y) * sin_v, -(cx - target_x) * sin_v + (cy - target_y) * cos_v)
            for cx, cy in ((0, 0), (self.width, 0), (self.width, self.height), (0, self.height))
        ]
        win_left = max(int(math.floor(left)), int(math.floor(min(p[0] for p in local)))) - TEXT_PAD
        win_top = max(int(math.floor(top)), int(math.floor(min(p[1] for p in local)))) - TEXT_PAD
        win_right = min(int(math.ceil(right)), int(math.ceil(max(p[0] for p in local)))) + TEXT_PAD
        win_bottom = min(int(math.ceil(bottom)), int(math.ceil(max(p[1] for p in local)))) + TEXT_PAD
        if win_right <= win_left or win_bottom <= win_top:
            return
        layer = Image.new("RGBA", (win_right - win_left, win_bottom - win_top), (0, 0, 0, 0))
        ImageDraw.Draw(layer).text((-win_left, -win_top), text, font=font, fill=rgba, anchor=anchor)
        layer = layer.rotate(-math.degrees(angle), resample=Image.BICUBIC, expand=True)
        # rotate(expand=True) keeps the window centre at the centre of the result.
        mid_x = (win_left + win_right) / 2.0
        mid_y = (win_top + win_bottom) / 2.0
        center_x = target_x + mid_x * cos_v - mid_y * sin_v
        center_y = target_y + mid_x * sin_v + mid_y * cos_v
        self._paste(
            layer,
            int(round(center_x - layer.width / 2.0)),
            int(round(center_y - layer.height / 2.0)),
        )

    def _text_font(self, text: str, anchor: str) -> Tuple[ImageFont.FreeTypeFont, Tuple[float, float, float, float]]:
        """Font for the current state and the anchored text box.

        Pillow rasterises the whole string before any clipping, so the size is
        capped to the canvas and shrunk further when the string alone would
        exceed ``MAX_TEXT_PIXELS``.
        """
        size = min(self._state.font_size, float(max(self.width, self.height)))
        font = self._fonts.font(size, self._state.font_family)
        box = font.getbbox(text, anchor=anchor)
        area = (box[2] - box[0]) * (box[3] - box[1])
        if area > MAX_TEXT_PIXELS:
            size *= math.sqrt(MAX_TEXT_PIXELS / area)
            font = self._fonts.font(size, self._state.font_family)
            box = font.getbbox(text, anchor=anchor)
        return font, box

    def to_image(self) -> Image.Image:
        return self._image.copy()

    def to_image_bytes(self) -> bytes:
        buffer = io.BytesIO()
        self._image.save(buffer, format="PNG")
        return buffer.getvalue()

    # Internals

    def _to_device(self, point: PointT) -> PointT:
        return _apply_affine(self._state.transform, point)

    def _draw_layer(
        self,
        device_points: Sequence[PointT],
        pad: float,
        draw: Callable[[ImageDraw.ImageDraw, Callable[[PointT], PointT]], None],
    ) -> None:
        xs = [p[0] for p in device_points]
        ys = [p[1] for p in device_points]
        if not all(math.isfinite(v) for v in xs + ys):
            return
        margin = int(math.ceil(pad)) + 1
        left = max(0, int(math.floor(min(xs))) - margin)
        top = max(0, int(math.floor(min(ys))) - margin)
        right = min(self.width, int(math.ceil(max(xs))) + margin)
        bottom = min(self.height, int(math.ceil(max(ys))) + margin)
        if right <= left or bottom <= top:
            return
        layer = Image.new("RGBA", (right - left, bottom - top), (0, 0, 0, 0))
        draw(ImageDraw.Draw(layer), lambda p: (p[0] - left, p[1] - top))
        self._paste(layer, left, top)

    def _paste(self, layer: Image.Image, left: int, top: int) -> None:
        if self._state.alpha <= 0:
            return
        if self._state.alpha < 1:
            alpha = self._state.alpha
            layer.putalpha(layer.getchannel("A").point(lambda v: int(round(v * alpha))))
        src_left = max(0, -left)
        src_top = max(0, -top)
        dest_left = max(0, left)
        dest_top = max(0, top)
        width = min(layer.width - src_left, self.width - dest_left)
        height = min(layer.height - src_top, self.height - dest_top)
        if width <= 0 or height <= 0:
            return
        self._image.alpha_composite(
            layer,
            dest=(dest_left, dest_top),
            source=(src_left, src_top, src_left + width, src_top + height),
        )

    def _rgba(self, color: str) -> RGBA:
        if not color or color.strip().lower() in {"transparent", "none"}:
            return (0, 0, 0, 0)
        try:
            rgba = ImageColor.getcolor(color.strip(), "RGBA")
        except ValueError:
            if color not in self._bad_colors:
                self._bad_colors.add(color)
                logger.warning("unsupported color %r, drawing in black", color)
            return (0, 0, 0, 255)
        return rgba  # type: ignore[return-value]


def _dash_polyline(points: Sequence[PointT], pattern: Sequence[float]) -> List[List[PointT]]:
    """Split a polyline into the "on" runs of a repeating dash pattern."""
    lengths = [float(v) for v in pattern if v > 0]
    if not lengths:
        return [list(points)]
    if len(lengths) % 2:
        lengths = lengths * 2

    runs: List[List[PointT]] = []
    index = 0
    remaining = lengths[0]
    drawing = True
    current: List[PointT] = [points[0]]
    for (x1, y1), (x2, y2) in zip(points, points[1:]):
        seg_len = math.hypot(x2 - x1, y2 - y1)
        pos = 0.0
        while seg_len - pos > remaining:
            pos += remaining
            t = pos / seg_len
            split = (x1 + (x2 - x1) * t, y1 + (y2 - y1) * t)
            if drawing:
                current.append(split)
                runs.append(current)
            else:
                current = [split]
            drawing = not drawing
            index = (index + 1) % len(lengths)
            remaining = lengths[index]
        remaining -= seg_len - pos
        if drawing:
            current.append((x2, y2))
    if drawing and len(current) >= 2:
        runs.append(current)
    return runs


def _identity_affine() -> Affine:
    return (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)


def _mul_affine(m1: Affine, m2: Affine) -> Affine:
    # Composition m = m1  m2
    a1, b1, c1, d1, e1, f1 = m1
    a2, b2, c2, d2, e2, f2 = m2
    return (
        a1 * a2 + c1 * b2,
        b1 * a2 + d1 * b2,
        a1 * c2 + c1 * d2,
        b1 * c2 + d1 * d2,
        a1 * e2 + c1 * f2 + e1,
        b1 * e2 + d1 * f2 + f1,
    )


def _apply_affine(m: Affine, p: PointT) -> PointT:
    a, b, c, d, e, f = m
    x, y = p
    return (a * x + c * y + e, b * x + d * y + f)


__all__ = ["FontResolver", "Surface"]
