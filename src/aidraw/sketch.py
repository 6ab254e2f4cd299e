"""Hand-drawn style primitives (wobbly strokes, hachure fills) over a Surface."""
from __future__ import annotations

import math
import random
import re
from typing import List, Optional, Sequence, Tuple

from .styles import RenderOptions
from .surface import Surface

PointT = Tuple[float, float]

MAX_RANDOMNESS_OFFSET = 2.0
BOWING = 1.0
HACHURE_ANGLE = -41.0
CURVE_STEP = 6.0

_PATH_TOKEN = re.compile(r"[MLQCZmlqcz]|-?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


class SketchCanvas:
    """Draws sketchy shapes on a :class:`Surface`.

    Randomness comes from a private ``random.Random`` so a given seed always
    yields the same strokes.
    """

    def __init__(self, surface: Surface, seed: int = 1) -> None:
        self.surface = surface
        self._rng = random.Random(seed)

    # Shapes

    def rectangle(self, x: float, y: float, width: float, height: float, options: RenderOptions) -> None:
        self.polygon([(x, y), (x + width, y), (x + width, y + height), (x, y + height)], options)

    def polygon(self, points: Sequence[PointT], options: RenderOptions) -> None:
        points = list(points)
        if len(points) < 2:
            return
        self._fill(points, options)
        closed = points + [points[0]]
        for p1, p2 in zip(closed, closed[1:]):
            self._stroke_segment(p1, p2, options)

    def ellipse(self, cx: float, cy: float, width: float, height: float, options: RenderOptions) -> None:
        rx = abs(width) / 2.0
        ry = abs(height) / 2.0
        if rx == 0 and ry == 0:
            return
        self._fill(_ellipse_outline(cx, cy, rx, ry), options)
        passes = 1 if options.roughness <= 0 else 2
        for _ in range(passes):
            self._stroke(self._rough_ellipse(cx, cy, rx, ry, options.roughness), options)

    def circle(self, cx: float, cy: float, diameter: float, options: RenderOptions) -> None:
        self.ellipse(cx, cy, diameter, diameter, options)

    def line(self, x1: float, y1: float, x2: float, y2: float, options: RenderOptions) -> None:
        self._stroke_segment((x1, y1), (x2, y2), options)

    def linear_path(self, points: Sequence[PointT], options: RenderOptions) -> None:
        for p1, p2 in zip(points, points[1:]):
            self._stroke_segment(p1, p2, options)

    def path(self, d: str, options: RenderOptions) -> None:
        """Draw an SVG path limited to absolute M, L, Q, C and Z commands."""
        subpaths = _parse_path(d)
        for segments, closed in subpaths:
            outline = _flatten(segments)
            if closed and len(outline) >= 3:
                self._fill(outline, options)
            for segment in segments:
                if len(segment) == 2:
                    self._stroke_segment(segment[0], segment[1], options)
                else:
                    self._stroke(self._jitter_curve(segment, options.roughness), options)

    # Strokes

    def _stroke(self, points: Sequence[PointT], options: RenderOptions) -> None:
        self.surface.stroke_polyline(points, options.stroke, options.stroke_width, options.stroke_line_dash)

    def _stroke_segment(self, p1: PointT, p2: PointT, options: RenderOptions, color: Optional[str] = None,
                        width: Optional[float] = None) -> None:
        color = options.stroke if color is None else color
        width = options.stroke_width if width is None else width
        if options.roughness <= 0:
            self.surface.stroke_polyline([p1, p2], color, width, options.stroke_line_dash)
            return
        for overlay in (False, True):
            points = self._rough_line(p1, p2, options.roughness, overlay)
            self.surface.stroke_polyline(points, color, width, options.stroke_line_dash)

    def _rough_line(self, p1: PointT, p2: PointT, roughness: float, overlay: bool) -> List[PointT]:
        x1, y1 = p1
        x2, y2 = p2
        length = math.hypot(x2 - x1, y2 - y1)
        offset = MAX_RANDOMNESS_OFFSET
        if offset * offset * 100 > length * length:
            offset = length / 10.0
        half = offset / 2.0
        diverge = 0.2 + self._rng.random() * 0.2
        mid_x = BOWING * MAX_RANDOMNESS_OFFSET * (y2 - y1) / 200.0
        mid_y = BOWING * MAX_RANDOMNESS_OFFSET * (x1 - x2) / 200.0
        mid_x = self._offset(-mid_x, mid_x, roughness)
        mid_y = self._offset(-mid_y, mid_y, roughness)
        spread = half if overlay else offset

        start = (x1 + self._offset(-spread, spread, roughness), y1 + self._offset(-spread, spread, roughness))
        c1 = (
            mid_x + x1 + (x2 - x1) * diverge + self._offset(-spread, spread, roughness),
            mid_y + y1 + (y2 - y1) * diverge + self._offset(-spread, spread, roughness),
        )
        c2 = (
            mid_x + x1 + 2 * (x2 - x1) * diverge + self._offset(-spread, spread, roughness),
            mid_y + y1 + 2 * (y2 - y1) * diverge + self._offset(-spread, spread, roughness),
        )
        end = (x2 + self._offset(-spread, spread, roughness), y2 + self._offset(-spread, spread, roughness))
        return _sample_cubic(start, c1, c2, end, _steps(length))

    def _rough_ellipse(self, cx: float, cy: float, rx: float, ry: float, roughness: float) -> List[PointT]:
        rx += self._offset(-rx * 0.05, rx * 0.05, roughness)
        ry += self._offset(-ry * 0.05, ry * 0.05, roughness)
        count = max(12, int(math.ceil(math.pi * (rx + ry) / CURVE_STEP)))
        step = 2 * math.pi / count
        start = self._rng.random() * 2 * math.pi
        points: List[PointT] = []
        # Overshoot slightly past the start so the loop visibly overlaps.
        for i in range(count + 2):
            angle = start + i * step + self._offset(-step * 0.1, step * 0.1, roughness)
            wobble = 1.0 + self._offset(-0.02, 0.02, roughness)
            points.append((cx + rx * wobble * math.cos(angle), cy + ry * wobble * math.sin(angle)))
        return points

    def _jitter_curve(self, segment: Sequence[PointT], roughness: float) -> List[PointT]:
        jittered = [
            (px + self._offset(-1.0, 1.0, roughness), py + self._offset(-1.0, 1.0, roughness))
            for px, py in segment
        ]
        return _flatten([jittered])

    def _offset(self, low: float, high: float, roughness: float) -> float:
        return roughness * (self._rng.random() * (high - low) + low)

    # Fills

    def _fill(self, polygon: Sequence[PointT], options: RenderOptions) -> None:
        if options.fill is None or len(polygon) < 3:
            return
        if options.fill_style == "solid":
            self.surface.fill_polygon(polygon, options.fill)
            return
        angles = [HACHURE_ANGLE]
        if options.fill_style == "cross-hatch":
            angles.append(HACHURE_ANGLE + 90.0)
        gap = max(options.stroke_width * 4.0, 1.0)
        weight = max(options.stroke_width / 2.0, 1.0)
        fill_options = RenderOptions(
            stroke=options.fill,
            stroke_width=weight,
            roughness=options.roughness,
            fill_style=options.fill_style,
        )
        for angle in angles:
            for p1, p2 in _hachure_lines(polygon, gap, angle):
                self._stroke_segment(p1, p2, fill_options)


def _hachure_lines(polygon: Sequence[PointT], gap: float, angle_degrees: float) -> List[Tuple[PointT, PointT]]:
    """Scanline segments inside ``polygon`` at ``angle_degrees``, ``gap`` apart."""
    angle = math.radians(angle_degrees)
    cos_v = math.cos(angle)
    sin_v = math.sin(angle)
    # Rotate the polygon so hachure lines become horizontal scanlines.
    rotated = [(x * cos_v + y * sin_v, -x * sin_v + y * cos_v) for x, y in polygon]
    ys = [p[1] for p in rotated]
    lines: List[Tuple[PointT, PointT]] = []
    edges = list(zip(rotated, rotated[1:] + rotated[:1]))
    y = min(ys) + gap / 2.0
    while y < max(ys):
        crossings: List[float] = []
        for (x1, y1), (x2, y2) in edges:
            if (y1 <= y < y2) or (y2 <= y < y1):
                crossings.append(x1 + (y - y1) * (x2 - x1) / (y2 - y1))
        crossings.sort()
        for start_x, end_x in zip(crossings[0::2], crossings[1::2]):
            lines.append(
                (
                    (start_x * cos_v - y * sin_v, start_x * sin_v + y * cos_v),
                    (end_x * cos_v - y * sin_v, end_x * sin_v + y * cos_v),
                )
            )
        y += gap
    return lines


def _ellipse_outline(cx: float, cy: float, rx: float, ry: float) -> List[PointT]:
    count = max(16, int(math.ceil(math.pi * (rx + ry) / CURVE_STEP)))
    return [
        (cx + rx * math.cos(2 * math.pi * i / count), cy + ry * math.sin(2 * math.pi * i / count))
        for i in range(count)
    ]


def _steps(length: float) -> int:
    return max(4, min(48, int(length / CURVE_STEP)))


def _sample_cubic(p0: PointT, p1: PointT, p2: PointT, p3: PointT, steps: int) -> List[PointT]:
    points: List[PointT] = []
    for i in range(steps + 1):
        t = i / steps
        u = 1 - t
        points.append(
            (
                u * u * u * p0[0] + 3 * u * u * t * p1[0] + 3 * u * t * t * p2[0] + t * t * t * p3[0],
                u * u * u * p0[1] + 3 * u * u * t * p1[1] + 3 * u * t * t * p2[1] + t * t * t * p3[1],
            )
        )
    return points


def _sample_quadratic(p0: PointT, p1: PointT, p2: PointT, steps: int) -> List[PointT]:
    points: List[PointT] = []
    for i in range(steps + 1):
        t = i / steps
        u = 1 - t
        points.append(
            (
                u * u * p0[0] + 2 * u * t * p1[0] + t * t * p2[0],
                u * u * p0[1] + 2 * u * t * p1[1] + t * t * p2[1],
            )
        )
    return points


def _flatten(segments: Sequence[Sequence[PointT]]) -> List[PointT]:
    """Polyline through every segment; curves are sampled."""
    points: List[PointT] = []
    for segment in segments:
        chord = math.hypot(segment[-1][0] - segment[0][0], segment[-1][1] - segment[0][1])
        if len(segment) == 2:
            sampled = list(segment)
        elif len(segment) == 3:
            sampled = _sample_quadratic(segment[0], segment[1], segment[2], _steps(chord))
        else:
            sampled = _sample_cubic(segment[0], segment[1], segment[2], segment[3], _steps(chord))
        if points and points[-1] == sampled[0]:
            sampled = sampled[1:]
        points.extend(sampled)
    return points


def _parse_path(d: str) -> List[Tuple[List[List[PointT]], bool]]:
    """Split path data into subpaths of segments (2, 3 or 4 control points)."""
    tokens = _PATH_TOKEN.findall(d)
    subpaths: List[Tuple[List[List[PointT]], bool]] = []
    segments: List[List[PointT]] = []
    current: Optional[PointT] = None
    start: Optional[PointT] = None
    index = 0
    command = ""

    def take_point() -> PointT:
        nonlocal index
        x = float(tokens[index])
        y = float(tokens[index + 1])
        index += 2
        return (x, y)

    while index < len(tokens):
        token = tokens[index]
        if token.isalpha():
            command = token.upper()
            index += 1
            if command == "Z":
                if current is not None and start is not None and current != start:
                    segments.append([current, start])
                if segments:
                    subpaths.append((segments, True))
                segments = []
                current = start
                continue
        if command == "M":
            if segments:
                subpaths.append((segments, False))
                segments = []
            current = take_point()
            start = current
            command = "L"
        elif command == "L":
            point = take_point()
            segments.append([current or point, point])
            current = point
        elif command == "Q":
            control = take_point()
            point = take_point()
            segments.append([current or control, control, point])
            current = point
        elif command == "C":
            c1 = take_point()
            c2 = take_point()
            point = take_point()
            segments.append([current or c1, c1, c2, point])
            current = point
        else:
            index += 1
    if segments:
        subpaths.append((segments, False))
    return subpaths


def rounded_rect_path(x: float, y: float, width: float, height: float, radius: float) -> str:
    """SVG path for a rectangle with quadratic corners of ``radius``."""
    return (
        f"M {x + radius} {y} "
        f"L {x + width - radius} {y} "
        f"Q {x + width} {y} {x + width} {y + radius} "
        f"L {x + width} {y + height - radius} "
        f"Q {x + width} {y + height} {x + width - radius} {y + height} "
        f"L {x + radius} {y + height} "
        f"Q {x} {y + height} {x} {y + height - radius} "
        f"L {x} {y + radius} "
        f"Q {x} {y} {x + radius} {y} "
        "Z"
    )


__all__ = ["SketchCanvas", "rounded_rect_path"]
