"""Drawing pass: resolve layout, fit it to the canvas and issue sketch primitives."""
from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Mapping, Optional, Sequence, Union

from .layout import (
    build_element_map,
    calculate_bounding_box,
    compute_fit,
    find_anchor,
    iter_arrows,
    resolve_arrow_endpoints,
)
from .models import (
    FONT_FAMILIES,
    ArrowElement,
    BoundingBox,
    Config,
    Diagram,
    DiagramError,
    Element,
    ElementMap,
    FitTransform,
    LineElement,
    ShapeElement,
    TextElement,
    parse_config,
    parse_diagram,
)
from .sketch import SketchCanvas, rounded_rect_path
from .styles import style_opacity, style_to_options, text_color
from .surface import Surface

logger = logging.getLogger(__name__)

LABEL_FONT_SIZE = 16.0
ARROW_LABEL_FONT_SIZE = 14.0
ARROW_LABEL_OFFSET = 5.0
CONTAINER_LABEL_INSET = 8.0
ARROWHEAD_SIZE = 10.0


@dataclass
class RenderResult:
    png: bytes
    bbox: BoundingBox
    fit: FitTransform
    warnings: List[str] = field(default_factory=list)


def render(
    diagram: Union[Diagram, Mapping[str, Any]],
    width: int,
    height: int,
    config: Union[Config, Mapping[str, Any], None] = None,
    *,
    seed: int = 1,
) -> bytes:
    """Render ``diagram`` to PNG bytes of exactly ``width`` x ``height`` pixels."""
    return render_report(diagram, width, height, config, seed=seed).png


def render_report(
    diagram: Union[Diagram, Mapping[str, Any]],
    width: int,
    height: int,
    config: Union[Config, Mapping[str, Any], None] = None,
    *,
    seed: int = 1,
) -> RenderResult:
    _check_dimension("width", width)
    _check_dimension("height", height)
    if not isinstance(diagram, Diagram):
        diagram = parse_diagram(diagram)
    if not isinstance(config, Config):
        config = parse_config(config)

    element_map = build_element_map(diagram.elements)
    bbox = calculate_bounding_box(diagram.elements, element_map)
    fit = compute_fit(bbox, width, height, config.padding)
    logger.debug(
        "layout: %d anchors, bbox=(%g, %g, %g, %g), scale=%g",
        len(element_map),
        bbox.min_x,
        bbox.min_y,
        bbox.max_x,
        bbox.max_y,
        fit.scale,
    )

    surface = Surface(int(width), int(height))
    surface.set_fill_style(config.background)
    surface.fill_rect(0, 0, width, height)

    warnings = draw_elements(surface, diagram.elements, fit, seed=seed, element_map=element_map)
    return RenderResult(png=surface.to_image_bytes(), bbox=bbox, fit=fit, warnings=warnings)


def _check_dimension(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise DiagramError("E_DIMENSIONS", f"{name} must be a positive integer, got {value!r}")


class _Painter:
    def __init__(
        self,
        surface: Surface,
        sketch: SketchCanvas,
        fit: FitTransform,
        element_map: ElementMap,
    ) -> None:
        self.surface = surface
        self.sketch = sketch
        self.fit = fit
        self.element_map = element_map
        self.warnings: List[str] = []

    @contextmanager
    def _isolated(self, opacity: float = 1.0) -> Iterator[None]:
        self.surface.save()
        try:
            self.surface.set_global_alpha(opacity)
            yield
        finally:
            self.surface.restore()

    def draw(self, element: Element, parent_x: float, parent_y: float) -> None:
        if isinstance(element, ShapeElement):
            self.draw_shape(element, parent_x, parent_y)
        elif isinstance(element, TextElement):
            self.draw_text(element, parent_x, parent_y)
        elif isinstance(element, LineElement):
            self.draw_line(element, parent_x, parent_y)
        elif isinstance(element, ArrowElement):
            # Deferred until every other element has been drawn.
            return
        else:
            raise TypeError(f"unsupported element: {element!r}")

    def draw_shape(self, shape: ShapeElement, parent_x: float, parent_y: float) -> None:
        abs_x = parent_x + (shape.x or 0.0)
        abs_y = parent_y + (shape.y or 0.0)
        x, y = self.fit.apply(abs_x, abs_y)
        scale = self.fit.scale
        width = shape.resolved_width * scale
        height = shape.resolved_height * scale
        options = style_to_options(shape.style)

        with self._isolated(style_opacity(shape.style)):
            if shape.rotation:
                self.surface.translate(x + width / 2, y + height / 2)
                self.surface.rotate(math.radians(shape.rotation))
                self.surface.translate(-(x + width / 2), -(y + height / 2))

            if shape.kind == "rectangle":
                radius = (shape.corner_radius or 0.0) * scale
                if radius > 0:
                    self.sketch.path(rounded_rect_path(x, y, width, height, radius), options)
                else:
                    self.sketch.rectangle(x, y, width, height, options)
            elif shape.kind == "ellipse":
                self.sketch.ellipse(x + width / 2, y + height / 2, width, height, options)
            elif shape.kind == "diamond":
                self.sketch.polygon(
                    [
                        (x + width / 2, y),
                        (x + width, y + height / 2),
                        (x + width / 2, y + height),
                        (x, y + height / 2),
                    ],
                    options,
                )

            if shape.label and shape.kind != "container":
                self.surface.set_font(LABEL_FONT_SIZE * scale, FONT_FAMILIES["hand"])
                self.surface.set_fill_style(text_color(shape.style))
                self.surface.set_text_align("center")
                if shape.children:
                    self.surface.set_text_baseline("top")
                    self.surface.fill_text(shape.label, x + width / 2, y + CONTAINER_LABEL_INSET * scale)
                else:
                    self.surface.set_text_baseline("middle")
                    self.surface.fill_text(shape.label, x + width / 2, y + height / 2)

        for child in shape.children:
            self.draw(child, abs_x, abs_y)

    def draw_text(self, text: TextElement, parent_x: float, parent_y: float) -> None:
        x, y = self.fit.apply(parent_x + (text.x or 0.0), parent_y + (text.y or 0.0))
        with self._isolated(style_opacity(text.style)):
            self.surface.set_font(
                text.resolved_font_size * self.fit.scale,
                FONT_FAMILIES.get(text.font_family, FONT_FAMILIES["hand"]),
            )
            self.surface.set_fill_style(text_color(text.style))
            self.surface.set_text_align(text.text_align)
            self.surface.set_text_baseline("top")
            if text.rotation:
                self.surface.translate(x, y)
                self.surface.rotate(math.radians(text.rotation))
                self.surface.fill_text(text.text, 0, 0)
            else:
                self.surface.fill_text(text.text, x, y)

    def draw_line(self, line: LineElement, parent_x: float, parent_y: float) -> None:
        base_x = parent_x + (line.x or 0.0)
        base_y = parent_y + (line.y or 0.0)
        points = [self.fit.apply(base_x + px, base_y + py) for px, py in line.points]
        with self._isolated(style_opacity(line.style)):
            self.sketch.linear_path(points, style_to_options(line.style))

    def draw_arrow(self, arrow: ArrowElement) -> None:
        endpoints = resolve_arrow_endpoints(arrow, self.element_map)
        if endpoints is None:
            self._report_dangling(arrow)
            return
        start, end = endpoints
        sx, sy = self.fit.apply(start.x, start.y)
        ex, ey = self.fit.apply(end.x, end.y)
        options = style_to_options(arrow.style)
        angle = math.atan2(ey - sy, ex - sx)

        with self._isolated(style_opacity(arrow.style)):
            self.sketch.line(sx, sy, ex, ey, options)
            self._draw_arrowhead(sx, sy, angle + math.pi, arrow.start_arrowhead, arrow)
            self._draw_arrowhead(ex, ey, angle, arrow.end_arrowhead, arrow)

            if arrow.label:
                scale = self.fit.scale
                perpendicular = angle - math.pi / 2
                offset = ARROW_LABEL_OFFSET * scale
                self.surface.set_font(ARROW_LABEL_FONT_SIZE * scale, FONT_FAMILIES["hand"])
                self.surface.set_fill_style(text_color(arrow.style))
                self.surface.set_text_align("center")
                self.surface.set_text_baseline("bottom")
                self.surface.fill_text(
                    arrow.label,
                    (sx + ex) / 2 + math.cos(perpendicular) * offset,
                    (sy + ey) / 2 + math.sin(perpendicular) * offset,
                )

    def _draw_arrowhead(
        self, x: float, y: float, angle: float, kind: Optional[str], arrow: ArrowElement
    ) -> None:
        if not kind:
            return
        options = style_to_options(arrow.style)
        size = ARROWHEAD_SIZE
        self.surface.save()
        try:
            self.surface.translate(x, y)
            self.surface.rotate(angle)
            if kind == "arrow":
                self.sketch.line(-size, -size / 2, 0, 0, options)
                self.sketch.line(-size, size / 2, 0, 0, options)
            elif kind == "dot":
                self.sketch.circle(0, 0, size, options.solid_fill(options.stroke))
            elif kind == "bar":
                self.sketch.line(0, -size / 2, 0, size / 2, options)
        finally:
            self.surface.restore()

    def _report_dangling(self, arrow: ArrowElement) -> None:
        name = arrow.id or "unnamed"
        for role, ref in (("start", arrow.start), ("end", arrow.end)):
            if find_anchor(self.element_map, ref) is not None:
                continue
            if ref in self.element_map:
                message = f"Arrow '{name}' {role} element '{ref}' is not a shape or text and cannot be an anchor"
            else:
                message = f"Arrow '{name}' references unknown {role} element '{ref}'"
            self.warnings.append(message)
            logger.warning(message)
            return


def draw_elements(
    surface: Surface,
    elements: Sequence[Element],
    fit: FitTransform,
    *,
    seed: int = 1,
    element_map: Optional[ElementMap] = None,
) -> List[str]:
    """Draw already-parsed ``elements`` onto an existing surface; returns warnings."""
    if element_map is None:
        element_map = build_element_map(elements)
    painter = _Painter(surface, SketchCanvas(surface, seed=seed), fit, element_map)
    for element in elements:
        painter.draw(element, 0.0, 0.0)
    # Arrows go on top of everything else, wherever they sit in the tree.
    for arrow in iter_arrows(elements):
        painter.draw_arrow(arrow)
    return painter.warnings


__all__ = ["RenderResult", "draw_elements", "render", "render_report"]
