"""Layout resolution: absolute coordinates, bounds, fit transform and connection points."""
from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence, Tuple

from .models import (
    DEFAULT_BOUNDING_BOX,
    TEXT_ANCHOR_HEIGHT,
    TEXT_ANCHOR_WIDTH,
    ArrowElement,
    BoundingBox,
    Element,
    ElementMap,
    FitTransform,
    LineElement,
    Point,
    ResolvedElement,
    ShapeElement,
    TextElement,
)

# Coarse text metrics used when no font is consulted.
TEXT_WIDTH_FACTOR = 0.6
TEXT_LINE_HEIGHT_FACTOR = 1.2


def build_element_map(
    elements: Sequence[Element], parent_x: float = 0.0, parent_y: float = 0.0
) -> ElementMap:
    """Resolve every element with an id to its absolute rectangle.

    Children are resolved depth-first right after their parent, so on duplicate
    ids the element registered last in that order wins.
    """
    element_map: ElementMap = {}
    for element in elements:
        absolute_x = parent_x + (element.x or 0.0)
        absolute_y = parent_y + (element.y or 0.0)
        width, height = _anchor_size(element)

        if element.id:
            element_map[element.id] = ResolvedElement(
                element=element,
                absolute_x=absolute_x,
                absolute_y=absolute_y,
                absolute_width=width,
                absolute_height=height,
            )

        if isinstance(element, ShapeElement) and element.children:
            element_map.update(build_element_map(element.children, absolute_x, absolute_y))
    return element_map


def _anchor_size(element: Element) -> Tuple[float, float]:
    if isinstance(element, ShapeElement):
        return element.resolved_width, element.resolved_height
    if isinstance(element, TextElement):
        return TEXT_ANCHOR_WIDTH, TEXT_ANCHOR_HEIGHT
    if isinstance(element, (LineElement, ArrowElement)):
        return 0.0, 0.0
    raise TypeError(f"unsupported element: {element!r}")


def find_anchor(element_map: ElementMap, ref: str) -> Optional[ResolvedElement]:
    """Look up an arrow endpoint; lines and arrows never act as anchors."""
    resolved = element_map.get(ref)
    if resolved is None or not isinstance(resolved.element, (ShapeElement, TextElement)):
        return None
    return resolved


def estimate_text_size(text: TextElement) -> Tuple[float, float]:
    font_size = text.resolved_font_size
    return len(text.text) * font_size * TEXT_WIDTH_FACTOR, font_size * TEXT_LINE_HEIGHT_FACTOR


class _Bounds:
    def __init__(self) -> None:
        self.min_x = math.inf
        self.min_y = math.inf
        self.max_x = -math.inf
        self.max_y = -math.inf

    def add_point(self, x: float, y: float) -> None:
        self.min_x = min(self.min_x, x)
        self.min_y = min(self.min_y, y)
        self.max_x = max(self.max_x, x)
        self.max_y = max(self.max_y, y)

    def add_rect(self, x: float, y: float, width: float, height: float) -> None:
        self.add_point(x, y)
        self.add_point(x + width, y + height)

    def box(self) -> BoundingBox:
        if self.min_x == math.inf:
            return DEFAULT_BOUNDING_BOX
        return BoundingBox(self.min_x, self.min_y, self.max_x, self.max_y)


def calculate_bounding_box(
    elements: Sequence[Element],
    element_map: ElementMap,
    parent_x: float = 0.0,
    parent_y: float = 0.0,
) -> BoundingBox:
    """Minimal rectangle enclosing the whole diagram.

    Shape positions are derived from the relative coordinates again; the element
    map is consulted only for arrow anchors, whose full rectangles are included.
    Dangling arrow references add nothing.
    """
    bounds = _Bounds()

    def visit(element: Element, px: float, py: float) -> None:
        x = px + (element.x or 0.0)
        y = py + (element.y or 0.0)

        if isinstance(element, LineElement):
            for point_x, point_y in element.points:
                bounds.add_point(x + point_x, y + point_y)
        elif isinstance(element, ArrowElement):
            for ref in (element.start, element.end):
                anchor = find_anchor(element_map, ref)
                if anchor is not None:
                    bounds.add_rect(
                        anchor.absolute_x,
                        anchor.absolute_y,
                        anchor.absolute_width,
                        anchor.absolute_height,
                    )
        elif isinstance(element, TextElement):
            text_width, text_height = estimate_text_size(element)
            bounds.add_rect(x, y, text_width, text_height)
        elif isinstance(element, ShapeElement):
            bounds.add_rect(x, y, element.resolved_width, element.resolved_height)
            for child in element.children:
                visit(child, x, y)
        else:
            raise TypeError(f"unsupported element: {element!r}")

    for element in elements:
        visit(element, parent_x, parent_y)
    return bounds.box()


def compute_fit(
    bbox: BoundingBox, output_width: float, output_height: float, padding: float
) -> FitTransform:
    """Uniform scale and translation that centre ``bbox`` in the output."""
    available_width = output_width - 2 * padding
    available_height = output_height - 2 * padding

    ratios: List[float] = []
    if bbox.width > 0:
        ratios.append(available_width / bbox.width)
    if bbox.height > 0:
        ratios.append(available_height / bbox.height)
    scale = min(ratios) if ratios else 1.0
    # Padding larger than the canvas would flip or zero the scene.
    if not math.isfinite(scale) or scale <= 0:
        scale = 1.0

    offset_x = (output_width - bbox.width * scale) / (2 * scale) - bbox.min_x
    offset_y = (output_height - bbox.height * scale) / (2 * scale) - bbox.min_y
    return FitTransform(scale=scale, offset_x=offset_x, offset_y=offset_y)


def get_connection_point(
    resolved: ResolvedElement,
    side: str,
    target_x: Optional[float] = None,
    target_y: Optional[float] = None,
) -> Point:
    x = resolved.absolute_x
    y = resolved.absolute_y
    w = resolved.absolute_width
    h = resolved.absolute_height
    center_x = x + w / 2.0
    center_y = y + h / 2.0

    if side == "top":
        return Point(center_x, y)
    if side == "bottom":
        return Point(center_x, y + h)
    if side == "left":
        return Point(x, center_y)
    if side == "right":
        return Point(x + w, center_y)

    if target_x is not None and target_y is not None:
        dx = target_x - center_x
        dy = target_y - center_y
        if abs(dx) > abs(dy):
            return Point(x + w, center_y) if dx > 0 else Point(x, center_y)
        return Point(center_x, y + h) if dy > 0 else Point(center_x, y)

    return Point(center_x, center_y)


def resolve_arrow_endpoints(
    arrow: ArrowElement, element_map: ElementMap
) -> Optional[Tuple[Point, Point]]:
    """Both connection points of ``arrow``, or ``None`` when an anchor is missing."""
    start = find_anchor(element_map, arrow.start)
    end = find_anchor(element_map, arrow.end)
    if start is None or end is None:
        return None
    end_center = end.center
    start_center = start.center
    start_point = get_connection_point(start, arrow.start_side, end_center.x, end_center.y)
    end_point = get_connection_point(end, arrow.end_side, start_center.x, start_center.y)
    return start_point, end_point


def iter_arrows(elements: Iterable[Element]) -> Iterable[ArrowElement]:
    """Every arrow in the tree, in document order, including nested ones."""
    for element in elements:
        if isinstance(element, ArrowElement):
            yield element
        elif isinstance(element, ShapeElement):
            yield from iter_arrows(element.children)


__all__ = [
    "build_element_map",
    "calculate_bounding_box",
    "compute_fit",
    "estimate_text_size",
    "get_connection_point",
    "find_anchor",
    "iter_arrows",
    "resolve_arrow_endpoints",
]
