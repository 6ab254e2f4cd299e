"""Element model, style/config value objects and the JSON -> dataclass parser."""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

SHAPE_KINDS = ("rectangle", "ellipse", "diamond", "container")

DEFAULT_SHAPE_WIDTH = 100.0
DEFAULT_SHAPE_HEIGHT = 60.0
# Placeholder size registered for text anchors; real text bounds are approximated elsewhere.
TEXT_ANCHOR_WIDTH = 100.0
TEXT_ANCHOR_HEIGHT = 20.0
DEFAULT_FONT_SIZE = 16.0

FONT_FAMILIES: Mapping[str, str] = MappingProxyType(
    {
        "hand": "Virgil, Segoe UI Emoji, sans-serif",
        "normal": "Arial, Helvetica, sans-serif",
        "code": "Courier New, monospace",
    }
)


class DiagramError(ValueError):
    """Raised for input the layout engine cannot interpret."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class Style:
    """Sparse style override; ``None`` means "use the default"."""

    fill: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: Optional[float] = None
    stroke_style: Optional[str] = None
    fill_style: Optional[str] = None
    roughness: Optional[float] = None
    opacity: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["Style"]:
        if data is None:
            return None
        return cls(
            fill=data.get("fill"),
            stroke=data.get("stroke"),
            stroke_width=_opt_float(data.get("strokeWidth")),
            stroke_style=data.get("strokeStyle"),
            fill_style=data.get("fillStyle"),
            roughness=_opt_float(data.get("roughness")),
            opacity=_opt_float(data.get("opacity")),
        )


@dataclass(frozen=True)
class ResolvedStyle:
    fill: str
    stroke: str
    stroke_width: float
    stroke_style: str
    fill_style: str
    roughness: float
    opacity: float


DEFAULT_STYLE = ResolvedStyle(
    fill="transparent",
    stroke="#1e1e1e",
    stroke_width=2.0,
    stroke_style="solid",
    fill_style="hachure",
    roughness=1.0,
    opacity=100.0,
)


@dataclass(frozen=True)
class Config:
    background: str = "#ffffff"
    padding: float = 20.0


DEFAULT_CONFIG = Config()


@dataclass(frozen=True)
class ShapeElement:
    kind: str
    id: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    rotation: Optional[float] = None
    label: Optional[str] = None
    corner_radius: Optional[float] = None
    style: Optional[Style] = None
    children: Tuple["Element", ...] = ()

    @property
    def resolved_width(self) -> float:
        return DEFAULT_SHAPE_WIDTH if self.width is None else self.width

    @property
    def resolved_height(self) -> float:
        return DEFAULT_SHAPE_HEIGHT if self.height is None else self.height


@dataclass(frozen=True)
class TextElement:
    text: str
    id: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    rotation: Optional[float] = None
    font_size: Optional[float] = None
    font_family: str = "hand"
    text_align: str = "left"
    style: Optional[Style] = None

    @property
    def resolved_font_size(self) -> float:
        return DEFAULT_FONT_SIZE if self.font_size is None else self.font_size


@dataclass(frozen=True)
class LineElement:
    points: Tuple[Tuple[float, float], ...]
    id: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    rotation: Optional[float] = None
    style: Optional[Style] = None


@dataclass(frozen=True)
class ArrowElement:
    start: str
    end: str
    id: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    rotation: Optional[float] = None
    label: Optional[str] = None
    start_arrowhead: Optional[str] = None
    end_arrowhead: Optional[str] = "arrow"
    start_side: str = "auto"
    end_side: str = "auto"
    style: Optional[Style] = None


Element = Union[ShapeElement, TextElement, LineElement, ArrowElement]


@dataclass(frozen=True)
class ResolvedElement:
    """An element paired with its canvas-space rectangle."""

    element: Element
    absolute_x: float
    absolute_y: float
    absolute_width: float
    absolute_height: float

    @property
    def center(self) -> "Point":
        return Point(
            self.absolute_x + self.absolute_width / 2.0,
            self.absolute_y + self.absolute_height / 2.0,
        )


ElementMap = Dict[str, ResolvedElement]


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class BoundingBox:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


DEFAULT_BOUNDING_BOX = BoundingBox(0.0, 0.0, 100.0, 100.0)


@dataclass(frozen=True)
class FitTransform:
    scale: float
    offset_x: float
    offset_y: float

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        return (self.offset_x + x) * self.scale, (self.offset_y + y) * self.scale


@dataclass
class Diagram:
    elements: List[Element] = field(default_factory=list)


def parse_element(data: Mapping[str, Any]) -> Element:
    kind = data.get("type")
    common = {
        "id": data.get("id"),
        "x": _opt_float(data.get("x")),
        "y": _opt_float(data.get("y")),
        "rotation": _opt_float(data.get("rotation")),
        "style": Style.from_dict(data.get("style")),
    }
    if kind in SHAPE_KINDS:
        return ShapeElement(
            kind=kind,
            width=_opt_float(data.get("width")),
            height=_opt_float(data.get("height")),
            label=data.get("label"),
            corner_radius=_opt_float(data.get("cornerRadius")),
            children=tuple(parse_element(child) for child in data.get("children") or ()),
            **common,
        )
    if kind == "text":
        return TextElement(
            text=str(data.get("text", "")),
            font_size=_opt_float(data.get("fontSize")),
            font_family=data.get("fontFamily") or "hand",
            text_align=data.get("textAlign") or "left",
            **common,
        )
    if kind == "line":
        points = data.get("points") or ()
        return LineElement(
            points=tuple((float(px), float(py)) for px, py in points),
            **common,
        )
    if kind == "arrow":
        return ArrowElement(
            start=data["start"],
            end=data["end"],
            label=data.get("label"),
            start_arrowhead=data.get("startArrowhead"),
            end_arrowhead=data.get("endArrowhead", "arrow"),
            start_side=data.get("startSide") or "auto",
            end_side=data.get("endSide") or "auto",
            **common,
        )
    raise DiagramError("E_ELEMENT_TYPE", f'unknown element type "{kind}"')


def parse_elements(items: Optional[List[Mapping[str, Any]]]) -> List[Element]:
    return [parse_element(item) for item in items or ()]


def parse_diagram(data: Mapping[str, Any]) -> Diagram:
    return Diagram(elements=parse_elements(data.get("elements")))


def parse_config(data: Optional[Mapping[str, Any]]) -> Config:
    if not data:
        return DEFAULT_CONFIG
    return Config(
        background=data.get("background", DEFAULT_CONFIG.background),
        padding=float(data.get("padding", DEFAULT_CONFIG.padding)),
    )


def _opt_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


__all__ = [
    "ArrowElement",
    "BoundingBox",
    "Config",
    "DEFAULT_BOUNDING_BOX",
    "DEFAULT_CONFIG",
    "DEFAULT_STYLE",
    "Diagram",
    "DiagramError",
    "Element",
    "ElementMap",
    "FONT_FAMILIES",
    "FitTransform",
    "LineElement",
    "Point",
    "ResolvedElement",
    "ResolvedStyle",
    "ShapeElement",
    "Style",
    "TextElement",
    "parse_config",
    "parse_diagram",
    "parse_element",
    "parse_elements",
]
