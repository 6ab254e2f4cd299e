"""Public API for aidraw."""
__version__ = "1.0.0"

from .layout import build_element_map, calculate_bounding_box, compute_fit, get_connection_point
from .models import DiagramError, parse_config, parse_diagram
from .renderer import RenderResult, render, render_report
from .schema import validate_config, validate_diagram
from .styles import style_to_options

__all__ = [
    "DiagramError",
    "RenderResult",
    "__version__",
    "build_element_map",
    "calculate_bounding_box",
    "compute_fit",
    "get_connection_point",
    "parse_config",
    "parse_diagram",
    "render",
    "render_report",
    "style_to_options",
    "validate_config",
    "validate_diagram",
]
