from __future__ import annotations

import sys
import unittest
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from aidraw.layout import (
    build_element_map,
    calculate_bounding_box,
    compute_fit,
    find_anchor,
    get_connection_point,
    iter_arrows,
    resolve_arrow_endpoints,
)
from aidraw.models import (
    BoundingBox,
    DiagramError,
    Point,
    ResolvedElement,
    ShapeElement,
    parse_element,
    parse_elements,
)


def _elements(*items: dict):
    return parse_elements(list(items))


class BuildElementMapTests(unittest.TestCase):
    def test_empty_elements_give_empty_map(self) -> None:
        self.assertEqual(build_element_map([]), {})

    def test_elements_without_id_are_not_registered(self) -> None:
        element_map = build_element_map(_elements({"type": "rectangle", "x": 10, "y": 10}))
        self.assertEqual(element_map, {})

    def test_absolute_coordinates_and_default_size(self) -> None:
        element_map = build_element_map(_elements({"type": "rectangle", "id": "r", "x": 10, "y": 20}))
        resolved = element_map["r"]
        self.assertEqual(
            (resolved.absolute_x, resolved.absolute_y, resolved.absolute_width, resolved.absolute_height),
            (10, 20, 100, 60),
        )

    def test_missing_coordinates_default_to_zero(self) -> None:
        resolved = build_element_map(_elements({"type": "ellipse", "id": "e"}))["e"]
        self.assertEqual((resolved.absolute_x, resolved.absolute_y), (0, 0))

    def test_parent_offset_is_added(self) -> None:
        element_map = build_element_map(_elements({"type": "diamond", "id": "d", "x": 5, "y": -5}), 100, 200)
        self.assertEqual((element_map["d"].absolute_x, element_map["d"].absolute_y), (105, 195))

    def test_nested_children_accumulate_every_offset(self) -> None:
        element_map = build_element_map(
            _elements(
                {
                    "type": "container",
                    "id": "outer",
                    "x": 10,
                    "y": 20,
                    "width": 400,
                    "height": 300,
                    "children": [
                        {
                            "type": "container",
                            "id": "middle",
                            "x": 30,
                            "y": 40,
                            "children": [{"type": "rectangle", "id": "leaf", "x": 50, "y": 60}],
                        }
                    ],
                }
            ),
            1,
            2,
        )
        self.assertEqual((element_map["middle"].absolute_x, element_map["middle"].absolute_y), (41, 62))
        self.assertEqual((element_map["leaf"].absolute_x, element_map["leaf"].absolute_y), (91, 122))

    def test_text_gets_placeholder_size(self) -> None:
        resolved = build_element_map(_elements({"type": "text", "id": "t", "text": "hello", "x": 3}))["t"]
        self.assertEqual((resolved.absolute_width, resolved.absolute_height), (100, 20))

    def test_lines_and_arrows_have_zero_size(self) -> None:
        element_map = build_element_map(
            _elements(
                {"type": "line", "id": "l", "points": [[0, 0], [10, 10]]},
                {"type": "arrow", "id": "a", "start": "x", "end": "y"},
            )
        )
        self.assertEqual((element_map["l"].absolute_width, element_map["l"].absolute_height), (0, 0))
        self.assertEqual((element_map["a"].absolute_width, element_map["a"].absolute_height), (0, 0))

    def test_duplicate_ids_last_registration_wins(self) -> None:
        element_map = build_element_map(
            _elements(
                {"type": "container", "id": "box", "children": [{"type": "rectangle", "id": "dup", "x": 1}]},
                {"type": "rectangle", "id": "dup", "x": 99},
            )
        )
        self.assertEqual(element_map["dup"].absolute_x, 99)

    def test_children_registered_after_their_parent(self) -> None:
        element_map = build_element_map(
            _elements({"type": "container", "id": "dup", "x": 5, "children": [{"type": "rectangle", "id": "dup", "x": 7}]})
        )
        self.assertEqual(element_map["dup"].absolute_x, 12)


class BoundingBoxTests(unittest.TestCase):
    def test_empty_diagram_uses_default_box(self) -> None:
        bbox = calculate_bounding_box([], {})
        self.assertEqual(
            (bbox.min_x, bbox.min_y, bbox.max_x, bbox.max_y, bbox.width, bbox.height),
            (0, 0, 100, 100, 100, 100),
        )

    def test_single_rectangle(self) -> None:
        elements = _elements({"type": "rectangle", "x": 10, "y": 20, "width": 100, "height": 60})
        bbox = calculate_bounding_box(elements, build_element_map(elements))
        self.assertEqual(bbox, BoundingBox(10, 20, 110, 80))
        self.assertEqual((bbox.width, bbox.height), (100, 60))

    def test_multiple_shapes(self) -> None:
        elements = _elements(
            {"type": "rectangle", "x": 0, "y": 0, "width": 50, "height": 50},
            {"type": "ellipse", "x": 100, "y": 150, "width": 80, "height": 40},
        )
        self.assertEqual(calculate_bounding_box(elements, {}), BoundingBox(0, 0, 180, 190))

    def test_line_points_relative_to_line_origin(self) -> None:
        elements = _elements({"type": "line", "x": 10, "y": 20, "points": [[0, 0], [100, 50], [200, 0]]})
        self.assertEqual(calculate_bounding_box(elements, {}), BoundingBox(10, 20, 210, 70))

    def test_text_uses_coarse_metrics(self) -> None:
        elements = _elements({"type": "text", "x": 50, "y": 30, "text": "Hello World", "fontSize": 20})
        bbox = calculate_bounding_box(elements, {})
        self.assertEqual((bbox.min_x, bbox.min_y), (50, 30))
        self.assertAlmostEqual(bbox.max_x, 182)
        self.assertAlmostEqual(bbox.max_y, 54)

    def test_text_default_font_size(self) -> None:
        bbox = calculate_bounding_box(_elements({"type": "text", "text": "abcde"}), {})
        self.assertAlmostEqual(bbox.max_x, 5 * 16 * 0.6)
        self.assertAlmostEqual(bbox.max_y, 16 * 1.2)

    def test_children_extend_the_same_box(self) -> None:
        elements = _elements(
            {
                "type": "container",
                "x": 100,
                "y": 100,
                "width": 50,
                "height": 50,
                "children": [{"type": "rectangle", "x": 80, "y": 90, "width": 20, "height": 30}],
            }
        )
        self.assertEqual(calculate_bounding_box(elements, {}), BoundingBox(100, 100, 200, 220))

    def test_arrow_includes_full_anchor_rectangles(self) -> None:
        anchors = _elements(
            {"type": "rectangle", "id": "a", "x": 0, "y": 0, "width": 100, "height": 60},
            {"type": "rectangle", "id": "b", "x": 300, "y": 200, "width": 100, "height": 60},
        )
        element_map = build_element_map(anchors)
        arrow_only = _elements({"type": "arrow", "start": "a", "end": "b"})
        self.assertEqual(calculate_bounding_box(arrow_only, element_map), BoundingBox(0, 0, 400, 260))

    def test_dangling_arrow_contributes_nothing(self) -> None:
        elements = _elements(
            {"type": "rectangle", "id": "a", "x": 10, "y": 10, "width": 20, "height": 20},
            {"type": "arrow", "start": "a", "end": "missing"},
        )
        self.assertEqual(calculate_bounding_box(elements, build_element_map(elements)), BoundingBox(10, 10, 30, 30))

    def test_only_dangling_arrows_falls_back_to_default_box(self) -> None:
        elements = _elements({"type": "arrow", "start": "x", "end": "y"})
        self.assertEqual(calculate_bounding_box(elements, {}), BoundingBox(0, 0, 100, 100))

    def test_parent_offset(self) -> None:
        elements = _elements({"type": "rectangle", "x": 0, "y": 0, "width": 10, "height": 10})
        self.assertEqual(calculate_bounding_box(elements, {}, 5, 6), BoundingBox(5, 6, 15, 16))

    def test_negative_coordinates(self) -> None:
        elements = _elements(
            {"type": "rectangle", "x": -100, "y": -100, "width": 50, "height": 50},
            {"type": "rectangle", "x": 100, "y": 100, "width": 50, "height": 50},
        )
        self.assertEqual(calculate_bounding_box(elements, {}), BoundingBox(-100, -100, 150, 150))


class ComputeFitTests(unittest.TestCase):
    def test_uniform_scale_and_centering(self) -> None:
        fit = compute_fit(BoundingBox(0, 0, 100, 100), 800, 600, 20)
        self.assertAlmostEqual(fit.scale, 5.6)
        self.assertAlmostEqual(fit.offset_x, (800 - 560) / 2 / 5.6)
        self.assertAlmostEqual(fit.offset_y, (600 - 560) / 2 / 5.6)

    def test_box_is_centred_on_canvas(self) -> None:
        bbox = BoundingBox(-50, 10, 150, 110)
        fit = compute_fit(bbox, 640, 480, 20)
        left, top = fit.apply(bbox.min_x, bbox.min_y)
        right, bottom = fit.apply(bbox.max_x, bbox.max_y)
        self.assertAlmostEqual((left + right) / 2, 320)
        self.assertAlmostEqual((top + bottom) / 2, 240)
        self.assertAlmostEqual(right - left, 600)

    def test_zero_size_box_falls_back_to_unit_scale(self) -> None:
        fit = compute_fit(BoundingBox(0, 0, 0, 0), 800, 600, 20)
        self.assertEqual(fit.scale, 1.0)
        self.assertAlmostEqual(fit.offset_x, 400)
        self.assertAlmostEqual(fit.offset_y, 300)

    def test_zero_height_uses_width_ratio(self) -> None:
        fit = compute_fit(BoundingBox(0, 50, 100, 50), 800, 600, 20)
        self.assertAlmostEqual(fit.scale, 7.6)

    def test_zero_width_uses_height_ratio(self) -> None:
        fit = compute_fit(BoundingBox(30, 0, 30, 100), 800, 600, 20)
        self.assertAlmostEqual(fit.scale, 5.6)

    def test_padding_larger_than_canvas_keeps_finite_scale(self) -> None:
        fit = compute_fit(BoundingBox(0, 0, 100, 100), 10, 10, 50)
        self.assertEqual(fit.scale, 1.0)


class ConnectionPointTests(unittest.TestCase):
    def setUp(self) -> None:
        self.box = ResolvedElement(
            element=ShapeElement(kind="rectangle", id="box", width=100, height=100),
            absolute_x=0,
            absolute_y=0,
            absolute_width=100,
            absolute_height=100,
        )

    def test_explicit_sides(self) -> None:
        self.assertEqual(get_connection_point(self.box, "top"), Point(50, 0))
        self.assertEqual(get_connection_point(self.box, "bottom"), Point(50, 100))
        self.assertEqual(get_connection_point(self.box, "left"), Point(0, 50))
        self.assertEqual(get_connection_point(self.box, "right"), Point(100, 50))

    def test_explicit_side_ignores_target(self) -> None:
        self.assertEqual(get_connection_point(self.box, "top", 500, 500), Point(50, 0))

    def test_auto_without_target_is_center(self) -> None:
        self.assertEqual(get_connection_point(self.box, "auto"), Point(50, 50))

    def test_auto_prefers_horizontal_when_dx_dominates(self) -> None:
        self.assertEqual(get_connection_point(self.box, "auto", 200, 60), Point(100, 50))
        self.assertEqual(get_connection_point(self.box, "auto", -200, 60), Point(0, 50))

    def test_auto_prefers_vertical_when_dy_dominates(self) -> None:
        self.assertEqual(get_connection_point(self.box, "auto", 60, 200), Point(50, 100))
        self.assertEqual(get_connection_point(self.box, "auto", 60, -200), Point(50, 0))

    def test_auto_tie_resolves_vertically(self) -> None:
        self.assertEqual(get_connection_point(self.box, "auto", 150, 150), Point(50, 100))
        self.assertEqual(get_connection_point(self.box, "auto", 150, -50), Point(50, 0))


class ArrowEndpointTests(unittest.TestCase):
    def test_endpoints_face_each_other(self) -> None:
        elements = _elements(
            {"type": "rectangle", "id": "a", "x": 0, "y": 0, "width": 100, "height": 60},
            {"type": "rectangle", "id": "b", "x": 300, "y": 0, "width": 100, "height": 60},
            {"type": "arrow", "start": "a", "end": "b"},
        )
        start, end = resolve_arrow_endpoints(elements[2], build_element_map(elements))
        self.assertEqual(start, Point(100, 30))
        self.assertEqual(end, Point(300, 30))

    def test_explicit_sides_are_used(self) -> None:
        elements = _elements(
            {"type": "rectangle", "id": "a", "x": 0, "y": 0, "width": 100, "height": 60},
            {"type": "rectangle", "id": "b", "x": 0, "y": 150, "width": 100, "height": 60},
            {"type": "arrow", "start": "a", "end": "b", "startSide": "left", "endSide": "right"},
        )
        start, end = resolve_arrow_endpoints(elements[2], build_element_map(elements))
        self.assertEqual(start, Point(0, 30))
        self.assertEqual(end, Point(100, 180))

    def test_anchor_inside_container(self) -> None:
        elements = _elements(
            {
                "type": "container",
                "x": 200,
                "y": 100,
                "width": 300,
                "height": 200,
                "children": [{"type": "rectangle", "id": "inner", "x": 20, "y": 20}],
            },
            {"type": "text", "id": "note", "x": 0, "y": 0, "text": "note"},
            {"type": "arrow", "start": "note", "end": "inner"},
        )
        start, end = resolve_arrow_endpoints(elements[2], build_element_map(elements))
        # note centre (50, 10); inner spans (220..320, 120..180), centre (270, 150).
        self.assertEqual(start, Point(100, 10))
        self.assertEqual(end, Point(220, 150))

    def test_missing_reference_returns_none(self) -> None:
        elements = _elements(
            {"type": "rectangle", "id": "a"},
            {"type": "arrow", "start": "a", "end": "ghost"},
        )
        self.assertIsNone(resolve_arrow_endpoints(elements[1], build_element_map(elements)))

    def test_lines_and_arrows_are_not_anchors(self) -> None:
        elements = _elements(
            {"type": "rectangle", "id": "a"},
            {"type": "line", "id": "l", "points": [[0, 0], [10, 0]]},
            {"type": "arrow", "id": "arr", "start": "a", "end": "l"},
        )
        element_map = build_element_map(elements)
        self.assertIn("l", element_map)
        self.assertIsNone(find_anchor(element_map, "l"))
        self.assertIsNone(find_anchor(element_map, "arr"))
        self.assertIsNone(resolve_arrow_endpoints(elements[2], element_map))

    def test_iter_arrows_walks_containers_in_document_order(self) -> None:
        elements = _elements(
            {"type": "arrow", "id": "first", "start": "a", "end": "b"},
            {
                "type": "container",
                "children": [
                    {"type": "rectangle", "id": "a"},
                    {"type": "arrow", "id": "nested", "start": "a", "end": "b"},
                ],
            },
            {"type": "arrow", "id": "last", "start": "a", "end": "b"},
        )
        self.assertEqual([arrow.id for arrow in iter_arrows(elements)], ["first", "nested", "last"])


class ParseElementTests(unittest.TestCase):
    def test_unknown_type_raises(self) -> None:
        with self.assertRaises(DiagramError) as ctx:
            parse_element({"type": "hexagon"})
        self.assertEqual(ctx.exception.code, "E_ELEMENT_TYPE")

    def test_arrow_defaults(self) -> None:
        arrow = parse_element({"type": "arrow", "start": "a", "end": "b"})
        self.assertIsNone(arrow.start_arrowhead)
        self.assertEqual(arrow.end_arrowhead, "arrow")
        self.assertEqual((arrow.start_side, arrow.end_side), ("auto", "auto"))

    def test_explicit_null_arrowheads(self) -> None:
        arrow = parse_element({"type": "arrow", "start": "a", "end": "b", "startArrowhead": None, "endArrowhead": None})
        self.assertIsNone(arrow.start_arrowhead)
        self.assertIsNone(arrow.end_arrowhead)

    def test_rotation_and_style_keys(self) -> None:
        shape = parse_element(
            {"type": "rectangle", "rotation": 45, "cornerRadius": 8, "style": {"strokeWidth": 3, "fillStyle": "solid"}}
        )
        self.assertEqual(shape.rotation, 45)
        self.assertEqual(shape.corner_radius, 8)
        self.assertEqual(shape.style.stroke_width, 3)
        self.assertEqual(shape.style.fill_style, "solid")


if __name__ == "__main__":
    unittest.main()
