from __future__ import annotations

import sys
import unittest
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from aidraw.schema import validate_config, validate_diagram


class DiagramSchemaTests(unittest.TestCase):
    def assertValid(self, document: dict) -> None:
        ok, errors = validate_diagram(document)
        self.assertTrue(ok, errors)
        self.assertEqual(errors, [])

    def assertInvalid(self, document: dict) -> list:
        ok, errors = validate_diagram(document)
        self.assertFalse(ok)
        self.assertTrue(errors)
        return errors

    def test_accepts_empty_diagram(self) -> None:
        self.assertValid({"elements": []})

    def test_accepts_every_shape_kind(self) -> None:
        for kind in ("rectangle", "ellipse", "diamond", "container"):
            with self.subTest(kind=kind):
                self.assertValid({"elements": [{"type": kind, "id": "s", "x": 0, "y": 0, "width": 10, "height": 10}]})

    def test_accepts_nested_container(self) -> None:
        self.assertValid(
            {
                "elements": [
                    {
                        "type": "container",
                        "label": "Group",
                        "children": [
                            {"type": "rectangle", "id": "a"},
                            {"type": "container", "children": [{"type": "text", "text": "deep"}]},
                        ],
                    }
                ]
            }
        )

    def test_accepts_text_styling(self) -> None:
        self.assertValid(
            {"elements": [{"type": "text", "text": "hi", "fontSize": 24, "fontFamily": "code", "textAlign": "center"}]}
        )

    def test_accepts_arrow_with_all_options(self) -> None:
        self.assertValid(
            {
                "elements": [
                    {
                        "type": "arrow",
                        "id": "arr",
                        "start": "a",
                        "end": "b",
                        "label": "calls",
                        "startArrowhead": "dot",
                        "endArrowhead": None,
                        "startSide": "bottom",
                        "endSide": "auto",
                        "style": {"stroke": "#e74c3c", "strokeStyle": "dashed"},
                    }
                ]
            }
        )

    def test_accepts_full_style(self) -> None:
        self.assertValid(
            {
                "elements": [
                    {
                        "type": "rectangle",
                        "rotation": 30,
                        "cornerRadius": 12,
                        "style": {
                            "fill": "#a5d8ff",
                            "stroke": "#1971c2",
                            "strokeWidth": 4,
                            "strokeStyle": "dotted",
                            "fillStyle": "cross-hatch",
                            "roughness": 2,
                            "opacity": 0,
                        },
                    }
                ]
            }
        )

    def test_rejects_missing_elements(self) -> None:
        errors = self.assertInvalid({})
        self.assertTrue(any(err.startswith("root:") and "elements" in err for err in errors), errors)

    def test_rejects_unknown_type(self) -> None:
        errors = self.assertInvalid({"elements": [{"type": "hexagon"}]})
        self.assertTrue(any(err.startswith("/elements/0") for err in errors), errors)

    def test_rejects_text_without_text(self) -> None:
        self.assertInvalid({"elements": [{"type": "text", "x": 1}]})

    def test_rejects_line_with_single_point(self) -> None:
        self.assertInvalid({"elements": [{"type": "line", "points": [[0, 0]]}]})

    def test_rejects_line_point_with_three_coordinates(self) -> None:
        self.assertInvalid({"elements": [{"type": "line", "points": [[0, 0, 0], [1, 1, 1]]}]})

    def test_rejects_arrow_without_end(self) -> None:
        self.assertInvalid({"elements": [{"type": "arrow", "start": "a"}]})

    def test_rejects_arrow_with_children_or_size(self) -> None:
        self.assertInvalid({"elements": [{"type": "arrow", "start": "a", "end": "b", "width": 10}]})

    def test_rejects_out_of_range_style(self) -> None:
        self.assertInvalid({"elements": [{"type": "rectangle", "style": {"strokeWidth": 5}}]})
        self.assertInvalid({"elements": [{"type": "rectangle", "style": {"roughness": -1}}]})
        self.assertInvalid({"elements": [{"type": "rectangle", "style": {"opacity": 101}}]})

    def test_rejects_unknown_properties(self) -> None:
        self.assertInvalid({"elements": [{"type": "rectangle", "colour": "red"}]})

    def test_rejects_non_numeric_coordinates(self) -> None:
        self.assertInvalid({"elements": [{"type": "rectangle", "x": "10"}]})


class ConfigSchemaTests(unittest.TestCase):
    def test_accepts_empty_and_full_config(self) -> None:
        self.assertEqual(validate_config({}), (True, []))
        self.assertEqual(validate_config({"background": "#000000", "padding": 0}), (True, []))

    def test_rejects_negative_padding(self) -> None:
        ok, errors = validate_config({"padding": -1})
        self.assertFalse(ok)
        self.assertTrue(errors[0].startswith("/padding:"), errors)

    def test_rejects_unknown_key(self) -> None:
        ok, _errors = validate_config({"scale": 2})
        self.assertFalse(ok)


if __name__ == "__main__":
    unittest.main()
