from __future__ import annotations

import json
import unittest

from review_core.errors import InvalidDimensions
from review_core.geometry.shapes import (
    normalize_point,
    denormalize_point,
    normalize_shape,
    denormalize_shape,
    shapes_from_drawing,
    serialize_shapes,
    deserialize_shapes,
)
from review_core.models import Point, Shape, ShapeType


def _pixel_shape() -> Shape:
    return Shape(
        id="shape-1",
        type=ShapeType.RECT,
        color="#ef4444",
        stroke_width=4,
        points=[Point(192, 108), Point(960, 540)],
    )


class UnitSpaceTests(unittest.TestCase):
    def test_point_conversion(self) -> None:
        self.assertEqual(normalize_point(960, 270, 1920, 1080), Point(0.5, 0.25))
        self.assertEqual(denormalize_point(Point(0.5, 0.25), 1280, 720), Point(640, 180))

    def test_shape_uses_native_video_size(self) -> None:
        unit = normalize_shape(_pixel_shape(), 1920, 1080)

        self.assertEqual(unit.id, "shape-1")
        self.assertEqual(unit.type, ShapeType.RECT)
        self.assertEqual(unit.points, [Point(0.1, 0.1), Point(0.5, 0.5)])
        # Original is untouched
        self.assertEqual(_pixel_shape().points[0], Point(192, 108))

    def test_shape_displayed_at_another_size(self) -> None:
        unit = normalize_shape(_pixel_shape(), 1920, 1080)
        shown = denormalize_shape(unit, 960, 540)
        self.assertAlmostEqual(shown.points[1].x, 480)
        self.assertAlmostEqual(shown.points[1].y, 270)

    def test_invalid_video_size_leaves_shape(self) -> None:
        shape = _pixel_shape()
        with self.assertLogs("review_core", level="ERROR"):
            self.assertIs(normalize_shape(shape, 0, 1080), shape)
        with self.assertLogs("review_core", level="ERROR"):
            self.assertIs(denormalize_shape(shape, 1920, None), shape)


class DrawingInputTests(unittest.TestCase):
    def test_builds_unit_space_shapes(self) -> None:
        raw = [
            {"type": "path", "color": "#00ff00", "strokeWidth": 3,
             "points": [{"x": 0, "y": 0}, {"x": 320, "y": 180}, {"x": 640, "y": 360}]},
            {"type": "circle", "color": "#0000ff", "width": 6, "points": [{"x": 160, "y": 90}]},
        ]
        shapes = shapes_from_drawing(raw, 640, 360)

        self.assertEqual(len(shapes), 2)
        self.assertEqual(shapes[0].type, ShapeType.PATH)
        self.assertEqual(shapes[0].points[-1], Point(1.0, 1.0))
        self.assertEqual(shapes[0].stroke_width, 3)
        self.assertEqual(shapes[1].stroke_width, 6)
        self.assertEqual(shapes[1].points, [Point(0.25, 0.25)])
        self.assertNotEqual(shapes[0].id, shapes[1].id)

    def test_unmeasured_surface_is_rejected(self) -> None:
        with self.assertRaises(InvalidDimensions):
            shapes_from_drawing([{"type": "rect", "points": []}], 0, 0)

    def test_unknown_shape_type(self) -> None:
        with self.assertRaises(ValueError):
            shapes_from_drawing([{"type": "triangle", "points": []}], 640, 360)


class SerializationTests(unittest.TestCase):
    def test_serialize_then_deserialize(self) -> None:
        shapes = [normalize_shape(_pixel_shape(), 1920, 1080)]
        payload = serialize_shapes(shapes)

        decoded = json.loads(payload)
        self.assertEqual(decoded[0]["strokeWidth"], 4)
        self.assertEqual(decoded[0]["type"], "rect")
        self.assertEqual(deserialize_shapes(payload), shapes)

    def test_legacy_width_key(self) -> None:
        payload = json.dumps([
            {"id": "a", "type": "circle", "color": "#fff", "width": 2, "points": [{"x": 0.5, "y": 0.5}]}
        ])
        shapes = deserialize_shapes(payload)
        self.assertEqual(shapes[0].stroke_width, 2)
        self.assertEqual(shapes[0].type, ShapeType.CIRCLE)

    def test_malformed_payload_yields_empty_list(self) -> None:
        for payload in ["not json", "[{\"id\": \"a\"}]", "5"]:
            with self.assertLogs("review_core", level="WARNING"):
                self.assertEqual(deserialize_shapes(payload), [])


if __name__ == "__main__":
    unittest.main()
