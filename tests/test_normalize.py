from __future__ import annotations

import unittest

from review_core.errors import InvalidDimensions
from review_core.geometry.normalize import (
    REFERENCE_WIDTH,
    REFERENCE_HEIGHT,
    to_reference,
    from_reference,
    scale_factor,
    normalize_for_storage,
    restore_from_storage,
)


def _objects():
    return [
        {"type": "rect", "left": 100, "top": 50, "scaleX": 1, "scaleY": 1, "width": 40, "height": 20, "angle": 15},
        {"type": "path", "left": 12.5, "top": 333.3, "scaleX": 0.75, "scaleY": 1.25, "width": 90, "height": 7},
        {"type": "circle", "left": 0, "top": 0, "scaleX": 2, "scaleY": 2, "width": 10, "height": 10},
    ]


class ToReferenceTests(unittest.TestCase):
    def test_scales_placement_to_reference_space(self) -> None:
        result = to_reference([{"left": 100, "top": 50, "scaleX": 1, "scaleY": 1}], 640, 360)

        self.assertEqual(len(result), 1)
        self.assertAlmostEqual(result[0]["left"], 200)
        self.assertAlmostEqual(result[0]["top"], 100)
        self.assertAlmostEqual(result[0]["scaleX"], 2)
        self.assertAlmostEqual(result[0]["scaleY"], 2)

    def test_local_size_and_rotation_pass_through(self) -> None:
        result = to_reference(_objects(), 1920, 1080)

        self.assertEqual(result[0]["width"], 40)
        self.assertEqual(result[0]["height"], 20)
        self.assertEqual(result[0]["angle"], 15)
        self.assertEqual(result[0]["type"], "rect")

    def test_input_is_not_modified(self) -> None:
        objects = _objects()
        to_reference(objects, 320, 180)
        self.assertEqual(objects, _objects())

    def test_missing_placement_uses_defaults(self) -> None:
        result = to_reference([{"type": "rect"}], 640, 360)
        self.assertEqual(result[0]["left"], 0)
        self.assertEqual(result[0]["top"], 0)
        self.assertAlmostEqual(result[0]["scaleX"], 2)
        self.assertAlmostEqual(result[0]["scaleY"], 2)

    def test_zero_scale_reads_as_default(self) -> None:
        restored = from_reference(to_reference([{"scaleX": 0, "scaleY": 0}], 640, 360), 640, 360)
        self.assertAlmostEqual(restored[0]["scaleX"], 1)
        self.assertAlmostEqual(restored[0]["scaleY"], 1)

    def test_non_positive_dimensions_return_input_unchanged(self) -> None:
        objects = _objects()
        for width, height in [(0, 360), (640, 0), (-640, 360), (0, 0)]:
            with self.assertLogs("review_core", level="ERROR"):
                self.assertIs(to_reference(objects, width, height), objects)
                self.assertIs(from_reference(objects, width, height), objects)

    def test_strict_mode_raises(self) -> None:
        with self.assertRaises(InvalidDimensions) as ctx:
            to_reference(_objects(), 0, 720, strict=True)
        self.assertEqual(ctx.exception.width, 0)


class RoundTripTests(unittest.TestCase):
    def test_from_reference_inverts_to_reference(self) -> None:
        sizes = [(640, 360), (1920, 1080), (333, 777), (1, 1), (4096, 2160)]
        for width, height in sizes:
            restored = from_reference(to_reference(_objects(), width, height), width, height)
            for original, back in zip(_objects(), restored):
                for key in ("left", "top", "scaleX", "scaleY"):
                    self.assertAlmostEqual(back[key], original[key], delta=1e-6, msg=f"{key} at {width}x{height}")
                self.assertEqual(back["width"], original["width"])
                self.assertEqual(back["height"], original["height"])

    def test_display_size_change(self) -> None:
        stored = to_reference([{"left": 320, "top": 180, "scaleX": 1, "scaleY": 1}], 640, 360)
        shown = from_reference(stored, 1280, 720)
        self.assertAlmostEqual(shown[0]["left"], 640)
        self.assertAlmostEqual(shown[0]["top"], 360)


class ScaleFactorTests(unittest.TestCase):
    def test_ratio_against_reference(self) -> None:
        self.assertEqual(scale_factor(640, 360), {"scaleX": 0.5, "scaleY": 0.5})
        self.assertEqual(scale_factor(REFERENCE_WIDTH, REFERENCE_HEIGHT), {"scaleX": 1.0, "scaleY": 1.0})

    def test_custom_reference(self) -> None:
        factor = scale_factor(960, 540, reference_width=1920, reference_height=1080)
        self.assertEqual(factor, {"scaleX": 0.5, "scaleY": 0.5})


class CanvasStorageTests(unittest.TestCase):
    def test_normalize_for_storage_stamps_sizes(self) -> None:
        canvas = {"version": "5.3.0", "background": "transparent", "objects": _objects()}
        stored = normalize_for_storage(canvas, 640, 360)

        self.assertEqual(stored["width"], REFERENCE_WIDTH)
        self.assertEqual(stored["height"], REFERENCE_HEIGHT)
        self.assertEqual(stored["originalWidth"], 640)
        self.assertEqual(stored["originalHeight"], 360)
        self.assertEqual(stored["version"], "5.3.0")
        self.assertEqual(stored["background"], "transparent")
        self.assertAlmostEqual(stored["objects"][0]["left"], 200)
        self.assertEqual(canvas["objects"], _objects())

    def test_canvas_without_objects(self) -> None:
        stored = normalize_for_storage({}, 800, 600)
        self.assertEqual(stored["objects"], [])

    def test_restore_uses_stamped_reference(self) -> None:
        canvas = {"objects": [{"left": 480, "top": 270, "scaleX": 1, "scaleY": 1}]}
        stored = normalize_for_storage(canvas, 960, 540, reference_width=1920, reference_height=1080)

        restored = restore_from_storage(stored, 960, 540)
        self.assertAlmostEqual(restored["objects"][0]["left"], 480)
        self.assertAlmostEqual(restored["objects"][0]["top"], 270)
        self.assertAlmostEqual(restored["objects"][0]["scaleX"], 1)
        self.assertEqual(restored["width"], 960)
        self.assertEqual(restored["originalWidth"], 960)

    def test_restore_with_invalid_size_returns_record(self) -> None:
        stored = normalize_for_storage({"objects": _objects()}, 640, 360)
        with self.assertLogs("review_core", level="ERROR"):
            self.assertIs(restore_from_storage(stored, 0, 0), stored)


if __name__ == "__main__":
    unittest.main()
