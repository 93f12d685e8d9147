from __future__ import annotations

import unittest

from review_core import domain
from review_core.errors import EmptyShapeSet, InvalidTimeRange
from review_core.models import Point, Shape, ShapeType, ThreadState, ReviewAsset


def _shape(shape_id: str = "s1") -> Shape:
    return Shape(id=shape_id, type=ShapeType.CIRCLE, color="#ff0000", stroke_width=2,
                 points=[Point(0.4, 0.4), Point(0.6, 0.6)])


class CreateThreadTests(unittest.TestCase):
    def test_new_thread_is_open_and_empty(self) -> None:
        thread = domain.create_thread([_shape()], 12.5, chip=4)

        self.assertEqual(thread.chip, 4)
        self.assertEqual(thread.t_start, 12.5)
        self.assertIsNone(thread.t_end)
        self.assertFalse(thread.is_range)
        self.assertEqual(thread.state, ThreadState.OPEN)
        self.assertEqual(thread.comments, [])
        self.assertTrue(thread.id)

    def test_range_thread(self) -> None:
        thread = domain.create_thread([_shape()], 3.0, 7.5)
        self.assertTrue(thread.is_range)
        self.assertEqual(domain.create_thread([_shape()], 3.0, 3.0).t_end, 3.0)

    def test_empty_shapes_rejected(self) -> None:
        with self.assertRaises(EmptyShapeSet):
            domain.create_thread([], 1.0)

    def test_end_before_start_rejected(self) -> None:
        with self.assertRaises(InvalidTimeRange):
            domain.create_thread([_shape()], 10.0, 9.9)

    def test_next_chip(self) -> None:
        self.assertEqual(domain.next_chip([]), 1)
        threads = [domain.create_thread([_shape()], 0, chip=c) for c in (1, 5, 2)]
        self.assertEqual(domain.next_chip(threads), 6)


class StateMachineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.thread = domain.create_thread([_shape()], 1.0, chip=1)

    def test_resolve_is_idempotent(self) -> None:
        resolved = domain.resolve(self.thread)
        self.assertEqual(resolved.state, ThreadState.RESOLVED)
        self.assertEqual(domain.resolve(resolved), resolved)
        self.assertIs(domain.resolve(resolved), resolved)
        # Input untouched
        self.assertEqual(self.thread.state, ThreadState.OPEN)

    def test_reopen_is_idempotent(self) -> None:
        self.assertIs(domain.reopen(self.thread), self.thread)
        reopened = domain.reopen(domain.resolve(self.thread))
        self.assertEqual(reopened.state, ThreadState.OPEN)

    def test_transition_dispatch(self) -> None:
        self.assertEqual(domain.transition(self.thread, ThreadState.RESOLVED).state, ThreadState.RESOLVED)
        self.assertEqual(domain.transition(self.thread, "open").state, ThreadState.OPEN)


class CommentTests(unittest.TestCase):
    def test_comment_does_not_reopen(self) -> None:
        resolved = domain.resolve(domain.create_thread([_shape()], 1.0))
        comment = domain.new_comment("user-1", "Still looks off")

        updated = domain.append_comment(resolved, comment)

        self.assertEqual(updated.state, ThreadState.RESOLVED)
        self.assertEqual(updated.comments, [comment])
        self.assertEqual(resolved.comments, [])

    def test_comments_keep_append_order(self) -> None:
        thread = domain.create_thread([_shape()], 1.0)
        first = domain.new_comment("a", "first")
        second = domain.new_comment("b", "second", attachments=["https://cdn.example.com/ref.png"])

        thread = domain.append_comment(domain.append_comment(thread, first), second)

        self.assertEqual([c.body for c in thread.comments], ["first", "second"])
        self.assertEqual(second.attachments, ["https://cdn.example.com/ref.png"])
        self.assertEqual(domain.remove_comment(thread, first.id).comments, [second])


class ShapeUpdateTests(unittest.TestCase):
    def test_append_and_replace(self) -> None:
        thread = domain.create_thread([_shape("s1")], 1.0)

        appended = domain.append_shapes(thread, [_shape("s2")])
        self.assertEqual([s.id for s in appended.shapes], ["s1", "s2"])

        replaced = domain.replace_shapes(appended, [_shape("s3")])
        self.assertEqual([s.id for s in replaced.shapes], ["s3"])
        self.assertEqual(len(thread.shapes), 1)

    def test_empty_updates_rejected(self) -> None:
        thread = domain.create_thread([_shape()], 1.0)
        with self.assertRaises(EmptyShapeSet):
            domain.append_shapes(thread, [])
        with self.assertRaises(EmptyShapeSet):
            domain.replace_shapes(thread, [])


class AssetHelperTests(unittest.TestCase):
    def test_structural_changes_bump_version(self) -> None:
        asset = ReviewAsset(id="a1", video_url="https://cdn.example.com/a1.mp4", duration=60.0)
        thread = domain.create_thread([_shape()], 1.0)

        added = domain.with_thread_added(asset, thread)
        self.assertEqual(added.version, 2)
        self.assertEqual(asset.threads, [])

        replaced = domain.with_thread_replaced(added, domain.resolve(thread))
        self.assertEqual(replaced.version, 3)
        self.assertEqual(replaced.threads[0].state, ThreadState.RESOLVED)

        removed = domain.with_thread_removed(replaced, thread.id)
        self.assertEqual(removed.threads, [])
        self.assertEqual(removed.version, 3)


if __name__ == "__main__":
    unittest.main()
