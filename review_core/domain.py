"""
Pure review domain operations.

Threads move between two states, open and resolved, and only through an
explicit resolve/reopen. Both transitions are idempotent. Every operation
returns a new object and leaves its input untouched.
"""

from dataclasses import replace
from typing import Optional, List, Iterable

from .errors import EmptyShapeSet, InvalidTimeRange
from .models import Shape, Comment, Thread, ThreadState, ReviewAsset
from .util import new_id, utc_now_iso


def next_chip(threads: Iterable[Thread]) -> int:
    """Next display chip: one past the highest chip in use, 1 for none"""
    chips = [t.chip for t in threads]
    return max(chips) + 1 if chips else 1


def create_thread(
    shapes: List[Shape],
    t_start: float,
    t_end: Optional[float] = None,
    chip: int = 1,
    thread_id: Optional[str] = None
) -> Thread:
    """
    Create a new open thread anchored to the given shapes.

    Raises:
        EmptyShapeSet: If no shapes are given
        InvalidTimeRange: If t_end is before t_start
    """
    if not shapes:
        raise EmptyShapeSet()
    if t_end is not None and t_end < t_start:
        raise InvalidTimeRange(t_start, t_end)

    return Thread(
        id=thread_id or new_id(),
        chip=chip,
        t_start=t_start,
        t_end=t_end,
        shapes=list(shapes),
        comments=[],
        state=ThreadState.OPEN
    )


def resolve(thread: Thread) -> Thread:
    if thread.state == ThreadState.RESOLVED:
        return thread
    return replace(thread, state=ThreadState.RESOLVED)


def reopen(thread: Thread) -> Thread:
    if thread.state == ThreadState.OPEN:
        return thread
    return replace(thread, state=ThreadState.OPEN)


def transition(thread: Thread, state: ThreadState) -> Thread:
    if state == ThreadState.RESOLVED:
        return resolve(thread)
    if state == ThreadState.OPEN:
        return reopen(thread)
    raise ValueError(f"Unknown thread state: {state}")


def new_comment(author_id: str, body: str, attachments: Optional[List[str]] = None) -> Comment:
    """Build a comment stamped with the current time"""
    return Comment(
        id=new_id(),
        author_id=author_id,
        body=body,
        created_at=utc_now_iso(),
        attachments=list(attachments or [])
    )


def append_comment(thread: Thread, comment: Comment) -> Thread:
    """Append a comment; legal in any state and never reopens the thread"""
    return replace(thread, comments=thread.comments + [comment])


def remove_comment(thread: Thread, comment_id: str) -> Thread:
    return replace(thread, comments=[c for c in thread.comments if c.id != comment_id])


def append_shapes(thread: Thread, shapes: List[Shape]) -> Thread:
    if not shapes:
        raise EmptyShapeSet("No shapes to append")
    return replace(thread, shapes=thread.shapes + list(shapes))


def replace_shapes(thread: Thread, shapes: List[Shape]) -> Thread:
    """Swap the thread's shape list wholesale"""
    if not shapes:
        raise EmptyShapeSet()
    return replace(thread, shapes=list(shapes))


# Asset-level helpers. Each structural change bumps the advisory version.

def with_thread_added(asset: ReviewAsset, thread: Thread) -> ReviewAsset:
    return replace(asset, threads=asset.threads + [thread], version=asset.version + 1)


def with_thread_removed(asset: ReviewAsset, thread_id: str) -> ReviewAsset:
    return replace(asset, threads=[t for t in asset.threads if t.id != thread_id])


def with_thread_replaced(asset: ReviewAsset, thread: Thread, bump_version: bool = True) -> ReviewAsset:
    threads = [thread if t.id == thread.id else t for t in asset.threads]
    version = asset.version + 1 if bump_version else asset.version
    return replace(asset, threads=threads, version=version)
