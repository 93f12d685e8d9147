"""
Domain models for the review core.

Defines the entities a review session works with: shapes drawn on a
paused frame, comments, the threads anchoring them to a time range, and
the review asset that owns the threads. Shapes are stored in unit space
(fractions of the video's native width/height).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List


class ShapeType(str, Enum):
    PATH = "path"
    RECT = "rect"
    CIRCLE = "circle"


class ThreadState(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class AssetStatus(str, Enum):
    IN_REVIEW = "in_review"
    CHANGES_REQUESTED = "changes_requested"
    APPROVED = "approved"


@dataclass(frozen=True)
class Point:
    """A point in unit space or reference-pixel space"""
    x: float
    y: float


@dataclass(frozen=True)
class Shape:
    """A drawn shape; replaced wholesale, never edited in place"""
    id: str
    type: ShapeType
    color: str
    stroke_width: float
    points: List[Point] = field(default_factory=list)


@dataclass
class Comment:
    """Represents a comment appended to a thread"""
    id: str
    author_id: str
    body: str
    created_at: str
    attachments: List[str] = field(default_factory=list)


@dataclass
class Thread:
    """Represents a timestamped, shape-anchored discussion"""
    id: str
    chip: int
    t_start: float
    shapes: List[Shape]
    comments: List[Comment] = field(default_factory=list)
    state: ThreadState = ThreadState.OPEN
    t_end: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.state == ThreadState.OPEN

    @property
    def is_range(self) -> bool:
        return self.t_end is not None


@dataclass
class ReviewAsset:
    """Represents a video under review and its threads"""
    id: str
    video_url: str
    duration: float
    version: int = 1
    status: AssetStatus = AssetStatus.IN_REVIEW
    share_token: Optional[str] = None
    threads: List[Thread] = field(default_factory=list)

    def find_thread(self, thread_id: str) -> Optional[Thread]:
        for thread in self.threads:
            if thread.id == thread_id:
                return thread
        return None
