"""
Record schemas for persisted review data.

Persistence collaborators exchange plain JSON-compatible records. These
pydantic models validate whatever a backend hands back (Postgres rows, S3
documents, in-memory dicts) and convert between records and the domain
dataclasses in models.py.
"""

import json
from datetime import datetime
from typing import Optional, List, Dict, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator

from .models import (
    Point, Shape, ShapeType, Comment, Thread, ThreadState, ReviewAsset, AssetStatus
)


class PointRecord(BaseModel):
    x: float
    y: float


class ShapeRecord(BaseModel):
    """Shape as stored in the thread's shapes JSON column"""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: Literal["path", "rect", "circle"]
    color: str
    # Older records use "width" for the stroke width
    stroke_width: float = Field(
        validation_alias=AliasChoices("strokeWidth", "width", "stroke_width"),
        serialization_alias="strokeWidth"
    )
    points: List[PointRecord] = Field(default_factory=list)


class CommentRecord(BaseModel):
    id: str
    thread_id: Optional[str] = None
    author_id: str
    body: str
    created_at: str
    attachments: List[str] = Field(default_factory=list)

    @field_validator("created_at", mode="before")
    @classmethod
    def _created_at_to_iso(cls, value):
        if isinstance(value, datetime):
            return value.isoformat()
        return value

    @field_validator("attachments", mode="before")
    @classmethod
    def _attachments_default(cls, value):
        return value or []


class ThreadRecord(BaseModel):
    id: str
    asset_id: Optional[str] = None
    chip: int
    t_start: float
    t_end: Optional[float] = None
    shapes: List[ShapeRecord] = Field(default_factory=list)
    state: Literal["open", "resolved"] = "open"
    comments: List[CommentRecord] = Field(
        default_factory=list,
        validation_alias=AliasChoices("comments", "thread_comments")
    )

    @field_validator("shapes", mode="before")
    @classmethod
    def _decode_shapes(cls, value):
        if isinstance(value, str):
            return json.loads(value)
        return value or []

    @field_validator("comments", mode="before")
    @classmethod
    def _comments_default(cls, value):
        return value or []


class AssetRecord(BaseModel):
    id: str
    video_url: str
    duration: float
    version: int = 1
    status: Literal["in_review", "changes_requested", "approved"] = "in_review"
    share_token: Optional[str] = None
    threads: List[ThreadRecord] = Field(default_factory=list)

    @field_validator("threads", mode="before")
    @classmethod
    def _threads_default(cls, value):
        return value or []


def shape_from_record(record: ShapeRecord) -> Shape:
    return Shape(
        id=record.id,
        type=ShapeType(record.type),
        color=record.color,
        stroke_width=record.stroke_width,
        points=[Point(p.x, p.y) for p in record.points]
    )


def shape_to_record(shape: Shape) -> Dict[str, Any]:
    return ShapeRecord(
        id=shape.id,
        type=shape.type.value,
        color=shape.color,
        stroke_width=shape.stroke_width,
        points=[PointRecord(x=p.x, y=p.y) for p in shape.points]
    ).model_dump(by_alias=True)


def comment_from_record(record: CommentRecord) -> Comment:
    return Comment(
        id=record.id,
        author_id=record.author_id,
        body=record.body,
        created_at=record.created_at,
        attachments=list(record.attachments)
    )


def comment_to_record(comment: Comment, thread_id: Optional[str] = None) -> Dict[str, Any]:
    return CommentRecord(
        id=comment.id,
        thread_id=thread_id,
        author_id=comment.author_id,
        body=comment.body,
        created_at=comment.created_at,
        attachments=list(comment.attachments)
    ).model_dump()


def thread_from_record(record: ThreadRecord) -> Thread:
    return Thread(
        id=record.id,
        chip=record.chip,
        t_start=record.t_start,
        t_end=record.t_end,
        shapes=[shape_from_record(s) for s in record.shapes],
        comments=[comment_from_record(c) for c in record.comments],
        state=ThreadState(record.state)
    )


def thread_to_record(thread: Thread, asset_id: Optional[str] = None) -> Dict[str, Any]:
    """Thread record including its shapes and comments"""
    return {
        "id": thread.id,
        "asset_id": asset_id,
        "chip": thread.chip,
        "t_start": thread.t_start,
        "t_end": thread.t_end,
        "shapes": [shape_to_record(s) for s in thread.shapes],
        "state": thread.state.value,
        "comments": [comment_to_record(c, thread.id) for c in thread.comments],
    }


def asset_from_record(data: Dict[str, Any]) -> ReviewAsset:
    """
    Validate a raw asset record and build the domain object.

    Threads are ordered by chip, i.e. creation order.

    Raises:
        pydantic.ValidationError: If the record does not match the schema
    """
    record = AssetRecord.model_validate(data)
    threads = sorted((thread_from_record(t) for t in record.threads), key=lambda t: t.chip)
    return ReviewAsset(
        id=record.id,
        video_url=record.video_url,
        duration=record.duration,
        version=record.version,
        status=AssetStatus(record.status),
        share_token=record.share_token,
        threads=threads
    )


def asset_to_record(asset: ReviewAsset) -> Dict[str, Any]:
    return {
        "id": asset.id,
        "video_url": asset.video_url,
        "duration": asset.duration,
        "version": asset.version,
        "status": asset.status.value,
        "share_token": asset.share_token,
        "threads": [thread_to_record(t, asset.id) for t in asset.threads],
    }
