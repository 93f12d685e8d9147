"""
Unit-space conversion for review shapes.

Review videos come in arbitrary native resolutions, so shapes attached to
threads are stored as fractions (0..1) of the video's actual width/height
rather than in the fixed reference space used by normalize.py.
"""

import json
import logging
from dataclasses import replace
from typing import List, Dict, Any

from pydantic import ValidationError

from ..errors import InvalidDimensions
from ..models import Point, Shape, ShapeType
from ..schema import ShapeRecord, shape_from_record, shape_to_record
from ..util import new_id

logger = logging.getLogger("review_core")


def _check_video_size(video_width: float, video_height: float) -> bool:
    if video_width and video_height and video_width > 0 and video_height > 0:
        return True
    logger.error(f"{InvalidDimensions(video_width, video_height)}; shape left unchanged")
    return False


def normalize_point(x: float, y: float, video_width: float, video_height: float) -> Point:
    """Pixel coordinates -> unit space"""
    return Point(x / video_width, y / video_height)


def denormalize_point(point: Point, video_width: float, video_height: float) -> Point:
    """Unit space -> pixel coordinates"""
    return Point(point.x * video_width, point.y * video_height)


def normalize_shape(shape: Shape, video_width: float, video_height: float) -> Shape:
    """Return a copy of the shape with every point converted to unit space"""
    if not _check_video_size(video_width, video_height):
        return shape
    return replace(
        shape,
        points=[normalize_point(p.x, p.y, video_width, video_height) for p in shape.points]
    )


def denormalize_shape(shape: Shape, video_width: float, video_height: float) -> Shape:
    """Return a copy of the shape with every point converted to pixels"""
    if not _check_video_size(video_width, video_height):
        return shape
    return replace(
        shape,
        points=[denormalize_point(p, video_width, video_height) for p in shape.points]
    )


def shapes_from_drawing(raw_shapes: List[Dict[str, Any]], width: float, height: float) -> List[Shape]:
    """
    Build unit-space shapes from raw drawing-surface objects.

    Args:
        raw_shapes: Dicts with type, color, strokeWidth (or width) and
            pixel points [{x, y}, ...] as delivered by the drawing surface
        width: Pixel width the shapes were drawn at
        height: Pixel height the shapes were drawn at

    Returns:
        Shapes with fresh ids and points in unit space

    Raises:
        InvalidDimensions: If width/height are not positive; unit-space
            shapes cannot be built from an unmeasured surface
        ValueError: If a raw shape has an unknown type
    """
    if not (width and height and width > 0 and height > 0):
        raise InvalidDimensions(width, height)

    shapes = []
    for raw in raw_shapes:
        stroke_width = raw.get("strokeWidth", raw.get("width", 2))
        shapes.append(Shape(
            id=new_id(),
            type=ShapeType(raw["type"]),
            color=raw.get("color", "#ef4444"),
            stroke_width=float(stroke_width),
            points=[normalize_point(p["x"], p["y"], width, height) for p in raw.get("points", [])]
        ))

    logger.debug(f"Built {len(shapes)} shapes from drawing at {width}x{height}")
    return shapes


def serialize_shapes(shapes: List[Shape]) -> str:
    """Serialize shapes to JSON for storage"""
    return json.dumps([shape_to_record(s) for s in shapes])


def deserialize_shapes(payload: str) -> List[Shape]:
    """Deserialize shapes from JSON; malformed payloads yield an empty list"""
    try:
        items = json.loads(payload)
        return [shape_from_record(ShapeRecord.model_validate(item)) for item in items]
    except (TypeError, ValueError, ValidationError) as e:
        logger.warning(f"Could not deserialize shapes: {e}")
        return []
