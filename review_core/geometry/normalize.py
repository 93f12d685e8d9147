"""
Coordinate normalization for annotation geometry.

Annotations are persisted in a fixed reference resolution (1280x720 by
default) and scaled to whatever size the video is rendered at. Objects are
plain canvas records carrying ``left``/``top``/``scaleX``/``scaleY``
placement; ``width``/``height`` are the object's local size and are never
scaled. Any other key (``angle``, ``stroke``...) passes through untouched.

Missing or falsy placement is read as the canvas defaults (``left``/``top``
0, ``scaleX``/``scaleY`` 1), so an explicit scale of 0 comes back as 1 and
objects without ``left``/``top`` gain those keys; such objects do not
round-trip unchanged.
"""

import logging
from typing import Dict, Any, List

from ..errors import InvalidDimensions

logger = logging.getLogger("review_core")

REFERENCE_WIDTH = 1280
REFERENCE_HEIGHT = 720


def _valid_dimensions(width: float, height: float, strict: bool) -> bool:
    if width is not None and height is not None and width > 0 and height > 0:
        return True

    error = InvalidDimensions(width, height)
    if strict:
        raise error
    logger.error(f"{error}; returning objects unchanged")
    return False


def _scale_objects(objects: List[Dict[str, Any]], scale_x: float, scale_y: float) -> List[Dict[str, Any]]:
    converted = []
    for obj in objects:
        scaled = dict(obj)
        scaled["left"] = (obj.get("left") or 0) * scale_x
        scaled["top"] = (obj.get("top") or 0) * scale_y
        scaled["scaleX"] = (obj.get("scaleX") or 1) * scale_x
        scaled["scaleY"] = (obj.get("scaleY") or 1) * scale_y
        converted.append(scaled)
    return converted


def to_reference(
    objects: List[Dict[str, Any]],
    source_width: float,
    source_height: float,
    reference_width: float = REFERENCE_WIDTH,
    reference_height: float = REFERENCE_HEIGHT,
    strict: bool = False
) -> List[Dict[str, Any]]:
    """
    Convert objects drawn at the source size into reference space.

    Args:
        objects: Canvas objects with left/top/scaleX/scaleY placement
        source_width: Width the objects were drawn at
        source_height: Height the objects were drawn at
        strict: Raise InvalidDimensions instead of returning the input

    Returns:
        New list of converted objects (input list is not modified)
    """
    if not _valid_dimensions(source_width, source_height, strict):
        return objects

    scale_x = reference_width / source_width
    scale_y = reference_height / source_height

    logger.debug(
        f"Converting {len(objects)} objects {source_width}x{source_height} -> "
        f"{reference_width}x{reference_height} (scale {scale_x:.3f}, {scale_y:.3f})"
    )
    return _scale_objects(objects, scale_x, scale_y)


def from_reference(
    objects: List[Dict[str, Any]],
    target_width: float,
    target_height: float,
    reference_width: float = REFERENCE_WIDTH,
    reference_height: float = REFERENCE_HEIGHT,
    strict: bool = False
) -> List[Dict[str, Any]]:
    """
    Convert reference-space objects to the size the video is displayed at.

    Exact inverse of to_reference for the same width/height.
    """
    if not _valid_dimensions(target_width, target_height, strict):
        return objects

    scale_x = target_width / reference_width
    scale_y = target_height / reference_height

    logger.debug(
        f"Converting {len(objects)} objects {reference_width}x{reference_height} -> "
        f"{target_width}x{target_height} (scale {scale_x:.3f}, {scale_y:.3f})"
    )
    return _scale_objects(objects, scale_x, scale_y)


def scale_factor(
    width: float,
    height: float,
    reference_width: float = REFERENCE_WIDTH,
    reference_height: float = REFERENCE_HEIGHT
) -> Dict[str, float]:
    """Ratio between a display size and the reference size"""
    return {
        "scaleX": width / reference_width,
        "scaleY": height / reference_height,
    }


def normalize_for_storage(
    canvas_state: Dict[str, Any],
    width: float,
    height: float,
    reference_width: float = REFERENCE_WIDTH,
    reference_height: float = REFERENCE_HEIGHT
) -> Dict[str, Any]:
    """
    Normalize a whole canvas state before it is saved.

    The result is stamped with the reference size and the capture size so
    the exact scale can be re-derived later, even if the reference
    constants change.
    """
    objects = to_reference(
        canvas_state.get("objects") or [],
        width,
        height,
        reference_width=reference_width,
        reference_height=reference_height
    )

    normalized = dict(canvas_state)
    normalized.update({
        "objects": objects,
        "width": reference_width,
        "height": reference_height,
        "originalWidth": width,
        "originalHeight": height,
    })
    return normalized


def restore_from_storage(canvas_state: Dict[str, Any], width: float, height: float) -> Dict[str, Any]:
    """
    Scale a stored canvas state to the current display size.

    Uses the reference size stamped on the record by normalize_for_storage,
    falling back to the module constants for unstamped records.
    """
    if not _valid_dimensions(width, height, strict=False):
        return canvas_state

    reference_width = canvas_state.get("width") or REFERENCE_WIDTH
    reference_height = canvas_state.get("height") or REFERENCE_HEIGHT

    restored = dict(canvas_state)
    restored["objects"] = from_reference(
        canvas_state.get("objects") or [],
        width,
        height,
        reference_width=reference_width,
        reference_height=reference_height
    )
    restored["width"] = width
    restored["height"] = height
    return restored
