# -------------------------------------------------------
# Module: geometry.py
#
# Description:
# Viewport and navigation helpers for points placed on a map.
#
#   - estimate_bounds() computes a bounding box around the "majority" of
#     the points by dropping a fraction of the lowest and highest ranked
#     coordinates before taking min/max. A single photo with a wrong GPS
#     tag therefore cannot blow up the initial map view.
#   - find_nearest_in_direction() picks the closest other point that lies
#     strictly up, down, left or right of the current one. Used for arrow
#     key navigation on the map.
#
# Distances are planar (degrees of latitude and longitude treated as a flat
# grid). This is accurate enough at city scale but not near the poles.
#
# -------------------------------------------------------
# © 2025 Hendrik Buchwald. All rights reserved.
# -------------------------------------------------------

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

# Named (lower_trim, upper_trim) pairs
BOUNDS_PRESETS: Dict[str, Tuple[float, float]] = {
    "majority": (0.1, 0.9),
    "core": (0.3, 0.7),
}


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned rectangle in latitude/longitude space.
    """

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return (
            self.min_lat <= lat <= self.max_lat
            and self.min_lng <= lng <= self.max_lng
        )

    def corners(self) -> List[List[float]]:
        """
        Returns [[south, west], [north, east]] as expected by Leaflet's fitBounds.
        """
        return [[self.min_lat, self.min_lng], [self.max_lat, self.max_lng]]


class Direction(Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

    @classmethod
    def from_key(cls, key: str) -> "Direction":
        """
        Maps a browser key name ("ArrowUp", ...) or a plain name ("up", ...)
        to a Direction.
        """
        name = key.strip().lower()
        if name.startswith("arrow"):
            name = name[len("arrow") :]
        for member in cls:
            if member.value == name:
                return member
        raise ValueError(f"Unknown direction '{key}'")


def _validate_trim(lower_trim: float, upper_trim: float) -> None:
    if not 0.0 <= lower_trim < 0.5:
        raise ValueError(f"lower_trim must be in [0, 0.5), got {lower_trim}")
    if not 0.5 < upper_trim <= 1.0:
        raise ValueError(f"upper_trim must be in (0.5, 1], got {upper_trim}")


def estimate_bounds(
    points: Sequence, lower_trim: float = 0.1, upper_trim: float = 0.9
) -> Optional[BoundingBox]:
    """
    Computes the bounding box of the points left after trimming.

    Points are ranked by (lat, lng). The ranks [floor(n * lower_trim),
    ceil(n * upper_trim)) are kept and the minimal box around them is
    returned. Returns None for an empty sequence.
    """
    _validate_trim(lower_trim, upper_trim)
    if not points:
        return None

    n = len(points)
    ordered = sorted(points, key=lambda p: (p.lat, p.lng))
    start = min(math.floor(n * lower_trim), n - 1)
    end = math.ceil(n * upper_trim)
    if end <= start:
        end = start + 1

    kept = ordered[start:end]
    lats = [p.lat for p in kept]
    lngs = [p.lng for p in kept]
    return BoundingBox(
        min_lat=min(lats),
        max_lat=max(lats),
        min_lng=min(lngs),
        max_lng=max(lngs),
    )


def _qualifies(direction: Direction, d_lat: float, d_lng: float) -> bool:
    if direction is Direction.RIGHT:
        return d_lng > 0
    if direction is Direction.LEFT:
        return d_lng < 0
    if direction is Direction.UP:
        return d_lat > 0
    return d_lat < 0


def find_nearest_in_direction(
    points: Sequence,
    current_index: int,
    direction: Union[Direction, str],
) -> int:
    """
    Returns the index of the closest other point strictly in the given
    direction of points[current_index], or current_index if there is none.

    Ties on distance go to the point that comes first in the sequence.
    """
    if not 0 <= current_index < len(points):
        raise IndexError(
            f"current_index {current_index} out of range for {len(points)} points"
        )
    if not isinstance(direction, Direction):
        direction = Direction.from_key(direction)

    current = points[current_index]
    best_index = current_index
    best_distance = math.inf

    for index, point in enumerate(points):
        if index == current_index:
            continue
        d_lat = point.lat - current.lat
        d_lng = point.lng - current.lng
        if not _qualifies(direction, d_lat, d_lng):
            continue
        distance = math.sqrt(d_lat * d_lat + d_lng * d_lng)
        # Strict comparison keeps the earliest point on ties
        if distance < best_distance:
            best_distance = distance
            best_index = index

    return best_index
