# -------------------------------------------------------
# Module: manifest.py
#
# Description:
# Reading and writing of the tiles manifest, the JSON file that links
# every processed photo to its coordinates, thumbnail and map marker.
#
# Format:
#   [
#     {
#       "name": "IMG_0001.jpg",
#       "thumbnail": "tiles_small/IMG_0001.jpg",
#       "marker": "tiles_markers/IMG_0001.png",
#       "lat": 52.52,
#       "lng": 13.40
#     },
#     ...
#   ]
#
# -------------------------------------------------------
# © 2025 Hendrik Buchwald. All rights reserved.
# -------------------------------------------------------

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Set

REQUIRED_FIELDS = ("name", "thumbnail", "marker", "lat", "lng")


@dataclass(frozen=True)
class Point:
    """
    One photo on the map.

    id          – file name of the source photo, unique within a manifest
    lat/lng     – GPS position in decimal degrees
    thumbnail   – path or URL of the resized photo
    marker      – path or URL of the pin-shaped marker icon
    """

    id: str
    lat: float
    lng: float
    thumbnail: str
    marker: str


def _coordinate(entry: Dict[str, Any], key: str, limit: float) -> float:
    value = entry[key]
    # bool is an int subclass, but true/false is never a coordinate
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' is not a number: {value!r}")
    value = float(value)
    if not math.isfinite(value) or abs(value) > limit:
        raise ValueError(f"'{key}' out of range: {value}")
    return value


def point_from_entry(entry: Dict[str, Any]) -> Point:
    """
    Converts a manifest entry into a Point. Raises ValueError if the entry
    is incomplete or has invalid coordinates.
    """
    if not isinstance(entry, dict):
        raise ValueError(f"Entry is not an object: {entry!r}")
    missing = [key for key in REQUIRED_FIELDS if key not in entry]
    if missing:
        raise ValueError(f"Missing field(s): {', '.join(missing)}")

    return Point(
        id=str(entry["name"]),
        lat=_coordinate(entry, "lat", 90.0),
        lng=_coordinate(entry, "lng", 180.0),
        thumbnail=str(entry["thumbnail"]),
        marker=str(entry["marker"]),
    )


def point_to_entry(point: Point) -> Dict[str, Any]:
    return {
        "name": point.id,
        "thumbnail": point.thumbnail,
        "marker": point.marker,
        "lat": point.lat,
        "lng": point.lng,
    }


def load_manifest(path: str) -> List[Point]:
    """
    Loads the manifest at path. Invalid entries and duplicate names are
    skipped with a warning.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise ValueError(f"Manifest '{path}' does not contain a JSON array")

    points: List[Point] = []
    seen: Set[str] = set()
    for position, entry in enumerate(data):
        try:
            point = point_from_entry(entry)
        except ValueError as exc:
            logging.warning("Skipping manifest entry #%d: %s", position, exc)
            continue
        if point.id in seen:
            logging.warning("Skipping duplicate manifest entry '%s'", point.id)
            continue
        seen.add(point.id)
        points.append(point)

    logging.debug("Loaded %d point(s) from '%s'.", len(points), path)
    return points


def write_manifest(path: str, points: Iterable[Point]) -> None:
    entries = [point_to_entry(point) for point in points]
    with open(path, "w", encoding="utf-8") as f:
        json.dump(entries, f, indent=2)
        f.write("\n")
    logging.debug("Wrote %d entries to '%s'.", len(entries), path)
