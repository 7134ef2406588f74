from __future__ import annotations

import pytest

from tilemap.geometry import (
    BOUNDS_PRESETS,
    BoundingBox,
    Direction,
    estimate_bounds,
    find_nearest_in_direction,
)
from tilemap.manifest import Point


def _point(name: str, lat: float, lng: float) -> Point:
    return Point(id=name, lat=lat, lng=lng, thumbnail=f"{name}.jpg", marker=f"{name}.png")


@pytest.fixture
def cross() -> list[Point]:
    # A in the middle, B east, C west, D north
    return [
        _point("A", 0.0, 0.0),
        _point("B", 0.0, 1.0),
        _point("C", 0.0, -1.0),
        _point("D", 1.0, 0.0),
    ]


def test_estimate_bounds_empty_returns_none() -> None:
    assert estimate_bounds([]) is None
    assert estimate_bounds([], *BOUNDS_PRESETS["core"]) is None


def test_estimate_bounds_trims_ten_percent_each_side() -> None:
    points = [_point(str(i), float(i), 0.0) for i in range(10)]

    bounds = estimate_bounds(points, 0.1, 0.9)

    assert bounds == BoundingBox(min_lat=1.0, max_lat=8.0, min_lng=0.0, max_lng=0.0)


def test_estimate_bounds_ignores_input_order() -> None:
    points = [_point(str(i), float(i), 0.0) for i in (7, 2, 9, 0, 4, 1, 8, 3, 6, 5)]

    bounds = estimate_bounds(points, 0.1, 0.9)

    assert (bounds.min_lat, bounds.max_lat) == (1.0, 8.0)


def test_estimate_bounds_without_trim_is_full_extent() -> None:
    points = [
        _point("a", 48.1, 11.5),
        _point("b", -33.9, 151.2),
        _point("c", 40.7, -74.0),
        _point("d", 35.7, 139.7),
    ]

    bounds = estimate_bounds(points, 0.0, 1.0)

    assert bounds == BoundingBox(min_lat=-33.9, max_lat=48.1, min_lng=-74.0, max_lng=151.2)


def test_estimate_bounds_drops_single_outlier() -> None:
    points = [_point(str(i), 52.5 + i * 0.001, 13.4 + i * 0.001) for i in range(9)]
    points.append(_point("outlier", 89.0, -170.0))

    bounds = estimate_bounds(points, *BOUNDS_PRESETS["majority"])

    assert bounds.max_lat < 53.0
    assert bounds.min_lng > 13.0
    assert not bounds.contains(89.0, -170.0)


def test_estimate_bounds_core_preset() -> None:
    points = [_point(str(i), float(i), float(-i)) for i in range(10)]

    bounds = estimate_bounds(points, *BOUNDS_PRESETS["core"])

    # ranks [3, 7)
    assert bounds == BoundingBox(min_lat=3.0, max_lat=6.0, min_lng=-6.0, max_lng=-3.0)


def test_estimate_bounds_breaks_lat_ties_by_lng() -> None:
    points = [_point(str(lng), 0.0, float(lng)) for lng in (5, 3, 9, 1, 7)]

    bounds = estimate_bounds(points, 0.2, 0.8)

    # sorted lng: 1 3 5 7 9, ranks [1, 4)
    assert (bounds.min_lng, bounds.max_lng) == (3.0, 7.0)


def test_estimate_bounds_single_point_degenerates() -> None:
    bounds = estimate_bounds([_point("only", 12.5, -3.25)], 0.3, 0.7)

    assert bounds == BoundingBox(min_lat=12.5, max_lat=12.5, min_lng=-3.25, max_lng=-3.25)


def test_estimate_bounds_covers_trimmed_subsequence() -> None:
    points = [_point(str(i), (i * 37) % 11 - 5.0, (i * 13) % 7 - 3.0) for i in range(23)]
    ordered = sorted(points, key=lambda p: (p.lat, p.lng))

    bounds = estimate_bounds(points, 0.1, 0.9)

    # floor(2.3) = 2, ceil(20.7) = 21
    for point in ordered[2:21]:
        assert bounds.contains(point.lat, point.lng)


@pytest.mark.parametrize("lower, upper", [(-0.1, 0.9), (0.5, 0.9), (0.1, 0.5), (0.1, 1.1)])
def test_estimate_bounds_rejects_invalid_trim(lower: float, upper: float) -> None:
    with pytest.raises(ValueError):
        estimate_bounds([_point("a", 0.0, 0.0)], lower, upper)


def test_bounding_box_corners() -> None:
    box = BoundingBox(min_lat=1.0, max_lat=2.0, min_lng=3.0, max_lng=4.0)
    assert box.corners() == [[1.0, 3.0], [2.0, 4.0]]


@pytest.mark.parametrize(
    "direction, expected",
    [
        (Direction.RIGHT, 1),
        (Direction.UP, 3),
        (Direction.LEFT, 2),
        (Direction.DOWN, 0),
    ],
)
def test_find_nearest_in_direction_cross(cross, direction: Direction, expected: int) -> None:
    assert find_nearest_in_direction(cross, 0, direction) == expected


def test_find_nearest_in_direction_accepts_key_names(cross) -> None:
    assert find_nearest_in_direction(cross, 0, "ArrowRight") == 1
    assert find_nearest_in_direction(cross, 0, "up") == 3


def test_find_nearest_in_direction_picks_closest() -> None:
    points = [
        _point("current", 0.0, 0.0),
        _point("far", 0.0, 5.0),
        _point("diagonal", 2.0, 1.0),
        _point("near", -0.5, 1.0),
    ]

    assert find_nearest_in_direction(points, 0, Direction.RIGHT) == 3


def test_find_nearest_in_direction_requires_strict_offset() -> None:
    # Due north is not to the right
    points = [_point("current", 0.0, 0.0), _point("north", 1.0, 0.0)]

    assert find_nearest_in_direction(points, 0, Direction.RIGHT) == 0
    assert find_nearest_in_direction(points, 0, Direction.LEFT) == 0
    assert find_nearest_in_direction(points, 0, Direction.UP) == 1


def test_find_nearest_in_direction_ties_go_to_first() -> None:
    points = [
        _point("current", 0.0, 0.0),
        _point("first", 1.0, 1.0),
        _point("second", -1.0, 1.0),
    ]

    assert find_nearest_in_direction(points, 0, Direction.RIGHT) == 1


def test_find_nearest_in_direction_skips_duplicate_of_current() -> None:
    points = [_point("a", 3.0, 3.0), _point("same-spot", 3.0, 3.0)]

    for direction in Direction:
        assert find_nearest_in_direction(points, 0, direction) == 0


def test_find_nearest_in_direction_is_idempotent(cross) -> None:
    results = {find_nearest_in_direction(cross, 2, Direction.RIGHT) for _ in range(5)}

    assert results == {0}


def test_find_nearest_in_direction_single_point() -> None:
    assert find_nearest_in_direction([_point("a", 1.0, 1.0)], 0, Direction.UP) == 0


def test_find_nearest_in_direction_rejects_bad_index(cross) -> None:
    with pytest.raises(IndexError):
        find_nearest_in_direction(cross, 4, Direction.UP)
    with pytest.raises(IndexError):
        find_nearest_in_direction(cross, -1, Direction.UP)


@pytest.mark.parametrize(
    "key, expected",
    [
        ("ArrowUp", Direction.UP),
        ("ArrowDown", Direction.DOWN),
        ("arrowleft", Direction.LEFT),
        ("RIGHT", Direction.RIGHT),
    ],
)
def test_direction_from_key(key: str, expected: Direction) -> None:
    assert Direction.from_key(key) is expected


def test_direction_from_key_unknown() -> None:
    with pytest.raises(ValueError):
        Direction.from_key("Enter")
