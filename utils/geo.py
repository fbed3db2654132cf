# utils/geo.py
from __future__ import annotations

import math
from typing import Sequence, Tuple

EARTH_RADIUS_M = 6371000.0


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters."""
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dlat = p2 - p1
    dlng = math.radians(lng2 - lng1)
    a = math.sin(dlat / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def lerp(a: Tuple[float, float], b: Tuple[float, float], t: float) -> Tuple[float, float]:
    t = max(0.0, min(1.0, t))
    return (a[0] + (b[0] - a[0]) * t, a[1] + (b[1] - a[1]) * t)


def distance_along_loop(
    path: Sequence[Tuple[float, float]],
    position: Tuple[float, float],
    segment: int,
    target: int,
) -> float:
    """
    Meters travelled from `position` (somewhere on segment `segment`) to the
    vertex `target`, following the looped path forward.
    """
    n = len(path)
    if n == 0:
        return 0.0
    nxt = (segment + 1) % n
    total = haversine_m(position[0], position[1], path[nxt][0], path[nxt][1])
    i = nxt
    while i != target % n:
        j = (i + 1) % n
        total += haversine_m(path[i][0], path[i][1], path[j][0], path[j][1])
        i = j
    return total
