# models/route.py
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from pydantic import Field

from models.base import CamelModel

LatLng = Tuple[float, float]


class Route(CamelModel):
    id    : int
    name  : str
    path  : List[LatLng]            # looped; the last vertex connects back to the first
    stops : List[str]

    # path vertex index -> stop name; used for next-stop / ETA, never sent to clients
    stop_points: Dict[int, str] = Field(default_factory=dict, exclude=True)

    def next_stop_index(self, segment: int) -> Optional[int]:
        """First stop vertex strictly after `segment`, walking the loop."""
        n = len(self.path)
        if not n or not self.stop_points:
            return None
        for step in range(1, n + 1):
            idx = (segment + step) % n
            if idx in self.stop_points:
                return idx
        return None
