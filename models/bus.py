# models/bus.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import CamelModel


class BusStatus(str, Enum):
    RUNNING     = "Running"
    STOPPED     = "Stopped"
    SIGNAL_LOST = "Signal Lost"


class CrowdLevel(str, Enum):
    LOW    = "Low"
    MEDIUM = "Medium"
    HIGH   = "High"


# upper bounds (exclusive) for the Low / Medium buckets
CROWD_LOW_BELOW    = 20
CROWD_MEDIUM_BELOW = 45


def crowd_level_for(count: int) -> CrowdLevel:
    if count < CROWD_LOW_BELOW:
        return CrowdLevel.LOW
    if count < CROWD_MEDIUM_BELOW:
        return CrowdLevel.MEDIUM
    return CrowdLevel.HIGH


def clamp_passengers(count: int, max_passengers: int) -> int:
    return max(0, min(max_passengers, int(count)))


class Bus(CamelModel):
    id              : int
    bus_number      : str
    route_id        : int
    route_name      : str
    lat             : float
    lng             : float
    passenger_count : int
    crowd_level     : CrowdLevel
    status          : BusStatus
    is_live         : bool
    next_stop       : str
    eta             : str
    last_updated    : str           # ISO-8601, UTC
    # server receive time of the last ESP report; drives the signal watch
    last_seen       : Optional[datetime] = Field(default=None, exclude=True)

    def set_passengers(self, count: int, max_passengers: int) -> None:
        """Clamp and store a passenger count, keeping crowd_level in step."""
        self.passenger_count = clamp_passengers(count, max_passengers)
        self.crowd_level = crowd_level_for(self.passenger_count)
