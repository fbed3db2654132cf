# services/simulator.py
"""
Movement simulator for the demo fleet.

Every simulated bus keeps a cursor on its route: the index of the path segment
it is on and how far along that segment it is (0..1). A tick moves the cursor
forward by 1/steps_per_segment and places the bus at the linear interpolation
between the segment's end points. Paths are loops, so the last vertex connects
back to the first.

The background runner lives here too; it calls FleetStore.simulate_movement()
on a fixed interval from a Socket.IO background task.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from models.bus import Bus
from models.route import Route
from utils.geo import distance_along_loop, haversine_m, lerp

_log = logging.getLogger("simulator")

ARRIVING_WITHIN_M = 50.0
PASSENGER_CHANGE_PROBABILITY = 0.3


@dataclass
class RouteCursor:
    segment: int
    progress: float = 0.0


def format_eta(meters: float, speed_kmh: float) -> str:
    if meters < ARRIVING_WITHIN_M:
        return "Arriving"
    minutes = round((meters / 1000.0) / max(speed_kmh, 1.0) * 60)
    return f"{max(1, minutes)} mins"


class MovementSimulator:
    def __init__(
        self,
        steps_per_segment: int = 1,
        speed_kmh: float = 25.0,
        max_passengers: int = 60,
        rng: Optional[random.Random] = None,
    ):
        self.steps_per_segment = max(1, int(steps_per_segment))
        self.speed_kmh = speed_kmh
        self.max_passengers = max_passengers
        self.rng = rng or random.Random()

    # ── position ────────────────────────────────────────────────────────
    def position(self, route: Route, cursor: RouteCursor):
        n = len(route.path)
        a = route.path[cursor.segment % n]
        b = route.path[(cursor.segment + 1) % n]
        return lerp(a, b, cursor.progress)

    def advance(self, bus: Bus, route: Route, cursor: RouteCursor) -> None:
        """Move one step along the route and refresh next stop / ETA."""
        if not route.path:
            return
        cursor.progress += 1.0 / self.steps_per_segment
        if cursor.progress >= 1.0 - 1e-9:
            cursor.segment = (cursor.segment + 1) % len(route.path)
            cursor.progress = 0.0

        bus.lat, bus.lng = self.position(route, cursor)
        self.refresh_next_stop(bus, route, cursor)
        bus.last_updated = datetime.now(timezone.utc).isoformat()

    def locate(self, route: Route, lat: float, lng: float) -> RouteCursor:
        """Snap a reported position to the nearest path vertex."""
        best_idx, best_d = 0, float("inf")
        for i, (plat, plng) in enumerate(route.path):
            d = haversine_m(lat, lng, plat, plng)
            if d < best_d:
                best_idx, best_d = i, d
        return RouteCursor(segment=best_idx, progress=0.0)

    def refresh_next_stop(self, bus: Bus, route: Route, cursor: RouteCursor) -> None:
        target = route.next_stop_index(cursor.segment)
        if target is None:
            return
        meters = distance_along_loop(route.path, (bus.lat, bus.lng), cursor.segment, target)
        bus.next_stop = route.stop_points[target]
        bus.eta = format_eta(meters, self.speed_kmh)

    # ── passengers ──────────────────────────────────────────────────────
    def fluctuate_passengers(self, bus: Bus) -> None:
        if self.rng.random() < PASSENGER_CHANGE_PROBABILITY:
            change = self.rng.randint(-2, 2)
            bus.set_passengers(bus.passenger_count + change, self.max_passengers)


# ───────────────────── BACKGROUND RUNNER ─────────────────────
_started = False


def start_in_background(app, store, socketio) -> bool:
    """Start the fixed-interval tick loop once per process."""
    global _started
    if _started:
        return False
    interval = float(app.config.get("SIMULATION_INTERVAL_SEC", 2.0))

    def _loop():
        _log.info("[sim] loop started interval=%.2fs", interval)
        while True:
            socketio.sleep(interval)
            try:
                store.simulate_movement()
            except Exception:
                _log.exception("[sim] tick failed")

    socketio.start_background_task(_loop)
    _started = True
    return True
