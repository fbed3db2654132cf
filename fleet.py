# fleet.py
"""
In-memory fleet store: users, routes and buses for the demo.

There is exactly one store per process (`fleet`), initialised by the app
factory the same way a Flask extension is. Three kinds of threads touch it:
the simulator loop, HTTP request handlers and the MQTT ingest thread, so all
access goes through one re-entrant lock and readers get copies.
"""
from __future__ import annotations

import logging
import random
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from models.bus import Bus, BusStatus, CrowdLevel
from models.route import Route
from models.user import Role, User
from seed import seed_buses, seed_routes, seed_users
from services.simulator import MovementSimulator, RouteCursor
from tasks.signal_watch import mark_stale_live_buses

_log = logging.getLogger("fleet")

USER_FOR_ROLE = {Role.PASSENGER: 1, Role.DRIVER: 2, Role.ADMIN: 3}

Listener = Callable[[str, List[Bus]], None]


class FleetError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BusNotFound(FleetError):
    status_code = 404

    def __init__(self, bus_id: int):
        super().__init__("Bus not found")
        self.bus_id = bus_id


class RouteNotFound(FleetError):
    status_code = 404

    def __init__(self, route_id: int):
        super().__init__("Route not found")
        self.route_id = route_id


class FleetStore:
    def __init__(self):
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self.users: Dict[int, User] = {}
        self.routes: Dict[int, Route] = {}
        self.buses: Dict[int, Bus] = {}
        self.cursors: Dict[int, RouteCursor] = {}
        self.max_passengers = 60
        self.stale_after_sec = 30
        self.fallback_simulation = False
        self.simulator = MovementSimulator()

    # ── setup ───────────────────────────────────────────────────────────
    def init_app(self, app) -> None:
        cfg = app.config
        self.max_passengers = int(cfg.get("MAX_PASSENGERS", 60))
        self.stale_after_sec = int(cfg.get("ESP_STALE_AFTER_SEC", 30))
        self.fallback_simulation = bool(cfg.get("ESP_FALLBACK_SIMULATION", False))
        self.reset(
            seed=cfg.get("SIMULATION_SEED"),
            steps_per_segment=int(cfg.get("SIMULATION_STEPS_PER_SEGMENT", 1)),
            speed_kmh=float(cfg.get("SIMULATION_SPEED_KMH", 25.0)),
        )
        app.extensions["fleet"] = self

    def reset(self, seed=None, steps_per_segment: int = 1, speed_kmh: float = 25.0) -> None:
        rng = random.Random(seed)
        with self._lock:
            self.simulator = MovementSimulator(
                steps_per_segment=steps_per_segment,
                speed_kmh=speed_kmh,
                max_passengers=self.max_passengers,
                rng=rng,
            )
            self.users = seed_users()
            routes = seed_routes()
            self.routes = {r.id: r for r in routes}
            self.buses, starts = seed_buses(routes, rng, self.max_passengers)
            self.cursors = {bid: RouteCursor(segment=idx) for bid, idx in starts.items()}
            self._listeners = []
        _log.info("[fleet] seeded %d routes, %d buses", len(self.routes), len(self.buses))

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _notify(self, event: str, buses: List[Bus]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, buses)
            except Exception:
                _log.exception("[fleet] listener failed for event=%s", event)

    # ── users ───────────────────────────────────────────────────────────
    def get_user(self, user_id) -> Optional[User]:
        with self._lock:
            return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            return next((u for u in self.users.values() if u.username == username), None)

    def get_user_for_role(self, role: Role) -> Optional[User]:
        return self.get_user(USER_FOR_ROLE.get(Role(role)))

    # ── buses ───────────────────────────────────────────────────────────
    def all_buses(self) -> List[Bus]:
        with self._lock:
            return [self.buses[k].model_copy(deep=True) for k in sorted(self.buses)]

    def get_bus(self, bus_id: int) -> Optional[Bus]:
        with self._lock:
            bus = self.buses.get(bus_id)
            return bus.model_copy(deep=True) if bus else None

    def search_buses(self, query: str) -> List[Bus]:
        q = (query or "").strip().lower()
        buses = self.all_buses()
        if not q:
            return buses
        return [b for b in buses if q in b.bus_number.lower() or q in b.route_name.lower()]

    def update_bus_status(self, bus_id: int, status: BusStatus) -> Bus:
        with self._lock:
            bus = self.buses.get(bus_id)
            if bus is None:
                raise BusNotFound(bus_id)
            previous = bus.status
            bus.status = BusStatus(status)
            snapshot = bus.model_copy(deep=True)
        _log.info("[fleet] bus=%s status %s → %s", bus_id, previous.value, snapshot.status.value)
        self._notify("status", [snapshot])
        return snapshot

    def update_bus_esp(
        self,
        bus_id: int,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        passenger_count: Optional[int] = None,
        reported_at: Optional[datetime] = None,
    ) -> Bus:
        with self._lock:
            bus = self.buses.get(bus_id)
            if bus is None:
                raise BusNotFound(bus_id)

            if lat is not None:
                bus.lat = float(lat)
            if lng is not None:
                bus.lng = float(lng)
            if passenger_count is not None:
                bus.set_passengers(passenger_count, self.max_passengers)

            if lat is not None or lng is not None:
                route = self.routes.get(bus.route_id)
                if route and route.path:
                    cursor = self.simulator.locate(route, bus.lat, bus.lng)
                    self.cursors[bus.id] = cursor
                    self.simulator.refresh_next_stop(bus, route, cursor)

            self._mark_seen(bus, reported_at)
            snapshot = bus.model_copy(deep=True)
        self._notify("esp", [snapshot])
        return snapshot

    def touch_bus(self, bus_id: int, reported_at: Optional[datetime] = None) -> Bus:
        """A report that repeats the last one: the board is alive, nothing moved."""
        with self._lock:
            bus = self.buses.get(bus_id)
            if bus is None:
                raise BusNotFound(bus_id)
            self._mark_seen(bus, reported_at)
            snapshot = bus.model_copy(deep=True)
        self._notify("esp", [snapshot])
        return snapshot

    def _mark_seen(self, bus: Bus, reported_at: Optional[datetime]) -> None:
        now = datetime.now(timezone.utc)
        bus.last_seen = now

        ts = reported_at or now
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        # board clocks can run ahead; never publish a time in the future
        bus.last_updated = min(ts, now).isoformat()

        if bus.status == BusStatus.SIGNAL_LOST:
            bus.status = BusStatus.RUNNING
            _log.info("[fleet] bus=%s signal restored", bus.id)

    # ── routes ──────────────────────────────────────────────────────────
    def get_route(self, route_id: int) -> Optional[Route]:
        with self._lock:
            route = self.routes.get(route_id)
            return route.model_copy(deep=True) if route else None

    def all_routes(self) -> List[Route]:
        with self._lock:
            return [self.routes[k].model_copy(deep=True) for k in sorted(self.routes)]

    # ── metrics ─────────────────────────────────────────────────────────
    def fleet_summary(self) -> dict:
        buses = self.all_buses()
        return {
            "totalBuses": len(buses),
            "activeBuses": sum(1 for b in buses if b.status == BusStatus.RUNNING),
            "totalPassengers": sum(b.passenger_count for b in buses),
            "crowdAlerts": sum(1 for b in buses if b.crowd_level == CrowdLevel.HIGH),
            "liveBuses": sum(1 for b in buses if b.is_live),
            "signalLost": sum(1 for b in buses if b.status == BusStatus.SIGNAL_LOST),
        }

    # ── simulation ──────────────────────────────────────────────────────
    def _should_simulate(self, bus: Bus) -> bool:
        if bus.is_live:
            return self.fallback_simulation and bus.status == BusStatus.SIGNAL_LOST
        return bus.status == BusStatus.RUNNING

    def simulate_movement(self) -> List[Bus]:
        """One simulator tick; returns the fleet as it stands afterwards."""
        with self._lock:
            for bus in self.buses.values():
                if not self._should_simulate(bus):
                    continue
                route = self.routes.get(bus.route_id)
                if route is None:
                    continue
                cursor = self.cursors.setdefault(bus.id, RouteCursor(segment=0))
                self.simulator.advance(bus, route, cursor)
                self.simulator.fluctuate_passengers(bus)

            mark_stale_live_buses(self.buses.values(), self.stale_after_sec)
            snapshot = [self.buses[k].model_copy(deep=True) for k in sorted(self.buses)]
        self._notify("tick", snapshot)
        return snapshot


fleet = FleetStore()
