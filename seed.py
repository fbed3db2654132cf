#!/usr/bin/env python3
# seed.py
"""
Demo fleet: three role users, two Chennai routes and five buses.

Bus 1 is the ESP-equipped live bus; the others are driven by the simulator.
Everything here is rebuilt on every process start.
"""
from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import Dict, List

from models.bus import Bus, BusStatus, crowd_level_for, clamp_passengers
from models.route import Route
from models.user import Role, User

LIVE_BUS_ID = 1
SIMULATED_BUS_IDS = range(2, 6)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def seed_users() -> Dict[int, User]:
    users = [
        User(id=1, role=Role.PASSENGER, name="Ravi Passenger", username="passenger", password="123"),
        User(id=2, role=Role.DRIVER,    name="Kumar Driver",   username="driver",    password="123"),
        User(id=3, role=Role.ADMIN,     name="Admin Officer",  username="admin",     password="123"),
    ]
    return {u.id: u for u in users}


def seed_routes() -> List[Route]:
    return [
        Route(
            id=1,
            name="Route 1: Central to T. Nagar",
            stops=["Central Station", "Mount Road", "T. Nagar"],
            path=[
                (13.0827, 80.2707),  # Central
                (13.0724, 80.2690),
                (13.0604, 80.2644),  # Mount Road
                (13.0500, 80.2500),
                (13.0418, 80.2341),  # T. Nagar
                (13.0500, 80.2500),  # return leg
                (13.0604, 80.2644),
                (13.0724, 80.2690),
            ],
            stop_points={0: "Central Station", 2: "Mount Road", 4: "T. Nagar", 6: "Mount Road"},
        ),
        Route(
            id=2,
            name="Route 2: Guindy to Adyar",
            stops=["Guindy", "Little Mount", "Adyar"],
            path=[
                (13.0067, 80.2206),  # Guindy
                (13.0120, 80.2290),  # Little Mount
                (13.0060, 80.2450),
                (13.0012, 80.2565),  # Adyar
                (13.0060, 80.2450),  # return leg
                (13.0120, 80.2290),
            ],
            stop_points={0: "Guindy", 1: "Little Mount", 3: "Adyar", 5: "Little Mount"},
        ),
    ]


def seed_buses(routes: List[Route], rng: random.Random, max_passengers: int = 60):
    """
    Returns (buses by id, starting path index by bus id).
    """
    route1, route2 = routes[0], routes[1]
    buses: Dict[int, Bus] = {}
    segments: Dict[int, int] = {}

    buses[LIVE_BUS_ID] = Bus(
        id=LIVE_BUS_ID,
        bus_number="TN-01-AB-1234",
        route_id=route1.id,
        route_name=route1.name,
        lat=route1.path[0][0],
        lng=route1.path[0][1],
        passenger_count=15,
        crowd_level=crowd_level_for(15),
        status=BusStatus.RUNNING,
        is_live=True,
        next_stop=route1.stops[1],
        eta="5 mins",
        last_updated=now_iso(),
    )
    segments[LIVE_BUS_ID] = 0

    for i in SIMULATED_BUS_IDS:
        route = route2 if i % 2 == 0 else route1
        start = rng.randrange(len(route.path))
        pax = clamp_passengers(rng.randrange(50), max_passengers)
        buses[i] = Bus(
            id=i,
            bus_number=f"TN-0{i}-XY-{1000 + i}",
            route_id=route.id,
            route_name=route.name,
            lat=route.path[start][0],
            lng=route.path[start][1],
            passenger_count=pax,
            crowd_level=crowd_level_for(pax),
            status=BusStatus.RUNNING,
            is_live=False,
            next_stop=rng.choice(route.stops),
            eta=f"{rng.randrange(10) + 2} mins",
            last_updated=now_iso(),
        )
        segments[i] = start

    return buses, segments


if __name__ == "__main__":
    _routes = seed_routes()
    _buses, _ = seed_buses(_routes, random.Random())
    for _b in _buses.values():
        print(f"➕ {_b.bus_number:15s} {_b.route_name:32s} pax={_b.passenger_count:2d} live={_b.is_live}")
