# realtime.py
from __future__ import annotations

from typing import List

from flask_socketio import SocketIO, emit, join_room, leave_room

from models.bus import Bus

# one shared instance for the whole app
socketio = SocketIO(cors_allowed_origins="*", ping_interval=25, ping_timeout=20)

NS = "/rt"


@socketio.on("connect", namespace=NS)
def on_connect(auth=None):
    emit("connected", {"ok": True})

@socketio.on("disconnect", namespace=NS)
def on_disconnect(*_args):
    pass

@socketio.on("subscribe", namespace=NS)
def on_subscribe(data):
    bus_id = (data or {}).get("bus_id")
    if bus_id:
        join_room(f"bus:{bus_id}")
        emit("subscribed", {"bus_id": bus_id})

@socketio.on("unsubscribe", namespace=NS)
def on_unsubscribe(data):
    bus_id = (data or {}).get("bus_id")
    if bus_id:
        leave_room(f"bus:{bus_id}")


def emit_bus(bus: Bus) -> None:
    socketio.emit("bus:update", bus.to_dict(), room=f"bus:{bus.id}", namespace=NS)

def emit_fleet(buses: List[Bus]) -> None:
    """
    Broadcast a tick to:
      - everyone on /rt (whole fleet, for the map views)
      - each per-bus room (driver screen / selected bus)
    """
    socketio.emit("fleet:update", [b.to_dict() for b in buses], namespace=NS)
    for bus in buses:
        emit_bus(bus)

def on_fleet_event(event: str, buses: List[Bus]) -> None:
    """FleetStore listener."""
    if event == "tick":
        emit_fleet(buses)
    else:
        for bus in buses:
            emit_bus(bus)
