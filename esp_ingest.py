# esp_ingest.py
"""
MQTT ingest for the ESP GPS / passenger-counter boards.

Listens for:
- Telemetry: device/<device_id>/telemetry
    JSON: {"lat": 13.08, "lng": 80.27, "passengerCount": 12, "ts": "2024-01-01T10:00:00Z"}
    ("total" is accepted as an alias of passengerCount, matching the counter firmware)

Publishes:
- device/<bus_id>/status   {"status": "Running"|"Stopped", "sentAt": <ms>}
  whenever a driver starts or stops the bus, so the board can show it.

Notes:
- Nothing is persisted; reports go straight into the in-memory fleet store.
- Device id matching supports:
    * exact bus number ("TN-01-AB-1234", case-insensitive)
    * numeric device id → bus id
    * "bus-2", "bus-02", "BUS_002" shapes
- A report identical to the previous one for a bus only refreshes its
  timestamps (the board is parked); position and count are left alone.
"""
from __future__ import annotations

import json
import logging
import os
import re
import ssl
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple
from uuid import uuid4

import paho.mqtt.client as mqtt
from dateutil import parser as dtparse

from fleet import BusNotFound, fleet
from models.bus import Bus

# ───────────────────────── LOGGING ─────────────────────────
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")
_log = logging.getLogger("esp_ingest")

TOPIC_TELEMETRY = "device/+/telemetry"

# ───────────────────── STATE / CACHES ──────────────────────
_client: Optional[mqtt.Client] = None
_client_id = f"transit-ingest-{os.getpid()}-{uuid4().hex[:5]}"
_started = False
_last_reports: Dict[int, Tuple] = {}            # bus_id -> last (lat, lng, count)

_outbox: deque[Tuple[str, str, int, bool]] = deque()
_outbox_lock = threading.Lock()


# ───────────────────── DEVICE → BUS ────────────────────────
def parse_topic_device_id(topic: str) -> Optional[str]:
    # topic: device/<device_id>/...
    try:
        _, device_id, _ = topic.split("/", 2)
        return (device_id or "").strip() or None
    except ValueError:
        return None


def find_bus_by_device(device_id: str) -> Optional[Bus]:
    dev = (device_id or "").strip()
    if not dev:
        return None
    buses = fleet.all_buses()

    # 1) exact bus number
    for b in buses:
        if b.bus_number.lower() == dev.lower():
            return b

    # 2) numeric device id, or bus-<n> / bus_0<n>
    m = re.match(r"^(?:bus[-_]?)?0*(\d+)$", dev, re.IGNORECASE)
    if m:
        num = int(m.group(1))
        for b in buses:
            if b.id == num:
                return b
    return None


# ───────────────────── INGEST HANDLERS ─────────────────────
def _parse_ts(raw) -> Optional[datetime]:
    if not raw:
        return None
    try:
        ts = dtparse.isoparse(str(raw))
    except (TypeError, ValueError):
        _log.warning("bad ts in telemetry: %r", raw)
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def handle_telemetry(topic: str, payload_raw: str) -> Optional[Bus]:
    """
    Apply one telemetry message. Returns the updated bus, or None when the
    message was rejected or a duplicate.
    """
    try:
        p = json.loads(payload_raw or "{}")
    except json.JSONDecodeError:
        _log.error("Bad JSON on %s: %s", topic, payload_raw)
        return None
    if not isinstance(p, dict):
        _log.error("Telemetry must be an object on %s: %s", topic, payload_raw)
        return None

    device_id = parse_topic_device_id(topic)
    if not device_id:
        _log.error("Bad topic (no device id): %s", topic)
        return None

    bus = find_bus_by_device(device_id)
    if not bus:
        _log.error("No bus matched for device_id=%s (topic=%s)", device_id, topic)
        return None

    try:
        lat = float(p["lat"]) if p.get("lat") is not None else None
        lng = float(p["lng"]) if p.get("lng") is not None else None
        raw_count = p.get("passengerCount", p.get("total"))
        count = int(raw_count) if raw_count is not None else None
    except (TypeError, ValueError):
        _log.error("Bad telemetry values on %s: %s", topic, payload_raw)
        return None

    reported_at = _parse_ts(p.get("ts"))
    key = (lat, lng, count)
    try:
        if _last_reports.get(bus.id) == key:
            # parked board: nothing to write, but it is still alive
            fleet.touch_bus(bus.id, reported_at=reported_at)
            return None
        _last_reports[bus.id] = key
        updated = fleet.update_bus_esp(bus.id, lat=lat, lng=lng, passenger_count=count,
                                       reported_at=reported_at)
    except BusNotFound:
        _log.error("Bus %s vanished while ingesting %s", bus.id, topic)
        return None

    _log.info("🚍 esp ← bus=%s (id=%s) lat=%s lng=%s pax=%s",
              updated.bus_number, updated.id, lat, lng, count)
    return updated


# ───────────────────── OUTBOX / PUBLISH ────────────────────
def _flush_outbox():
    if _client is None or not _client.is_connected():
        return
    with _outbox_lock:
        while _outbox:
            topic, payload, qos, retain = _outbox[0]
            info = _client.publish(topic, payload=payload, qos=qos, retain=retain)
            if info.rc != mqtt.MQTT_ERR_SUCCESS:
                break
            _outbox.popleft()


def publish(topic: str, message, qos: int = 1, retain: bool = False) -> bool:
    """Fire-and-forget publish; queues when offline and flushes on reconnect."""
    payload = json.dumps(message, separators=(",", ":")) if isinstance(message, (dict, list)) else str(message)
    if _client is None or not _client.is_connected():
        with _outbox_lock:
            _outbox.append((topic, payload, qos, retain))
        _log.debug("queued (offline) → %s", topic)
        return True
    info = _client.publish(topic, payload=payload, qos=qos, retain=retain)
    if info.rc != mqtt.MQTT_ERR_SUCCESS:
        with _outbox_lock:
            _outbox.append((topic, payload, qos, retain))
        _log.warning("publish refused rc=%s; re-queued topic=%s", info.rc, topic)
        return False
    return True


def notify_bus_status(bus: Bus) -> bool:
    return publish(
        f"device/{bus.id}/status",
        {"status": bus.status.value, "sentAt": int(datetime.now(timezone.utc).timestamp() * 1000)},
        retain=True,
    )


def on_fleet_event(event: str, buses):
    """FleetStore listener: tell live boards about driver start/stop."""
    if event != "status":
        return
    for bus in buses:
        if bus.is_live:
            notify_bus_status(bus)


# ───────────────────── MQTT CALLBACKS ──────────────────────
def on_connect(c, _u, _flags, reason_code, _props=None):
    if not reason_code.is_failure:
        c.subscribe([(TOPIC_TELEMETRY, 1)])
        _log.info("MQTT connected; subscribed. client_id=%s", _client_id)
        _flush_outbox()
    else:
        _log.error("❌ MQTT connect failed rc=%s client_id=%s", reason_code, _client_id)

def on_disconnect(_c, _u, _flags, reason_code, _props=None):
    _log.warning("MQTT disconnected rc=%s client_id=%s", reason_code, _client_id)

def on_message(_c, _u, msg):
    topic = msg.topic
    payload = msg.payload.decode("utf-8", errors="ignore")
    try:
        if topic.endswith("/telemetry"):
            handle_telemetry(topic, payload)
    except Exception:
        _log.exception("Unhandled error for topic=%s", topic)


# ───────────────────── CLIENT / RUNNERS ────────────────────
def build_client(cfg) -> mqtt.Client:
    use_ws = bool(cfg.get("MQTT_USE_WS"))
    client = mqtt.Client(
        mqtt.CallbackAPIVersion.VERSION2,
        client_id=_client_id,
        clean_session=True,
        transport="websockets" if use_ws else "tcp",
        protocol=mqtt.MQTTv311,
    )
    client.enable_logger(_log)
    if cfg.get("MQTT_USER"):
        client.username_pw_set(cfg.get("MQTT_USER"), cfg.get("MQTT_PASS"))
    if cfg.get("MQTT_TLS"):
        client.tls_set_context(ssl.create_default_context())
    if use_ws and cfg.get("MQTT_PATH"):
        client.ws_set_options(path=cfg.get("MQTT_PATH"))

    client.reconnect_delay_set(min_delay=1, max_delay=30)
    client.on_connect = on_connect
    client.on_disconnect = on_disconnect
    client.on_message = on_message
    return client


def start_in_background(cfg) -> bool:
    """Non-blocking runner (embedded in the Flask app)."""
    global _client, _started
    if _started:
        return False
    _client = build_client(cfg)
    _client.connect_async(cfg.get("MQTT_HOST", "localhost"), int(cfg.get("MQTT_PORT", 1883)), keepalive=45)
    _client.loop_start()
    _started = True
    _log.info("MQTT ingest started in background host=%s ws=%s", cfg.get("MQTT_HOST"), cfg.get("MQTT_USE_WS"))
    return True
