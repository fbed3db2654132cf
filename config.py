# config.py
import os

def _to_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}

def _to_int(val: str | None, default: int) -> int:
    try:
        return int(val) if val is not None else default
    except ValueError:
        return default

def _to_float(val: str | None, default: float) -> float:
    try:
        return float(val) if val is not None else default
    except ValueError:
        return default


class Config:
    # ── Core ─────────────────────────────────────────────────────────────────
    DEBUG = _to_bool(os.environ.get("DEBUG") or os.environ.get("FLASK_DEBUG"), True)
    SECRET_KEY = os.environ.get("SECRET_KEY", "namma-ooru-vandi-secret")  # ← override in prod!

    SESSION_COOKIE_SAMESITE = os.environ.get("SESSION_COOKIE_SAMESITE", "Lax")
    SESSION_COOKIE_SECURE = _to_bool(os.environ.get("SESSION_COOKIE_SECURE"), False)
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # ── Simulation ──────────────────────────────────────────────────────────
    SIMULATION_ENABLED = _to_bool(os.environ.get("SIMULATION_ENABLED"), True)
    SIMULATION_INTERVAL_SEC = _to_float(os.environ.get("SIMULATION_INTERVAL_SEC"), 2.0)
    SIMULATION_STEPS_PER_SEGMENT = _to_int(os.environ.get("SIMULATION_STEPS_PER_SEGMENT"), 1)
    SIMULATION_SPEED_KMH = _to_float(os.environ.get("SIMULATION_SPEED_KMH"), 25.0)
    SIMULATION_SEED = _to_int(os.environ.get("SIMULATION_SEED"), 0) or None
    MAX_PASSENGERS = _to_int(os.environ.get("MAX_PASSENGERS"), 60)

    # ── ESP (live bus) ──────────────────────────────────────────────────────
    ESP_STALE_AFTER_SEC = _to_int(os.environ.get("ESP_STALE_AFTER_SEC"), 30)   # 0 = never
    ESP_FALLBACK_SIMULATION = _to_bool(os.environ.get("ESP_FALLBACK_SIMULATION"), False)
    ESP_API_KEY = os.environ.get("ESP_API_KEY")                                # unset = open

    # ── Auth ────────────────────────────────────────────────────────────────
    STATUS_UPDATE_ROLES = os.environ.get("STATUS_UPDATE_ROLES", "driver,admin")

    # ── MQTT ingest ─────────────────────────────────────────────────────────
    ESP_MQTT_INGEST = _to_bool(os.environ.get("ESP_MQTT_INGEST"), False)
    MQTT_USE_WS = _to_bool(os.environ.get("MQTT_USE_WS"), False)
    MQTT_HOST = os.environ.get("MQTT_HOST", "localhost")
    MQTT_PORT = _to_int(os.environ.get("MQTT_PORT"), 8884 if MQTT_USE_WS else 1883)
    MQTT_PATH = os.environ.get("MQTT_PATH", "/mqtt")
    MQTT_USER = os.environ.get("MQTT_USER")
    MQTT_PASS = os.environ.get("MQTT_PASS")
    MQTT_TLS = _to_bool(os.environ.get("MQTT_TLS"), False)


class ProductionConfig(Config):
    DEBUG = False
    SECRET_KEY = os.environ.get("SECRET_KEY")
    SESSION_COOKIE_SECURE = _to_bool(os.environ.get("SESSION_COOKIE_SECURE"), True)


class DevelopmentConfig(Config):
    DEBUG = True


class TestingConfig(Config):
    DEBUG = True
    TESTING = True
    SECRET_KEY = "test-secret"
    SIMULATION_ENABLED = False
    SIMULATION_SEED = 1234
    SIMULATION_STEPS_PER_SEGMENT = 1
    ESP_MQTT_INGEST = False
    ESP_API_KEY = None
    ESP_STALE_AFTER_SEC = 30
    ESP_FALLBACK_SIMULATION = False


CONFIGS = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}


def config_from_env():
    return CONFIGS.get(os.environ.get("APP_CONFIG", "development").lower(), DevelopmentConfig)
