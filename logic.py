# logic.py — shared config, logging, auth and MQTT wiring for the bible chat service

import os, ssl, sys
from typing import Optional

# FastAPI helpers (von routes_bible.py genutzt)
from fastapi import HTTPException, Request

# ----------------- Konfiguration -----------------

def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1","true","yes","on")

APP_API_KEY = os.getenv("API_KEY", "")

API_BASE      = os.getenv("BIBLE_API_BASE", "https://query.bibleget.io/v3/")
METADATA_URL  = os.getenv("BIBLE_METADATA_URL", "https://query.bibleget.io/metadata.php")
VERSION       = os.getenv("BIBLE_VERSION", "NABRE")   # Catholic edition
APP_ID        = os.getenv("BIBLE_APP_ID", "biblechat")
UA            = os.getenv("BIBLE_USER_AGENT", "BibleChat/1.0")

VERSE_TIMEOUT    = float(os.getenv("BIBLE_VERSE_TIMEOUT", "5"))
METADATA_TIMEOUT = float(os.getenv("BIBLE_METADATA_TIMEOUT", "10"))  # metadata is bigger

MQTT_HOST = os.getenv("MQTT_HOST")
MQTT_PORT = int(os.getenv("MQTT_PORT", "8883"))
MQTT_USER = os.getenv("MQTT_USERNAME")
MQTT_PASS = os.getenv("MQTT_PASSWORD")
MQTT_TLS  = _env_bool("MQTT_TLS", "true")
CHAT_TOPIC = os.getenv("CHAT_TOPIC", "chat/out")
CHAT_QOS   = int(os.getenv("CHAT_QOS", "1"))

SCHEDULER_WORKERS = int(os.getenv("SCHEDULER_WORKERS", "4"))

def log(*a):
    print("[bible]", *a, file=sys.stdout, flush=True)

# ----------------- MQTT -----------------

client = None
def init_mqtt() -> Optional[object]:
    """Connects the chat MQTT client. Returns None when MQTT_HOST is not set."""
    global client
    if not MQTT_HOST:
        log("⚠️ MQTT_HOST not set. Chat lines go to the log only.")
        return None
    import paho.mqtt.client as mqtt
    client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
    if MQTT_TLS:
        client.tls_set(cert_reqs=ssl.CERT_REQUIRED)
    if MQTT_USER or MQTT_PASS:
        client.username_pw_set(MQTT_USER, MQTT_PASS)
    client.connect(MQTT_HOST, MQTT_PORT, 60)
    client.loop_start()
    log(f"✅ MQTT connected to {MQTT_HOST}:{MQTT_PORT}, chat topic={CHAT_TOPIC}")
    return client

def stop_mqtt():
    global client
    if client is None:
        return
    try:
        client.loop_stop()
        client.disconnect()
    except Exception as e:
        log("⚠️ MQTT disconnect failed:", repr(e))
    client = None

# ----------------- Security -----------------

def check_api_key(req: Request) -> None:
    if not APP_API_KEY:
        return
    key = req.headers.get("x-api-key") or req.query_params.get("key")
    if key != APP_API_KEY:
        raise HTTPException(401, "invalid api key")
