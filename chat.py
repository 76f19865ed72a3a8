# chat.py
# Delivers one line of text to one chat recipient. Style only changes how the line looks.

import json
import time
import uuid
from typing import Callable, Literal, Protocol

from logic import CHAT_QOS, CHAT_TOPIC, log

Style = Literal["info", "notice", "header", "success", "warning", "error"]

# Legacy chat color codes, as understood by the game server bridge
COLORS: dict[str, str] = {
    "info": "§f",      # white
    "notice": "§6",    # gold
    "header": "§2",    # dark green
    "success": "§a",   # green
    "warning": "§e",   # yellow
    "error": "§c",     # red
}


class ChatSink(Protocol):
    def send(self, recipient: str, text: str, style: Style = "info") -> None: ...


class LogChat:
    """Writes chat lines to the service log. Default when MQTT is not configured."""

    def __init__(self, log_fn: Callable[..., None] | None = None):
        self._log = log_fn or log

    def send(self, recipient: str, text: str, style: Style = "info") -> None:
        self._log(f"💬 [{style}] → {recipient}: {text}")


class MqttChat:
    """Publishes each line as JSON so the game server bridge can relay it to the player."""

    def __init__(self, client, topic: str = CHAT_TOPIC, qos: int = CHAT_QOS):
        self._client = client
        self.topic = topic
        self.qos = qos

    def send(self, recipient: str, text: str, style: Style = "info") -> None:
        payload = {
            "id": f"chat-{int(time.time()*1000)}-{uuid.uuid4().hex[:6]}",
            "recipient": recipient,
            "text": text,
            "style": style,
            "color": COLORS.get(style, COLORS["info"]),
            "ts": time.time(),
        }
        info = self._client.publish(self.topic, json.dumps(payload, ensure_ascii=False), qos=self.qos, retain=False)
        rc = getattr(info, "rc", 0)
        if rc != 0:
            log(f"⚠️ Chat publish rc={rc} → {recipient}: {text}")
