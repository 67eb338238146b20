"""MQTT client wrapper with publish buffering and dashboard control topics."""

import json
import logging
import threading
import time
from dataclasses import dataclass
from queue import Queue, Empty
from typing import Any, Callable, Dict, Optional

import paho.mqtt.client as mqtt

from .config import MQTTConfig, TopicConfig

logger = logging.getLogger(__name__)


@dataclass
class Message:
    """MQTT message to be published."""

    topic: str
    payload: Any
    retain: bool = False
    qos: int = 1


class MQTTClient:
    """Publishes engine output for the dashboard and receives its edits."""

    # Control topics - root level, outside the data path
    CONTROL_ROOT = "opsboard-sim"
    STATUS_TOPIC = f"{CONTROL_ROOT}/status"
    SELECT_TOPIC = f"{CONTROL_ROOT}/control/select"
    REASON_TOPIC = f"{CONTROL_ROOT}/control/downtime/reason"
    REMARK_TOPIC = f"{CONTROL_ROOT}/control/downtime/remark"

    def __init__(
        self,
        mqtt_config: MQTTConfig,
        topic_config: TopicConfig,
        on_select: Optional[Callable[[str], None]] = None,
        on_reason_change: Optional[Callable[[str, str], None]] = None,
        on_remark_change: Optional[Callable[[str, str], None]] = None,
    ):
        self.mqtt_config = mqtt_config
        self.topic_config = topic_config
        self.on_select = on_select
        self.on_reason_change = on_reason_change
        self.on_remark_change = on_remark_change

        self._client: Optional[mqtt.Client] = None
        self._connected = False
        self._publish_queue: Queue[Message] = Queue()
        self._publish_thread: Optional[threading.Thread] = None
        self._running = False
        self._dry_run = False

        # Stats
        self._messages_published = 0
        self._messages_dropped = 0

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def base_topic(self) -> str:
        """Get the base topic path."""
        return f"{self.topic_config.topic_prefix}/{self.topic_config.plant}"

    def connect(self, dry_run: bool = False) -> bool:
        """Connect to the MQTT broker."""
        self._dry_run = dry_run

        if dry_run:
            logger.info("Dry run mode - not connecting to MQTT broker")
            self._connected = True
            self._start_publish_thread()
            return True

        try:
            self._client = mqtt.Client(
                client_id=self.mqtt_config.client_id,
                callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            )

            if self.mqtt_config.username:
                self._client.username_pw_set(
                    self.mqtt_config.username, self.mqtt_config.password
                )

            self._client.on_connect = self._on_connect
            self._client.on_disconnect = self._on_disconnect
            self._client.on_message = self._on_message

            logger.info(
                f"Connecting to MQTT broker {self.mqtt_config.broker}:{self.mqtt_config.port}"
            )
            self._client.connect(self.mqtt_config.broker, self.mqtt_config.port)
            self._client.loop_start()

            # Wait for connection
            timeout = 10
            start = time.time()
            while not self._connected and (time.time() - start) < timeout:
                time.sleep(0.1)

            if self._connected:
                self._start_publish_thread()
                self._subscribe_to_control()

            return self._connected

        except Exception as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")
            return False

    def disconnect(self) -> None:
        """Disconnect from the MQTT broker."""
        self._running = False

        if self._publish_thread:
            self._publish_thread.join(timeout=2)

        if self._client and not self._dry_run:
            self._client.loop_stop()
            self._client.disconnect()

        self._connected = False
        logger.info("Disconnected from MQTT broker")

    def publish(self, topic: str, payload: Any, retain: bool = False) -> bool:
        """Queue a message under the plant's base topic."""
        if not self._connected:
            return False

        full_topic = f"{self.base_topic}/{topic}"
        msg = Message(topic=full_topic, payload=payload, retain=retain, qos=self.mqtt_config.qos)
        self._publish_queue.put(msg)
        return True

    def publish_raw(self, topic: str, payload: Any, retain: bool = False) -> bool:
        """Publish to a raw topic (no base path)."""
        msg = Message(topic=topic, payload=payload, retain=retain, qos=self.mqtt_config.qos)
        self._publish_queue.put(msg)
        return True

    def publish_status(self, status: Dict[str, Any]) -> None:
        """Publish simulator status to the root-level status topic."""
        payload = dict(status)
        payload.update(
            {
                "plant": self.topic_config.plant,
                "messages_published": self._messages_published,
                "messages_dropped": self._messages_dropped,
                "timestamp_ms": int(time.time() * 1000),
            }
        )
        self.publish_raw(self.STATUS_TOPIC, payload, retain=True)

    def _start_publish_thread(self) -> None:
        """Start the background publish thread."""
        self._running = True
        self._publish_thread = threading.Thread(target=self._publish_loop, daemon=True)
        self._publish_thread.start()

    def _publish_loop(self) -> None:
        """Background thread that publishes queued messages."""
        while self._running:
            try:
                msg = self._publish_queue.get(timeout=0.1)
                self._do_publish(msg)
            except Empty:
                continue

    def _do_publish(self, msg: Message) -> None:
        """Actually publish a message."""
        payload_str = json.dumps(msg.payload)

        if self._dry_run:
            logger.debug(f"[DRY RUN] {msg.topic}: {payload_str[:100]}")
            self._messages_published += 1
            return

        if self._client and self._connected:
            try:
                result = self._client.publish(
                    msg.topic, payload_str, qos=msg.qos, retain=msg.retain
                )
                if result.rc == mqtt.MQTT_ERR_SUCCESS:
                    self._messages_published += 1
                else:
                    self._messages_dropped += 1
                    logger.warning(f"Failed to publish to {msg.topic}: {result.rc}")
            except Exception as e:
                self._messages_dropped += 1
                logger.error(f"Error publishing to {msg.topic}: {e}")

    def _subscribe_to_control(self) -> None:
        """Subscribe to the dashboard's control topics."""
        if not self._client:
            return

        for topic in (self.SELECT_TOPIC, self.REASON_TOPIC, self.REMARK_TOPIC):
            self._client.subscribe(topic, qos=1)
        logger.info(f"Subscribed to control topics under: {self.CONTROL_ROOT}/control")

    def _on_connect(self, client, userdata, flags, rc, properties=None) -> None:
        """Handle connection callback."""
        if rc == 0:
            self._connected = True
            logger.info("Connected to MQTT broker")
        else:
            logger.error(f"Connection failed with code {rc}")

    def _on_disconnect(self, client, userdata, flags, rc, properties=None) -> None:
        """Handle disconnection callback."""
        self._connected = False
        if rc != 0:
            logger.warning(f"Unexpected disconnection (rc={rc})")

    def _on_message(self, client, userdata, msg) -> None:
        """Route control messages to the registered callbacks."""
        try:
            payload = json.loads(msg.payload.decode())

            # Machine selection: opsboard-sim/control/select
            if msg.topic == self.SELECT_TOPIC:
                machine_id = payload.get("machine_id")
                if machine_id and self.on_select:
                    self.on_select(str(machine_id))

            # Downtime edits: opsboard-sim/control/downtime/{reason,remark}
            elif msg.topic == self.REASON_TOPIC:
                if self.on_reason_change and "id" in payload:
                    self.on_reason_change(str(payload["id"]), payload.get("reason"))

            elif msg.topic == self.REMARK_TOPIC:
                if self.on_remark_change and "id" in payload:
                    self.on_remark_change(str(payload["id"]), payload.get("remark"))

        except Exception as e:
            logger.error(f"Error handling control message on {msg.topic}: {e}")
