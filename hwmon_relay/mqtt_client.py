from __future__ import annotations

import json
import logging
import ssl
from typing import Any

import paho.mqtt.client as mqtt

from hwmon_relay.config import MqttConfig
from hwmon_relay.errors import DeliveryDeferred

ONLINE = "online"
OFFLINE = "offline"


class MqttPublisher:
    """Publishes relay messages to ``base_topic`` and relay liveness to ``<base_topic>/status``."""

    def __init__(self, config: MqttConfig) -> None:
        self.config = config
        self.status_topic = f"{config.base_topic}/status"
        self.logger = logging.getLogger(self.__class__.__name__)
        self.connected = False

        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.client_id,
            protocol=mqtt.MQTTv311,
        )
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        if config.username:
            self.client.username_pw_set(config.username, config.password)
        if config.tls_enabled:
            self.client.tls_set(ca_certs=config.ca_cert, cert_reqs=ssl.CERT_REQUIRED)
        # Broker marks the relay offline if the connection drops uncleanly
        self.client.will_set(self.status_topic, payload=OFFLINE, qos=1, retain=True)
        self.client.reconnect_delay_set(min_delay=1, max_delay=120)

    def _set_status(self, status: str) -> None:
        self.client.publish(self.status_topic, payload=status, qos=1, retain=True)

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        self.connected = not reason_code.is_failure
        if self.connected:
            self.logger.info("Connected to MQTT broker %s:%s", self.config.host, self.config.port)
            self._set_status(ONLINE)
        else:
            self.logger.error("MQTT broker refused connection: %s", reason_code)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        self.connected = False
        if reason_code.is_failure:
            self.logger.warning("Lost MQTT broker connection (%s), reconnecting", reason_code)

    def connect(self) -> None:
        self.logger.info("Connecting to MQTT broker %s:%s", self.config.host, self.config.port)
        self.client.connect(self.config.host, self.config.port, keepalive=self.config.keepalive)
        self.client.loop_start()

    def disconnect(self) -> None:
        if self.connected:
            self._set_status(OFFLINE)
        self.client.loop_stop()
        self.client.disconnect()
        self.logger.info("Disconnected from MQTT broker")

    def publish(self, payload: str) -> bool:
        result = self.client.publish(
            self.config.base_topic,
            payload=payload,
            qos=self.config.qos,
            retain=self.config.retain,
        )
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            self.logger.error("Publish to %s failed: %s", self.config.base_topic, mqtt.error_string(result.rc))
            return False
        self.logger.debug("Published %d bytes to %s", len(payload), self.config.base_topic)
        return True


class MqttSink:
    """Push subscriber that forwards snapshots and change-sets to a topic."""

    def __init__(self, publisher: MqttPublisher) -> None:
        self.publisher = publisher

    async def send(self, message: dict[str, Any]) -> None:
        if not self.publisher.publish(json.dumps(message)):
            raise DeliveryDeferred(f"MQTT publish to {self.publisher.config.base_topic} failed")
