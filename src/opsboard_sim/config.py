"""Configuration management for the simulator."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass
class MQTTConfig:
    """MQTT broker configuration."""

    broker: str = "localhost"
    port: int = 1883
    username: str = ""
    password: str = ""
    client_id: str = "opsboard-simulator"
    qos: int = 1


@dataclass
class TopicConfig:
    """Topic layout for published dashboard data."""

    plant: str = "plant_01"
    topic_prefix: str = "opsboard/v1"


@dataclass
class SimulationConfig:
    """Simulation parameters."""

    clock_interval_ms: int = 1000
    drift_interval_ms: int = 2000
    selection_delay_ms: int = 400
    machine_count: int = 25
    background_update_probability: float = 0.1  # Chance an unselected machine drifts per tick
    random_seed: Optional[int] = None  # Drift stream only; timelines are always seeded


@dataclass
class Config:
    """Main configuration container."""

    mqtt: MQTTConfig = field(default_factory=MQTTConfig)
    topics: TopicConfig = field(default_factory=TopicConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)

    @classmethod
    def from_yaml(cls, config_path: Path) -> "Config":
        """Load configuration from YAML file."""
        if not config_path.exists():
            return cls.default()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls._from_dict(data)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        config = cls.default()

        # Override MQTT settings from env
        config.mqtt.broker = os.getenv("MQTT_BROKER", config.mqtt.broker)
        config.mqtt.port = int(os.getenv("MQTT_PORT", config.mqtt.port))
        config.mqtt.username = os.getenv("MQTT_USERNAME", config.mqtt.username)
        config.mqtt.password = os.getenv("MQTT_PASSWORD", config.mqtt.password)

        config.topics.plant = os.getenv("OPSBOARD_PLANT", config.topics.plant)

        # Override simulation settings
        machines = os.getenv("OPSBOARD_MACHINES")
        if machines:
            config.simulation.machine_count = int(machines)

        seed = os.getenv("OPSBOARD_SEED")
        if seed:
            config.simulation.random_seed = int(seed)

        return config

    @classmethod
    def default(cls) -> "Config":
        """Create default configuration."""
        return cls()

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary."""
        config = cls.default()

        if "mqtt" in data:
            mqtt_data = data["mqtt"]
            config.mqtt = MQTTConfig(
                broker=mqtt_data.get("broker", config.mqtt.broker),
                port=mqtt_data.get("port", config.mqtt.port),
                username=mqtt_data.get("username", config.mqtt.username),
                password=mqtt_data.get("password", config.mqtt.password),
                client_id=mqtt_data.get("client_id", config.mqtt.client_id),
                qos=mqtt_data.get("qos", config.mqtt.qos),
            )

        if "topics" in data:
            topic_data = data["topics"]
            config.topics = TopicConfig(
                plant=topic_data.get("plant", config.topics.plant),
                topic_prefix=topic_data.get("topic_prefix", config.topics.topic_prefix),
            )

        if "simulation" in data:
            sim_data = data["simulation"]
            defaults = config.simulation
            config.simulation = SimulationConfig(
                clock_interval_ms=sim_data.get("clock_interval_ms", defaults.clock_interval_ms),
                drift_interval_ms=sim_data.get("drift_interval_ms", defaults.drift_interval_ms),
                selection_delay_ms=sim_data.get(
                    "selection_delay_ms", defaults.selection_delay_ms
                ),
                machine_count=sim_data.get("machine_count", defaults.machine_count),
                background_update_probability=sim_data.get(
                    "background_update_probability", defaults.background_update_probability
                ),
                random_seed=sim_data.get("random_seed"),
            )

        # Top-level 'machines' overrides simulation.machine_count
        if "machines" in data:
            config.simulation.machine_count = int(data["machines"])

        return config

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file."""
        data = {
            "mqtt": {
                "broker": self.mqtt.broker,
                "port": self.mqtt.port,
                "username": self.mqtt.username,
                "password": self.mqtt.password,
                "client_id": self.mqtt.client_id,
                "qos": self.mqtt.qos,
            },
            "topics": {
                "plant": self.topics.plant,
                "topic_prefix": self.topics.topic_prefix,
            },
            "simulation": {
                "clock_interval_ms": self.simulation.clock_interval_ms,
                "drift_interval_ms": self.simulation.drift_interval_ms,
                "selection_delay_ms": self.simulation.selection_delay_ms,
                "machine_count": self.simulation.machine_count,
                "background_update_probability": self.simulation.background_update_probability,
                "random_seed": self.simulation.random_seed,
            },
        }

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
