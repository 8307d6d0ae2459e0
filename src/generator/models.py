"""
Data models and enums for the telemetry generator.
"""

from dataclasses import dataclass
from enum import Enum


class AttackType(Enum):
    """Types of attacks and faults that can be injected"""

    CPU_SPIKE = "cpu_spike"
    MEMORY_LEAK = "memory_leak"
    DISK_FILL = "disk_fill"
    TRAFFIC_SPIKE = "traffic_spike"
    ERROR_BURST = "error_burst"
    PORT_SCAN = "port_scan"
    CONNECTION_FLOOD = "connection_flood"


# Attacks delivered as a burst of packets from a foreign address
INBOUND_ATTACKS = (AttackType.PORT_SCAN, AttackType.CONNECTION_FLOOD)


@dataclass
class GeneratorConfig:
    """Configuration for the telemetry generator"""

    # Kafka settings
    kafka_bootstrap_servers: str = "localhost:9092"
    kafka_topic: str = "telemetry-samples"

    # Generation settings
    num_hosts: int = 10
    network_samples_per_round: int = 4
    event_interval_seconds: float = 5.0

    # Attack settings
    attack_probability: float = 0.05  # 5% chance per host per round
    enabled_attacks: list[AttackType] | None = None

    # Addressing
    subnet_prefix: str = "10.0.0"  # hosts are <prefix>.11, <prefix>.12, ...
    attacker_prefix: str = "203.0.113"  # TEST-NET-3, never a real host

    def __post_init__(self):
        if self.enabled_attacks is None:
            self.enabled_attacks = list(AttackType)
        if not 0.0 <= self.attack_probability <= 1.0:
            raise ValueError(f"attack_probability must be in [0, 1], got {self.attack_probability}")
        if self.num_hosts < 1 or self.num_hosts > 200:
            raise ValueError(f"num_hosts must be between 1 and 200, got {self.num_hosts}")
