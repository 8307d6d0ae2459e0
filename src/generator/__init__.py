"""
Telemetry Generator for Kafka
Simulates host system and network samples with configurable attacks.
"""

from .config import ATTACK_CONFIG, DEV_CONFIG, NORMAL_CONFIG
from .generator import TelemetryGenerator
from .host_state import HostState
from .models import AttackType, GeneratorConfig

__all__ = [
    "AttackType",
    "GeneratorConfig",
    "HostState",
    "TelemetryGenerator",
    "NORMAL_CONFIG",
    "ATTACK_CONFIG",
    "DEV_CONFIG",
]
