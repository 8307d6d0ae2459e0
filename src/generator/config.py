"""
Predefined configurations for different simulation scenarios.
"""

from .models import AttackType, GeneratorConfig

# Normal operation (rare attacks)
NORMAL_CONFIG = GeneratorConfig(
    num_hosts=20,
    attack_probability=0.005,
    event_interval_seconds=5.0,
)


# Attack drill (frequent network attacks)
ATTACK_CONFIG = GeneratorConfig(
    num_hosts=10,
    attack_probability=0.1,
    enabled_attacks=[
        AttackType.PORT_SCAN,
        AttackType.CONNECTION_FLOOD,
        AttackType.TRAFFIC_SPIKE,
        AttackType.ERROR_BURST,
    ],
    event_interval_seconds=2.0,
)


# Development/Testing (fast and small)
DEV_CONFIG = GeneratorConfig(num_hosts=3, attack_probability=0.05, event_interval_seconds=1.0)
