"""
Telemetry generator publishing simulated host samples to Kafka.
"""

import json
import random
import time

import structlog
from kafka import KafkaProducer

from .host_state import HostState
from .models import GeneratorConfig

logger = structlog.get_logger(__name__)


class TelemetryGenerator:
    """Simulates a fleet of hosts and publishes their samples"""

    def __init__(self, config: GeneratorConfig):
        self.config = config
        logger.info("Initializing telemetry generator", config=config)

        # Initialize Kafka producer
        try:
            self.producer = KafkaProducer(
                bootstrap_servers=config.kafka_bootstrap_servers,
                value_serializer=lambda v: json.dumps(v).encode("utf-8"),
                compression_type="gzip",
            )
            logger.info(
                "Kafka producer initialized",
                bootstrap_servers=config.kafka_bootstrap_servers,
                topic=config.kafka_topic,
            )
        except Exception as e:
            logger.error("Failed to initialize Kafka producer", error=str(e))
            raise

        addresses = [f"{config.subnet_prefix}.{i + 11}" for i in range(config.num_hosts)]
        self.hosts: list[HostState] = [
            HostState(address, addresses, config.attacker_prefix) for address in addresses
        ]

        logger.info("Hosts initialized", count=len(self.hosts), subnet=config.subnet_prefix)
        logger.info(
            "Attack configuration",
            probability=config.attack_probability,
            enabled_attacks=[a.value for a in config.enabled_attacks],
        )

    def generate_event(self) -> int:
        """Generate and send one round of samples for every host

        Returns:
            Number of samples sent
        """
        sent = 0

        for host in self.hosts:
            attack = None
            if (
                host.active_attack is None
                and self.config.enabled_attacks
                and random.random() < self.config.attack_probability
            ):
                attack = random.choice(self.config.enabled_attacks)

            samples = host.generate_round(
                inject_attack=attack, network_samples=self.config.network_samples_per_round
            )
            for sample in samples:
                self.producer.send(self.config.kafka_topic, value=sample.to_message())
            sent += len(samples)

            if attack:
                logger.warning(
                    "Attack injected",
                    attack_type=attack.value,
                    host=host.address,
                    attacker=host.attacker,
                    rounds=host.attack_duration,
                )

        self.producer.flush()
        return sent

    def run(self, duration_seconds: int = None):
        """Run the generator continuously or for a specified duration

        Args:
            duration_seconds: Optional duration in seconds. If None, runs indefinitely.
        """

        logger.info(
            "Starting generator",
            topic=self.config.kafka_topic,
            duration=duration_seconds if duration_seconds else "indefinite",
        )

        start_time = time.time()
        event_count = 0
        last_log_time = start_time

        try:
            while True:
                event_count += self.generate_event()

                elapsed = time.time() - start_time

                # Log stats every 10 seconds
                if time.time() - last_log_time >= 10:
                    rate = event_count / elapsed if elapsed > 0 else 0
                    logger.info(
                        "Generator stats",
                        total_samples=event_count,
                        rate_per_sec=round(rate, 1),
                        elapsed_sec=round(elapsed, 1),
                    )
                    last_log_time = time.time()

                if duration_seconds and elapsed >= duration_seconds:
                    logger.info("Duration limit reached", duration_seconds=duration_seconds)
                    break

                time.sleep(self.config.event_interval_seconds)

        except KeyboardInterrupt:
            logger.info("Received interrupt signal, stopping generator")

        except Exception as e:
            logger.error("Generator error", error=str(e), exc_info=True)
            raise

        finally:
            elapsed = time.time() - start_time
            rate = event_count / elapsed if elapsed > 0 else 0

            self.producer.close()
            logger.info(
                "Generator stopped",
                total_samples=event_count,
                elapsed_sec=round(elapsed, 1),
                avg_rate_per_sec=round(rate, 1),
            )
