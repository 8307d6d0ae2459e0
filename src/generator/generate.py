"""
Telemetry Generator - CLI Entry Point
Publishes simulated host samples, with optional attacks, for the analyzer to consume
"""

import argparse
import dataclasses
import os
import sys

import structlog

from src.core.logger import level_from_name, setup_logging
from src.generator import (
    ATTACK_CONFIG,
    DEV_CONFIG,
    NORMAL_CONFIG,
    AttackType,
    GeneratorConfig,
    TelemetryGenerator,
)

logger = structlog.get_logger(__name__)


# Predefined configurations
CONFIGS = {
    "normal": NORMAL_CONFIG,
    "attack": ATTACK_CONFIG,
    "dev": DEV_CONFIG,
}


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description="Telemetry Generator for Kafka",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
            Examples:
            # Use predefined normal config
            python -m src.generator.generate --config normal

            # Attack drill for 300 seconds
            python -m src.generator.generate --config attack --duration 300

            # Custom configuration
            python -m src.generator.generate --hosts 5 --attack-prob 0.2 --attacks port_scan connection_flood

            # Specify Kafka settings
            python -m src.generator.generate --kafka-servers kafka:9092 --topic telemetry
        """,
    )

    # Predefined config
    parser.add_argument(
        "--config", choices=list(CONFIGS.keys()), help="Use a predefined configuration"
    )

    # Kafka settings
    parser.add_argument(
        "--kafka-servers",
        default=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
        help="Kafka bootstrap servers (default: localhost:9092 or KAFKA_BOOTSTRAP_SERVERS env var)",
    )
    parser.add_argument(
        "--topic",
        default=os.getenv("KAFKA_TOPIC", "telemetry-samples"),
        help="Kafka topic name (default: telemetry-samples or KAFKA_TOPIC env var)",
    )

    # Generation settings
    parser.add_argument("--hosts", type=int, help="Number of hosts to simulate")
    parser.add_argument("--interval", type=float, help="Interval between rounds in seconds")

    # Attack settings
    parser.add_argument(
        "--attack-prob", type=float, help="Probability of attack injection (0.0 to 1.0)"
    )
    parser.add_argument(
        "--attacks",
        nargs="+",
        choices=[a.value for a in AttackType],
        help="Specific attack types to enable",
    )

    # Runtime settings
    parser.add_argument(
        "--duration", type=int, help="Duration to run in seconds (default: infinite)"
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )

    return parser.parse_args(argv)


def build_config_from_args(args) -> GeneratorConfig:
    """Build a GeneratorConfig from command-line arguments"""

    # Start with predefined config if specified
    if args.config:
        base = CONFIGS[args.config]
        logger.info("Using predefined configuration", config_name=args.config)
    else:
        base = GeneratorConfig()
        logger.info("Using default configuration")

    overrides = {
        "kafka_bootstrap_servers": args.kafka_servers,
        "kafka_topic": args.topic,
    }
    if args.hosts:
        overrides["num_hosts"] = args.hosts
    if args.interval:
        overrides["event_interval_seconds"] = args.interval
    if args.attack_prob is not None:
        overrides["attack_probability"] = args.attack_prob
    if args.attacks:
        overrides["enabled_attacks"] = [AttackType(a) for a in args.attacks]

    # Presets stay untouched, validation runs again on the copy
    return dataclasses.replace(base, **overrides)


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)

    setup_logging(level=level_from_name(args.log_level))

    logger.info("Starting Telemetry Generator")

    try:
        config = build_config_from_args(args)

        generator = TelemetryGenerator(config)
        generator.run(duration_seconds=args.duration)

        logger.info("Generator completed successfully")
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Generator failed", error=str(e), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
