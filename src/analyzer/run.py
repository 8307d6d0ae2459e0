"""
Anomaly Analyzer - CLI Entry Point
Consumes telemetry samples from Kafka, detects anomalies and runs the response channels
"""

import argparse
import os
import sys

import structlog

from src.analyzer.models import DetectionConfig
from src.analyzer.service import AnalyzerConfig, AnalyzerService
from src.core.logger import level_from_name, setup_logging
from src.response import AuditConfig, NetworkBlockConfig, NotificationConfig, ResponseConfig
from src.response.models import AUDIT_SINK_TYPES, BLOCK_PLATFORMS

logger = structlog.get_logger(__name__)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description="Real-time telemetry anomaly analyzer (Kafka → detection → response)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
        Examples:
        # Basic usage with defaults
        python -m src.analyzer.run

        # Lower the reporting threshold and run for 10 minutes
        python -m src.analyzer.run --threshold 0.5 --duration 600

        # Ship audit records to Splunk and e-mail urgent alerts
        python -m src.analyzer.run --audit-sink splunk --audit-endpoint https://splunk:8088/services/collector \\
            --notify --smtp-host mail.internal --recipient secops@example.com

        # Using environment variables
        export KAFKA_BOOTSTRAP_SERVERS=kafka:9092
        export AUDIT_ENDPOINT=http://elasticsearch:9200/security/_doc
        python -m src.analyzer.run
        """,
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
    parser.add_argument(
        "--group-id",
        default="anomaly-analyzer-group",
        help="Kafka consumer group ID (default: anomaly-analyzer-group)",
    )
    parser.add_argument(
        "--offset-reset",
        choices=["earliest", "latest"],
        default="latest",
        help="Auto offset reset strategy (default: latest)",
    )

    # Detection settings
    parser.add_argument(
        "--window-size",
        type=int,
        default=int(os.getenv("WINDOW_SIZE", "100")),
        help="Sliding window capacity (default: 100 or WINDOW_SIZE env var)",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=float(os.getenv("THRESHOLD_SCORE", "0.7")),
        help="Minimum anomaly score reported (default: 0.7 or THRESHOLD_SCORE env var)",
    )
    parser.add_argument(
        "--no-statistical", action="store_true", help="Disable the z-score pass"
    )
    parser.add_argument(
        "--no-threshold", action="store_true", help="Disable the static threshold pass"
    )
    parser.add_argument("--ml", action="store_true", help="Enable the pluggable model pass")
    parser.add_argument(
        "--ml-method", default="noop", help="Registered model name (default: noop)"
    )
    parser.add_argument("--ml-model-path", default="", help="Model artifact path")
    parser.add_argument(
        "--sample-interval",
        type=float,
        default=float(os.getenv("SAMPLE_INTERVAL_SECONDS", "5.0")),
        help="Expected seconds between samples, detection runs every 2x (default: 5.0)",
    )

    # Audit settings
    parser.add_argument(
        "--no-audit", action="store_true", help="Disable the audit channel"
    )
    parser.add_argument(
        "--audit-sink",
        choices=list(AUDIT_SINK_TYPES),
        default=os.getenv("AUDIT_SINK_TYPE", "elasticsearch"),
        help="Audit sink type (default: elasticsearch or AUDIT_SINK_TYPE env var)",
    )
    parser.add_argument(
        "--audit-endpoint",
        default=os.getenv("AUDIT_ENDPOINT", "http://localhost:9200/security/_doc"),
        help="Audit sink URL (default: AUDIT_ENDPOINT env var)",
    )
    parser.add_argument(
        "--audit-api-key",
        default=os.getenv("AUDIT_API_KEY", ""),
        help="Audit sink credential (default: AUDIT_API_KEY env var)",
    )

    # Notification settings
    parser.add_argument(
        "--notify",
        action="store_true",
        default=_env_flag("NOTIFY_ENABLED", False),
        help="E-mail HIGH and CRITICAL anomalies (default: NOTIFY_ENABLED env var)",
    )
    parser.add_argument(
        "--smtp-host",
        default=os.getenv("SMTP_HOST", "localhost"),
        help="SMTP host (default: localhost or SMTP_HOST env var)",
    )
    parser.add_argument(
        "--smtp-port",
        type=int,
        default=int(os.getenv("SMTP_PORT", "587")),
        help="SMTP port (default: 587 or SMTP_PORT env var)",
    )
    parser.add_argument("--smtp-user", default=os.getenv("SMTP_USER", ""), help="SMTP username")
    parser.add_argument(
        "--smtp-password", default=os.getenv("SMTP_PASSWORD", ""), help="SMTP password"
    )
    parser.add_argument(
        "--recipient", default=os.getenv("ALERT_RECIPIENT", ""), help="Alert recipient address"
    )

    # Network block settings
    parser.add_argument(
        "--block",
        action="store_true",
        default=_env_flag("BLOCK_ENABLED", False),
        help="Block offending addresses (default: BLOCK_ENABLED env var)",
    )
    parser.add_argument(
        "--block-platform",
        choices=list(BLOCK_PLATFORMS),
        default=os.getenv("BLOCK_PLATFORM", "linux"),
        help="Blocking mechanism (default: linux or BLOCK_PLATFORM env var)",
    )
    parser.add_argument(
        "--block-script",
        default=os.getenv("BLOCK_SCRIPT", "scripts/block_ip.sh"),
        help="Script used by the generic-script platform",
    )
    parser.add_argument(
        "--response-workers",
        type=int,
        default=3,
        help="Response worker threads (default: 3)",
    )

    # Runtime settings
    parser.add_argument(
        "--duration",
        type=int,
        help="Duration to run in seconds (default: infinite)",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=os.getenv("LOG_FORMAT", "").lower() == "json",
        help="Render logs as JSON lines (default: LOG_FORMAT=json env var)",
    )

    return parser.parse_args(argv)


def build_config_from_args(args) -> AnalyzerConfig:
    """Build an AnalyzerConfig from command-line arguments"""
    detection = DetectionConfig(
        window_size=args.window_size,
        threshold_score=args.threshold,
        use_statistical=not args.no_statistical,
        use_threshold=not args.no_threshold,
        use_ml=args.ml,
        ml_method=args.ml_method,
        ml_model_path=args.ml_model_path,
    )

    response = ResponseConfig(
        audit=AuditConfig(
            enabled=not args.no_audit,
            sink_type=args.audit_sink,
            endpoint=args.audit_endpoint,
            api_key=args.audit_api_key,
        ),
        notification=NotificationConfig(
            enabled=args.notify,
            smtp_host=args.smtp_host,
            smtp_port=args.smtp_port,
            username=args.smtp_user,
            password=args.smtp_password,
            recipient=args.recipient,
        ),
        network_block=NetworkBlockConfig(
            enabled=args.block,
            platform=args.block_platform,
            block_script=args.block_script,
        ),
        max_workers=args.response_workers,
    )

    config = AnalyzerConfig(
        kafka_bootstrap_servers=args.kafka_servers,
        kafka_topic=args.topic,
        kafka_group_id=args.group_id,
        kafka_auto_offset_reset=args.offset_reset,
        sample_interval_seconds=args.sample_interval,
        detection=detection,
        response=response,
    )

    logger.info("Configuration built from arguments", config=config)
    return config


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)

    # Setup logging
    setup_logging(level=level_from_name(args.log_level), json_logs=args.json_logs)

    logger.info("Starting Anomaly Analyzer")

    try:
        config = build_config_from_args(args)

        service = AnalyzerService(config)
        service.run(duration_seconds=args.duration)

        logger.info("Analyzer completed successfully")
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Analyzer failed", error=str(e), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
