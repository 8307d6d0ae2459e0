"""
Analyzer service: wires the window, engine, dispatcher and loops together.
"""

import queue
import time
from dataclasses import dataclass, field
from typing import Any

import structlog

from src.response import ResponseConfig, ResponseDispatcher

from .engine import DetectionEngine
from .loops import DetectionLoop, IngestLoop
from .models import DetectionConfig
from .source import KafkaSampleSource
from .window import SlidingWindow

logger = structlog.get_logger(__name__)

STATS_LOG_INTERVAL_SECONDS = 30


@dataclass
class AnalyzerConfig:
    """Configuration for the analyzer service"""

    # Kafka settings
    kafka_bootstrap_servers: str = "localhost:9092"
    kafka_topic: str = "telemetry-samples"
    kafka_group_id: str = "anomaly-analyzer-group"
    kafka_auto_offset_reset: str = "latest"  # 'earliest' or 'latest'

    # Consumer behavior
    batch_size: int = 50  # Messages enqueued before committing
    commit_interval_seconds: float = 5.0  # Max time between commits
    max_poll_records: int = 500

    # Detection cadence, one cycle every two sample intervals
    sample_interval_seconds: float = 5.0

    detection: DetectionConfig = field(default_factory=DetectionConfig)
    response: ResponseConfig = field(default_factory=ResponseConfig)

    def __post_init__(self):
        if self.sample_interval_seconds <= 0:
            raise ValueError(
                f"sample_interval_seconds must be positive, got {self.sample_interval_seconds}"
            )
        if self.kafka_auto_offset_reset not in ("earliest", "latest"):
            raise ValueError(f"Unknown offset reset strategy: {self.kafka_auto_offset_reset}")

    @property
    def detection_period_seconds(self) -> float:
        return 2 * self.sample_interval_seconds


class AnalyzerService:
    """Runs ingest, detection and response for one analyzer process"""

    def __init__(
        self,
        config: AnalyzerConfig,
        dispatcher: ResponseDispatcher | None = None,
        source: KafkaSampleSource | None = None,
        use_kafka: bool = True,
    ):
        self.config = config
        logger.info("Initializing analyzer service", config=config)

        self.inbound: queue.Queue = queue.Queue()
        self.window = SlidingWindow(config.detection.window_size)
        self.engine = DetectionEngine(config.detection)
        self.dispatcher = dispatcher or ResponseDispatcher(config.response)

        self.ingest_loop = IngestLoop(self.window, self.inbound)
        self.detection_loop = DetectionLoop(
            self.window,
            self.engine,
            self.dispatcher,
            config.detection_period_seconds,
        )

        self.source = source
        if self.source is None and use_kafka:
            self.source = KafkaSampleSource(config, self.inbound)

        self._started = False

    def ingest(self, payload: Any):
        """Queue a payload for ingestion, bypassing Kafka"""
        self.inbound.put(payload)

    def start(self):
        if self._started:
            return
        self.ingest_loop.start()
        self.detection_loop.start()
        if self.source is not None:
            self.source.start()
        self._started = True
        logger.info(
            "Analyzer service started",
            window_size=self.window.capacity,
            detection_period=self.config.detection_period_seconds,
            kafka=self.source is not None,
        )

    def stop(self):
        """Stop new ingest and new ticks, then let in-flight responses finish"""
        if not self._started:
            return
        if self.source is not None:
            self.source.stop()
        self.ingest_loop.stop()
        self.detection_loop.stop()
        self.dispatcher.shutdown(wait=True)
        self._started = False
        logger.info("Analyzer service stopped", **self.snapshot_stats())

    def snapshot_stats(self) -> dict[str, Any]:
        stats = {
            "window_size": len(self.window),
            "ingested": self.ingest_loop.stats["ingested"],
            "malformed": self.ingest_loop.stats["malformed"],
            "cycles": self.engine.stats["cycles"],
            "anomalies": self.engine.stats["anomalies_emitted"],
            "detection_faults": self.engine.stats["detection_faults"],
            "responses": self.dispatcher.stats["handled"],
            "blocked": self.dispatcher.stats["blocked"],
        }
        if self.source is not None:
            stats["consumed"] = self.source.stats["total_consumed"]
        return stats

    def run(self, duration_seconds: int = None):
        """Run the service continuously or for a specified duration

        Args:
            duration_seconds: Optional duration in seconds. If None, runs indefinitely.
        """
        logger.info(
            "Starting analyzer service",
            duration=duration_seconds if duration_seconds else "indefinite",
        )

        start_time = time.time()
        last_log_time = start_time
        self.start()

        try:
            while True:
                time.sleep(1)
                elapsed = time.time() - start_time

                if time.time() - last_log_time >= STATS_LOG_INTERVAL_SECONDS:
                    logger.info("Analyzer stats", elapsed_sec=round(elapsed, 1), **self.snapshot_stats())
                    last_log_time = time.time()

                if duration_seconds and elapsed >= duration_seconds:
                    logger.info("Duration limit reached", duration_seconds=duration_seconds)
                    break

        except KeyboardInterrupt:
            logger.info("Received interrupt signal, stopping analyzer")

        finally:
            self.stop()
