"""
Kafka source feeding raw telemetry payloads into the ingest queue.
"""

import queue
import time

import structlog
from kafka import KafkaConsumer
from kafka.errors import KafkaError

from .loops import LoopThread

logger = structlog.get_logger(__name__)


class KafkaSampleSource(LoopThread):
    """Consumes the telemetry topic and hands each payload to the ingest loop

    Values are left as raw bytes; parsing belongs to the ingest loop so that
    a malformed message is dropped there and never stalls the consumer.
    Offsets are committed manually once a payload is on the queue.
    """

    name = "kafka-source"

    def __init__(self, config, inbound: queue.Queue, poll_timeout_ms: int = 500):
        super().__init__()
        self.config = config
        self.inbound = inbound
        self.poll_timeout_ms = poll_timeout_ms

        try:
            self.consumer = KafkaConsumer(
                config.kafka_topic,
                bootstrap_servers=config.kafka_bootstrap_servers,
                group_id=config.kafka_group_id,
                auto_offset_reset=config.kafka_auto_offset_reset,
                enable_auto_commit=False,
                max_poll_records=config.max_poll_records,
            )
            logger.info(
                "Kafka consumer initialized",
                bootstrap_servers=config.kafka_bootstrap_servers,
                topic=config.kafka_topic,
                group_id=config.kafka_group_id,
            )
        except Exception as e:
            logger.error("Failed to initialize Kafka consumer", error=str(e))
            raise

        self.pending = 0
        self.last_commit_time = time.time()

        self.stats = {
            "total_consumed": 0,
            "commits": 0,
            "commit_errors": 0,
            "poll_errors": 0,
        }

    def poll_once(self) -> int:
        """Poll the topic once and enqueue every payload received

        Returns:
            Number of payloads enqueued
        """
        records = self.consumer.poll(timeout_ms=self.poll_timeout_ms)

        count = 0
        for messages in records.values():
            for message in messages:
                self.inbound.put(message.value)
                count += 1

        self.pending += count
        self.stats["total_consumed"] += count

        if self._should_commit():
            self.commit()
        return count

    def _should_commit(self) -> bool:
        """Check if we should commit based on batch size or time"""
        if self.pending == 0:
            return False
        time_elapsed = time.time() - self.last_commit_time
        return (
            self.pending >= self.config.batch_size
            or time_elapsed >= self.config.commit_interval_seconds
        )

    def commit(self):
        if self.pending == 0:
            return
        try:
            self.consumer.commit()
            self.stats["commits"] += 1
            logger.debug("Offsets committed", messages=self.pending)
            self.pending = 0
        except KafkaError as e:
            self.stats["commit_errors"] += 1
            logger.error("Failed to commit offsets", error=str(e))
        self.last_commit_time = time.time()

    def _run(self):
        logger.info("Starting Kafka source", topic=self.config.kafka_topic)
        try:
            while not self._stop_event.is_set():
                try:
                    self.poll_once()
                except KafkaError as e:
                    self.stats["poll_errors"] += 1
                    logger.error("Kafka poll failed", error=str(e))
                    self._stop_event.wait(1.0)
        finally:
            self.commit()
            self.consumer.close()
            logger.info(
                "Kafka source stopped",
                total_consumed=self.stats["total_consumed"],
                commits=self.stats["commits"],
                poll_errors=self.stats["poll_errors"],
            )
