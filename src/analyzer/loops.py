"""
Scheduling wrappers around the window and the detection engine.

- IngestLoop: event driven, one iteration per inbound payload
- DetectionLoop: fixed period, one detection cycle per tick
Each runs on its own thread and can be stopped without cancelling work in flight.
"""

import queue
import threading
import time
from concurrent.futures import Future
from typing import Any

import structlog

from .engine import DetectionEngine
from .models import AnomalyRecord, MalformedSampleError, MetricSample, decode_message
from .window import SlidingWindow

logger = structlog.get_logger(__name__)


class LoopThread:
    """Owns a daemon thread running ``self._run`` until stop() is called"""

    name = "loop"

    def __init__(self):
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.debug("Loop started", loop=self.name)

    def stop(self, timeout: float | None = 5.0):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
        logger.debug("Loop stopped", loop=self.name)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self):
        raise NotImplementedError


class IngestLoop(LoopThread):
    """Moves inbound payloads from a queue into the sliding window"""

    name = "ingest"

    def __init__(self, window: SlidingWindow, inbound: queue.Queue, idle_timeout: float = 0.1):
        super().__init__()
        self.window = window
        self.inbound = inbound
        self.idle_timeout = idle_timeout
        self.stats = {"ingested": 0, "malformed": 0}

    def ingest(self, payload: Any) -> bool:
        """Parse one payload and push it into the window

        Malformed payloads are logged and dropped.

        Returns:
            True if a sample was added
        """
        try:
            sample = payload if isinstance(payload, MetricSample) else MetricSample.from_message(
                decode_message(payload)
            )
        except MalformedSampleError as e:
            self.stats["malformed"] += 1
            logger.warning("Dropping malformed sample", error=str(e))
            return False

        size = self.window.push(sample)
        self.stats["ingested"] += 1
        logger.debug(
            "Sample ingested",
            host=sample.host,
            metric_type=sample.metric_type.value,
            window_size=size,
        )
        return True

    def _run(self):
        while not self._stop_event.is_set():
            try:
                payload = self.inbound.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                self.ingest(payload)
            except Exception as e:
                logger.error("Unexpected ingest failure", error=str(e), exc_info=True)
            finally:
                self.inbound.task_done()


class DetectionLoop(LoopThread):
    """Runs a detection cycle on the window every ``period_seconds``"""

    name = "detection"

    def __init__(
        self,
        window: SlidingWindow,
        engine: DetectionEngine,
        dispatcher,
        period_seconds: float,
    ):
        super().__init__()
        self.window = window
        self.engine = engine
        self.dispatcher = dispatcher
        self.period_seconds = period_seconds
        self.stats = {"ticks": 0, "anomalies_dispatched": 0}

    def tick(self) -> list[AnomalyRecord]:
        """One detection cycle: snapshot, check, dispatch, trim"""
        snapshot = self.window.snapshot()
        if not snapshot:
            logger.info("No samples available for detection")
            return []

        self.stats["ticks"] += 1
        logger.info("Running anomaly detection", samples=len(snapshot))

        anomalies = self.engine.check(snapshot)
        if anomalies:
            logger.info("Anomalies detected", count=len(anomalies))
        else:
            logger.info("No anomalies detected in current window")

        for anomaly in anomalies:
            logger.info(
                "Anomaly detected",
                anomaly_id=anomaly.id,
                host=anomaly.host,
                type=anomaly.anomaly_type,
                severity=anomaly.severity.value,
                score=round(anomaly.score, 3),
            )
            future = self.dispatcher.submit(anomaly)
            future.add_done_callback(self._acknowledge(anomaly))
            self.stats["anomalies_dispatched"] += 1

        self.window.shrink_to_half()
        return anomalies

    def _acknowledge(self, anomaly: AnomalyRecord):
        def _done(future: Future):
            error = future.exception()
            if error is not None:
                logger.error("Response handling failed", anomaly_id=anomaly.id, error=str(error))
                return
            logger.info("Response acknowledged", anomaly_id=anomaly.id, ack=future.result().summary())

        return _done

    def _run(self):
        next_tick = time.monotonic() + self.period_seconds
        while not self._stop_event.wait(max(0.0, next_tick - time.monotonic())):
            next_tick += self.period_seconds
            try:
                self.tick()
            except Exception as e:
                logger.error("Detection tick failed", error=str(e), exc_info=True)
