"""
Routes anomaly records to the response channels.

Channel order for one record:
1. Audit, always, so that any later state change stays traceable
2. Notification, for HIGH and CRITICAL records
3. Network block, for urgent network-related records with a usable target,
   followed by a second audit carrying the enforcement outcome
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

import structlog

from src.analyzer.models import AnomalyRecord

from .audit import AuditChannel
from .blocking import BlockOutcome, NetworkBlocker
from .models import ResponseAck, ResponseConfig
from .notify import NotificationChannel

logger = structlog.get_logger(__name__)

NETWORK_TYPE_MARKERS = ("NETWORK", "TRAFFIC", "CONNECTION", "PORT_SCAN", "ERROR_RATE")


def is_network_anomaly(anomaly: AnomalyRecord) -> bool:
    return any(marker in anomaly.anomaly_type for marker in NETWORK_TYPE_MARKERS)


def select_block_target(anomaly: AnomalyRecord) -> str | None:
    """Pick the address to block for a network anomaly, if any

    Connection floods carry the attacker on the record itself. Otherwise the
    evidence sample decides: its source if foreign, else its destination if
    foreign, else nothing.
    """
    if anomaly.anomaly_type == "CONNECTION_FLOOD":
        source_ip = anomaly.get_data("source_ip")
        if source_ip is not None:
            return str(source_ip)

    sample = anomaly.trigger_sample
    if sample is None:
        return None

    if sample.source_ip and sample.source_ip != sample.host:
        return sample.source_ip
    if sample.dest_ip and sample.dest_ip != sample.host:
        return sample.dest_ip
    return None


class ResponseDispatcher:
    """Runs the response channels for anomalies on a small worker pool"""

    def __init__(
        self,
        config: ResponseConfig,
        audit: AuditChannel | None = None,
        notifier: NotificationChannel | None = None,
        blocker: NetworkBlocker | None = None,
    ):
        self.config = config
        self.audit = audit or AuditChannel(config.audit, config.timeout_seconds)
        self.notifier = notifier or NotificationChannel(config.notification, config.timeout_seconds)
        self.blocker = blocker or NetworkBlocker(config.network_block, config.timeout_seconds)

        self.executor = ThreadPoolExecutor(
            max_workers=config.max_workers, thread_name_prefix="response"
        )

        self.stats = {
            "handled": 0,
            "audited": 0,
            "notified": 0,
            "blocked": 0,
            "channel_errors": 0,
        }
        self._stats_lock = threading.Lock()

        logger.info(
            "Response dispatcher initialized",
            workers=config.max_workers,
            audit_sink=config.audit.sink_type if config.audit.enabled else None,
            notifications=config.notification.enabled,
            block_platform=config.network_block.platform if config.network_block.enabled else None,
        )

    def submit(self, anomaly: AnomalyRecord) -> Future:
        """Queue an anomaly for handling

        Returns:
            Future resolving to the ResponseAck for this anomaly
        """
        logger.info("Anomaly received for response", anomaly_id=anomaly.id, type=anomaly.anomaly_type)
        return self.executor.submit(self.handle, anomaly)

    def handle(self, anomaly: AnomalyRecord) -> ResponseAck:
        """Run every applicable channel for one anomaly and collect their outcomes"""
        audited = self._attempt("audit", self.audit.log, anomaly)
        notified = False
        blocked = False

        if anomaly.is_urgent:
            notified = self._attempt("notification", self.notifier.notify, anomaly)

            if is_network_anomaly(anomaly):
                blocked = self._enforce(anomaly)

        ack = ResponseAck(audited=audited, notified=notified, blocked=blocked)

        with self._stats_lock:
            self.stats["handled"] += 1
            self.stats["audited"] += int(audited)
            self.stats["notified"] += int(notified)
            self.stats["blocked"] += int(blocked)

        logger.info(
            "Anomaly handled",
            anomaly_id=anomaly.id,
            type=anomaly.anomaly_type,
            severity=anomaly.severity.value,
            ack=ack.summary(),
        )
        return ack

    def _enforce(self, anomaly: AnomalyRecord) -> bool:
        target = select_block_target(anomaly)
        if target is None:
            logger.debug("No address to block", anomaly_id=anomaly.id, type=anomaly.anomaly_type)
            return False

        if not self.config.network_block.enabled:
            logger.debug("Network blocking is disabled", anomaly_id=anomaly.id, target=target)
            return False

        try:
            outcome = self.blocker.attempt(target)
        except Exception as e:
            with self._stats_lock:
                self.stats["channel_errors"] += 1
            logger.error("Response channel failed", channel="network_block", error=str(e), exc_info=True)
            outcome = BlockOutcome.FAILED

        if outcome == BlockOutcome.ALREADY_BLOCKED:
            return True

        # The call that blocked the address already recorded it
        if anomaly.get_data("ip_blocked") is None:
            anomaly.add_data("ip_blocked", target)
            anomaly.add_data("firewall_action", "SUCCESS" if outcome == BlockOutcome.BLOCKED else "FAILED")
            self._attempt("audit", self.audit.log, anomaly)

        return outcome == BlockOutcome.BLOCKED

    def _attempt(self, channel: str, action: Callable[..., bool], *args) -> bool:
        """Run one channel, turning any fault into a failed outcome"""
        try:
            return bool(action(*args))
        except Exception as e:
            with self._stats_lock:
                self.stats["channel_errors"] += 1
            logger.error("Response channel failed", channel=channel, error=str(e), exc_info=True)
            return False

    def shutdown(self, wait: bool = True):
        """Stop accepting anomalies and release channel resources"""
        logger.info("Shutting down response dispatcher", wait=wait)
        self.executor.shutdown(wait=wait)
        self.audit.close()
