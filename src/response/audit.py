"""
Audit channel: posts a structured record of every anomaly to a SIEM endpoint.
"""

import json
from datetime import UTC, datetime
from typing import Any

import requests
import structlog

from src.analyzer.models import AnomalyRecord, MetricSample

from .models import AuditConfig

logger = structlog.get_logger(__name__)

_SCALARS = (str, int, float, bool, type(None))


def _iso_millis(epoch_ms: int) -> str:
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=UTC)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _scalar_map(values: dict[str, Any]) -> dict[str, Any]:
    """Extension maps only carry scalars; anything else is stringified here"""
    return {str(k): v if isinstance(v, _SCALARS) else str(v) for k, v in values.items()}


def _sample_fields(sample: MetricSample) -> dict[str, Any]:
    metrics: dict[str, Any] = {
        "metric_type": sample.metric_type.value,
        "timestamp": sample.timestamp,
    }

    if sample.is_network:
        metrics.update(
            {
                "bytes": sample.bytes,
                "packets": sample.packets,
                "errors": sample.errors,
                "protocol": sample.protocol,
                "source_ip": sample.source_ip,
                "dest_ip": sample.dest_ip,
                "source_port": sample.source_port,
                "dest_port": sample.dest_port,
            }
        )

    if sample.is_system:
        metrics.update(
            {
                "cpu_usage": sample.cpu_usage,
                "memory_used": sample.memory_used,
                "memory_total": sample.memory_total,
                "disk_used": sample.disk_used,
                "disk_total": sample.disk_total,
                "network_rx": sample.network_rx,
                "network_tx": sample.network_tx,
            }
        )

    return metrics


def build_audit_document(anomaly: AnomalyRecord) -> dict[str, Any]:
    """Standardized document shared by every sink type"""
    document: dict[str, Any] = {
        "@timestamp": _iso_millis(anomaly.timestamp),
        "id": anomaly.id,
        "host": anomaly.host,
        "type": anomaly.anomaly_type,
        "severity": anomaly.severity.value,
        "score": anomaly.score,
        "description": anomaly.description,
        "additional_data": _scalar_map(anomaly.additional_data),
    }

    if anomaly.trigger_sample is not None:
        document["metrics"] = _sample_fields(anomaly.trigger_sample)

    return document


def _elasticsearch_request(document: dict, api_key: str) -> tuple[dict, dict]:
    return document, {}


def _splunk_request(document: dict, api_key: str) -> tuple[dict, dict]:
    headers = {"Authorization": f"Splunk {api_key}"} if api_key else {}
    return {"event": document}, headers


def _custom_request(document: dict, api_key: str) -> tuple[dict, dict]:
    headers = {"X-API-Key": api_key} if api_key else {}
    return document, headers


SINKS = {
    "elasticsearch": _elasticsearch_request,
    "splunk": _splunk_request,
    "custom": _custom_request,
}


class AuditChannel:
    """Delivers audit documents over HTTP. Never raises, reports success as a bool."""

    def __init__(self, config: AuditConfig, timeout_seconds: float = 30.0):
        self.config = config
        self.timeout_seconds = timeout_seconds
        self.session = requests.Session()
        self._build_request = SINKS.get(config.sink_type, _custom_request)

    def log(self, anomaly: AnomalyRecord) -> bool:
        """Post the anomaly to the configured sink

        Returns:
            True if the sink answered with a 2xx status
        """
        if not self.config.enabled:
            logger.info("Audit logging is disabled", anomaly_id=anomaly.id)
            return False

        if not self.config.endpoint:
            logger.warning("No audit endpoint configured", anomaly_id=anomaly.id)
            return False

        body, extra_headers = self._build_request(build_audit_document(anomaly), self.config.api_key)
        headers = {"Content-Type": "application/json", **extra_headers}

        try:
            response = self.session.post(
                self.config.endpoint,
                data=json.dumps(body, default=str),
                headers=headers,
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error(
                "Failed to deliver audit document",
                anomaly_id=anomaly.id,
                sink=self.config.sink_type,
                error=str(e),
            )
            return False

        success = 200 <= response.status_code < 300
        if success:
            logger.info("Anomaly audited", anomaly_id=anomaly.id, sink=self.config.sink_type)
        else:
            logger.warning(
                "Audit sink rejected document",
                anomaly_id=anomaly.id,
                sink=self.config.sink_type,
                status=response.status_code,
                body=response.text[:200],
            )
        return success

    def close(self):
        """Release the HTTP session"""
        self.session.close()
