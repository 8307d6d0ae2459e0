"""
Data models for the telemetry analyzer: samples, anomaly records and detection settings.
"""

import json
import math
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

ExtensionValue = str | int | float | bool

_INT_FIELDS = (
    "bytes",
    "packets",
    "errors",
    "source_port",
    "dest_port",
    "memory_used",
    "memory_total",
    "disk_used",
    "disk_total",
    "network_rx",
    "network_tx",
)
_STR_FIELDS = ("protocol", "source_ip", "dest_ip")


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


class MalformedSampleError(ValueError):
    """Raised when an inbound payload cannot be turned into a MetricSample"""


class MetricKind(Enum):
    """Kind of telemetry carried by a sample"""

    NETWORK = "NETWORK"
    SYSTEM = "SYSTEM"
    COMBINED = "COMBINED"


class Severity(Enum):
    """Ordinal severity derived from an anomaly score"""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @staticmethod
    def from_score(score: float) -> "Severity":
        """Lower bounds are inclusive: 0.5 is MEDIUM, 0.7 is HIGH, 0.9 is CRITICAL"""
        if score >= 0.9:
            return Severity.CRITICAL
        elif score >= 0.7:
            return Severity.HIGH
        elif score >= 0.5:
            return Severity.MEDIUM
        else:
            return Severity.LOW


def decode_message(raw: bytes | str | dict) -> dict[str, Any]:
    """Decode a raw transport payload into a JSON object.

    Raises:
        MalformedSampleError: If the payload is not valid JSON or not an object
    """
    if isinstance(raw, dict):
        return raw

    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        payload = json.loads(raw)
    except (UnicodeDecodeError, TypeError, json.JSONDecodeError) as e:
        raise MalformedSampleError(f"Payload is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedSampleError(f"Payload is not a JSON object: {type(payload).__name__}")
    return payload


def _parse_number(name: str, value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise MalformedSampleError(f"Field '{name}' must be numeric, got bool")
    try:
        result = float(value)
    except (TypeError, ValueError) as e:
        raise MalformedSampleError(f"Field '{name}' must be numeric, got {value!r}") from e
    if not math.isfinite(result):
        raise MalformedSampleError(f"Field '{name}' must be finite, got {value!r}")
    return result


def _parse_timestamp(value: Any) -> int:
    if value is None:
        return now_ms()
    if isinstance(value, str) and not value.strip().lstrip("-").isdigit():
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise MalformedSampleError(f"Invalid timestamp {value!r}") from e
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return int(parsed.timestamp() * 1000)
    return int(_parse_number("timestamp", value))


@dataclass(frozen=True)
class MetricSample:
    """One telemetry observation for a host. Immutable once built."""

    host: str
    timestamp: int
    metric_type: MetricKind

    # Network fields
    bytes: int = 0
    packets: int = 0
    errors: int = 0
    protocol: str | None = None
    source_ip: str | None = None
    dest_ip: str | None = None
    source_port: int = 0
    dest_port: int = 0

    # System fields
    cpu_usage: float = 0.0
    memory_used: int = 0
    memory_total: int = 0
    disk_used: int = 0
    disk_total: int = 0
    network_rx: int = 0
    network_tx: int = 0

    extended_metrics: dict[str, ExtensionValue] = field(default_factory=dict)

    @property
    def is_system(self) -> bool:
        return self.metric_type in (MetricKind.SYSTEM, MetricKind.COMBINED)

    @property
    def is_network(self) -> bool:
        return self.metric_type in (MetricKind.NETWORK, MetricKind.COMBINED)

    @property
    def memory_percent(self) -> float | None:
        if self.memory_total <= 0:
            return None
        return self.memory_used / self.memory_total * 100.0

    @property
    def disk_percent(self) -> float | None:
        if self.disk_total <= 0:
            return None
        return self.disk_used / self.disk_total * 100.0

    @property
    def error_rate(self) -> float | None:
        if self.packets <= 0:
            return None
        return self.errors / self.packets

    @classmethod
    def from_message(cls, payload: Any) -> "MetricSample":
        """Build a sample from a decoded inbound message

        Raises:
            MalformedSampleError: If required fields are missing or have the wrong shape
        """
        if not isinstance(payload, dict):
            raise MalformedSampleError(f"Sample must be an object, got {type(payload).__name__}")

        host = payload.get("host")
        if not isinstance(host, str) or not host:
            raise MalformedSampleError("Sample is missing 'host'")

        raw_kind = payload.get("metric_type")
        try:
            kind = MetricKind(str(raw_kind).upper())
        except ValueError as e:
            raise MalformedSampleError(f"Unknown metric_type {raw_kind!r}") from e

        extended = payload.get("extended_metrics") or {}
        if not isinstance(extended, dict):
            raise MalformedSampleError("'extended_metrics' must be an object")

        values: dict[str, Any] = {
            name: int(_parse_number(name, payload.get(name))) for name in _INT_FIELDS
        }
        for name in _STR_FIELDS:
            value = payload.get(name)
            values[name] = str(value) if value is not None else None

        return cls(
            host=host,
            timestamp=_parse_timestamp(payload.get("timestamp")),
            metric_type=kind,
            cpu_usage=_parse_number("cpu_usage", payload.get("cpu_usage")),
            extended_metrics=dict(extended),
            **values,
        )

    @classmethod
    def combine(cls, system: "MetricSample", network: "MetricSample") -> "MetricSample":
        """Merge a SYSTEM and a NETWORK sample into one COMBINED sample"""
        return cls(
            host=system.host,
            timestamp=max(system.timestamp, network.timestamp),
            metric_type=MetricKind.COMBINED,
            bytes=network.bytes,
            packets=network.packets,
            errors=network.errors,
            protocol=network.protocol,
            source_ip=network.source_ip,
            dest_ip=network.dest_ip,
            source_port=network.source_port,
            dest_port=network.dest_port,
            cpu_usage=system.cpu_usage,
            memory_used=system.memory_used,
            memory_total=system.memory_total,
            disk_used=system.disk_used,
            disk_total=system.disk_total,
            network_rx=network.network_rx,
            network_tx=network.network_tx,
            extended_metrics={**system.extended_metrics, **network.extended_metrics},
        )

    def to_message(self) -> dict[str, Any]:
        """Serialize to the wire format accepted by from_message"""
        message = asdict(self)
        message["metric_type"] = self.metric_type.value
        return message

    def summary(self) -> str:
        """One-line human readable rendering used in operator reports"""
        parts = [f"host='{self.host}'", f"type='{self.metric_type.value}'", f"timestamp={self.timestamp}"]

        if self.is_network:
            parts += [f"bytes={self.bytes}", f"packets={self.packets}", f"errors={self.errors}"]
            if self.protocol is not None:
                parts += [
                    f"protocol='{self.protocol}'",
                    f"srcIP='{self.source_ip}'",
                    f"dstIP='{self.dest_ip}'",
                ]

        if self.is_system:
            parts += [
                f"cpu={self.cpu_usage:.2f}%",
                f"memory={self.memory_used // (1024 * 1024)}MB",
                f"disk={self.disk_used // (1024 * 1024)}MB",
            ]

        return "MetricSample{" + ", ".join(parts) + "}"


@dataclass
class AnomalyRecord:
    """A single detection result.

    Created once by the detection engine. Afterwards the response side may only
    append to ``additional_data``; existing entries are never overwritten.
    """

    host: str
    anomaly_type: str
    score: float
    description: str = ""
    trigger_sample: MetricSample | None = None
    additional_data: dict[str, ExtensionValue] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: int = field(default_factory=now_ms)

    def __post_init__(self):
        self.score = min(1.0, max(0.0, float(self.score)))

    @property
    def severity(self) -> Severity:
        return Severity.from_score(self.score)

    @property
    def is_urgent(self) -> bool:
        """HIGH and CRITICAL records warrant notification and enforcement"""
        return self.severity in (Severity.HIGH, Severity.CRITICAL)

    def add_data(self, key: str, value: ExtensionValue) -> None:
        """Append an entry to the extension map

        Raises:
            KeyError: If the key is already present
        """
        if key in self.additional_data:
            raise KeyError(f"'{key}' is already set on anomaly {self.id}")
        self.additional_data[key] = value

    def get_data(self, key: str, default: Any = None) -> Any:
        return self.additional_data.get(key, default)

    def to_report(self) -> str:
        """Multi-line report for operator notifications"""
        created = datetime.fromtimestamp(self.timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")

        lines = [
            "=== SECURITY ANOMALY DETECTED ===",
            f"ID: {self.id}",
            f"Host: {self.host}",
            f"Type: {self.anomaly_type}",
            f"Severity: {self.severity.value}",
            f"Score: {self.score:.2f}",
            f"Timestamp: {created}",
        ]
        if self.description:
            lines.append(f"Description: {self.description}")

        if self.trigger_sample is not None:
            lines += ["", "Trigger Metrics:", f"  {self.trigger_sample.summary()}"]

        if self.additional_data:
            lines += ["", "Additional Information:"]
            lines += [f"  {key}: {value}" for key, value in self.additional_data.items()]

        lines.append("=====================================")
        return "\n".join(lines)

    def __str__(self) -> str:
        return (
            f"AnomalyRecord(id='{self.id}', host='{self.host}', type='{self.anomaly_type}', "
            f"score={self.score:.2f}, severity='{self.severity.value}')"
        )


@dataclass
class DetectionConfig:
    """Settings for the detection engine and the sliding window"""

    window_size: int = 100
    threshold_score: float = 0.7

    use_statistical: bool = True
    use_threshold: bool = True
    use_ml: bool = False
    ml_method: str = "noop"
    ml_model_path: str = ""  # Not read by the reference model

    def __post_init__(self):
        if self.window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {self.window_size}")
        if not 0.0 <= self.threshold_score <= 1.0:
            raise ValueError(f"threshold_score must be within [0, 1], got {self.threshold_score}")
