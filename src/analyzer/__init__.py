"""
Telemetry anomaly analyzer: sample model, sliding window, baselines and detection.
"""

from .baseline import BaselineStore
from .engine import DetectionEngine
from .models import (
    AnomalyRecord,
    DetectionConfig,
    MalformedSampleError,
    MetricKind,
    MetricSample,
    Severity,
    decode_message,
)
from .window import SlidingWindow

__all__ = [
    "AnomalyRecord",
    "BaselineStore",
    "DetectionConfig",
    "DetectionEngine",
    "MalformedSampleError",
    "MetricKind",
    "MetricSample",
    "Severity",
    "SlidingWindow",
    "decode_message",
]
