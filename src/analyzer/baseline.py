"""
Per-metric historical baselines.

Holds three kinds of reference data:
- Static thresholds for cpu/memory/disk/error-rate, never adapted
- Bounded per-key histories with a moving average, used for z-scores
- A connection table counting traffic per source/destination pair
"""

import threading
from collections import defaultdict, deque

import numpy as np
import structlog

logger = structlog.get_logger(__name__)

HISTORY_LIMIT = 1000
MIN_POINTS = 10  # Below this a z-score is meaningless and reported as 0
MOVING_AVERAGE_SPAN = 10

STATIC_BASELINES = {
    "cpu_usage": 70.0,  # percent
    "memory_percent": 80.0,
    "disk_percent": 90.0,
    "network_rx_rate": 1024.0 * 1024.0,  # 1 MiB/s seed
    "network_tx_rate": 1024.0 * 1024.0,
    "error_rate": 0.01,
}


def history_key(host: str, metric: str) -> str:
    return f"{host}_{metric}"


class BaselineStore:
    """Historical values and reference thresholds, keyed by ``{host}_{metric}``"""

    def __init__(self, history_limit: int = HISTORY_LIMIT):
        self.history_limit = history_limit
        self._history: dict[str, deque[float]] = {}
        self._moving_averages: dict[str, float] = {}
        self._baselines = dict(STATIC_BASELINES)
        self._connections: dict[str, dict[str, int]] = defaultdict(dict)
        self._lock = threading.Lock()

    def observe(self, key: str, value: float) -> None:
        """Append a value to the key's history, creating it on first use"""
        if not np.isfinite(value):
            logger.warning("Ignoring non-finite value", key=key, value=value)
            return

        with self._lock:
            values = self._history.get(key)
            if values is None:
                values = deque(maxlen=self.history_limit)
                self._history[key] = values

            values.append(float(value))

            if len(values) >= MOVING_AVERAGE_SPAN:
                recent = [values[i] for i in range(-MOVING_AVERAGE_SPAN, 0)]
                self._moving_averages[key] = float(np.mean(recent))

    def zscore(self, key: str, value: float) -> float:
        """Distance of ``value`` from the key's historical mean, in standard deviations

        Returns 0.0 when fewer than MIN_POINTS values are known or when the
        history has no finite spread.
        """
        with self._lock:
            values = self._history.get(key)
            if values is None or len(values) < MIN_POINTS:
                return 0.0
            data = np.fromiter(values, dtype=float, count=len(values))

        std = float(data.std())
        if not np.isfinite(std) or std == 0.0:
            return 0.0
        score = abs(float(value) - float(data.mean())) / std
        return score if np.isfinite(score) else 0.0

    def has_history(self, key: str) -> bool:
        with self._lock:
            return key in self._history

    def history(self, key: str) -> list[float]:
        with self._lock:
            return list(self._history.get(key, ()))

    def moving_average(self, key: str) -> float | None:
        with self._lock:
            return self._moving_averages.get(key)

    def baseline(self, name: str) -> float:
        """Static reference value

        Raises:
            KeyError: If no baseline exists under that name
        """
        return self._baselines[name]

    def record_connection(self, source_ip: str, dest_ip: str, protocol: str | None) -> None:
        """Count one observation of traffic between two addresses"""
        with self._lock:
            counters = self._connections[f"{source_ip}_{dest_ip}"]
            if protocol is not None:
                counters[protocol] = counters.get(protocol, 0) + 1
            counters["TOTAL"] = counters.get("TOTAL", 0) + 1

    def connections(self, source_ip: str, dest_ip: str) -> dict[str, int]:
        with self._lock:
            return dict(self._connections.get(f"{source_ip}_{dest_ip}", {}))

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._history.keys())
