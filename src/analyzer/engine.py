"""
Multi-pass anomaly detection over a window snapshot.

For every host present in the snapshot the engine:
1. Feeds the host's samples into the baseline store
2. Runs the threshold pass on the most recent system sample
3. Runs the statistical (z-score) pass on every sample
4. Runs the network pass (error rate, port diversity)
5. Runs the pattern pass (connection floods)
6. Runs the ML pass through the configured model
Records under the score threshold are dropped at the end.
"""

from collections import Counter

import structlog

from .baseline import BaselineStore, history_key
from .methods import AnomalyModel, get_model
from .models import AnomalyRecord, DetectionConfig, MetricSample

logger = structlog.get_logger(__name__)

Z_SCORE_THRESHOLD = 3.0  # 3 sigma
Z_SCORE_CEILING = 5.0  # z-score mapped to a score of 1.0
PORT_SCAN_MIN_PAIRS = 20
CONNECTION_FLOOD_MIN_COUNT = 50


class DetectionEngine:
    """Turns window snapshots into anomaly records"""

    def __init__(
        self,
        config: DetectionConfig,
        baseline: BaselineStore | None = None,
        model: AnomalyModel | None = None,
    ):
        self.config = config
        self.baseline = baseline or BaselineStore()
        self.model = model
        if config.use_ml and self.model is None:
            self.model = get_model(config.ml_method, config.ml_model_path)

        self.stats = {
            "cycles": 0,
            "samples_checked": 0,
            "anomalies_emitted": 0,
            "anomalies_filtered": 0,
            "detection_faults": 0,
        }

        logger.info(
            "Detection engine initialized",
            threshold=config.threshold_score,
            statistical=config.use_statistical,
            threshold_pass=config.use_threshold,
            ml=config.use_ml,
        )

    def check(self, window: list[MetricSample]) -> list[AnomalyRecord]:
        """Score a window snapshot

        Never raises: an unexpected fault aborts the whole cycle, is logged and
        counted, and yields an empty result.
        """
        if not window:
            return []

        self.stats["cycles"] += 1

        try:
            candidates: list[AnomalyRecord] = []
            for host, samples in self._group_by_host(window).items():
                self._update_baselines(host, samples)
                candidates.extend(self._detect_host(host, samples))
        except Exception as e:
            self.stats["detection_faults"] += 1
            logger.error("Detection cycle failed", error=str(e), window_size=len(window), exc_info=True)
            return []

        anomalies = [a for a in candidates if a.score >= self.config.threshold_score]

        self.stats["samples_checked"] += len(window)
        self.stats["anomalies_emitted"] += len(anomalies)
        self.stats["anomalies_filtered"] += len(candidates) - len(anomalies)

        if candidates:
            logger.debug(
                "Detection cycle complete",
                candidates=len(candidates),
                emitted=len(anomalies),
                threshold=self.config.threshold_score,
            )
        return anomalies

    def _group_by_host(self, window: list[MetricSample]) -> dict[str, list[MetricSample]]:
        groups: dict[str, list[MetricSample]] = {}
        for sample in window:
            groups.setdefault(sample.host, []).append(sample)
        return groups

    def _detect_host(self, host: str, samples: list[MetricSample]) -> list[AnomalyRecord]:
        anomalies: list[AnomalyRecord] = []

        if self.config.use_threshold:
            anomalies.extend(self._threshold_pass(host, samples))
        if self.config.use_statistical:
            anomalies.extend(self._statistical_pass(host, samples))

        anomalies.extend(self._network_pass(host, samples))
        anomalies.extend(self._pattern_pass(host, samples))

        if self.config.use_ml and self.model is not None:
            anomalies.extend(self.model.detect(host, samples))

        return anomalies

    def _update_baselines(self, host: str, samples: list[MetricSample]) -> None:
        observe = self.baseline.observe

        for m in samples:
            if m.cpu_usage > 0:
                observe(history_key(host, "cpu"), m.cpu_usage)

            if m.memory_percent is not None:
                observe(history_key(host, "mem_percent"), m.memory_percent)

            if m.disk_percent is not None:
                observe(history_key(host, "disk_percent"), m.disk_percent)

            observe(history_key(host, "network_rx"), m.network_rx)
            observe(history_key(host, "network_tx"), m.network_tx)
            observe(history_key(host, "bytes"), m.bytes)
            observe(history_key(host, "packets"), m.packets)

            if m.error_rate is not None:
                observe(history_key(host, "error_rate"), m.error_rate)

            if m.source_ip and m.dest_ip:
                self.baseline.record_connection(m.source_ip, m.dest_ip, m.protocol)

    def _threshold_pass(self, host: str, samples: list[MetricSample]) -> list[AnomalyRecord]:
        """Static limits checked against the latest system sample only"""
        system_samples = [m for m in samples if m.is_system]
        if not system_samples:
            return []

        latest = max(system_samples, key=lambda m: m.timestamp)
        anomalies = []

        if latest.cpu_usage > self.baseline.baseline("cpu_usage"):
            anomalies.append(
                AnomalyRecord(
                    host=host,
                    anomaly_type="HIGH_CPU_USAGE",
                    score=min(1.0, latest.cpu_usage / 100.0),
                    description=f"High CPU usage detected: {latest.cpu_usage:.2f}%",
                    trigger_sample=latest,
                )
            )

        mem_percent = latest.memory_percent
        if mem_percent is not None and mem_percent > self.baseline.baseline("memory_percent"):
            anomalies.append(
                AnomalyRecord(
                    host=host,
                    anomaly_type="HIGH_MEMORY_USAGE",
                    score=min(1.0, mem_percent / 100.0),
                    description=f"High memory usage detected: {mem_percent:.2f}%",
                    trigger_sample=latest,
                )
            )

        disk_percent = latest.disk_percent
        if disk_percent is not None and disk_percent > self.baseline.baseline("disk_percent"):
            anomalies.append(
                AnomalyRecord(
                    host=host,
                    anomaly_type="HIGH_DISK_USAGE",
                    score=min(1.0, disk_percent / 100.0),
                    description=f"High disk usage detected: {disk_percent:.2f}%",
                    trigger_sample=latest,
                )
            )

        return anomalies

    def _statistical_pass(self, host: str, samples: list[MetricSample]) -> list[AnomalyRecord]:
        """Z-score of every sample against the host's history"""
        anomalies = []

        for m in samples:
            checks = []
            if m.cpu_usage > 0:
                checks.append(("cpu", m.cpu_usage, "CPU_STATISTICAL_ANOMALY", "Unusual CPU activity detected"))
            if m.memory_percent is not None:
                checks.append(
                    ("mem_percent", m.memory_percent, "MEMORY_STATISTICAL_ANOMALY", "Unusual memory activity detected")
                )
            if m.network_rx > 0:
                checks.append(("network_rx", m.network_rx, "NETWORK_RX_ANOMALY", "Unusual inbound network traffic"))
            if m.network_tx > 0:
                checks.append(("network_tx", m.network_tx, "NETWORK_TX_ANOMALY", "Unusual outbound network traffic"))

            for metric, value, anomaly_type, label in checks:
                z_score = self.baseline.zscore(history_key(host, metric), value)
                if z_score <= Z_SCORE_THRESHOLD:
                    continue

                anomaly = AnomalyRecord(
                    host=host,
                    anomaly_type=anomaly_type,
                    score=min(1.0, z_score / Z_SCORE_CEILING),
                    description=f"{label} (Z-score: {z_score:.2f})",
                    trigger_sample=m,
                )
                anomaly.add_data("z_score", round(z_score, 4))
                anomalies.append(anomaly)

        return anomalies

    def _network_pass(self, host: str, samples: list[MetricSample]) -> list[AnomalyRecord]:
        """Aggregate error rate and port diversity across the host's samples"""
        anomalies = []

        total_packets = sum(m.packets for m in samples)
        total_errors = sum(m.errors for m in samples)

        if total_packets > 0:
            error_rate = total_errors / total_packets
            if error_rate > self.baseline.baseline("error_rate"):
                evidence = next((m for m in samples if m.errors > 0), samples[0])
                anomalies.append(
                    AnomalyRecord(
                        host=host,
                        anomaly_type="HIGH_ERROR_RATE",
                        score=min(1.0, error_rate * 100),
                        description=f"High network error rate: {error_rate * 100:.2f}%",
                        trigger_sample=evidence,
                    )
                )

        port_pairs = {
            (m.source_port, m.dest_port) for m in samples if m.source_port > 0 or m.dest_port > 0
        }
        if len(port_pairs) > PORT_SCAN_MIN_PAIRS:
            anomaly = AnomalyRecord(
                host=host,
                anomaly_type="PORT_SCAN_DETECTED",
                score=min(1.0, len(port_pairs) / 100.0),
                description=f"Possible port scanning detected ({len(port_pairs)} unique ports)",
                trigger_sample=samples[0],
            )
            anomaly.add_data("unique_ports", len(port_pairs))
            anomalies.append(anomaly)

        return anomalies

    def _pattern_pass(self, host: str, samples: list[MetricSample]) -> list[AnomalyRecord]:
        """Excessive traffic from a single foreign source"""
        anomalies = []

        sources = Counter(m.source_ip for m in samples if m.source_ip and m.source_ip != host)

        for source_ip, count in sources.items():
            if count <= CONNECTION_FLOOD_MIN_COUNT:
                continue

            evidence = next(m for m in samples if m.source_ip == source_ip)
            anomaly = AnomalyRecord(
                host=host,
                anomaly_type="CONNECTION_FLOOD",
                score=min(1.0, count / 100.0),
                description=f"High number of connections from {source_ip}: {count}",
                trigger_sample=evidence,
            )
            anomaly.add_data("source_ip", source_ip)
            anomaly.add_data("connection_count", count)
            anomalies.append(anomaly)

        return anomalies
