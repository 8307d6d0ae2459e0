"""
Tests for analyzer data models.
"""

import json

import pytest

from src.analyzer.models import (
    AnomalyRecord,
    DetectionConfig,
    MalformedSampleError,
    MetricKind,
    MetricSample,
    Severity,
    decode_message,
)


class TestSeverity:
    """Tests for score to severity mapping."""

    @pytest.mark.parametrize(
        "score,expected",
        [
            (0.0, Severity.LOW),
            (0.49999, Severity.LOW),
            (0.5, Severity.MEDIUM),
            (0.69999, Severity.MEDIUM),
            (0.7, Severity.HIGH),
            (0.89999, Severity.HIGH),
            (0.9, Severity.CRITICAL),
            (1.0, Severity.CRITICAL),
        ],
    )
    def test_boundaries(self, score, expected):
        """Lower bounds of each severity are inclusive."""
        assert Severity.from_score(score) == expected


class TestDecodeMessage:
    """Tests for raw payload decoding."""

    def test_decode_bytes(self):
        """Test decoding a UTF-8 JSON object."""
        assert decode_message(b'{"host": "a"}') == {"host": "a"}

    def test_decode_dict_passthrough(self):
        """Test that already decoded payloads are returned as is."""
        payload = {"host": "a"}
        assert decode_message(payload) is payload

    def test_invalid_json(self):
        """Test that garbage is reported as malformed."""
        with pytest.raises(MalformedSampleError):
            decode_message(b"not json")

    def test_non_object(self):
        """Test that a JSON array is rejected."""
        with pytest.raises(MalformedSampleError, match="not a JSON object"):
            decode_message("[1, 2, 3]")


class TestMetricSample:
    """Tests for MetricSample."""

    def test_from_message(self, sample_message):
        """Test building a sample from the wire format."""
        sample = MetricSample.from_message(sample_message)

        assert sample.host == "10.0.0.11"
        assert sample.metric_type == MetricKind.SYSTEM
        assert sample.cpu_usage == 42.5
        assert sample.memory_percent == 50.0
        assert sample.disk_percent == 10.0
        assert sample.network_rx == 2048
        assert sample.extended_metrics["os_name"] == "Linux"
        assert sample.is_system
        assert not sample.is_network

    def test_lowercase_metric_type(self, sample_message):
        """Test that the metric type is case insensitive."""
        sample_message["metric_type"] = "network"
        assert MetricSample.from_message(sample_message).metric_type == MetricKind.NETWORK

    def test_iso_timestamp(self, sample_message):
        """Test that ISO-8601 timestamps are converted to epoch milliseconds."""
        sample_message["timestamp"] = "2023-11-14T22:13:20Z"
        assert MetricSample.from_message(sample_message).timestamp == 1_700_000_000_000

    def test_missing_timestamp_defaults_to_now(self, sample_message):
        """Test that a sample without timestamp is stamped on arrival."""
        del sample_message["timestamp"]
        sample = MetricSample.from_message(sample_message)
        assert sample.timestamp > 1_700_000_000_000

    def test_missing_host(self, sample_message):
        """Test that a sample without host is malformed."""
        del sample_message["host"]
        with pytest.raises(MalformedSampleError, match="host"):
            MetricSample.from_message(sample_message)

    def test_unknown_metric_type(self, sample_message):
        """Test that an unknown metric type is malformed."""
        sample_message["metric_type"] = "DISK"
        with pytest.raises(MalformedSampleError):
            MetricSample.from_message(sample_message)

    def test_non_numeric_field(self, sample_message):
        """Test that a non-numeric counter is malformed."""
        sample_message["cpu_usage"] = "high"
        with pytest.raises(MalformedSampleError, match="cpu_usage"):
            MetricSample.from_message(sample_message)

    def test_bool_field_rejected(self, sample_message):
        """Test that booleans are not accepted as numbers."""
        sample_message["packets"] = True
        with pytest.raises(MalformedSampleError):
            MetricSample.from_message(sample_message)

    @pytest.mark.parametrize("value", ["inf", "-Infinity", "nan", float("inf"), float("nan")])
    def test_non_finite_field_rejected(self, sample_message, value):
        """Test that infinities and NaN are malformed rather than recorded."""
        sample_message["cpu_usage"] = value
        with pytest.raises(MalformedSampleError, match="cpu_usage"):
            MetricSample.from_message(sample_message)

    def test_overflowing_counter_rejected(self):
        """Test that a counter too large for a float is malformed."""
        payload = decode_message(b'{"host": "h", "metric_type": "NETWORK", "bytes": 1e400}')
        with pytest.raises(MalformedSampleError, match="bytes"):
            MetricSample.from_message(payload)

    def test_non_object_payload(self):
        """Test that a list payload is malformed."""
        with pytest.raises(MalformedSampleError):
            MetricSample.from_message([1, 2])

    def test_to_message_is_json_serializable(self, sample_message):
        """Test that the wire format can be encoded and read back."""
        sample = MetricSample.from_message(sample_message)
        encoded = json.dumps(sample.to_message())

        assert MetricSample.from_message(decode_message(encoded)) == sample

    def test_percentages_without_totals(self, make_network):
        """Test that derived percentages are absent without totals."""
        sample = make_network(packets=0)

        assert sample.memory_percent is None
        assert sample.disk_percent is None
        assert sample.error_rate is None

    def test_error_rate(self, make_network):
        """Test error rate over packets."""
        assert make_network(packets=200, errors=5).error_rate == 0.025

    def test_combine(self, make_system, make_network):
        """Test merging a system and a network sample."""
        system = make_system(timestamp=1000, cpu=80.0, extended_metrics={"os_name": "Linux"})
        network = make_network(timestamp=2000, packets=7, extended_metrics={"iface": "eth0"})

        combined = MetricSample.combine(system, network)

        assert combined.metric_type == MetricKind.COMBINED
        assert combined.timestamp == 2000
        assert combined.cpu_usage == 80.0
        assert combined.packets == 7
        assert combined.extended_metrics == {"os_name": "Linux", "iface": "eth0"}
        assert combined.is_system and combined.is_network

    def test_summary(self, make_system):
        """Test one-line rendering of a system sample."""
        summary = make_system(cpu=95.0).summary()

        assert summary.startswith("MetricSample{")
        assert "cpu=95.00%" in summary


class TestAnomalyRecord:
    """Tests for AnomalyRecord."""

    def test_score_is_clamped(self):
        """Test that scores stay within [0, 1]."""
        assert AnomalyRecord(host="h", anomaly_type="X", score=1.7).score == 1.0
        assert AnomalyRecord(host="h", anomaly_type="X", score=-0.2).score == 0.0

    def test_unique_ids(self):
        """Test that every record gets its own id."""
        first = AnomalyRecord(host="h", anomaly_type="X", score=0.5)
        second = AnomalyRecord(host="h", anomaly_type="X", score=0.5)
        assert first.id != second.id

    def test_add_data_refuses_overwrite(self):
        """Test that extension entries are append only."""
        record = AnomalyRecord(host="h", anomaly_type="X", score=0.5)
        record.add_data("ip_blocked", "1.2.3.4")

        with pytest.raises(KeyError):
            record.add_data("ip_blocked", "5.6.7.8")
        assert record.get_data("ip_blocked") == "1.2.3.4"

    def test_is_urgent(self):
        """Test that only HIGH and CRITICAL are urgent."""
        assert AnomalyRecord(host="h", anomaly_type="X", score=0.7).is_urgent
        assert not AnomalyRecord(host="h", anomaly_type="X", score=0.69).is_urgent

    def test_to_report(self, cpu_anomaly):
        """Test the operator report layout."""
        cpu_anomaly.add_data("z_score", 4.2)
        report = cpu_anomaly.to_report()

        assert report.startswith("=== SECURITY ANOMALY DETECTED ===")
        assert "Type: HIGH_CPU_USAGE" in report
        assert "Severity: CRITICAL" in report
        assert "Trigger Metrics:" in report
        assert "  z_score: 4.2" in report

    def test_str(self, cpu_anomaly):
        """Test the short rendering used in logs."""
        assert "type='HIGH_CPU_USAGE'" in str(cpu_anomaly)


class TestDetectionConfig:
    """Tests for DetectionConfig validation."""

    def test_defaults(self, detection_config):
        """Test default values."""
        assert detection_config.window_size == 100
        assert detection_config.threshold_score == 0.7
        assert detection_config.use_statistical is True
        assert detection_config.use_ml is False

    @pytest.mark.parametrize(
        "kwargs",
        [{"window_size": 0}, {"threshold_score": 1.5}, {"threshold_score": -0.1}],
    )
    def test_invalid_values(self, kwargs):
        """Test that invalid values are rejected at construction."""
        with pytest.raises(ValueError):
            DetectionConfig(**kwargs)
