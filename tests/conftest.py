"""
Pytest configuration and shared fixtures.
"""

import pytest

from src.analyzer.models import AnomalyRecord, DetectionConfig, MetricKind, MetricSample
from src.analyzer.service import AnalyzerConfig
from src.generator.models import AttackType, GeneratorConfig
from src.response.models import (
    AuditConfig,
    NetworkBlockConfig,
    NotificationConfig,
    ResponseConfig,
)

HOST = "10.0.0.11"
BASE_TS = 1_700_000_000_000


def system_sample(host=HOST, timestamp=BASE_TS, cpu=30.0, memory_percent=40.0, disk_percent=50.0, **kwargs):
    """SYSTEM sample with percentages expressed over round totals."""
    return MetricSample(
        host=host,
        timestamp=timestamp,
        metric_type=MetricKind.SYSTEM,
        cpu_usage=cpu,
        memory_total=1000,
        memory_used=int(memory_percent * 10),
        disk_total=1000,
        disk_used=int(disk_percent * 10),
        **kwargs,
    )


def network_sample(host=HOST, timestamp=BASE_TS, source_ip=None, dest_ip="10.0.0.12", **kwargs):
    """NETWORK sample sent by ``host`` unless another source is given."""
    kwargs.setdefault("packets", 10)
    kwargs.setdefault("bytes", 5000)
    kwargs.setdefault("protocol", "TCP")
    return MetricSample(
        host=host,
        timestamp=timestamp,
        metric_type=MetricKind.NETWORK,
        source_ip=source_ip or host,
        dest_ip=dest_ip,
        **kwargs,
    )


# Analyzer fixtures
@pytest.fixture
def make_system():
    """Factory for SYSTEM samples."""
    return system_sample


@pytest.fixture
def make_network():
    """Factory for NETWORK samples."""
    return network_sample


@pytest.fixture
def detection_config():
    """Default detection configuration."""
    return DetectionConfig()


@pytest.fixture
def low_threshold_config():
    """Detection configuration reporting everything scored 0.5 or above."""
    return DetectionConfig(threshold_score=0.5)


@pytest.fixture
def analyzer_config():
    """Analyzer configuration with every external channel disabled."""
    return AnalyzerConfig(
        kafka_bootstrap_servers="localhost:9092",
        kafka_topic="test-topic",
        kafka_group_id="test-group",
        batch_size=10,
        commit_interval_seconds=1.0,
        sample_interval_seconds=0.05,
        response=ResponseConfig(audit=AuditConfig(enabled=False)),
    )


@pytest.fixture
def sample_message():
    """Wire-format SYSTEM sample."""
    return {
        "host": HOST,
        "timestamp": BASE_TS,
        "metric_type": "SYSTEM",
        "cpu_usage": 42.5,
        "memory_used": 4_000,
        "memory_total": 8_000,
        "disk_used": 100,
        "disk_total": 1_000,
        "network_rx": 2048,
        "network_tx": 1024,
        "extended_metrics": {"os_name": "Linux", "cpu_cores": 8},
    }


# Response fixtures
@pytest.fixture
def response_config():
    """Response configuration with all channels enabled."""
    return ResponseConfig(
        audit=AuditConfig(enabled=True, sink_type="elasticsearch", endpoint="http://siem:9200/security/_doc"),
        notification=NotificationConfig(
            enabled=True,
            smtp_host="mail.test",
            smtp_port=587,
            username="alerts@test",
            password="secret",
            recipient="secops@test",
        ),
        network_block=NetworkBlockConfig(enabled=True, platform="linux"),
        max_workers=2,
        timeout_seconds=5.0,
    )


@pytest.fixture
def cpu_anomaly():
    """HIGH severity CPU anomaly with a system sample as evidence."""
    return AnomalyRecord(
        host=HOST,
        anomaly_type="HIGH_CPU_USAGE",
        score=0.95,
        description="High CPU usage detected: 95.00%",
        trigger_sample=system_sample(cpu=95.0),
    )


@pytest.fixture
def flood_anomaly():
    """CRITICAL connection flood from a foreign address."""
    anomaly = AnomalyRecord(
        host=HOST,
        anomaly_type="CONNECTION_FLOOD",
        score=0.95,
        description="High number of connections from 203.0.113.7: 95",
        trigger_sample=network_sample(source_ip="203.0.113.7", dest_ip=HOST),
    )
    anomaly.add_data("source_ip", "203.0.113.7")
    anomaly.add_data("connection_count", 95)
    return anomaly


# Generator fixtures
@pytest.fixture
def basic_config():
    """Basic generator configuration for testing."""
    return GeneratorConfig(
        kafka_bootstrap_servers="localhost:9092",
        kafka_topic="test-topic",
        num_hosts=3,
        network_samples_per_round=4,
        event_interval_seconds=1.0,
        attack_probability=0.1,
    )


@pytest.fixture
def minimal_config():
    """Minimal configuration for fast tests."""
    return GeneratorConfig(
        num_hosts=1,
        event_interval_seconds=0.1,
        attack_probability=0.0,  # No attacks for predictable tests
    )


@pytest.fixture
def all_attack_types():
    """List of all attack types."""
    return list(AttackType)
