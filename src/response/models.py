"""
Configuration and acknowledgement models for the response channels.
"""

from dataclasses import dataclass, field

AUDIT_SINK_TYPES = ("elasticsearch", "splunk", "custom")
BLOCK_PLATFORMS = ("linux", "windows", "macos", "generic-script")


@dataclass
class AuditConfig:
    """Where audit documents are posted"""

    enabled: bool = True
    sink_type: str = "elasticsearch"  # 'elasticsearch', 'splunk' or 'custom'
    endpoint: str = "http://localhost:9200/security/_doc"
    api_key: str = ""


@dataclass
class NotificationConfig:
    """SMTP transport for operator alerts (use env/secrets for credentials)"""

    enabled: bool = False
    smtp_host: str = "localhost"
    smtp_port: int = 587
    username: str = ""
    password: str = ""
    recipient: str = ""
    use_tls: bool = True


@dataclass
class NetworkBlockConfig:
    """How offending addresses get blocked"""

    enabled: bool = False
    platform: str = "linux"  # 'linux', 'windows', 'macos' or 'generic-script'
    block_script: str = "scripts/block_ip.sh"


@dataclass
class ResponseConfig:
    """Settings for the response dispatcher and its channels"""

    audit: AuditConfig = field(default_factory=AuditConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)
    network_block: NetworkBlockConfig = field(default_factory=NetworkBlockConfig)

    max_workers: int = 3
    timeout_seconds: float = 30.0  # Hard limit on every external call

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.audit.sink_type not in AUDIT_SINK_TYPES:
            raise ValueError(
                f"Unknown audit sink '{self.audit.sink_type}'. Available: {', '.join(AUDIT_SINK_TYPES)}"
            )


@dataclass(frozen=True)
class ResponseAck:
    """Combined outcome of handling one anomaly"""

    audited: bool
    notified: bool
    blocked: bool

    def summary(self) -> str:
        return f"audited={self.audited}, notified={self.notified}, blocked={self.blocked}"
