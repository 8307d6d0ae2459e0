"""
Response side of the pipeline: audit, operator notification and network blocking.
"""

from .audit import AuditChannel, build_audit_document
from .blocking import BlockOutcome, NetworkBlocker
from .dispatcher import ResponseDispatcher, is_network_anomaly, select_block_target
from .models import (
    AuditConfig,
    NetworkBlockConfig,
    NotificationConfig,
    ResponseAck,
    ResponseConfig,
)
from .notify import NotificationChannel

__all__ = [
    "AuditChannel",
    "AuditConfig",
    "BlockOutcome",
    "NetworkBlockConfig",
    "NetworkBlocker",
    "NotificationChannel",
    "NotificationConfig",
    "ResponseAck",
    "ResponseConfig",
    "ResponseDispatcher",
    "build_audit_document",
    "is_network_anomaly",
    "select_block_target",
]
