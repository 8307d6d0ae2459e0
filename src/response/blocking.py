"""
Network-block channel: denies traffic to and from an offending IPv4 address.

The blocking mechanism is picked by a platform tag from a dispatch table.
Each variant only builds the commands to run; the runner and the blocked
table are shared.
"""

import ipaddress
import subprocess
import threading
import time
from enum import Enum

import structlog

from .models import NetworkBlockConfig

logger = structlog.get_logger(__name__)

PF_TABLE = "pipeline_blocked"  # pf.conf needs: block drop quick from <pipeline_blocked> to any


def _linux_commands(address: str, script: str) -> list[list[str]]:
    return [
        ["iptables", "-A", "INPUT", "-s", address, "-j", "DROP"],
        ["iptables", "-A", "OUTPUT", "-d", address, "-j", "DROP"],
    ]


def _windows_commands(address: str, script: str) -> list[list[str]]:
    rule = "PIPELINE_BLOCK_" + address.replace(".", "_")
    return [
        ["netsh", "advfirewall", "firewall", "add", "rule", f"name={rule}_IN", "dir=in", "action=block", f"remoteip={address}"],
        ["netsh", "advfirewall", "firewall", "add", "rule", f"name={rule}_OUT", "dir=out", "action=block", f"remoteip={address}"],
    ]


def _macos_commands(address: str, script: str) -> list[list[str]]:
    return [["pfctl", "-t", PF_TABLE, "-T", "add", address]]


def _script_commands(address: str, script: str) -> list[list[str]]:
    if not script:
        return []
    return [[script, address]]


PLATFORMS = {
    "linux": _linux_commands,
    "windows": _windows_commands,
    "macos": _macos_commands,
    "generic-script": _script_commands,
}


class BlockOutcome(str, Enum):
    """Result of one block attempt"""

    BLOCKED = "BLOCKED"  # this call installed the rules
    ALREADY_BLOCKED = "ALREADY_BLOCKED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"  # disabled, not IPv4 or nothing to run


class NetworkBlocker:
    """Blocks addresses at most once per process lifetime"""

    def __init__(self, config: NetworkBlockConfig, timeout_seconds: float = 30.0):
        self.config = config
        self.timeout_seconds = timeout_seconds
        self._commands_for = PLATFORMS.get(config.platform.lower(), _script_commands)
        self._blocked: dict[str, float] = {}
        self._in_flight: dict[str, threading.Event] = {}
        self._lock = threading.Lock()

        if config.platform.lower() not in PLATFORMS:
            logger.warning(
                "Unknown block platform, using script fallback",
                platform=config.platform,
                script=config.block_script,
            )

    def block(self, address: str) -> bool:
        """Deny traffic to and from ``address``

        Returns:
            True if the address is blocked, including when it already was
        """
        return self.attempt(address) in (BlockOutcome.BLOCKED, BlockOutcome.ALREADY_BLOCKED)

    def attempt(self, address: str) -> BlockOutcome:
        """Block ``address`` within one overall timeout and report what happened

        Different addresses are blocked in parallel. A caller racing another
        block of the same address waits for it instead of running the commands
        again.
        """
        if not self.config.enabled:
            logger.info("Network blocking is disabled", address=address)
            return BlockOutcome.SKIPPED

        try:
            ipaddress.IPv4Address(address)
        except ValueError:
            logger.warning("Refusing to block a non-IPv4 address", address=address)
            return BlockOutcome.SKIPPED

        commands = self._commands_for(address, self.config.block_script)
        if not commands:
            logger.warning("No block script configured", platform=self.config.platform)
            return BlockOutcome.SKIPPED

        deadline = time.monotonic() + self.timeout_seconds

        while True:
            with self._lock:
                if address in self._blocked:
                    logger.info("Address already blocked", address=address)
                    return BlockOutcome.ALREADY_BLOCKED
                pending = self._in_flight.get(address)
                if pending is None:
                    done = threading.Event()
                    self._in_flight[address] = done
                    break

            if not pending.wait(max(0.0, deadline - time.monotonic())):
                logger.error("Timed out waiting for a concurrent block", address=address)
                return BlockOutcome.FAILED

        success = False
        try:
            logger.info("Blocking address", address=address, platform=self.config.platform)
            success = all(self._run(command, deadline) for command in commands)
        finally:
            with self._lock:
                if success:
                    self._blocked[address] = time.time()
                del self._in_flight[address]
            done.set()

        if not success:
            return BlockOutcome.FAILED
        logger.info("Address blocked", address=address)
        return BlockOutcome.BLOCKED

    def is_blocked(self, address: str) -> bool:
        with self._lock:
            return address in self._blocked

    def blocked_addresses(self) -> dict[str, float]:
        """Blocked address -> epoch seconds of the first successful block"""
        with self._lock:
            return dict(self._blocked)

    def _run(self, command: list[str], deadline: float) -> bool:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.error("Block timeout exhausted", command=command[0], timeout=self.timeout_seconds)
            return False

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=remaining,
            )
        except subprocess.TimeoutExpired:
            logger.error("Block command timed out", command=command[0], timeout=self.timeout_seconds)
            return False
        except OSError as e:
            logger.error("Block command could not be started", command=command[0], error=str(e))
            return False

        if result.returncode != 0:
            logger.warning(
                "Block command failed",
                command=command[0],
                exit_code=result.returncode,
                stderr=result.stderr.strip()[:200],
            )
            return False
        return True
