"""
Tests for the network-block channel.
"""

import subprocess
import threading
import time
from unittest.mock import MagicMock, patch

import pytest

from src.response.blocking import PF_TABLE, BlockOutcome, NetworkBlocker
from src.response.models import NetworkBlockConfig


def completed(returncode=0, stderr=""):
    return MagicMock(returncode=returncode, stdout="", stderr=stderr)


class TestNetworkBlocker:
    """Tests for NetworkBlocker class."""

    @patch("src.response.blocking.subprocess.run")
    def test_block_twice_invokes_once(self, mock_run):
        """Test that a second block of the same address is a no-op success."""
        mock_run.return_value = completed()
        blocker = NetworkBlocker(NetworkBlockConfig(enabled=True, platform="generic-script"))

        assert blocker.block("1.2.3.4") is True
        assert blocker.block("1.2.3.4") is True

        mock_run.assert_called_once()
        assert blocker.is_blocked("1.2.3.4")

    @patch("src.response.blocking.subprocess.run")
    def test_linux_commands(self, mock_run):
        """Test inbound and outbound iptables rules."""
        mock_run.return_value = completed()
        blocker = NetworkBlocker(NetworkBlockConfig(enabled=True, platform="linux"), timeout_seconds=7.0)

        assert blocker.block("1.2.3.4") is True

        commands = [c.args[0] for c in mock_run.call_args_list]
        assert commands == [
            ["iptables", "-A", "INPUT", "-s", "1.2.3.4", "-j", "DROP"],
            ["iptables", "-A", "OUTPUT", "-d", "1.2.3.4", "-j", "DROP"],
        ]
        assert 0 < mock_run.call_args.kwargs["timeout"] <= 7.0

    @patch("src.response.blocking.subprocess.run")
    def test_windows_commands(self, mock_run):
        """Test named inbound and outbound firewall rules."""
        mock_run.return_value = completed()
        blocker = NetworkBlocker(NetworkBlockConfig(enabled=True, platform="windows"))

        blocker.block("1.2.3.4")

        first, second = [c.args[0] for c in mock_run.call_args_list]
        assert first[0] == "netsh"
        assert "name=PIPELINE_BLOCK_1_2_3_4_IN" in first
        assert "dir=out" in second
        assert "remoteip=1.2.3.4" in second

    @patch("src.response.blocking.subprocess.run")
    def test_macos_commands(self, mock_run):
        """Test that pf gets the address added to its table."""
        mock_run.return_value = completed()
        blocker = NetworkBlocker(NetworkBlockConfig(enabled=True, platform="macos"))

        blocker.block("1.2.3.4")

        mock_run.assert_called_once()
        assert mock_run.call_args.args[0] == ["pfctl", "-t", PF_TABLE, "-T", "add", "1.2.3.4"]

    @patch("src.response.blocking.subprocess.run")
    def test_script_command(self, mock_run):
        """Test that the fallback script receives the address."""
        mock_run.return_value = completed()
        config = NetworkBlockConfig(enabled=True, platform="generic-script", block_script="/opt/block.sh")

        NetworkBlocker(config).block("1.2.3.4")

        assert mock_run.call_args.args[0] == ["/opt/block.sh", "1.2.3.4"]

    @patch("src.response.blocking.subprocess.run")
    def test_unknown_platform_uses_script(self, mock_run):
        """Test that unknown platforms fall back to the script."""
        mock_run.return_value = completed()
        config = NetworkBlockConfig(enabled=True, platform="solaris", block_script="/opt/block.sh")

        assert NetworkBlocker(config).block("1.2.3.4") is True
        assert mock_run.call_args.args[0] == ["/opt/block.sh", "1.2.3.4"]

    @patch("src.response.blocking.subprocess.run")
    def test_script_not_configured(self, mock_run):
        """Test that a missing script fails without running anything."""
        config = NetworkBlockConfig(enabled=True, platform="generic-script", block_script="")

        assert NetworkBlocker(config).block("1.2.3.4") is False
        mock_run.assert_not_called()

    @pytest.mark.parametrize("address", ["not-an-ip", "::1", "999.1.1.1", ""])
    @patch("src.response.blocking.subprocess.run")
    def test_rejects_non_ipv4(self, mock_run, address):
        """Test that only IPv4 addresses are blocked."""
        blocker = NetworkBlocker(NetworkBlockConfig(enabled=True))

        assert blocker.block(address) is False
        mock_run.assert_not_called()

    @patch("src.response.blocking.subprocess.run")
    def test_disabled(self, mock_run):
        """Test that a disabled channel runs nothing."""
        assert NetworkBlocker(NetworkBlockConfig(enabled=False)).block("1.2.3.4") is False
        mock_run.assert_not_called()

    @patch("src.response.blocking.subprocess.run")
    def test_nonzero_exit_is_not_recorded(self, mock_run):
        """Test that a failed command leaves the address unblocked so it can be retried."""
        mock_run.return_value = completed(returncode=1, stderr="Permission denied")
        blocker = NetworkBlocker(NetworkBlockConfig(enabled=True, platform="macos"))

        assert blocker.block("1.2.3.4") is False
        assert not blocker.is_blocked("1.2.3.4")

        mock_run.return_value = completed()
        assert blocker.block("1.2.3.4") is True
        assert mock_run.call_count == 2

    @patch("src.response.blocking.subprocess.run")
    def test_timeout(self, mock_run):
        """Test that a hung command is reported as failure."""
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="pfctl", timeout=30)
        blocker = NetworkBlocker(NetworkBlockConfig(enabled=True, platform="macos"))

        assert blocker.block("1.2.3.4") is False

    @patch("src.response.blocking.subprocess.run")
    def test_missing_binary(self, mock_run):
        """Test that a missing firewall binary is reported as failure."""
        mock_run.side_effect = FileNotFoundError("iptables")
        blocker = NetworkBlocker(NetworkBlockConfig(enabled=True, platform="linux"))

        assert blocker.block("1.2.3.4") is False

    @patch("src.response.blocking.subprocess.run")
    def test_concurrent_blocks_invoke_once(self, mock_run):
        """Test that racing workers block an address only once."""
        mock_run.return_value = completed()
        blocker = NetworkBlocker(NetworkBlockConfig(enabled=True, platform="macos"))
        results = []

        threads = [
            threading.Thread(target=lambda: results.append(blocker.block("1.2.3.4")))
            for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == [True] * 8
        mock_run.assert_called_once()

    @patch("src.response.blocking.subprocess.run")
    def test_blocked_addresses_is_a_copy(self, mock_run):
        """Test that the blocked table cannot be mutated from outside."""
        mock_run.return_value = completed()
        blocker = NetworkBlocker(NetworkBlockConfig(enabled=True, platform="macos"))
        blocker.block("1.2.3.4")

        blocked = blocker.blocked_addresses()
        blocked.clear()

        assert list(blocker.blocked_addresses()) == ["1.2.3.4"]

    @patch("src.response.blocking.subprocess.run")
    def test_attempt_outcomes(self, mock_run):
        """Test that only the call running the commands reports BLOCKED."""
        mock_run.return_value = completed()
        blocker = NetworkBlocker(NetworkBlockConfig(enabled=True, platform="macos"))

        assert blocker.attempt("1.2.3.4") == BlockOutcome.BLOCKED
        assert blocker.attempt("1.2.3.4") == BlockOutcome.ALREADY_BLOCKED
        assert blocker.attempt("not-an-ip") == BlockOutcome.SKIPPED

        mock_run.return_value = completed(returncode=1)
        assert blocker.attempt("5.6.7.8") == BlockOutcome.FAILED

    @patch("src.response.blocking.subprocess.run")
    def test_timeout_covers_every_command(self, mock_run):
        """Test that later commands only get what is left of the overall timeout."""
        timeouts = []

        def slow_success(*args, **kwargs):
            timeouts.append(kwargs["timeout"])
            time.sleep(0.05)
            return completed()

        mock_run.side_effect = slow_success
        blocker = NetworkBlocker(NetworkBlockConfig(enabled=True, platform="linux"), timeout_seconds=5.0)

        assert blocker.block("1.2.3.4") is True
        assert len(timeouts) == 2
        assert timeouts[1] < timeouts[0] <= 5.0

    @patch("src.response.blocking.subprocess.run")
    def test_exhausted_timeout_fails_block(self, mock_run):
        """Test that a block overrunning its timeout fails instead of running the next command."""

        def overrun(*args, **kwargs):
            time.sleep(0.3)
            return completed()

        mock_run.side_effect = overrun
        blocker = NetworkBlocker(NetworkBlockConfig(enabled=True, platform="linux"), timeout_seconds=0.2)

        assert blocker.block("1.2.3.4") is False
        mock_run.assert_called_once()
        assert not blocker.is_blocked("1.2.3.4")

    @patch("src.response.blocking.subprocess.run")
    def test_different_addresses_block_in_parallel(self, mock_run):
        """Test that blocks of unrelated addresses do not wait for each other."""
        both_running = threading.Barrier(2, timeout=5)

        def rendezvous(*args, **kwargs):
            both_running.wait()
            return completed()

        mock_run.side_effect = rendezvous
        blocker = NetworkBlocker(NetworkBlockConfig(enabled=True, platform="macos"))
        results = {}

        threads = [
            threading.Thread(target=lambda a=address: results.update({a: blocker.block(a)}))
            for address in ("1.2.3.4", "5.6.7.8")
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == {"1.2.3.4": True, "5.6.7.8": True}
        assert mock_run.call_count == 2
