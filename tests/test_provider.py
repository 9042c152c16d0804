"""Tests for the psutil metrics provider (mocked psutil)."""

from unittest.mock import MagicMock, patch

import psutil
import pytest

from metricast.core.provider import MetricsProvider


@pytest.fixture
def provider():
    with patch("metricast.core.provider.psutil.cpu_percent"):
        return MetricsProvider()


class TestMetricsProvider:
    @patch("metricast.core.provider.psutil.cpu_percent")
    def test_init_primes_cpu(self, mock_cpu):
        MetricsProvider()
        mock_cpu.assert_called_once_with(interval=None, percpu=True)

    @patch("metricast.core.provider.psutil.cpu_percent")
    def test_init_tolerates_priming_failure(self, mock_cpu):
        mock_cpu.side_effect = psutil.AccessDenied()
        MetricsProvider()

    @patch("metricast.core.provider.psutil.cpu_percent")
    def test_cpu_percentages(self, mock_cpu, provider):
        mock_cpu.return_value = [1.0, 2.5]
        assert provider.cpu_percentages() == [1.0, 2.5]

    @patch("metricast.core.provider.psutil.virtual_memory")
    def test_memory_stats(self, mock_mem, provider):
        mock_mem.return_value = MagicMock(total=16, free=4, used=10)
        m = provider.memory_stats()
        assert (m.total, m.free, m.used) == (16, 4, 10)

    @patch("metricast.core.provider.psutil.disk_usage")
    def test_disk_usage(self, mock_disk, provider):
        mock_disk.return_value = MagicMock(total=100, free=25, used=75)
        d = provider.disk_usage("/srv")
        mock_disk.assert_called_once_with("/srv")
        assert (d.total, d.free, d.used) == (100, 25, 75)

    @patch("metricast.core.provider.psutil.disk_usage")
    def test_disk_usage_error_propagates(self, mock_disk, provider):
        mock_disk.side_effect = FileNotFoundError("/missing")
        with pytest.raises(OSError):
            provider.disk_usage("/missing")

    @patch("metricast.core.provider.psutil.net_io_counters")
    def test_network_counters(self, mock_net, provider):
        mock_net.return_value = {
            "wlan0": MagicMock(bytes_sent=3, bytes_recv=4),
            "eth0": MagicMock(bytes_sent=1, bytes_recv=2),
        }
        counters = provider.network_counters()
        mock_net.assert_called_once_with(pernic=True)
        assert [(c.name, c.bytes_sent, c.bytes_recv) for c in counters] == [
            ("wlan0", 3, 4),
            ("eth0", 1, 2),
        ]
