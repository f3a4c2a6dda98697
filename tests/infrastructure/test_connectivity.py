"""Tests for the network reachability probe."""

import socket
from unittest.mock import patch

from quizgen.infrastructure.connectivity import (
    always_online,
    host_is_resolvable,
    make_connectivity_check,
)


class TestHostIsResolvable:
    """Tests for host_is_resolvable."""

    def test_resolvable_host(self):
        """Test that a successful lookup reports online."""
        with patch("quizgen.infrastructure.connectivity.socket.getaddrinfo") as lookup:
            lookup.return_value = [("addr",)]
            assert host_is_resolvable("https://generativelanguage.googleapis.com/v1beta")

        lookup.assert_called_once()
        assert lookup.call_args[0][0] == "generativelanguage.googleapis.com"

    def test_lookup_failure(self):
        """Test that a DNS failure reports offline."""
        with patch(
            "quizgen.infrastructure.connectivity.socket.getaddrinfo",
            side_effect=socket.gaierror("Name or service not known"),
        ):
            assert host_is_resolvable("https://generativelanguage.googleapis.com") is False

    def test_url_without_host(self):
        """Test that a URL without a host is treated as unreachable."""
        assert host_is_resolvable("not a url") is False


class TestConnectivityChecks:
    """Tests for the check factories."""

    def test_bound_check(self):
        """Test that the bound check probes the given URL."""
        with patch(
            "quizgen.infrastructure.connectivity.host_is_resolvable", return_value=False
        ) as probe:
            check = make_connectivity_check("https://example.test")
            assert check() is False

        probe.assert_called_once_with("https://example.test")

    def test_always_online(self):
        """Test the no-op check."""
        assert always_online() is True
