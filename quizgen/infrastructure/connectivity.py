"""Network reachability probe.

A cheap synchronous check used before issuing a generation request, so an
offline device gets a clear "connection required" error instead of a
transport timeout.
"""

import logging
import socket
from typing import Callable
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

ConnectivityCheck = Callable[[], bool]


def host_is_resolvable(url: str) -> bool:
    """Check whether the host part of ``url`` resolves.

    Args:
        url: Any URL whose host should be looked up

    Returns:
        True when DNS resolution succeeds
    """
    host = urlparse(url).hostname
    if not host:
        return False

    try:
        socket.getaddrinfo(host, 443, proto=socket.IPPROTO_TCP)
    except OSError as e:
        logger.debug(f"Host {host} is not resolvable: {e}")
        return False
    return True


def make_connectivity_check(url: str) -> ConnectivityCheck:
    """Build a connectivity check bound to the service URL."""

    def check() -> bool:
        return host_is_resolvable(url)

    return check


def always_online() -> bool:
    """Connectivity check for callers that manage reachability themselves."""
    return True
