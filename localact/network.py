"""Discovery of the machine's preferred outbound address."""

from __future__ import annotations

import ipaddress
import socket


def outbound_ip() -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    """Return the local address used for outbound traffic.

    A UDP socket is connected (no packets are sent) so the operating system
    picks the route and, with it, the local address.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as conn:
        conn.connect(("8.8.8.8", 80))
        return ipaddress.ip_address(conn.getsockname()[0])