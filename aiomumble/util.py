"""Utility functions for aiomumble."""

from __future__ import annotations

import asyncio
import socket
from ipaddress import ip_address


def _is_usable_address(address: str) -> bool:
    """Return True for addresses a client can connect to."""
    try:
        addr = ip_address(address)
    except ValueError:
        return False
    return not addr.is_unspecified


async def resolve_host(
    host: str, port: int, *, loop: asyncio.AbstractEventLoop | None = None
) -> str:
    """Resolve a host name to the first IPv4 or IPv6 stream address.

    Raises:
        OSError: If the name cannot be resolved to a usable address.
    """
    loop = loop or asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    for family, _type, _proto, _canonname, sockaddr in infos:
        if family not in (socket.AF_INET, socket.AF_INET6):
            continue
        address = str(sockaddr[0])
        if _is_usable_address(address):
            return address
    raise OSError(f"No IPv4 or IPv6 address found for {host}")
