"""Discovery of voice servers on the local network via mDNS."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from ipaddress import ip_address

from zeroconf import ServiceStateChange, Zeroconf
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

logger = logging.getLogger(__name__)

SERVICE_TYPE = "_mumble._tcp.local."


@dataclass(frozen=True, slots=True)
class DiscoveredServer:
    """A server announced on the local network."""

    name: str
    host: str
    port: int


def _get_first_valid_ip(addresses: list[str]) -> str | None:
    """Get the first valid IP address, filtering out link-local and unspecified addresses."""
    for addr_str in addresses:
        try:
            addr = ip_address(addr_str)
        except ValueError:
            continue
        if not addr.is_link_local and not addr.is_unspecified:
            return addr_str
    return None


def _service_label(name: str) -> str:
    """Strip the service type suffix from an mDNS instance name."""
    suffix = "." + SERVICE_TYPE
    return name[: -len(suffix)] if name.endswith(suffix) else name


async def discover_servers(timeout: float = 3.0) -> list[DiscoveredServer]:
    """
    Browse the local network for voice servers.

    Args:
        timeout: Seconds to listen for announcements.

    Returns:
        Servers found within the timeout, sorted by name.
    """
    loop = asyncio.get_running_loop()
    found: dict[str, DiscoveredServer] = {}
    pending: set[asyncio.Task[None]] = set()
    zc = AsyncZeroconf()

    async def _resolve(zeroconf: Zeroconf, service_type: str, name: str) -> None:
        # Try cache first for faster discovery, fall back to network request
        info = AsyncServiceInfo(service_type, name)
        if not info.load_from_cache(zeroconf):
            await info.async_request(zeroconf, 3000)

        address = _get_first_valid_ip(info.parsed_addresses())
        if address is None:
            logger.debug("No valid addresses found for discovered service %s", name)
            return
        if info.port is None:
            logger.warning("Server discovered at %s has no port, ignoring", address)
            return
        server = DiscoveredServer(name=_service_label(name), host=address, port=info.port)
        found[name] = server
        logger.debug("mDNS discovered server %s at %s:%d", server.name, address, info.port)

    def _on_service_state_change(
        zeroconf: Zeroconf,
        service_type: str,
        name: str,
        state_change: ServiceStateChange,
    ) -> None:
        """Handle mDNS service state callback (called from zeroconf thread)."""
        if state_change in (ServiceStateChange.Added, ServiceStateChange.Updated):

            def _schedule_resolve() -> None:
                task = loop.create_task(_resolve(zeroconf, service_type, name))
                pending.add(task)
                task.add_done_callback(pending.discard)
                task.add_done_callback(lambda t: t.exception() if not t.cancelled() else None)

            loop.call_soon_threadsafe(_schedule_resolve)
        elif state_change is ServiceStateChange.Removed:
            loop.call_soon_threadsafe(lambda: found.pop(name, None))

    browser = AsyncServiceBrowser(
        zc.zeroconf, SERVICE_TYPE, handlers=[_on_service_state_change]
    )
    try:
        await asyncio.sleep(timeout)
        if pending:
            await asyncio.wait(pending, timeout=timeout)
    finally:
        await browser.async_cancel()
        await zc.async_close()
        for task in pending:
            task.cancel()

    return sorted(found.values(), key=lambda server: server.name)
