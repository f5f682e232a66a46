"""Resolution of `.internal` names for machines on the local network."""

from __future__ import annotations

import ipaddress
import logging
import threading
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

INTERNAL_SUFFIX = ".internal"
LOCAL_6PN_HOST = "fly-local-6pn.internal"
LOCAL_6PN_ADDRESS = ipaddress.IPv4Address("172.17.0.1")


class InternalDnsResolver:
    """Maps app names and machine ids to the addresses of their machines.

    Understands `<app>.internal`, `<machine-id>.vm.<app>.internal` and the
    special `fly-local-6pn.internal` name.
    """

    def __init__(self) -> None:
        self._app_ips: dict[str, list[IPAddress]] = {}
        self._machine_ips: dict[str, IPAddress] = {}
        self._lock = threading.RLock()

    def register_machine(self, app_name: str, machine_id: str, ip: str | IPAddress) -> None:
        """Make the machine resolvable under its app and its own name."""
        address = ipaddress.ip_address(ip)
        logger.info(
            "Registering machine %s for app %s with IP %s", machine_id, app_name, address
        )
        with self._lock:
            self._machine_ips[machine_id] = address
            ips = self._app_ips.setdefault(app_name, [])
            if address not in ips:
                ips.append(address)

    def unregister_machine(self, app_name: str, machine_id: str) -> None:
        """Forget a machine; the app name stops resolving with its last machine."""
        logger.info("Unregistering machine %s for app %s", machine_id, app_name)
        with self._lock:
            address = self._machine_ips.pop(machine_id, None)
            if address is None:
                return
            ips = self._app_ips.get(app_name)
            if ips is None:
                return
            ips[:] = [existing for existing in ips if existing != address]
            if not ips:
                del self._app_ips[app_name]

    def resolve(self, hostname: str) -> list[IPAddress]:
        """Return the addresses for a `.internal` name; empty when unknown."""
        logger.debug("Resolving hostname: %s", hostname)

        if hostname == LOCAL_6PN_HOST:
            return [LOCAL_6PN_ADDRESS]

        if not hostname.endswith(INTERNAL_SUFFIX):
            logger.warning("Failed to resolve hostname: %s", hostname)
            return []

        with self._lock:
            app_name = hostname.removesuffix(INTERNAL_SUFFIX)
            ips = self._app_ips.get(app_name)
            if ips is not None:
                logger.debug("Resolved %s to %s", hostname, ips)
                return list(ips)

            parts = hostname.split(".")
            if len(parts) >= 4 and parts[-3] == "vm":
                machine_id = parts[0]
                address = self._machine_ips.get(machine_id)
                if address is not None:
                    logger.debug("Resolved machine %s to %s", machine_id, address)
                    return [address]

        logger.warning("Failed to resolve hostname: %s", hostname)
        return []

    def list_registrations(self) -> dict[str, list[IPAddress]]:
        """Return a copy of every app and the addresses registered for it."""
        with self._lock:
            return {app: list(ips) for app, ips in self._app_ips.items()}


def extract_container_ip(networks: Any) -> IPAddress | None:
    """Return the first usable address in a container's network settings.

    Networks are examined in order of their names.
    """
    if not isinstance(networks, Mapping):
        return None
    for name in sorted(networks):
        network = networks[name]
        if not isinstance(network, Mapping):
            continue
        value = network.get("IPAddress")
        if not isinstance(value, str) or not value:
            continue
        try:
            return ipaddress.ip_address(value)
        except ValueError:
            continue
    return None