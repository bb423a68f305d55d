"""
Hardware inventory collection.

Builds the lookup payload sent to Ironic from the physical network
interfaces of this machine.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import psutil
import structlog

logger = structlog.get_logger()

LOOKUP_PAYLOAD_VERSION = "2"
SYS_CLASS_NET = "/sys/class/net"


class InventoryError(Exception):
    """Raised when the hardware inventory cannot be collected."""
    pass


@dataclass(slots=True)
class InterfaceInfo:
    """A physical network interface."""

    name: str
    mac_address: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "mac_address": self.mac_address}


@dataclass(slots=True)
class HardwareInventory:
    """Hardware reported during lookup."""

    interfaces: List[InterfaceInfo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"interfaces": [iface.to_dict() for iface in self.interfaces]}


@dataclass(slots=True)
class LookupPayload:
    """Body of the Ironic lookup call."""

    inventory: HardwareInventory
    version: str = LOOKUP_PAYLOAD_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "inventory": self.inventory.to_dict(),
        }


def interface_is_device(name: str, sys_class_net: str = SYS_CLASS_NET) -> bool:
    """
    Check whether an interface is backed by a physical device.

    Virtual interfaces (loopback, bridges, bonds, ...) have no ``device``
    entry under sysfs.

    Raises:
        InventoryError: On any filesystem error other than "not found".
    """
    try:
        os.stat(os.path.join(sys_class_net, name, "device"))
    except FileNotFoundError:
        return False
    except OSError as e:
        raise InventoryError(f"Error checking device for interface {name}: {e}") from e
    return True


def list_interfaces() -> List[Tuple[str, str]]:
    """
    List (name, mac_address) for every interface known to the OS.

    The MAC address is empty when the interface has no link-layer address.
    """
    try:
        addrs = psutil.net_if_addrs()
    except (OSError, psutil.Error) as e:
        raise InventoryError(f"Error listing network interfaces: {e}") from e

    interfaces = []
    for name, if_addrs in addrs.items():
        mac = next(
            (addr.address for addr in if_addrs if addr.family == psutil.AF_LINK),
            "",
        )
        interfaces.append((name, mac or ""))
    return interfaces


def build_lookup_payload(sys_class_net: str = SYS_CLASS_NET) -> LookupPayload:
    """
    Build the lookup payload from the physical network interfaces.

    Raises:
        InventoryError: If interfaces cannot be listed or inspected.
    """
    interface_infos = []

    for name, mac in list_interfaces():
        if interface_is_device(name, sys_class_net):
            interface_infos.append(InterfaceInfo(name=name, mac_address=mac))
        else:
            logger.debug("interface_skipped", interface=name, reason="no_device")

    payload = LookupPayload(inventory=HardwareInventory(interfaces=interface_infos))
    logger.debug("lookup_payload_built", payload=payload.to_dict())
    return payload
