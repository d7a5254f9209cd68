"""Object screening & registry.

BlueZ exposes far more objects than this client cares about.  Every object
description, from the initial ``GetManagedObjects`` snapshot or a later
``InterfacesAdded`` signal, is screened here and either bound to one of the
four proxy roles or dropped.

Role rules:

* ``Adapter1`` is always the controller.
* ``Device1`` is the target device only if its ``UUIDs`` hold the device UUID.
* ``GattCharacteristic1`` is the notify characteristic if its ``UUID`` is the
  read UUID, otherwise the write characteristic if it is the write UUID.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, TYPE_CHECKING

from bleclient.bt_ref.constants import (
    ADAPTER_INTERFACE,
    DEVICE_INTERFACE,
    GATT_CHARACTERISTIC_INTERFACE,
    DBUS_META_INTERFACES,
    PROP_UUID,
    PROP_UUIDS,
)
from bleclient.bt_ref.utils import uuid_matches
from bleclient.core.config import ClientConfig
from bleclient.core.log import print_and_log, LOG__DEBUG
from bleclient.dbuslayer.bus import TypedValue
from bleclient.dbuslayer.proxy import ProxyRole, ProxyTable, RemoteObjectProxy

if TYPE_CHECKING:  # pragma: no cover
    from bleclient.dbuslayer.client import ClientSession

__all__ = ["screen_uuid", "match_role", "ObjectRegistry"]


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, TypedValue) else value


def screen_uuid(properties: Mapping[str, Any], wanted: str) -> bool:
    """Return True if the ``UUID`` or ``UUIDs`` entry of *properties* holds *wanted*."""
    if not isinstance(properties, Mapping):
        return False
    for key in (PROP_UUID, PROP_UUIDS):
        if key in properties:
            return uuid_matches(_plain(properties[key]), wanted)
    return False


def match_role(config: ClientConfig, interface: str,
               properties: Mapping[str, Any]) -> Optional[ProxyRole]:
    """Map an (interface, properties) description to a role, or None."""
    if interface == ADAPTER_INTERFACE:
        return ProxyRole.CONTROLLER

    if interface == DEVICE_INTERFACE:
        if screen_uuid(properties, config.device_uuid):
            return ProxyRole.DEVICE
        return None

    if interface == GATT_CHARACTERISTIC_INTERFACE:
        if screen_uuid(properties, config.read_uuid):
            return ProxyRole.NOTIFY_CHARACTERISTIC
        if screen_uuid(properties, config.write_uuid):
            return ProxyRole.WRITE_CHARACTERISTIC
    return None


class ObjectRegistry:
    """Screens object descriptions into the session's :class:`ProxyTable`."""

    def __init__(self, client: "ClientSession", proxies: ProxyTable):
        self.client = client
        self.proxies = proxies
        self.proxy_added: Optional[Callable[[RemoteObjectProxy], None]] = None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def parse_managed_objects(self, objects: Any) -> None:
        """Walk a ``GetManagedObjects`` reply (``a{oa{sa{sv}}}``)."""
        if not isinstance(objects, Mapping):
            print_and_log("[DEBUG] GetManagedObjects reply is not a dictionary", LOG__DEBUG)
            return
        for path, interfaces in objects.items():
            self.parse_interfaces(str(path), interfaces)

    def parse_interfaces(self, path: str, interfaces: Any) -> None:
        """Walk the ``a{sa{sv}}`` interface map of one object."""
        if not isinstance(interfaces, Mapping):
            print_and_log(f"[DEBUG] Malformed interface map for {path}", LOG__DEBUG)
            return
        for interface, properties in interfaces.items():
            self.parse_properties(path, str(interface), properties)

    def parse_properties(self, path: str, interface: str,
                         properties: Any) -> Optional[RemoteObjectProxy]:
        if interface in DBUS_META_INTERFACES:
            return None
        if not isinstance(properties, Mapping):
            return None

        role = match_role(self.client.config, interface, properties)
        if role is None:
            return None

        proxy = self.proxies[role]
        proxy.bind(self.client, path, interface)
        proxy.cache.load(properties)
        print_and_log(f"[DEBUG] Bound {role.value} to {path}", LOG__DEBUG)
        self._proxy_added(proxy)
        return proxy

    def interfaces_removed(self, path: str, interfaces: Any) -> None:
        """Unbind any role whose object vanished so it can be re-bound later."""
        if not isinstance(interfaces, (list, tuple)):
            return
        for interface in interfaces:
            proxy = self.proxies.find(str(path), str(interface))
            if proxy is not None:
                proxy.unbind()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _proxy_added(self, proxy: RemoteObjectProxy) -> None:
        if not proxy.pending:
            return
        proxy.pending = False
        if self.proxy_added is not None:
            self.proxy_added(proxy)
