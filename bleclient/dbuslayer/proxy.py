"""Remote object proxies for the four fixed roles.

A proxy is a slot: it exists for the whole session and is (re)bound to
whichever BlueZ object currently plays its role.  Binding subscribes to the
object's ``PropertiesChanged`` signal; rebinding drops the old subscription
first so a role never tracks two objects at once.
"""

from __future__ import annotations

import enum
from typing import Any, Dict, Iterator, Optional, Sequence, TYPE_CHECKING

from bleclient.bt_ref.constants import (
    DBUS_PROPERTIES,
    SIGNAL_PROPERTIES_CHANGED,
    PROP_POWERED,
    PROP_DISCOVERING,
    PROP_RSSI,
    PROP_CONNECTED,
    PROP_SERVICES_RESOLVED,
    PROP_UUIDS,
    PROP_UUID,
    PROP_NOTIFY_ACQUIRED,
)
from bleclient.core.errors import ProxyNotBoundError
from bleclient.core.log import print_and_log, LOG__DEBUG
from bleclient.dbuslayer.bus import BusHandle
from bleclient.dbuslayer.properties import PropertyCache

if TYPE_CHECKING:  # pragma: no cover
    from bleclient.dbuslayer.client import ClientSession

__all__ = ["ProxyRole", "ROLE_PROPERTIES", "RemoteObjectProxy", "ProxyTable"]


class ProxyRole(enum.Enum):
    CONTROLLER = "controller"
    DEVICE = "device"
    NOTIFY_CHARACTERISTIC = "notify-characteristic"
    WRITE_CHARACTERISTIC = "write-characteristic"


# Properties recorded per role; everything else is dropped on arrival.
ROLE_PROPERTIES: Dict[ProxyRole, tuple] = {
    ProxyRole.CONTROLLER: (PROP_POWERED, PROP_DISCOVERING),
    ProxyRole.DEVICE: (PROP_RSSI, PROP_CONNECTED, PROP_SERVICES_RESOLVED, PROP_UUIDS),
    ProxyRole.NOTIFY_CHARACTERISTIC: (PROP_UUID, PROP_NOTIFY_ACQUIRED),
    ProxyRole.WRITE_CHARACTERISTIC: (PROP_UUID,),
}


class RemoteObjectProxy:
    """One (object path, interface) binding plus its property cache."""

    def __init__(self, role: ProxyRole):
        self.role = role
        self.object_path = ""
        self.interface = ""
        self.cache = PropertyCache(ROLE_PROPERTIES[role], owner=role.value)
        self.pending = False
        self.watch: Optional[BusHandle] = None
        self.client: Optional["ClientSession"] = None

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------
    @property
    def is_bound(self) -> bool:
        return bool(self.object_path and self.interface)

    def bind(self, client: "ClientSession", object_path: str, interface: str) -> None:
        """Attach this slot to *object_path*/*interface*, replacing any prior binding."""
        if self.is_bound:
            print_and_log(
                f"[DEBUG] Rebinding {self.role.value}: {self.object_path} -> {object_path}",
                LOG__DEBUG,
            )
        self._release_watch()
        self.cache.clear()

        self.client = client
        self.object_path = object_path
        self.interface = interface
        self.cache.owner = object_path
        self.cache.interface = interface
        self.cache.change_callback = client.property_changed

        self.watch = client.transport.add_signal_watch(
            client.service,
            object_path,
            DBUS_PROPERTIES,
            SIGNAL_PROPERTIES_CHANGED,
            self._properties_changed,
        )
        self.pending = True

    def unbind(self) -> None:
        print_and_log(f"[DEBUG] Unbinding {self.role.value} ({self.object_path})", LOG__DEBUG)
        self._release_watch()
        self.cache.clear()
        self.cache.owner = self.role.value
        self.cache.interface = ""
        self.object_path = ""
        self.interface = ""
        self.pending = False

    def _release_watch(self) -> None:
        if self.watch is not None:
            try:
                self.watch.release()
            finally:
                self.watch = None

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------
    def _properties_changed(self, interface=None, changed=None, invalidated=None, *_extra):
        """Feed a PropertiesChanged signal for our interface into the cache."""
        if interface != self.interface:
            return
        if not isinstance(changed, dict):
            print_and_log(
                f"[DEBUG] Ignoring malformed PropertiesChanged on {self.object_path}",
                LOG__DEBUG,
            )
            return
        self.cache.update(changed)
        for name in invalidated or ():
            if isinstance(name, str):
                self.cache.discard(name)

    # ------------------------------------------------------------------
    # Method calls
    # ------------------------------------------------------------------
    def method_call(
        self,
        method: str,
        args: Sequence[Any] = (),
        signature: Optional[str] = None,
        reply_handler=None,
        error_handler=None,
    ):
        """Invoke *method* on the bound object through the owning session."""
        if not self.is_bound or self.client is None:
            raise ProxyNotBoundError(self.role.value)
        return self.client.call(
            self.object_path,
            self.interface,
            method,
            args,
            signature,
            reply_handler=reply_handler,
            error_handler=error_handler,
            timeout=self.client.config.method_call_timeout,
        )

    def __repr__(self):  # pragma: no cover – debugging aid
        return f"<RemoteObjectProxy {self.role.value} {self.object_path or '-'} {self.interface or '-'}>"


class ProxyTable:
    """The four proxies, indexed by role."""

    def __init__(self):
        self._proxies = {role: RemoteObjectProxy(role) for role in ProxyRole}

    def __getitem__(self, role: ProxyRole) -> RemoteObjectProxy:
        return self._proxies[role]

    def __iter__(self) -> Iterator[RemoteObjectProxy]:
        return iter(self._proxies.values())

    def find(self, object_path: str, interface: str) -> Optional[RemoteObjectProxy]:
        for proxy in self:
            if proxy.object_path == object_path and proxy.interface == interface:
                return proxy
        return None

    def release_all(self) -> None:
        for proxy in self:
            proxy._release_watch()
