"""BlueZ client session.

One :class:`ClientSession` tracks the BlueZ objects this program cares about
and exposes the handful of operations the connection state machine needs:
power the controller, scan, connect, acquire the notify pipe, and write a
command.

Start-up sequence::

    session = ClientSession(transport, config)
    session.set_change_callback(on_property)   # live property updates
    session.initialize(on_ready)                # ready fires after the snapshot

When ``org.bluez`` appears on the bus the session fetches
``GetManagedObjects`` from the root path and screens the reply.  Objects that
show up later (a device found during discovery, its services after
connecting) arrive through ``InterfacesAdded``.

All methods run on the main-loop thread.  Nothing blocks: calls either expect
no reply or register a reply handler and return immediately.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Sequence, Set

from bleclient.bt_ref.constants import (
    DBUS_OM_IFACE,
    DBUS_PROPERTIES,
    DEFAULT_CALL_TIMEOUT,
    METHOD_GET_MANAGED_OBJECTS,
    METHOD_SET_DISCOVERY_FILTER,
    METHOD_START_DISCOVERY,
    METHOD_STOP_DISCOVERY,
    METHOD_CONNECT,
    METHOD_SET,
    SIGNAL_INTERFACES_ADDED,
    SIGNAL_INTERFACES_REMOVED,
    PROP_POWERED,
    PROP_UUID,
)
from bleclient.bt_ref.utils import uuid_matches
from bleclient.core.config import ClientConfig
from bleclient.core.errors import (
    BleClientError,
    InvalidArgumentError,
    PropertyNotFoundError,
)
from bleclient.core.log import print_and_log, LOG__GENERAL, LOG__DEBUG
from bleclient.dbuslayer.bus import BusHandle, BusTransport, TypedValue
from bleclient.dbuslayer.notify import NotificationCallback, NotificationChannelManager
from bleclient.dbuslayer.properties import ChangeCallback
from bleclient.dbuslayer.proxy import ProxyRole, ProxyTable, RemoteObjectProxy
from bleclient.dbuslayer.screening import ObjectRegistry

__all__ = ["ClientSession"]

ReadyCallback = Callable[["ClientSession"], None]

# Signatures accepted by set_property (D-Bus basic types)
_BASIC_SIGNATURES = frozenset("ybnqiuxtdsog")


class _PendingCall(BusHandle):
    """Bookkeeping for one call awaiting a reply.

    Releasing it cancels the call; a reply that still arrives is dropped.
    """

    __slots__ = ("session", "handle", "done", "cancelled")

    def __init__(self, session: "ClientSession"):
        self.session = session
        self.handle: Optional[BusHandle] = None
        self.done = False
        self.cancelled = False

    def release(self) -> None:
        if self.done or self.cancelled:
            return
        self.cancelled = True
        if self.handle is not None:
            self.handle.release()
        self.session._pending_calls.discard(self)


class ClientSession:
    """Session with the BlueZ daemon for one known peripheral."""

    def __init__(self, transport: BusTransport, config: Optional[ClientConfig] = None):
        self.transport = transport
        self.config = config or ClientConfig()
        self.service = self.config.service
        self.base_path = self.config.base_path
        self.root_path = self.config.root_path

        self.connected = False
        self.get_objects_call: Optional[_PendingCall] = None

        self.proxies = ProxyTable()
        self.registry = ObjectRegistry(self, self.proxies)
        self.notify = NotificationChannelManager(transport, self.config.notify_buffer_size)

        self._ready_callback: Optional[ReadyCallback] = None
        self._ready_fired = False
        self._change_callback: Optional[ChangeCallback] = None
        self._pending_calls: Set[_PendingCall] = set()
        self._watches: list[BusHandle] = []
        self._filter_set = False
        self._initialized = False

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def initialize(self, ready_callback: Optional[ReadyCallback] = None) -> None:
        """Start watching the daemon; *ready_callback* fires after the first snapshot."""
        if self._initialized:
            return
        self._initialized = True
        self._ready_callback = ready_callback

        self._watches.append(
            self.transport.add_service_watch(
                self.service, self._service_connect, self._service_disconnect
            )
        )
        self._watches.append(
            self.transport.add_signal_watch(
                self.service, self.root_path, DBUS_OM_IFACE,
                SIGNAL_INTERFACES_ADDED, self._interfaces_added,
            )
        )
        self._watches.append(
            self.transport.add_signal_watch(
                self.service, self.root_path, DBUS_OM_IFACE,
                SIGNAL_INTERFACES_REMOVED, self._interfaces_removed,
            )
        )

    def shutdown(self) -> None:
        """Close the notify pipe, cancel pending calls, drop every watch and the bus."""
        self.notify.close()

        for pending in list(self._pending_calls):
            pending.release()
        self._pending_calls.clear()
        self.get_objects_call = None

        self.proxies.release_all()
        for watch in self._watches:
            watch.release()
        self._watches.clear()

        self.connected = False
        self._initialized = False
        self.transport.close()
        print_and_log("[*] Client session shut down", LOG__DEBUG)

    def set_change_callback(self, fn: Optional[ChangeCallback]) -> None:
        self._change_callback = fn

    def set_proxy_added_callback(self, fn: Optional[Callable[[RemoteObjectProxy], None]]) -> None:
        self.registry.proxy_added = fn

    def proxy(self, role: ProxyRole) -> RemoteObjectProxy:
        return self.proxies[role]

    def property_changed(self, interface: str, name: str, value: Optional[bool]) -> None:
        """Forward a live cache update to the registered change callback."""
        if self._change_callback is not None:
            self._change_callback(interface, name, value)

    # ------------------------------------------------------------------
    # Bus plumbing
    # ------------------------------------------------------------------
    def call(
        self,
        path: str,
        interface: str,
        method: str,
        args: Sequence[Any] = (),
        signature: Optional[str] = None,
        reply_handler=None,
        error_handler=None,
        timeout: float = DEFAULT_CALL_TIMEOUT,
    ) -> Optional[_PendingCall]:
        """Send a method call to the daemon, tracking it until its reply arrives.

        Without *reply_handler* the message is sent with no reply expected.
        """
        if reply_handler is None:
            self.transport.call(self.service, path, interface, method, args, signature,
                                timeout=timeout)
            return None

        pending = _PendingCall(self)

        def _on_reply(*reply_args):
            if pending.cancelled:
                return
            self._finish(pending)
            reply_handler(*reply_args)

        def _on_error(error):
            if pending.cancelled:
                return
            self._finish(pending)
            if error_handler is not None:
                error_handler(error)
            else:
                print_and_log(f"[-] {method} failed: {error}", LOG__GENERAL)

        handle = self.transport.call(
            self.service, path, interface, method, args, signature,
            reply_handler=_on_reply, error_handler=_on_error, timeout=timeout,
        )
        if not pending.done:
            pending.handle = handle
            self._pending_calls.add(pending)
        return pending

    def _finish(self, pending: _PendingCall) -> None:
        pending.done = True
        self._pending_calls.discard(pending)

    @property
    def pending_call_count(self) -> int:
        return len(self._pending_calls)

    # ------------------------------------------------------------------
    # Service / ObjectManager callbacks
    # ------------------------------------------------------------------
    def _service_connect(self) -> None:
        print_and_log(f"[*] {self.service} connected", LOG__DEBUG)
        self.connected = True
        self._get_managed_objects()

    def _service_disconnect(self) -> None:
        print_and_log(f"[*] {self.service} disconnected", LOG__DEBUG)
        self.connected = False
        if self.get_objects_call is not None:
            self.get_objects_call.release()
            self.get_objects_call = None

    def _get_managed_objects(self) -> None:
        if not self.connected or self.get_objects_call is not None:
            return
        try:
            self.get_objects_call = self.call(
                self.root_path,
                DBUS_OM_IFACE,
                METHOD_GET_MANAGED_OBJECTS,
                reply_handler=self._get_managed_objects_reply,
                error_handler=self._get_managed_objects_error,
            )
        except BleClientError as e:
            print_and_log(f"[-] {METHOD_GET_MANAGED_OBJECTS} not sent: {e}", LOG__GENERAL)
            self.get_objects_call = None
        if self.get_objects_call is not None and self.get_objects_call.done:
            self.get_objects_call = None

    def _get_managed_objects_reply(self, objects=None, *_extra) -> None:
        self.get_objects_call = None
        self.registry.parse_managed_objects(objects)
        self._client_ready()

    def _get_managed_objects_error(self, error: Exception) -> None:
        self.get_objects_call = None
        print_and_log(f"[DEBUG] {METHOD_GET_MANAGED_OBJECTS} failed: {error}", LOG__DEBUG)
        self._client_ready()

    def _client_ready(self) -> None:
        if self._ready_fired:
            return
        self._ready_fired = True
        if self._ready_callback is not None:
            self._ready_callback(self)

    def _interfaces_added(self, path=None, interfaces=None, *_extra) -> None:
        if not isinstance(path, str):
            return
        self.registry.parse_interfaces(path, interfaces)

    def _interfaces_removed(self, path=None, interfaces=None, *_extra) -> None:
        if not isinstance(path, str):
            return
        self.registry.interfaces_removed(path, interfaces)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    def read_boolean_property(self, role: ProxyRole, name: str) -> bool:
        """Return a cached boolean for *role*.

        Raises ``PropertyNotFoundError`` or ``PropertyTypeMismatchError``; both
        mean "unknown", never False.
        """
        return self.proxies[role].cache.get_boolean(name)

    def set_property(self, role: ProxyRole, name: str, value: Any) -> bool:
        """Set a property on the object bound to *role* via ``Properties.Set``."""
        proxy = self.proxies[role]
        if not proxy.is_bound:
            print_and_log(f"[-] Cannot set {name}: no object bound for {role.value}", LOG__GENERAL)
            return False

        typed = TypedValue.wrap(value)
        if typed.signature not in _BASIC_SIGNATURES:
            raise InvalidArgumentError(name, f"type '{typed.signature}' is not a basic type")

        try:
            self.call(
                proxy.object_path,
                DBUS_PROPERTIES,
                METHOD_SET,
                (proxy.interface, name, typed),
                "ssv",
                reply_handler=lambda *_a: None,
                error_handler=lambda e: print_and_log(f"[-] SetProperty failed: {e}", LOG__GENERAL),
            )
        except BleClientError as e:
            print_and_log(f"[-] SetProperty {name} not sent: {e}", LOG__GENERAL)
            return False
        return True

    def power_on(self) -> bool:
        """Power the Bluetooth adapter on."""
        if not self.set_property(ProxyRole.CONTROLLER, PROP_POWERED, TypedValue("b", True)):
            print_and_log("[-] Failed to power adapter on.", LOG__GENERAL)
            return False
        return True

    def scan(self, on: bool) -> bool:
        """Start or stop discovery.  Starting sets the UUID filter first (once)."""
        if on:
            self._discovery_filter()
            method = METHOD_START_DISCOVERY
        else:
            method = METHOD_STOP_DISCOVERY

        try:
            self.proxies[ProxyRole.CONTROLLER].method_call(method)
        except BleClientError as e:
            print_and_log(f"[-] Failed to {'start' if on else 'stop'} discovery: {e}", LOG__GENERAL)
            return False
        return True

    def start_scan(self) -> bool:
        return self.scan(True)

    def stop_scan(self) -> bool:
        return self.scan(False)

    def _discovery_filter(self) -> None:
        if self._filter_set or not self.config.discovery_filter:
            return
        print_and_log("[*] Setting discovery filter now...", LOG__DEBUG)
        try:
            self.proxies[ProxyRole.CONTROLLER].method_call(
                METHOD_SET_DISCOVERY_FILTER,
                ({"UUIDs": [self.config.device_uuid]},),
                "a{sv}",
                reply_handler=lambda *_a: None,
                error_handler=lambda e: print_and_log(f"[-] SetDiscoveryFilter failed: {e}", LOG__GENERAL),
            )
        except BleClientError as e:
            print_and_log(f"[-] Failed to set discovery filter: {e}", LOG__GENERAL)
            return
        self._filter_set = True

    def connect(self) -> bool:
        """Connect to the one device we care about.  True if the request went out."""
        try:
            self.proxies[ProxyRole.DEVICE].method_call(METHOD_CONNECT)
        except BleClientError as e:
            print_and_log(f"[-] Connect not sent: {e}", LOG__GENERAL)
            return False
        return True

    def acquire_notify(self, callback: NotificationCallback) -> bool:
        """Request the notify pipe of the read characteristic.

        The binding is re-validated first: the characteristic must still be
        bound and, if its UUID is cached, it must still be the read UUID.
        """
        proxy = self.proxies[ProxyRole.NOTIFY_CHARACTERISTIC]
        try:
            uuid = proxy.cache.get(PROP_UUID).value
        except PropertyNotFoundError:
            uuid = None
        if uuid is not None and not uuid_matches(uuid, self.config.read_uuid):
            print_and_log(f"[-] Stale notify characteristic binding ({uuid})", LOG__GENERAL)
            return False
        return self.notify.acquire(proxy, callback)

    def write_command(self, value: int) -> bool:
        """Write a 32-bit command to the write characteristic."""
        return self.notify.write(self.proxies[ProxyRole.WRITE_CHARACTERISTIC], value)

    def close_notify(self) -> None:
        self.notify.close()
