"""Connection state machine.

Sequences power-on, discovery, connection, service resolution and notify
setup for the one peripheral of a :class:`ClientSession`.

Events are queued and drained by a single dispatcher.  Some states act as
soon as they are entered ("immediate" states); the dispatcher keeps
advancing with the same event until a state needs to wait for something
external, so one ``CLIENT_READY`` can fall straight through to a scan or a
connect request.  ``PERIPHERAL_DISCONNECTED`` sends the machine back to
``CONTROLLER_ON`` from any state.
"""

from __future__ import annotations

import enum
from collections import deque
from typing import Callable, Deque, Optional

from bleclient.bt_ref.constants import (
    ADAPTER_INTERFACE,
    DEVICE_INTERFACE,
    GATT_CHARACTERISTIC_INTERFACE,
    PROP_POWERED,
    PROP_DISCOVERING,
    PROP_RSSI,
    PROP_CONNECTED,
    PROP_SERVICES_RESOLVED,
    PROP_NOTIFY_ACQUIRED,
)
from bleclient.core.errors import BleClientError
from bleclient.core.log import get_logger, print_and_log, LOG__DEBUG, LOG__SESSION
from bleclient.dbuslayer.client import ClientSession
from bleclient.dbuslayer.notify import NotificationCallback
from bleclient.dbuslayer.proxy import ProxyRole, RemoteObjectProxy

logger = get_logger(__name__)

__all__ = ["ConnectionState", "BleEvent", "ConnectionStateMachine"]


class ConnectionState(enum.Enum):
    INIT = "init"
    CONTROLLER_OFF = "controller-off"
    CONTROLLER_ON = "controller-on"
    SCANNING = "scanning"
    SCAN_STOPPED = "scan-stopped"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ACQUIRING_NOTIFY = "acquiring-notify"
    ACTIVE = "active"


class BleEvent(enum.Enum):
    CLIENT_READY = "client-ready"
    CONTROLLER_POWERED_ON = "controller-powered-on"
    PERIPHERAL_DETECTED = "peripheral-detected"
    SCAN_STOPPED = "scan-stopped"
    SERVICES_RESOLVED = "services-resolved"
    NOTIFY_ACQUIRED = "notify-acquired"
    PERIPHERAL_DISCONNECTED = "peripheral-disconnected"
    PROXY_AVAILABLE = "proxy-available"


# (interface, property, value) -> event.  A value of None matches any value.
_PROPERTY_EVENTS = {
    (DEVICE_INTERFACE, PROP_SERVICES_RESOLVED, True): BleEvent.SERVICES_RESOLVED,
    (DEVICE_INTERFACE, PROP_RSSI, None): BleEvent.PERIPHERAL_DETECTED,
    (DEVICE_INTERFACE, PROP_CONNECTED, False): BleEvent.PERIPHERAL_DISCONNECTED,
    (ADAPTER_INTERFACE, PROP_POWERED, True): BleEvent.CONTROLLER_POWERED_ON,
    (ADAPTER_INTERFACE, PROP_DISCOVERING, False): BleEvent.SCAN_STOPPED,
    (GATT_CHARACTERISTIC_INTERFACE, PROP_NOTIFY_ACQUIRED, True): BleEvent.NOTIFY_ACQUIRED,
}

TransitionListener = Callable[[ConnectionState, ConnectionState, BleEvent], None]


def translate_property(interface: str, name: str, value: Optional[bool]) -> Optional[BleEvent]:
    """Map a live property change to the event it raises, if any."""
    event = _PROPERTY_EVENTS.get((interface, name, value))
    if event is None:
        event = _PROPERTY_EVENTS.get((interface, name, None))
    return event


class ConnectionStateMachine:
    """Drives one :class:`ClientSession` from start-up to an open notify channel.

    Wire it up with::

        machine = ConnectionStateMachine(session, on_notification)
        machine.attach()
        session.initialize(machine.client_ready)
    """

    def __init__(self, session: ClientSession, notification_callback: NotificationCallback):
        self.session = session
        self.notification_callback = notification_callback
        self.on_transition: Optional[TransitionListener] = None

        self._state = ConnectionState.INIT
        self._queue: Deque[BleEvent] = deque()
        self._dispatching = False
        self._power_requested = False

        self._handlers = {
            ConnectionState.INIT: self._state_init,
            ConnectionState.CONTROLLER_OFF: self._state_controller_off,
            ConnectionState.CONTROLLER_ON: self._state_controller_on,
            ConnectionState.SCANNING: self._state_scanning,
            ConnectionState.SCAN_STOPPED: self._state_scan_stopped,
            ConnectionState.CONNECTING: self._state_connecting,
            ConnectionState.CONNECTED: self._state_connected,
            ConnectionState.ACQUIRING_NOTIFY: self._state_acquiring_notify,
            ConnectionState.ACTIVE: self._state_active,
        }

    @property
    def state(self) -> ConnectionState:
        return self._state

    def attach(self) -> None:
        """Register this machine's callbacks on the session."""
        self.session.set_change_callback(self.property_changed)
        self.session.set_proxy_added_callback(self.proxy_available)

    # ------------------------------------------------------------------
    # Event sources
    # ------------------------------------------------------------------
    def client_ready(self, _session: Optional[ClientSession] = None) -> None:
        self.post(BleEvent.CLIENT_READY)

    def proxy_available(self, proxy: RemoteObjectProxy) -> None:
        print_and_log(f"[DEBUG] Proxy available: {proxy.role.value} {proxy.object_path}", LOG__DEBUG)
        self.post(BleEvent.PROXY_AVAILABLE)

    def property_changed(self, interface: str, name: str, value: Optional[bool]) -> None:
        event = translate_property(interface, name, value)
        if event is not None:
            self.post(event)

    def post(self, event: BleEvent) -> None:
        """Queue *event*; drain the queue unless a dispatch is already running."""
        self._queue.append(event)
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._queue:
                self._dispatch(self._queue.popleft())
        finally:
            self._dispatching = False

    # ------------------------------------------------------------------
    # Dispatcher
    # ------------------------------------------------------------------
    def _dispatch(self, event: BleEvent) -> None:
        logger.debug("Event %s in state %s", event.value, self._state.value)

        entering = False
        if event is BleEvent.PERIPHERAL_DISCONNECTED:
            self.session.close_notify()
            self._transition(ConnectionState.CONTROLLER_ON, event)
            entering = True

        while True:
            handler = self._handlers[self._state]
            try:
                next_state = handler(event, entering)
            except BleClientError as e:
                print_and_log(f"[-] {self._state.value}: {e}", LOG__SESSION)
                return
            if next_state is None or next_state is self._state:
                return
            self._transition(next_state, event)
            entering = True

    def _transition(self, new_state: ConnectionState, event: BleEvent) -> None:
        old_state = self._state
        self._state = new_state
        if new_state is ConnectionState.CONTROLLER_OFF:
            self._power_requested = False
        print_and_log(f"[*] State {old_state.value} -> {new_state.value} ({event.value})", LOG__SESSION)
        if self.on_transition is not None:
            self.on_transition(old_state, new_state, event)

    # ------------------------------------------------------------------
    # State handlers: (event, entering) -> next state or None
    # ------------------------------------------------------------------
    def _state_init(self, event, entering):
        if event is BleEvent.CLIENT_READY:
            return ConnectionState.CONTROLLER_OFF
        return None

    def _state_controller_off(self, event, entering):
        if event is BleEvent.CONTROLLER_POWERED_ON:
            return ConnectionState.CONTROLLER_ON
        if not entering and event is not BleEvent.PROXY_AVAILABLE:
            return None

        try:
            powered = self.session.read_boolean_property(ProxyRole.CONTROLLER, PROP_POWERED)
        except BleClientError as e:
            print_and_log(f"[DEBUG] Controller power state unknown: {e}", LOG__DEBUG)
            return None
        if powered:
            return ConnectionState.CONTROLLER_ON
        # One power-on request per visit; Powered=True moves us on
        if not self._power_requested:
            self._power_requested = self.session.power_on()
        return None

    def _state_controller_on(self, event, entering):
        if not entering:
            return None
        try:
            connected = self.session.read_boolean_property(ProxyRole.DEVICE, PROP_CONNECTED)
        except BleClientError:
            connected = False
        if connected:
            return ConnectionState.CONNECTED
        self.session.start_scan()
        return ConnectionState.SCANNING

    def _state_scanning(self, event, entering):
        if event is BleEvent.PERIPHERAL_DETECTED:
            self.session.stop_scan()
            return ConnectionState.SCAN_STOPPED
        return None

    def _state_scan_stopped(self, event, entering):
        if event is BleEvent.SCAN_STOPPED:
            if self.session.connect():
                return ConnectionState.CONNECTING
        return None

    def _state_connecting(self, event, entering):
        if event is BleEvent.SERVICES_RESOLVED:
            return ConnectionState.CONNECTED
        return None

    def _state_connected(self, event, entering):
        if not entering and event is not BleEvent.PROXY_AVAILABLE:
            return None
        if self.session.acquire_notify(self.notification_callback):
            return ConnectionState.ACQUIRING_NOTIFY
        return None

    def _state_acquiring_notify(self, event, entering):
        if event is BleEvent.NOTIFY_ACQUIRED:
            return ConnectionState.ACTIVE
        return None

    def _state_active(self, event, entering):
        return None
