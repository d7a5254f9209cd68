"""System-bus transport built on dbus-python and the GLib main loop.

This is the only module that imports ``dbus`` or ``gi``.  Outgoing
:class:`TypedValue` arguments become dbus-python values with
``variant_level=1``; incoming dbus-python values are turned back into plain
Python, with every variant becoming a :class:`TypedValue`.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

import dbus
import dbus.lowlevel
import dbus.mainloop.glib
from gi.repository import GLib

from bleclient.core.errors import TransportError, map_bus_error
from bleclient.core.log import get_logger, print_and_log, LOG__DEBUG
from bleclient.dbuslayer.bus import BusHandle, BusTransport, TypedValue

logger = get_logger(__name__)

__all__ = ["DBusGLibTransport", "dbus_to_python", "python_to_dbus", "dbus_signature"]


# ---------------------------------------------------------------------------
# Value conversion
# ---------------------------------------------------------------------------

# Order matters: dbus.Boolean and dbus.Byte are int subclasses.
_BASIC_TYPES = (
    (dbus.Boolean, "b"),
    (dbus.Byte, "y"),
    (dbus.Int16, "n"),
    (dbus.UInt16, "q"),
    (dbus.Int32, "i"),
    (dbus.UInt32, "u"),
    (dbus.Int64, "x"),
    (dbus.UInt64, "t"),
    (dbus.Double, "d"),
    (dbus.ObjectPath, "o"),
    (dbus.Signature, "g"),
    (dbus.String, "s"),
    (dbus.UnixFd, "h"),
)

_CONSTRUCTORS = {
    "b": dbus.Boolean,
    "y": dbus.Byte,
    "n": dbus.Int16,
    "q": dbus.UInt16,
    "i": dbus.Int32,
    "u": dbus.UInt32,
    "x": dbus.Int64,
    "t": dbus.UInt64,
    "d": dbus.Double,
    "s": dbus.String,
    "o": dbus.ObjectPath,
    "g": dbus.Signature,
}


def dbus_signature(data) -> str:
    """Signature of a dbus-python value as it travelled on the wire."""
    for dbus_type, signature in _BASIC_TYPES:
        if isinstance(data, dbus_type):
            return signature
    if isinstance(data, dbus.ByteArray):
        return "ay"
    if isinstance(data, dbus.Dictionary):
        return "a{%s}" % (data.signature or "sv")
    if isinstance(data, dbus.Array):
        return "a" + (data.signature or "v")
    if isinstance(data, dbus.Struct):
        return "(%s)" % (data.signature or "")
    return "v"


def dbus_to_python(data):
    """Convert a dbus-python value; variants become :class:`TypedValue`."""
    if getattr(data, "variant_level", 0) > 0:
        return TypedValue(dbus_signature(data), _unwrap(data))
    return _unwrap(data)


def _unwrap(data):
    if isinstance(data, dbus.Boolean):
        return bool(data)
    if isinstance(data, dbus.UnixFd):
        # Ownership of the descriptor moves to the caller
        return data.take()
    if isinstance(data, (dbus.ObjectPath, dbus.Signature, dbus.String)):
        return str(data)
    if isinstance(data, dbus.Double):
        return float(data)
    if isinstance(data, (dbus.ByteArray, bytes)):
        return bytes(data)
    if isinstance(data, int):
        return int(data)
    if isinstance(data, dict):
        return {dbus_to_python(key): dbus_to_python(value) for key, value in data.items()}
    if isinstance(data, dbus.Struct):
        return tuple(dbus_to_python(value) for value in data)
    if isinstance(data, list):
        return [dbus_to_python(value) for value in data]
    return data


def python_to_dbus(value):
    """Convert a call argument; a :class:`TypedValue` becomes a one-level variant."""
    if isinstance(value, TypedValue):
        return _typed_to_dbus(value.signature, value.value)
    if isinstance(value, dict):
        return {key: python_to_dbus(item) for key, item in value.items()}
    if isinstance(value, list):
        return [python_to_dbus(item) for item in value]
    return value


def _typed_to_dbus(signature: str, value):
    constructor = _CONSTRUCTORS.get(signature)
    if constructor is not None:
        return constructor(value, variant_level=1)
    if signature == "ay":
        return dbus.ByteArray(bytes(value), variant_level=1)
    if signature.startswith("a{") and signature.endswith("}"):
        return dbus.Dictionary(
            {k: python_to_dbus(v) for k, v in value.items()},
            signature=signature[2:-1],
            variant_level=1,
        )
    if signature.startswith("a"):
        return dbus.Array([python_to_dbus(v) for v in value], signature=signature[1:], variant_level=1)
    raise TransportError("variant", f"unsupported signature '{signature}'")


# ---------------------------------------------------------------------------
# Handles
# ---------------------------------------------------------------------------

class _PendingCallHandle(BusHandle):
    def __init__(self, pending):
        self._pending = pending

    def release(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None


class _SignalMatchHandle(BusHandle):
    def __init__(self, match):
        self._match = match

    def release(self) -> None:
        if self._match is not None:
            self._match.remove()
            self._match = None


class _SourceHandle(BusHandle):
    def __init__(self):
        self.source_id: Optional[int] = None

    def forget(self) -> None:
        self.source_id = None

    def release(self) -> None:
        if self.source_id is not None:
            GLib.source_remove(self.source_id)
            self.source_id = None


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class DBusGLibTransport(BusTransport):
    """:class:`BusTransport` over the system bus, dispatched by the GLib main loop.

    Parameters
    ----------
    bus : dbus.bus.BusConnection, optional
        Connection to use.  When omitted a private system-bus connection is
        opened and closed again by :meth:`close`.
    """

    def __init__(self, bus=None):
        dbus.mainloop.glib.DBusGMainLoop(set_as_default=True)
        self._owns_bus = bus is None
        self.bus = bus if bus is not None else dbus.SystemBus(private=True)

    def _require_bus(self, operation: str):
        if self.bus is None:
            raise TransportError(operation, "bus connection closed")
        return self.bus

    def call(
        self,
        service: str,
        path: str,
        interface: str,
        method: str,
        args: Sequence[Any] = (),
        signature: Optional[str] = None,
        reply_handler=None,
        error_handler=None,
        timeout: float = -1,
    ) -> Optional[BusHandle]:
        bus = self._require_bus(method)
        dbus_args = tuple(python_to_dbus(arg) for arg in args)

        if reply_handler is None:
            try:
                msg = dbus.lowlevel.MethodCallMessage(service, path, interface, method)
                if dbus_args:
                    msg.append(*dbus_args, signature=signature)
                msg.set_no_reply(True)
                bus.send_message(msg)
            except (dbus.exceptions.DBusException, TypeError, ValueError) as e:
                raise TransportError(method, str(e)) from e
            print_and_log(f"[DEBUG] {interface}.{method} -> {path} (no reply)", LOG__DEBUG)
            return None

        def _reply(*reply_args):
            reply_handler(*(dbus_to_python(a) for a in reply_args))

        def _error(exc):
            name = exc.get_dbus_name() if hasattr(exc, "get_dbus_name") else None
            message = exc.get_dbus_message() if hasattr(exc, "get_dbus_message") else str(exc)
            error = map_bus_error(name, message, method)
            if error_handler is not None:
                error_handler(error)
            else:
                logger.debug("Unhandled error reply: %s", error)

        try:
            pending = bus.call_async(
                service,
                path,
                interface,
                method,
                signature,
                dbus_args,
                _reply,
                _error,
                timeout=float(timeout),
            )
        except (dbus.exceptions.DBusException, TypeError, ValueError) as e:
            raise TransportError(method, str(e)) from e
        print_and_log(f"[DEBUG] {interface}.{method} -> {path}", LOG__DEBUG)
        return _PendingCallHandle(pending)

    def add_signal_watch(self, service, path, interface, member, handler) -> BusHandle:
        bus = self._require_bus(member)

        def _signal(*signal_args):
            handler(*(dbus_to_python(a) for a in signal_args))

        match = bus.add_signal_receiver(
            _signal,
            signal_name=member,
            dbus_interface=interface,
            bus_name=service,
            path=path,
        )
        return _SignalMatchHandle(match)

    def add_service_watch(self, service, on_connect, on_disconnect) -> BusHandle:
        bus = self._require_bus("NameOwnerChanged")
        present = {"owner": False}

        def _owner_changed(owner):
            if owner and not present["owner"]:
                present["owner"] = True
                on_connect()
            elif not owner and present["owner"]:
                present["owner"] = False
                on_disconnect()

        match = bus.watch_name_owner(service, _owner_changed)
        return _SignalMatchHandle(match)

    def add_fd_watch(
        self,
        fd: int,
        on_readable: Callable[[int], bool],
        on_hangup: Callable[[int], None],
    ) -> BusHandle:
        handle = _SourceHandle()

        def _io_event(source, condition):
            if condition & GLib.IO_IN:
                if on_readable(source):
                    return True
                handle.forget()
                return False
            # IO_HUP / IO_ERR without pending data
            handle.forget()
            on_hangup(source)
            return False

        handle.source_id = GLib.io_add_watch(
            fd,
            GLib.PRIORITY_DEFAULT,
            GLib.IO_IN | GLib.IO_HUP | GLib.IO_ERR,
            _io_event,
        )
        return handle

    def close(self) -> None:
        if self.bus is None:
            return
        if self._owns_bus:
            self.bus.close()
        self.bus = None
        print_and_log("[DEBUG] System bus connection released", LOG__DEBUG)
