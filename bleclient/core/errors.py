"""Core error classes for bleclient.

Every error carries a ``.code`` from ``bt_ref.constants`` RESULT_* values.
None of them is fatal to a running session: the operation that raised is
abandoned, the error is logged, and the session keeps going.
"""

from __future__ import annotations

import re
from typing import Optional

from bleclient.bt_ref.constants import *

# Regex to pull method & interface names from D-Bus error strings (best-effort)
_METHOD_CALL_INTERFACE_RX = re.compile(
    r"method '(?P<method>[^']+)'[\s\S]*interface '(?P<iface>[^']+)'"
)


class BleClientError(Exception):
    """Base exception for bleclient."""

    def __init__(self, message: str, code: int = RESULT_ERR):
        super().__init__(message)
        self.code = code


class BusCallError(BleClientError):
    """Raised (or handed to an error callback) when the remote returned an error reply."""

    def __init__(self, error_name: str, message: str = "", method: Optional[str] = None):
        text = f"{method or 'D-Bus call'} failed: {error_name}"
        if message:
            text += f" ({message})"
        super().__init__(text, decode_bus_error(error_name, message))
        self.error_name = error_name
        self.error_message = message
        self.method = method


class MalformedReplyError(BleClientError):
    """Raised when reply arguments do not have the expected shape."""

    def __init__(self, method: str, reason: str):
        super().__init__(f"Invalid {method} response: {reason}", RESULT_ERR_MALFORMED_REPLY)
        self.method = method
        self.reason = reason


class PropertyNotFoundError(BleClientError):
    """Raised when a property is not (or not yet) in a proxy's cache."""

    def __init__(self, owner: str, name: str):
        super().__init__(f"Property {owner}->{name} not found", RESULT_ERR_NOT_FOUND)
        self.owner = owner
        self.name = name


class PropertyTypeMismatchError(BleClientError):
    """Raised when a cached property does not have the requested type."""

    def __init__(self, owner: str, name: str, signature: str, expected: str = "b"):
        super().__init__(
            f"Property {owner}->{name} has type '{signature}', expected '{expected}'",
            RESULT_ERR_TYPE_MISMATCH,
        )
        self.owner = owner
        self.name = name
        self.signature = signature
        self.expected = expected


class ProxyNotBoundError(BleClientError):
    """Raised when a method call targets a role with no object bound to it."""

    def __init__(self, role: str):
        super().__init__(f"No object bound for {role}", RESULT_ERR_NOT_BOUND)
        self.role = role


class TransportError(BleClientError):
    """Raised when the bus transport could not build or send a message."""

    def __init__(self, operation: str, reason: Optional[str] = None):
        msg = f"Unable to send {operation}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, RESULT_ERR_TRANSPORT)
        self.operation = operation
        self.reason = reason


class InvalidArgumentError(BleClientError):
    """Raised when invalid arguments are provided."""

    def __init__(self, argument: str, reason: str = None):
        message = f"Invalid argument: {argument}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, RESULT_ERR_BAD_ARGS)
        self.argument = argument
        self.reason = reason


# ---------------------------------------------------------------------------
# BlueZ/D-Bus error name → RESULT_ERR mapping
# ---------------------------------------------------------------------------

_DBUS_ERROR_NAME_MAP = {
    # Generic failures ---------------------------------------------------
    "org.freedesktop.DBus.Error.NoReply": RESULT_ERR_NO_REPLY,
    "org.freedesktop.DBus.Error.UnknownObject": RESULT_ERR_UNKNOWN_OBJECT,
    "org.freedesktop.DBus.Error.UnknownMethod": RESULT_ERR_METHOD_SIGNATURE_NOT_EXIST,
    "org.freedesktop.DBus.Error.ServiceUnknown": RESULT_ERR_UNKNOWN_SERVCE,
    "org.freedesktop.DBus.Error.InvalidArgs": RESULT_ERR_BAD_ARGS,
    # BlueZ specific ------------------------------------------------------
    "org.bluez.Error.NotConnected": RESULT_ERR_NOT_CONNECTED,
    "org.bluez.Error.Failed": RESULT_ERR,
    "org.bluez.Error.NotPermitted": RESULT_ERR_NOT_PERMITTED,
    "org.bluez.Error.NotAuthorized": RESULT_ERR_NOT_AUTHORIZED,
    "org.bluez.Error.NotSupported": RESULT_ERR_NOT_SUPPORTED,
    "org.bluez.Error.InProgress": RESULT_ERR_ACTION_IN_PROGRESS,
    "org.bluez.Error.InvalidArguments": RESULT_ERR_BAD_ARGS,
    "org.bluez.Error.NotReady": RESULT_ERR_WRONG_STATE,
    "org.bluez.Error.NotFound": RESULT_ERR_NOT_FOUND,
}

# Fallback substring search when name not present (BlueZ mixes English strings)
_DBUS_MESSAGE_MAP = {
    "Not Connected": RESULT_ERR_NOT_CONNECTED,
    "Connection Attempt Failed": RESULT_ERR_UNKNOWN_CONNECT_FAILURE,
    "Operation already in progress": RESULT_ERR_ACTION_IN_PROGRESS,
    "Authentication Failed": RESULT_ERR_ACCESS_DENIED,
    "Timeout": RESULT_ERR_NO_REPLY,
    "not permitted": RESULT_ERR_NOT_PERMITTED,
}


def decode_bus_error(name: Optional[str], message: Optional[str] = None) -> int:
    """Return the RESULT_ERR_* constant matching a D-Bus error name/message.

    Falls back to RESULT_ERR on unknown errors.
    """
    if name in _DBUS_ERROR_NAME_MAP:
        return _DBUS_ERROR_NAME_MAP[name]

    msg = (message or "").lower()
    for substr, code in _DBUS_MESSAGE_MAP.items():
        if substr.lower() in msg:
            return code

    if _METHOD_CALL_INTERFACE_RX.search(message or ""):
        return RESULT_ERR_METHOD_SIGNATURE_NOT_EXIST

    return RESULT_ERR


def map_bus_error(name: Optional[str], message: Optional[str] = None,
                  method: Optional[str] = None) -> BusCallError:
    """Return a :class:`BusCallError` for a remote error reply.

    Parameters
    ----------
    name : str
        D-Bus error name, e.g. ``org.bluez.Error.NotReady``
    message : str
        Human readable message carried by the error reply
    method : str
        Method whose call failed, used in the error text
    """
    return BusCallError(name or "org.freedesktop.DBus.Error.Failed", message or "", method)


__all__ = [
    "BleClientError",
    "BusCallError",
    "MalformedReplyError",
    "PropertyNotFoundError",
    "PropertyTypeMismatchError",
    "ProxyNotBoundError",
    "TransportError",
    "InvalidArgumentError",
    "decode_bus_error",
    "map_bus_error",
]
