"""
D-Bus layer for bleclient.
Proxies, property caches, object screening and the notify channel for the one
BlueZ peripheral this client talks to.
"""

from .bus import BusTransport, BusHandle, TypedValue
from .proxy import ProxyRole, RemoteObjectProxy
from .client import ClientSession

__all__ = [
    "BusTransport",
    "BusHandle",
    "TypedValue",
    "ProxyRole",
    "RemoteObjectProxy",
    "ClientSession",
    "DBusGLibTransport",
]

# Lazy-load the dbus-python transport so the rest of the layer imports without it
def __getattr__(name):
    if name == "DBusGLibTransport":
        from .transport import DBusGLibTransport
        return DBusGLibTransport
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
