"""
Shared pytest fixtures for bleclient tests.

``FakeTransport`` stands in for the system bus: it records every call and
watch, and lets a test play the part of the BlueZ daemon by delivering
replies, errors, signals and fd events by hand.
"""

import os
import tempfile

# Keep log files and config lookups out of the real home directory; must run
# before bleclient.core.config is imported.
_SANDBOX = tempfile.mkdtemp(prefix="bleclient-tests-")
os.environ["XDG_DATA_HOME"] = os.path.join(_SANDBOX, "data")
os.environ["XDG_CONFIG_HOME"] = os.path.join(_SANDBOX, "config")

from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402

from bleclient.bt_ref.constants import (  # noqa: E402
    ADAPTER_INTERFACE,
    DEVICE_INTERFACE,
    GATT_CHARACTERISTIC_INTERFACE,
    INTROSPECT_INTERFACE,
    DBUS_PROPERTIES,
    UUID_DEVICE,
    UUID_CHARACTERISTIC_RD,
    UUID_CHARACTERISTIC_WR,
)
from bleclient.core.config import ClientConfig  # noqa: E402
from bleclient.core.errors import map_bus_error  # noqa: E402
from bleclient.dbuslayer.bus import BusHandle, BusTransport, TypedValue  # noqa: E402
from bleclient.dbuslayer.client import ClientSession  # noqa: E402

ADAPTER_PATH = "/org/bluez/hci0"
DEVICE_PATH = ADAPTER_PATH + "/dev_C0_FF_EE_00_01_31"
NOTIFY_PATH = DEVICE_PATH + "/service0010/char0011"
WRITE_PATH = DEVICE_PATH + "/service0010/char0014"


# ─────────────────────────────────────────────────────────────────────────────
# Fake bus
# ─────────────────────────────────────────────────────────────────────────────


class FakeHandle(BusHandle):
    """Handle that records whether it was released."""

    def __init__(self, on_release=None):
        self.released = False
        self._on_release = on_release

    def release(self):
        if self.released:
            return
        self.released = True
        if self._on_release is not None:
            self._on_release()


class FakeCall(SimpleNamespace):
    """One recorded method call."""


class FakeTransport(BusTransport):
    """Recording BusTransport driven by the test."""

    def __init__(self):
        self.calls = []
        self.signal_watches = []
        self.service_watches = []
        self.fd_watches = {}
        self.closed = False
        self.fail_sends = set()

    # BusTransport -----------------------------------------------------------
    def call(self, service, path, interface, method, args=(), signature=None,
             reply_handler=None, error_handler=None, timeout=-1):
        if method in self.fail_sends:
            from bleclient.core.errors import TransportError

            raise TransportError(method, "out of memory")
        call = FakeCall(
            service=service, path=path, interface=interface, method=method,
            args=tuple(args), signature=signature, reply_handler=reply_handler,
            error_handler=error_handler, timeout=timeout, handle=None,
        )
        self.calls.append(call)
        if reply_handler is None:
            return None
        call.handle = FakeHandle()
        return call.handle

    def add_signal_watch(self, service, path, interface, member, handler):
        watch = SimpleNamespace(service=service, path=path, interface=interface,
                                member=member, handler=handler)
        watch.handle = FakeHandle(lambda: self.signal_watches.remove(watch))
        self.signal_watches.append(watch)
        return watch.handle

    def add_service_watch(self, service, on_connect, on_disconnect):
        watch = SimpleNamespace(service=service, on_connect=on_connect,
                                on_disconnect=on_disconnect)
        watch.handle = FakeHandle(lambda: self.service_watches.remove(watch))
        self.service_watches.append(watch)
        return watch.handle

    def add_fd_watch(self, fd, on_readable, on_hangup):
        handle = FakeHandle(lambda: self.fd_watches.pop(fd, None))
        self.fd_watches[fd] = SimpleNamespace(on_readable=on_readable,
                                              on_hangup=on_hangup, handle=handle)
        return handle

    def close(self):
        self.closed = True

    # Test helpers -------------------------------------------------------------
    def methods(self, name=None):
        """Recorded calls, optionally only those of method *name*."""
        return [c for c in self.calls if name is None or c.method == name]

    def last(self, name):
        calls = self.methods(name)
        assert calls, f"no {name} call recorded"
        return calls[-1]

    def reply(self, call, *args):
        call.reply_handler(*args)

    def fail(self, call, error_name="org.bluez.Error.Failed", message=""):
        call.error_handler(map_bus_error(error_name, message, call.method))

    def emit(self, path, interface, member, *args):
        for watch in list(self.signal_watches):
            if watch.interface != interface or watch.member != member:
                continue
            if watch.path is not None and watch.path != path:
                continue
            watch.handler(*args)

    def properties_changed(self, path, interface, changed, invalidated=()):
        self.emit(path, DBUS_PROPERTIES, "PropertiesChanged", interface, changed, list(invalidated))

    def service_up(self):
        for watch in list(self.service_watches):
            watch.on_connect()

    def service_down(self):
        for watch in list(self.service_watches):
            watch.on_disconnect()

    def readable(self, fd):
        watch = self.fd_watches[fd]
        keep = watch.on_readable(fd)
        if not keep:
            self.fd_watches.pop(fd, None)
        return keep

    def hangup(self, fd):
        watch = self.fd_watches.pop(fd)
        watch.on_hangup(fd)


# ─────────────────────────────────────────────────────────────────────────────
# BlueZ object descriptions
# ─────────────────────────────────────────────────────────────────────────────


def build_managed_objects(powered=False, connected=False, device=True, characteristics=True):
    """A GetManagedObjects reply for one adapter, our device and its two characteristics."""
    objects = {
        ADAPTER_PATH: {
            INTROSPECT_INTERFACE: {},
            ADAPTER_INTERFACE: {
                "Address": TypedValue("s", "00:1A:7D:DA:71:13"),
                "Powered": TypedValue("b", powered),
                "Discovering": TypedValue("b", False),
            },
        },
    }
    if device:
        objects[DEVICE_PATH] = {
            DEVICE_INTERFACE: {
                "Name": TypedValue("s", "LED"),
                "UUIDs": TypedValue("as", [UUID_DEVICE.upper()]),
                "Connected": TypedValue("b", connected),
                "ServicesResolved": TypedValue("b", connected),
            },
        }
    if characteristics:
        objects[NOTIFY_PATH] = {
            GATT_CHARACTERISTIC_INTERFACE: {
                "UUID": TypedValue("s", UUID_CHARACTERISTIC_RD),
                "NotifyAcquired": TypedValue("b", False),
                "Flags": TypedValue("as", ["notify"]),
            },
        }
        objects[WRITE_PATH] = {
            GATT_CHARACTERISTIC_INTERFACE: {
                "UUID": TypedValue("s", UUID_CHARACTERISTIC_WR),
                "Flags": TypedValue("as", ["write-without-response"]),
            },
        }
    return objects


@pytest.fixture
def paths():
    """Object paths used by the fake BlueZ tree."""
    return SimpleNamespace(adapter=ADAPTER_PATH, device=DEVICE_PATH,
                           notify=NOTIFY_PATH, write=WRITE_PATH)


@pytest.fixture
def managed_objects():
    """Builder for GetManagedObjects replies."""
    return build_managed_objects


@pytest.fixture
def config():
    return ClientConfig()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def session(transport, config):
    """Initialised session whose daemon is on the bus, snapshot not yet answered."""
    s = ClientSession(transport, config)
    s.ready_calls = []
    s.initialize(s.ready_calls.append)
    transport.service_up()
    return s


@pytest.fixture
def loaded_session(session, transport, managed_objects):
    """Factory: answer the pending snapshot with a fake BlueZ tree."""

    def _load(**kwargs):
        transport.reply(transport.last("GetManagedObjects"), managed_objects(**kwargs))
        return session

    return _load


@pytest.fixture
def pipe():
    """A real os.pipe(); both ends are closed afterwards if still open."""
    read_fd, write_fd = os.pipe()
    yield read_fd, write_fd
    for fd in (read_fd, write_fd):
        try:
            os.close(fd)
        except OSError:
            pass
