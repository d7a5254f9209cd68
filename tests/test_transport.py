"""Tests for dbus-python value conversion in the system-bus transport."""

import os

import pytest

dbus = pytest.importorskip("dbus")
pytest.importorskip("gi")

from bleclient.dbuslayer.bus import TypedValue  # noqa: E402
from bleclient.dbuslayer.transport import (  # noqa: E402
    dbus_signature,
    dbus_to_python,
    python_to_dbus,
)


class TestDbusToPython:
    """Incoming values."""

    def test_plain_values(self):
        assert dbus_to_python(dbus.String("a")) == "a"
        assert type(dbus_to_python(dbus.String("a"))) is str
        assert dbus_to_python(dbus.Boolean(False)) is False
        assert dbus_to_python(dbus.UInt16(23)) == 23
        assert dbus_to_python(dbus.ObjectPath("/org/bluez")) == "/org/bluez"

    def test_variants_keep_signature(self):
        assert dbus_to_python(dbus.Boolean(True, variant_level=1)) == TypedValue("b", True)
        assert dbus_to_python(dbus.Int16(-60, variant_level=1)) == TypedValue("n", -60)
        assert dbus_to_python(dbus.Byte(1, variant_level=1)) == TypedValue("y", 1)

    def test_property_dictionary(self):
        props = dbus.Dictionary({
            "UUIDs": dbus.Array(["abc"], signature="s", variant_level=1),
            "Connected": dbus.Boolean(True, variant_level=1),
        }, signature="sv")
        assert dbus_to_python(props) == {
            "UUIDs": TypedValue("as", ["abc"]),
            "Connected": TypedValue("b", True),
        }

    def test_unix_fd_is_taken(self):
        read_fd, write_fd = os.pipe()
        try:
            fd = dbus_to_python(dbus.types.UnixFd(read_fd))
            assert isinstance(fd, int)
            os.close(fd)
        finally:
            os.close(read_fd)
            os.close(write_fd)

    def test_signatures(self):
        assert dbus_signature(dbus.UInt32(1)) == "u"
        assert dbus_signature(dbus.Dictionary({}, signature="sv")) == "a{sv}"
        assert dbus_signature(dbus.ByteArray(b"\x00")) == "ay"


class TestPythonToDbus:
    """Outgoing arguments."""

    def test_typed_boolean_becomes_variant(self):
        value = python_to_dbus(TypedValue("b", True))
        assert isinstance(value, dbus.Boolean)
        assert value.variant_level == 1

    def test_nested_filter_dictionary(self):
        value = python_to_dbus({"UUIDs": [TypedValue("s", "abc")]})
        assert value["UUIDs"][0].variant_level == 1

    def test_typed_array(self):
        value = python_to_dbus(TypedValue("as", ["a", "b"]))
        assert isinstance(value, dbus.Array)
        assert value.signature == "s"
