"""Tests for the error hierarchy and bus error mapping."""

import pytest

from bleclient.bt_ref.constants import (
    RESULT_ERR,
    RESULT_ERR_ACTION_IN_PROGRESS,
    RESULT_ERR_BAD_ARGS,
    RESULT_ERR_NOT_BOUND,
    RESULT_ERR_NOT_CONNECTED,
    RESULT_ERR_NOT_FOUND,
    RESULT_ERR_NO_REPLY,
    RESULT_ERR_TRANSPORT,
    RESULT_ERR_UNKNOWN_CONNECT_FAILURE,
)
from bleclient.core.errors import (
    BleClientError,
    BusCallError,
    InvalidArgumentError,
    PropertyNotFoundError,
    ProxyNotBoundError,
    TransportError,
    decode_bus_error,
    map_bus_error,
)


@pytest.mark.parametrize("name, message, code", [
    ("org.bluez.Error.NotConnected", "", RESULT_ERR_NOT_CONNECTED),
    ("org.bluez.Error.InProgress", "", RESULT_ERR_ACTION_IN_PROGRESS),
    ("org.freedesktop.DBus.Error.NoReply", "", RESULT_ERR_NO_REPLY),
    ("org.bluez.Error.Failed", "le-connection-abort-by-local", RESULT_ERR),
    ("com.example.Odd", "Connection Attempt Failed", RESULT_ERR_UNKNOWN_CONNECT_FAILURE),
    (None, None, RESULT_ERR),
])
def test_decode_bus_error(name, message, code):
    assert decode_bus_error(name, message) == code


def test_map_bus_error():
    err = map_bus_error("org.bluez.Error.NotConnected", "Not Connected", "WriteValue")
    assert isinstance(err, BusCallError)
    assert isinstance(err, BleClientError)
    assert err.code == RESULT_ERR_NOT_CONNECTED
    assert err.method == "WriteValue"
    assert "WriteValue" in str(err)


def test_codes_on_subclasses():
    assert PropertyNotFoundError("/x", "Powered").code == RESULT_ERR_NOT_FOUND
    assert ProxyNotBoundError("device").code == RESULT_ERR_NOT_BOUND
    assert TransportError("Connect", "no memory").code == RESULT_ERR_TRANSPORT
    assert InvalidArgumentError("value").code == RESULT_ERR_BAD_ARGS
