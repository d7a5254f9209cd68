"""High-level BLE operation modules built on `bleclient.dbuslayer`."""

from bleclient.ble_ops.state_machine import (
    BleEvent,
    ConnectionState,
    ConnectionStateMachine,
)

__all__ = [
    "BleEvent",
    "ConnectionState",
    "ConnectionStateMachine",
]
