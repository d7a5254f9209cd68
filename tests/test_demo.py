"""Tests for the LED demo notification handler."""

import os

from bleclient.ble_ops.state_machine import ConnectionState, ConnectionStateMachine
from bleclient.bt_ref.constants import GATT_CHARACTERISTIC_INTERFACE
from bleclient.dbuslayer.bus import TypedValue
from bleclient.dbuslayer.client import ClientSession
from bleclient.modes.demo import COLOURS, LedDemo


class TestLedDemo:
    """Colour writes driven by notifications."""

    def test_six_notifications(self, loaded_session, transport):
        """Values 0,1,0,1,0,1 write the three colours in order, then quit."""
        session = loaded_session(powered=True, connected=True)
        quits = []
        demo = LedDemo(session, lambda: quits.append(True))

        for value in [0, 1, 0, 1, 0, 1]:
            demo(value)

        payloads = [c.args[0] for c in transport.methods("WriteValue")]
        assert payloads == [c.to_bytes(4, "big") for c in COLOURS]
        assert quits == [True]
        assert demo.calls == 6

    def test_no_write_for_nonzero(self, loaded_session, transport):
        session = loaded_session(powered=True, connected=True)
        demo = LedDemo(session, lambda: None)
        demo(5)
        assert transport.methods("WriteValue") == []

    def test_end_to_end_over_pipe(self, transport, config, managed_objects, paths, pipe):
        """Notifications read from the acquired pipe reach the demo."""
        read_fd, write_fd = pipe
        session = ClientSession(transport, config)
        quits = []
        machine = ConnectionStateMachine(session, LedDemo(session, lambda: quits.append(True)))
        machine.attach()
        session.initialize(machine.client_ready)
        transport.service_up()
        transport.reply(transport.last("GetManagedObjects"), managed_objects(powered=True, connected=True))
        transport.reply(transport.last("AcquireNotify"), read_fd, 23)
        transport.properties_changed(paths.notify, GATT_CHARACTERISTIC_INTERFACE,
                                     {"NotifyAcquired": TypedValue("b", True)})
        assert machine.state is ConnectionState.ACTIVE

        for value in [0, 1, 0, 1, 0, 1]:
            os.write(write_fd, bytes([value]))
            transport.readable(read_fd)

        assert len(transport.methods("WriteValue")) == 3
        assert quits == [True]

        session.shutdown()
        assert transport.closed
        assert not session.notify.is_open
