"""LED demo mode: cycle the peripheral's LED through three colours.

Every notification from the peripheral is logged.  Each time it reports 0
the next colour is written back; after six notifications the demo quits.
"""
from __future__ import annotations

import signal
from typing import Callable, Optional

from bleclient.core.config import ClientConfig
from bleclient.core.errors import BleClientError
from bleclient.core.log import print_and_log, LOG__GENERAL, LOG__SESSION
from bleclient.dbuslayer.client import ClientSession
from bleclient.ble_ops.state_machine import ConnectionStateMachine

# RGB + brightness, one 32-bit word per colour
COLOURS = [0xFF000080, 0x00FF0080, 0x0000FF80]
MAX_NOTIFICATIONS = 6


class LedDemo:
    """Notification handler that answers the peripheral with colour writes."""

    def __init__(self, session: ClientSession, quit: Callable[[], None],
                 colours=None, max_notifications: int = MAX_NOTIFICATIONS):
        self.session = session
        self.quit = quit
        self.colours = list(colours or COLOURS)
        self.max_notifications = max_notifications
        self.calls = 0

    def __call__(self, value: int) -> None:
        print_and_log(f"[NOTIFY] value {value}", LOG__SESSION)

        if value == 0:
            colour = self.colours[(self.calls // 2) % len(self.colours)]
            try:
                self.session.write_command(colour)
            except BleClientError as e:
                print_and_log(f"[-] Colour write failed: {e}", LOG__GENERAL)

        self.calls += 1
        if self.calls >= self.max_notifications:
            print_and_log("[*] Demo complete", LOG__GENERAL)
            self.quit()


def run(config: Optional[ClientConfig] = None) -> int:
    """Run the demo on the system bus until it completes or is interrupted."""
    from gi.repository import GLib
    from bleclient.dbuslayer.transport import DBusGLibTransport

    config = config or ClientConfig()
    loop = GLib.MainLoop()

    try:
        transport = DBusGLibTransport()
    except Exception as e:  # dbus.exceptions.DBusException, no system bus
        print_and_log(f"[-] Unable to connect to the system bus: {e}", LOG__GENERAL)
        return 1

    session = ClientSession(transport, config)
    demo = LedDemo(session, loop.quit)
    machine = ConnectionStateMachine(session, demo)
    machine.attach()

    def _sigint(_s, _f):
        loop.quit()

    signal.signal(signal.SIGINT, _sigint)

    print_and_log(f"[*] Waiting for {config.device_uuid}… Ctrl+C to stop", LOG__GENERAL)
    try:
        session.initialize(machine.client_ready)
        loop.run()
    finally:
        session.shutdown()

    print_and_log(f"[*] Done ({machine.state.value})", LOG__GENERAL)
    return 0
