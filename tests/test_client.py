"""Tests for the client session lifecycle."""

from bleclient.bt_ref.constants import DBUS_OM_IFACE


class TestShutdown:
    """Tearing the session down."""

    def test_shutdown_with_snapshot_pending(self, session, transport):
        """Pending calls are cancelled, every watch is removed, the bus is closed."""
        call = transport.last("GetManagedObjects")
        assert session.pending_call_count == 1

        session.shutdown()

        assert call.handle.released
        assert session.pending_call_count == 0
        assert session.get_objects_call is None
        assert transport.signal_watches == []
        assert transport.service_watches == []
        assert transport.closed

    def test_shutdown_with_acquire_pending(self, loaded_session, transport):
        session = loaded_session(powered=True, connected=True)
        assert session.acquire_notify(lambda v: None)
        call = transport.last("AcquireNotify")

        session.shutdown()

        assert call.handle.released
        assert session.pending_call_count == 0
        assert transport.signal_watches == []

    def test_reply_after_shutdown_is_dropped(self, session, transport, managed_objects):
        call = transport.last("GetManagedObjects")
        session.shutdown()

        transport.reply(call, managed_objects(powered=True))
        assert session.ready_calls == []
        assert not any(p.is_bound for p in session.proxies)


class TestServiceRestart:
    """org.bluez leaving and returning."""

    def test_restart_while_snapshot_pending(self, session, transport):
        """A fresh snapshot is requested after the daemon comes back."""
        first = transport.last("GetManagedObjects")

        transport.service_down()
        assert first.handle.released
        assert session.get_objects_call is None
        assert session.pending_call_count == 0

        transport.service_up()
        calls = transport.methods("GetManagedObjects")
        assert len(calls) == 2
        assert calls[1].interface == DBUS_OM_IFACE

        transport.reply(first, {})
        assert session.ready_calls == []
        transport.reply(calls[1], {})
        assert session.ready_calls == [session]
