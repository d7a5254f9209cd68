"""Notification channel for the read characteristic.

``AcquireNotify`` hands back a file descriptor (plus the negotiated MTU)
instead of routing every notification through ``PropertiesChanged``.  The
manager below owns that descriptor: it watches it on the main loop, decodes
each read into the single byte the peripheral's protocol carries, and tears
everything down on hangup.  Only one channel is ever open.

Writes go the other way through ``WriteValue`` on the write characteristic.
"""

from __future__ import annotations

import os
from typing import Any, Callable, Optional

from bleclient.bt_ref.constants import (
    GATT_CHARACTERISTIC_INTERFACE,
    METHOD_ACQUIRE_NOTIFY,
    METHOD_WRITE_VALUE,
    NOTIFY_BUFFER_SIZE,
)
from bleclient.bt_ref.utils import uint32_to_bytes, byteArrayToHexString
from bleclient.core.errors import (
    BleClientError,
    InvalidArgumentError,
    MalformedReplyError,
)
from bleclient.core.log import get_logger, print_and_log, LOG__GENERAL, LOG__DEBUG
from bleclient.dbuslayer.bus import BusHandle, BusTransport, TypedValue
from bleclient.dbuslayer.proxy import RemoteObjectProxy

logger = get_logger(__name__)

__all__ = ["NotificationCallback", "NotificationChannelManager"]

NotificationCallback = Callable[[int], None]

UINT32_MAX = 0xFFFFFFFF


class NotificationChannelManager:
    """Lifecycle of the single AcquireNotify pipe."""

    def __init__(self, transport: BusTransport, buffer_size: int = NOTIFY_BUFFER_SIZE):
        self.transport = transport
        self.buffer_size = buffer_size

        self.proxy: Optional[RemoteObjectProxy] = None
        self.callback: Optional[NotificationCallback] = None
        self.fd: Optional[int] = None
        self.mtu = 0
        self._watch: Optional[BusHandle] = None
        self._acquire_call: Optional[BusHandle] = None

    @property
    def is_open(self) -> bool:
        return self.fd is not None

    # ------------------------------------------------------------------
    # Acquire
    # ------------------------------------------------------------------
    def acquire(self, proxy: RemoteObjectProxy, callback: NotificationCallback) -> bool:
        """Request the notify pipe from *proxy*; the reply opens the channel.

        Returns True when the request was sent.  The channel itself is only
        open once the reply arrives.
        """
        if proxy.interface != GATT_CHARACTERISTIC_INTERFACE:
            print_and_log(
                f"[-] Unable to acquire notify: {proxy.interface or 'nothing bound'} not a characteristic",
                LOG__GENERAL,
            )
            return False

        self._cancel_acquire()
        try:
            self._acquire_call = proxy.method_call(
                METHOD_ACQUIRE_NOTIFY,
                ({},),
                "a{sv}",
                reply_handler=self._acquire_reply,
                error_handler=self._acquire_error,
            )
        except BleClientError as e:
            print_and_log(f"[-] Failed to AcquireNotify: {e}", LOG__GENERAL)
            return False

        self.proxy = proxy
        self.callback = callback
        return True

    def _cancel_acquire(self) -> None:
        if self._acquire_call is not None:
            try:
                self._acquire_call.release()
            finally:
                self._acquire_call = None

    def _acquire_error(self, error: Exception) -> None:
        self._acquire_call = None
        print_and_log(f"[-] Failed to acquire notify: {error}", LOG__GENERAL)

    def _acquire_reply(self, *args: Any) -> None:
        self._acquire_call = None
        self._destroy_io()
        self.mtu = 0

        try:
            fd, mtu = self._parse_reply(args)
        except MalformedReplyError as e:
            print_and_log(f"[-] {e}", LOG__GENERAL)
            return

        self.fd = fd
        self.mtu = mtu
        try:
            self._watch = self.transport.add_fd_watch(fd, self._pipe_read, self._pipe_hup)
        except BleClientError as e:
            print_and_log(f"[-] Unable to watch notify pipe: {e}", LOG__GENERAL)
            self._destroy_io()
            return
        print_and_log(f"[+] AcquireNotify success: fd {fd} MTU {mtu}", LOG__DEBUG)

    @staticmethod
    def _parse_reply(args):
        values = [a.value if isinstance(a, TypedValue) else a for a in args]
        fd = values[0] if values else None
        if len(values) != 2:
            if isinstance(fd, int) and not isinstance(fd, bool) and fd >= 0:
                os.close(fd)
            raise MalformedReplyError(METHOD_ACQUIRE_NOTIFY, f"expected (fd, mtu), got {len(values)} values")
        fd, mtu = values
        if not isinstance(fd, int) or isinstance(fd, bool) or fd < 0:
            raise MalformedReplyError(METHOD_ACQUIRE_NOTIFY, f"bad file descriptor {fd!r}")
        if not isinstance(mtu, int) or isinstance(mtu, bool) or not 0 <= mtu <= 0xFFFF:
            os.close(fd)
            raise MalformedReplyError(METHOD_ACQUIRE_NOTIFY, f"bad MTU {mtu!r}")
        return fd, mtu

    # ------------------------------------------------------------------
    # Pipe events
    # ------------------------------------------------------------------
    def _pipe_read(self, fd: int) -> bool:
        if fd != self.fd:
            return False

        try:
            data = os.read(fd, self.buffer_size)
        except OSError as e:
            logger.debug("Notify pipe read failed: %s", e)
            data = b""

        if len(data) <= 0:
            print_and_log("[*] Notify closed", LOG__DEBUG)
            self._destroy_io()
            return False

        if self.callback is not None:
            self.callback(data[0])
        return True

    def _pipe_hup(self, fd: int) -> None:
        if fd != self.fd:
            return
        print_and_log("[*] Notify closed", LOG__DEBUG)
        self._destroy_io()

    def _destroy_io(self) -> None:
        if self._watch is not None:
            try:
                self._watch.release()
            finally:
                self._watch = None
        if self.fd is not None:
            try:
                os.close(self.fd)
            except OSError:
                logger.debug("Notify fd %s already closed", self.fd)
            self.fd = None

    def close(self) -> None:
        """Tear down the channel.  Safe to call when nothing is open."""
        self._cancel_acquire()
        self._destroy_io()
        self.proxy = None
        self.callback = None
        self.mtu = 0

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------
    def write(self, proxy: RemoteObjectProxy, value: int) -> bool:
        """Write *value* as four big-endian bytes to *proxy*.

        Raises ``InvalidArgumentError`` when *value* is not a 32-bit unsigned
        integer; returns False when the request could not be sent.
        """
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= UINT32_MAX:
            raise InvalidArgumentError(repr(value), "expected a 32-bit unsigned integer")

        payload = uint32_to_bytes(value)
        try:
            proxy.method_call(
                METHOD_WRITE_VALUE,
                (payload, {}),
                "aya{sv}",
                reply_handler=self._write_reply,
                error_handler=self._write_error,
            )
        except BleClientError as e:
            print_and_log(f"[-] Failed to write: {e}", LOG__GENERAL)
            return False

        print_and_log(f"[DEBUG] Wrote {byteArrayToHexString(payload)} to {proxy.object_path}", LOG__DEBUG)
        return True

    def _write_reply(self, *_args: Any) -> None:
        pass

    def _write_error(self, error: Exception) -> None:
        print_and_log(f"[-] Failed to write: {error}", LOG__GENERAL)
