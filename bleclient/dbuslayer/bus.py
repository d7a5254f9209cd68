"""Bus transport interface.

Everything above this module talks to the system bus through a
:class:`BusTransport`.  The production implementation lives in
``bleclient.dbuslayer.transport`` (dbus-python + GLib); the test-suite
supplies its own recording implementation.

Values crossing the interface are plain Python objects.  Anything that
travelled inside a D-Bus variant (``v``) arrives as a :class:`TypedValue` so
the original wire type is not lost.
"""

from __future__ import annotations

import abc
from typing import Any, Callable, NamedTuple, Optional, Sequence

__all__ = [
    "TypedValue",
    "infer_signature",
    "BusHandle",
    "BusTransport",
]


class TypedValue(NamedTuple):
    """A value together with its D-Bus signature (``"b"``, ``"as"``, ...)."""

    signature: str
    value: Any

    @classmethod
    def wrap(cls, value: Any) -> "TypedValue":
        if isinstance(value, TypedValue):
            return value
        return cls(infer_signature(value), value)

    @property
    def is_boolean(self) -> bool:
        return self.signature == "b"


def infer_signature(value: Any) -> str:
    """Best-effort D-Bus signature for a plain Python value."""
    if isinstance(value, TypedValue):
        return value.signature
    if isinstance(value, bool):
        return "b"
    if isinstance(value, int):
        return "i"
    if isinstance(value, float):
        return "d"
    if isinstance(value, str):
        return "s"
    if isinstance(value, (bytes, bytearray)):
        return "ay"
    if isinstance(value, dict):
        return "a{sv}"
    if isinstance(value, (list, tuple)):
        if value and all(isinstance(item, str) for item in value):
            return "as"
        if value and all(isinstance(item, int) and not isinstance(item, bool) for item in value):
            return "ai"
        return "av"
    return "v"


class BusHandle(abc.ABC):
    """Something the transport handed out that can later be released.

    Pending calls are cancelled, watches are removed.  Releasing twice is
    harmless.
    """

    @abc.abstractmethod
    def release(self) -> None:
        ...


ReplyHandler = Callable[..., None]
ErrorHandler = Callable[[Exception], None]


class BusTransport(abc.ABC):
    """The four capabilities the client needs from the message bus."""

    @abc.abstractmethod
    def call(
        self,
        service: str,
        path: str,
        interface: str,
        method: str,
        args: Sequence[Any] = (),
        signature: Optional[str] = None,
        reply_handler: Optional[ReplyHandler] = None,
        error_handler: Optional[ErrorHandler] = None,
        timeout: float = -1,
    ) -> Optional[BusHandle]:
        """Send a method call.

        Without *reply_handler* the call is fire-and-forget (no reply is
        requested) and ``None`` is returned.  Otherwise the call is
        asynchronous: *reply_handler* receives the reply arguments
        positionally, *error_handler* receives a ``BusCallError``, and the
        returned handle cancels the pending call.

        Raises ``TransportError`` if the message could not be sent at all.
        """

    @abc.abstractmethod
    def add_signal_watch(
        self,
        service: str,
        path: Optional[str],
        interface: str,
        member: str,
        handler: Callable[..., None],
    ) -> BusHandle:
        """Subscribe *handler(*signal_args)* to a signal."""

    @abc.abstractmethod
    def add_service_watch(
        self,
        service: str,
        on_connect: Callable[[], None],
        on_disconnect: Callable[[], None],
    ) -> BusHandle:
        """Report the service appearing on / vanishing from the bus."""

    @abc.abstractmethod
    def add_fd_watch(
        self,
        fd: int,
        on_readable: Callable[[int], bool],
        on_hangup: Callable[[int], None],
    ) -> BusHandle:
        """Watch *fd*.  ``on_readable`` returning False removes the watch."""

    @abc.abstractmethod
    def close(self) -> None:
        """Drop the bus connection."""
