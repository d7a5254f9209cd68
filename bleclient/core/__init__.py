"""
Core package initialisation for bleclient.

Deliberately kept lightweight: configuration, logging and the error
hierarchy only.
"""

from bleclient.core.errors import (
    BleClientError,
    BusCallError,
    MalformedReplyError,
    PropertyNotFoundError,
    PropertyTypeMismatchError,
)

__all__ = [
    "BleClientError",
    "BusCallError",
    "MalformedReplyError",
    "PropertyNotFoundError",
    "PropertyTypeMismatchError",
]
