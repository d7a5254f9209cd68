"""
Bluetooth utility functions.
"""

import struct

__all__ = [
    "normalize_uuid",
    "uuid_matches",
    "uint32_to_bytes",
    "byteArrayToHexString",
]


def normalize_uuid(uuid):
    return str(uuid).strip().lower()


def uuid_matches(candidate, wanted):
    """Return True if *candidate* (a UUID string or a list of them) holds *wanted*."""
    if candidate is None:
        return False
    if isinstance(candidate, str):
        return normalize_uuid(candidate) == normalize_uuid(wanted)
    try:
        return any(
            isinstance(item, str) and normalize_uuid(item) == normalize_uuid(wanted)
            for item in candidate
        )
    except TypeError:
        return False


def uint32_to_bytes(value: int) -> bytes:
    # e.g. 0xFF000080 -> b"\xff\x00\x00\x80" (most-significant byte first)
    return struct.pack(">I", value)


def byteArrayToHexString(bytes):
    hex_string = ""
    for byte in bytes:
        hex_byte = "%02X" % byte
        hex_string = hex_string + hex_byte
    return hex_string
