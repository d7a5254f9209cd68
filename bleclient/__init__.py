"""
bleclient - BlueZ D-Bus client for one known BLE peripheral
"""

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Initialise logging on *package import* so every code path (even when the
# CLI is not used) writes to the same log files.
# ---------------------------------------------------------------------------
import importlib as _importlib

_importlib.import_module("bleclient.core.log")  # noqa: F401 – side-effect import
