"""Run-modes for the bleclient CLI.

Only the LED demo exists; it is imported on demand by the CLI.
"""

__all__ = ["demo"]
