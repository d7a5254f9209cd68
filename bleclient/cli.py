"""
Command-line interface for bleclient.
"""

import argparse
import dataclasses
import sys

# Ensure logging subsystem is initialised immediately
import bleclient.core.log  # noqa: F401  # side-effect import creates the log files

from . import __version__


def parse_args(args=None):
    parser = argparse.ArgumentParser(
        description="bleclient - BlueZ client for a single known BLE peripheral"
    )
    parser.add_argument("--version", action="version", version=f"bleclient {__version__}")
    parser.add_argument("-c", "--config", help="YAML configuration file")
    parser.add_argument("--device-uuid", help="Service UUID advertised by the peripheral")
    parser.add_argument("--read-uuid", help="UUID of the notify characteristic")
    parser.add_argument("--write-uuid", help="UUID of the write characteristic")
    parser.add_argument("-v", "--verbose", action="store_true", help="Echo debug output to stderr")
    return parser.parse_args(args)


def main(args=None):
    """Main entry point for bleclient."""
    args = parse_args(args)

    from bleclient.core.config import load_config
    from bleclient.core.errors import BleClientError
    from bleclient.core.log import set_verbose

    if args.verbose:
        set_verbose(True)

    try:
        config = load_config(args.config)
    except BleClientError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    overrides = {
        "device_uuid": args.device_uuid,
        "read_uuid": args.read_uuid,
        "write_uuid": args.write_uuid,
    }
    config = dataclasses.replace(config, **{k: v for k, v in overrides.items() if v})

    try:
        from bleclient.modes.demo import run

        return run(config)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
