"""Gough Rescue Agent - rescue-mode handoff for bare metal nodes.

Registers the booted ramdisk with the Ironic API, sends a single
heartbeat and hands the rescue credentials and config drive over to
the local finalize script.
"""

__version__ = "1.0.0"
