"""
Telemetry helpers.

Workers publish telemetry keyed by a small integer that names the
partition it belongs on.
"""

from .partitioning import select_partition

__all__ = ["select_partition"]
