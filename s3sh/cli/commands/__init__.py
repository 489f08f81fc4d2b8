"""
Command handlers, one module per resource.

Handlers take a StorageClient and a rich Console and raise on failure;
main.py turns exceptions into messages and exit codes.
"""

from . import buckets, objects

__all__ = ["buckets", "objects"]
