"""
s3sh - a command-line client for S3-compatible object storage.

This package contains the complete application:
- core: Framework-agnostic logic (lifecycle rules, chunked upload, bucket checks)
- infrastructure: The storage adapter that talks to the remote service
- cli: Command handlers and terminal rendering
- config: Application configuration
"""

__version__ = "0.1.0"
