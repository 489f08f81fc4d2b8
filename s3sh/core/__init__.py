"""
Core logic for the storage client.

This package is framework-agnostic: it doesn't import boto3, rich or
argparse. Anything that talks to the remote service is passed in through
the StorageClient protocol, so the logic can be tested without a network.
"""
