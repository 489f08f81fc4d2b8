"""
Wiring for command handlers.

Builds the storage client from settings and command-line flags. Flags win
over settings, settings win over boto3's own chain.
"""

import logging
from typing import Optional

from ..config.settings import Settings
from ..infrastructure.storage.client import (
    MockStorageClient,
    StorageClient,
    StorageConfig,
    create_storage_client,
)

logger = logging.getLogger(__name__)

# Shared mock instance so every command in one process sees the same store
_mock_storage_client: Optional[MockStorageClient] = None


def build_storage_config(
    settings: Settings,
    region: Optional[str] = None,
    profile: Optional[str] = None,
    endpoint_url: Optional[str] = None,
) -> StorageConfig:
    return StorageConfig(
        region=region or settings.region,
        profile=profile or settings.profile,
        endpoint_url=endpoint_url or settings.endpoint_url,
    )


def get_storage_client(
    settings: Settings,
    region: Optional[str] = None,
    profile: Optional[str] = None,
    endpoint_url: Optional[str] = None,
    mock_mode: Optional[bool] = None,
) -> StorageClient:
    """
    Get the storage client for this invocation.

    In mock mode the same in-memory client is returned on every call.
    """
    global _mock_storage_client

    config = build_storage_config(settings, region, profile, endpoint_url)
    use_mock = settings.mock_mode if mock_mode is None else mock_mode

    if use_mock:
        if _mock_storage_client is None:
            _mock_storage_client = create_storage_client(config, mock_mode=True)
            logger.info("Using mock storage client")
        return _mock_storage_client

    return create_storage_client(config)


def reset_mock_storage_client() -> None:
    """Drop the shared mock store. For tests."""
    global _mock_storage_client
    _mock_storage_client = None
