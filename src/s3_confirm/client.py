"""
Storage client facade

Single entry point composing the container and item managers. Owns the
remote S3 client; the managers borrow it per call and keep no state.
"""

import asyncio
import logging
import uuid
from contextlib import AsyncExitStack
from typing import Any

from .config import ClientConfig, default_client_config, validate_client_config
from .constants import (
    DEFAULT_CONVERGENCE_CONCURRENCY,
    DEFAULT_OPERATION_TIMEOUT,
    DEFAULT_POLL_MAX_INTERVAL,
    DEFAULT_POLL_MIN_INTERVAL,
    DEFAULT_REGION,
    DEFAULT_S3_CONNECT_TIMEOUT,
    DEFAULT_S3_MAX_POOL_CONNECTIONS,
    DEFAULT_S3_READ_TIMEOUT,
)
from .convergence import ConvergenceWaiter
from .storage.containers import ContainerManager
from .storage.items import ItemManager

logger = logging.getLogger(__name__)


class StorageClient:
    """
    Confirmed-mutation client for S3 and S3-compatible storage.

    Use as an async context manager, or call close() when done:

        async with StorageClient(build_client_config()) as storage:
            outcome = await storage.containers.create("my-bucket")
    """

    def __init__(self, config: ClientConfig | None = None, *, client: Any = None) -> None:
        merged = default_client_config()
        merged.update(config or {})
        validate_client_config(merged)
        self.config = merged

        self._s3_client: Any = client
        self._exit_stack: AsyncExitStack | None = None
        self._client_lock = asyncio.Lock()

        # Instance identification for logging
        self._instance_id = str(uuid.uuid4())[:8]

        self.waiter = ConvergenceWaiter(
            timeout=merged.get("operation_timeout", DEFAULT_OPERATION_TIMEOUT),
            min_interval=merged.get("poll_min_interval", DEFAULT_POLL_MIN_INTERVAL),
            max_interval=merged.get("poll_max_interval", DEFAULT_POLL_MAX_INTERVAL),
        )
        self.containers = ContainerManager(
            self._get_s3_client, self.waiter, default_region=merged.get("region", DEFAULT_REGION)
        )
        self.items = ItemManager(
            self._get_s3_client,
            self.waiter,
            convergence_concurrency=merged.get("convergence_concurrency", DEFAULT_CONVERGENCE_CONCURRENCY),
        )

        logger.debug(f"Storage client created (id={self._instance_id}, region={merged.get('region')})")

    @classmethod
    def from_client(cls, client: Any, config: ClientConfig | None = None) -> "StorageClient":
        """Wrap an already open S3 client; close() will not close it."""
        return cls(config, client=client)

    @property
    def region(self) -> str:
        return self.config.get("region", DEFAULT_REGION)

    async def _get_s3_client(self) -> Any:
        """Get or create the persistent S3 client."""
        if self._s3_client is None:
            async with self._client_lock:
                # Double-check after acquiring the lock
                if self._s3_client is None:
                    import aioboto3
                    import aiobotocore.config

                    max_pool_connections = self.config.get("max_pool_connections", DEFAULT_S3_MAX_POOL_CONNECTIONS)
                    transport_config = aiobotocore.config.AioConfig(
                        max_pool_connections=max_pool_connections,
                        retries={"max_attempts": 3, "mode": "adaptive"},
                        read_timeout=DEFAULT_S3_READ_TIMEOUT,
                        connect_timeout=DEFAULT_S3_CONNECT_TIMEOUT,
                    )

                    session = aioboto3.Session(
                        aws_access_key_id=self.config.get("access_key_id"),
                        aws_secret_access_key=self.config.get("secret_access_key"),
                        aws_session_token=self.config.get("session_token"),
                        region_name=self.region,
                    )

                    client_kwargs: dict[str, Any] = {"config": transport_config}
                    if self.config.get("endpoint_url"):
                        client_kwargs["endpoint_url"] = self.config["endpoint_url"]

                    exit_stack = AsyncExitStack()
                    self._s3_client = await exit_stack.enter_async_context(session.client("s3", **client_kwargs))
                    self._exit_stack = exit_stack

                    logger.info(
                        f"S3 client created (storage_id={self._instance_id}, region={self.region}, "
                        f"max_pool_connections={max_pool_connections})"
                    )

        return self._s3_client

    async def close(self) -> None:
        """Release the S3 client if this facade created it."""
        if self._exit_stack is not None:
            try:
                await self._exit_stack.aclose()
                logger.info(f"Storage resources closed (storage_id={self._instance_id})")
            finally:
                self._exit_stack = None
                self._s3_client = None

    async def __aenter__(self) -> "StorageClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
