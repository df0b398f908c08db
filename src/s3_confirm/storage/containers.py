"""
Container (bucket) operations

Create and delete only report Success once the change is observable through
head_bucket; listing and existence checks report classified outcomes
alongside their results.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..constants import DEFAULT_REGION
from ..control import absent_with, abortable, empty_with, outcome_only
from ..convergence import ConvergenceWaiter
from ..errors import classify, describe_already_exists
from ..outcomes import Container, OperationOutcome, OutcomeKind

logger = logging.getLogger(__name__)

# us-east-1 rejects an explicit LocationConstraint
IMPLICIT_LOCATION_REGIONS = frozenset({"us-east-1", ""})


class ContainerManager:
    """Bucket create / delete / list / exists on top of a borrowed S3 client.

    Holds no per-call state, so one instance can serve concurrent callers.
    """

    def __init__(
        self,
        get_client: Callable[[], Awaitable[Any]],
        waiter: ConvergenceWaiter,
        default_region: str = DEFAULT_REGION,
    ) -> None:
        self._get_client = get_client
        self._waiter = waiter
        self.default_region = default_region

    @staticmethod
    async def _bucket_present(client: Any, name: str) -> bool:
        await client.head_bucket(Bucket=name)
        return True

    @abortable(outcome_only)
    async def create(self, name: str, region: str | None = None) -> OperationOutcome:
        """Create a bucket and wait until it is visible."""
        region = region or self.default_region
        client = await self._get_client()

        params: dict[str, Any] = {"Bucket": name}
        if region not in IMPLICIT_LOCATION_REGIONS:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}

        try:
            await client.create_bucket(**params)
        except Exception as e:
            outcome = classify(e)
            if outcome.kind is OutcomeKind.ALREADY_EXISTS:
                logger.warning(describe_already_exists(outcome, name))
            else:
                logger.error(f"Failed to create bucket '{name}' in {region}: {outcome}")
            return outcome

        logger.debug(f"Create accepted for bucket '{name}' in {region}, waiting for it to become visible")
        outcome = await self._waiter.wait_for(
            lambda: self._bucket_present(client, name), expect_present=True, description=f"bucket '{name}'"
        )
        if outcome.ok:
            logger.info(f"Created bucket '{name}' in {region}")
        return outcome

    @abortable(outcome_only)
    async def delete(self, name: str) -> OperationOutcome:
        """Delete a bucket and wait until it is gone."""
        client = await self._get_client()

        try:
            await client.delete_bucket(Bucket=name)
        except Exception as e:
            outcome = classify(e)
            if outcome.kind is OutcomeKind.NOT_FOUND:
                logger.error(f"Cannot delete bucket '{name}': it does not exist")
            else:
                logger.error(f"Failed to delete bucket '{name}': {outcome}")
            return outcome

        outcome = await self._waiter.wait_for(
            lambda: self._bucket_present(client, name), expect_present=False, description=f"bucket '{name}'"
        )
        if outcome.ok:
            logger.info(f"Deleted bucket '{name}'")
        return outcome

    @abortable(empty_with)
    async def list_all(self) -> tuple[list[Container], OperationOutcome]:
        """List every bucket visible to the caller's credentials."""
        client = await self._get_client()
        containers: list[Container] = []
        params: dict[str, Any] = {}

        while True:
            try:
                response = await client.list_buckets(**params)
            except Exception as e:
                outcome = classify(e)
                if outcome.kind is OutcomeKind.ACCESS_DENIED:
                    logger.error("You don't have permission to list buckets for this account")
                else:
                    logger.error(f"Failed to list buckets: {outcome}")
                return [], outcome

            for bucket in response.get("Buckets", []):
                if "Name" not in bucket:
                    continue
                containers.append(
                    Container(
                        name=bucket["Name"],
                        created_at=bucket.get("CreationDate"),
                        region=bucket.get("BucketRegion"),
                    )
                )

            token = response.get("ContinuationToken")
            if not token:
                break
            params["ContinuationToken"] = token

        if not containers:
            logger.info("No buckets")
        for container in containers:
            logger.debug(f"Bucket: {container.name}, created {container.created_at}")
        return containers, OperationOutcome.success()

    @abortable(absent_with)
    async def exists(self, name: str) -> tuple[bool, OperationOutcome]:
        """Check bucket existence with a metadata-only request.

        Any error reports ``exists=False``; the outcome tells NotFound apart
        from failures such as AccessDenied.
        """
        client = await self._get_client()
        try:
            await client.head_bucket(Bucket=name)
        except Exception as e:
            outcome = classify(e)
            if outcome.kind is not OutcomeKind.NOT_FOUND:
                logger.warning(f"Could not determine whether bucket '{name}' exists: {outcome}")
            return False, outcome
        return True, OperationOutcome.success()
