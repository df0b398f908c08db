"""
Item (object) operations

Uploads carry a client-side checksum and only succeed once the object is
visible; deletes only succeed once it is gone. Batch deletes report one
independent outcome per requested item.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Any

import aiofiles

from ..checksums import ChecksumAlgorithm, Checksummer, compute_checksum
from ..constants import (
    DEFAULT_CONVERGENCE_CONCURRENCY,
    DOWNLOAD_CHUNK_SIZE,
    MAX_BATCH_DELETE_ITEMS,
    MULTIPART_THRESHOLD_BYTES,
    SINGLE_PUT_MAX_BYTES,
)
from ..control import _Aborted, abortable, empty_with, no_key_with, outcome_only, run_abortable
from ..convergence import ConvergenceWaiter
from ..errors import InvalidRequestError, classify
from ..outcomes import BatchItemOutcome, Item, ItemIdentity, OperationOutcome, OutcomeKind
from .multipart import MultipartUploader

logger = logging.getLogger(__name__)


def _to_identity(item: "ItemIdentity | str") -> ItemIdentity:
    return item if isinstance(item, ItemIdentity) else ItemIdentity(key=item)


class ItemManager:
    """Object upload / delete / batch delete / list / download on a borrowed S3 client."""

    def __init__(
        self,
        get_client: Callable[[], Awaitable[Any]],
        waiter: ConvergenceWaiter,
        convergence_concurrency: int = DEFAULT_CONVERGENCE_CONCURRENCY,
        single_put_max_bytes: int = SINGLE_PUT_MAX_BYTES,
        multipart_threshold: int = MULTIPART_THRESHOLD_BYTES,
        multipart_uploader: MultipartUploader | None = None,
    ) -> None:
        self._get_client = get_client
        self._waiter = waiter
        self.convergence_concurrency = convergence_concurrency
        self.single_put_max_bytes = single_put_max_bytes
        self.multipart_threshold = multipart_threshold
        self._multipart = multipart_uploader or MultipartUploader()

    @staticmethod
    async def _item_present(client: Any, container: str, key: str, version_id: str | None = None) -> bool:
        params = {"Bucket": container, "Key": key}
        if version_id:
            params["VersionId"] = version_id
        await client.head_object(**params)
        return True

    async def _wait_for_item(
        self, client: Any, container: str, key: str, *, present: bool, version_id: str | None = None
    ) -> OperationOutcome:
        return await self._waiter.wait_for(
            lambda: self._item_present(client, container, key, version_id),
            expect_present=present,
            description=f"object {container}/{key}",
        )

    def _too_large(self, container: str, key: str, size: int) -> OperationOutcome:
        logger.error(
            f"Object {container}/{key} is {size} bytes, above the single-request limit of "
            f"{self.single_put_max_bytes} bytes. Use the multipart upload path (upload_file) instead."
        )
        return OperationOutcome.entity_too_large(message=f"{size} bytes exceeds single-request limit")

    async def _put_and_confirm(
        self, container: str, key: str, payload: bytes, algorithm: ChecksumAlgorithm
    ) -> tuple[str | None, OperationOutcome]:
        if len(payload) > self.single_put_max_bytes:
            return None, self._too_large(container, key, len(payload))

        checksum = compute_checksum(payload, algorithm)
        client = await self._get_client()

        try:
            await client.put_object(
                Bucket=container,
                Key=key,
                Body=payload,
                ChecksumAlgorithm=algorithm.value,
                **{algorithm.request_field: checksum},
            )
        except Exception as e:
            outcome = classify(e)
            if outcome.kind is OutcomeKind.ENTITY_TOO_LARGE:
                return None, self._too_large(container, key, len(payload))
            if outcome.kind is OutcomeKind.NOT_FOUND:
                logger.error(f"Bucket '{container}' does not exist")
            logger.error(f"Failed to upload {container}/{key}: {outcome}")
            return None, outcome

        outcome = await self._wait_for_item(client, container, key, present=True)
        if not outcome.ok:
            return None, outcome

        logger.info(f"Uploaded {container}/{key} ({len(payload)} bytes, {algorithm.value} {checksum})")
        return key, outcome

    @abortable(no_key_with)
    async def upload(
        self,
        container: str,
        key: str,
        payload: bytes,
        algorithm: ChecksumAlgorithm | str = ChecksumAlgorithm.SHA256,
    ) -> tuple[str | None, OperationOutcome]:
        """Upload ``payload`` with a checksum attached and wait until the object is visible.

        Returns:
            (confirmed key, outcome); the key is None unless the outcome is Success.
            EntityTooLarge is returned without any remote call when the payload
            exceeds the single-request ceiling.
        """
        return await self._put_and_confirm(container, key, payload, ChecksumAlgorithm.parse(algorithm))

    @abortable(no_key_with)
    async def upload_file(
        self,
        container: str,
        key: str,
        source_path: str | Path,
        algorithm: ChecksumAlgorithm | str = ChecksumAlgorithm.SHA256,
    ) -> tuple[str | None, OperationOutcome]:
        """Upload a local file, switching to multipart above the multipart threshold."""
        algorithm = ChecksumAlgorithm.parse(algorithm)
        source = Path(source_path)

        try:
            file_size = source.stat().st_size
            if file_size <= self.multipart_threshold:
                async with aiofiles.open(source, "rb") as f:
                    payload = await f.read()
        except OSError as e:
            logger.error(f"Cannot read upload source {source}: {e}")
            return None, OperationOutcome.service_error("local_io", str(e))

        if file_size <= self.multipart_threshold:
            return await self._put_and_confirm(container, key, payload, algorithm)

        client = await self._get_client()
        try:
            await self._multipart.upload_file(client, container, key, source, algorithm)
        except Exception as e:
            outcome = classify(e)
            logger.error(f"Multipart upload of {source} to {container}/{key} failed: {outcome}")
            return None, outcome

        outcome = await self._wait_for_item(client, container, key, present=True)
        if not outcome.ok:
            return None, outcome

        logger.info(f"Uploaded {source} to {container}/{key} ({file_size} bytes, multipart)")
        return key, outcome

    @abortable(outcome_only)
    async def delete(
        self, container: str, key: str, version_id: str | None = None, bypass_governance: bool = False
    ) -> OperationOutcome:
        """Delete one object (current version unless ``version_id``) and wait until it is gone."""
        client = await self._get_client()

        params: dict[str, Any] = {"Bucket": container, "Key": key}
        if version_id:
            params["VersionId"] = version_id
        if bypass_governance:
            params["BypassGovernanceRetention"] = True

        try:
            await client.delete_object(**params)
        except Exception as e:
            outcome = classify(e)
            if outcome.kind is OutcomeKind.ACCESS_DENIED:
                logger.error(f"Permission denied deleting {container}/{key}")
            else:
                logger.error(f"Failed to delete {container}/{key}: {outcome}")
            return outcome

        outcome = await self._wait_for_item(client, container, key, present=False, version_id=version_id)
        if outcome.ok:
            logger.info(f"Deleted {container}/{key}")
        return outcome

    async def batch_delete(
        self,
        container: str,
        items: Sequence["ItemIdentity | str"],
        bypass_governance: bool = False,
        *,
        deadline: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[BatchItemOutcome]:
        """Delete many objects in one request and confirm each one independently.

        When ``deadline`` or ``cancel_event`` fires, items that were already
        rejected or confirmed keep their own outcome; only the unresolved ones
        report Timeout / Cancelled.

        Raises:
            InvalidRequestError: If ``items`` is empty or above the batch limit;
                no remote call is made in that case.
        """
        identities = [_to_identity(item) for item in items]
        if not identities:
            raise InvalidRequestError(f"Batch delete from '{container}' needs at least one item")
        if len(identities) > MAX_BATCH_DELETE_ITEMS:
            raise InvalidRequestError(
                f"Batch delete from '{container}' has {len(identities)} items, limit is {MAX_BATCH_DELETE_ITEMS}"
            )

        settled: dict[ItemIdentity, OperationOutcome] = {}
        result = await run_abortable(
            self._delete_batch(container, identities, bypass_governance, settled),
            deadline=deadline,
            cancel_event=cancel_event,
        )
        if isinstance(result, _Aborted):
            unresolved = sum(1 for identity in identities if identity not in settled)
            logger.warning(f"Batch delete from '{container}' stopped with {unresolved} item(s) unresolved")
            return [BatchItemOutcome(identity, settled.get(identity, result.outcome)) for identity in identities]
        return result

    async def _delete_batch(
        self,
        container: str,
        identities: list[ItemIdentity],
        bypass_governance: bool,
        settled: dict[ItemIdentity, OperationOutcome],
    ) -> list[BatchItemOutcome]:
        """Send one delete_objects request, recording each item's outcome in ``settled`` as it resolves."""
        client = await self._get_client()
        params: dict[str, Any] = {
            "Bucket": container,
            "Delete": {"Objects": [identity.to_request() for identity in identities], "Quiet": True},
        }
        if bypass_governance:
            params["BypassGovernanceRetention"] = True

        try:
            response = await client.delete_objects(**params)
        except Exception as e:
            outcome = classify(e)
            if outcome.kind is OutcomeKind.NOT_FOUND:
                logger.error(f"Batch delete failed: bucket '{container}' does not exist")
            else:
                logger.error(f"Batch delete from '{container}' failed: {outcome}")
            return [BatchItemOutcome(identity, outcome) for identity in identities]

        # Quiet mode only reports failures; everything else was accepted
        failures: dict[tuple[str, str | None], OperationOutcome] = {}
        for error in response.get("Errors", []):
            failure = OperationOutcome.service_error(error.get("Code") or "Unknown", error.get("Message") or "")
            failures[(error.get("Key", ""), error.get("VersionId"))] = failure
            logger.error(f"Batch delete of {container}/{error.get('Key')} failed: {failure}")

        accepted = []
        for identity in identities:
            failure = failures.get((identity.key, identity.version_id)) or failures.get((identity.key, None))
            if failure is None:
                accepted.append(identity)
            else:
                settled[identity] = failure

        semaphore = asyncio.Semaphore(max(1, min(len(accepted), self.convergence_concurrency)))

        async def confirm(identity: ItemIdentity) -> None:
            async with semaphore:
                settled[identity] = await self._wait_for_item(
                    client, container, identity.key, present=False, version_id=identity.version_id
                )

        await asyncio.gather(*(confirm(identity) for identity in accepted))

        results = [BatchItemOutcome(identity, settled[identity]) for identity in identities]
        succeeded = sum(1 for result in results if result.ok)
        logger.info(f"Batch delete from '{container}': {succeeded}/{len(results)} confirmed deleted")
        return results

    @abortable(empty_with)
    async def list_all(self, container: str, prefix: str = "") -> tuple[list[Item], OperationOutcome]:
        """List every object in ``container``, following pagination.

        A missing bucket is reported as a ServiceError rather than an empty
        list, since an absent bucket and an empty one are different things.
        """
        client = await self._get_client()
        params: dict[str, Any] = {"Bucket": container}
        if prefix:
            params["Prefix"] = prefix

        items: list[Item] = []
        paginator = client.get_paginator("list_objects_v2")
        try:
            async for page in paginator.paginate(**params):
                for obj in page.get("Contents", []):
                    key = obj.get("Key")
                    if key is None:
                        continue
                    items.append(
                        Item(
                            container=container,
                            key=key,
                            size_bytes=obj.get("Size", 0),
                            etag=obj.get("ETag"),
                            last_modified=obj.get("LastModified"),
                        )
                    )
        except Exception as e:
            outcome = classify(e)
            if outcome.kind is OutcomeKind.NOT_FOUND:
                logger.error(f"Bucket '{container}' does not exist")
                outcome = OperationOutcome.service_error(
                    outcome.code or "NoSuchBucket", f"Bucket '{container}' does not exist"
                )
            logger.error(f"Failed to list objects in bucket '{container}': {outcome}")
            return [], outcome

        return items, OperationOutcome.success()

    @abortable(outcome_only)
    async def download(self, container: str, key: str, destination: str | Path) -> OperationOutcome:
        """Stream an object to ``destination``, creating parent directories.

        Data is written to a temporary sibling file and renamed into place
        only after the full body was copied and verified, so a failed copy
        never leaves a partial file at ``destination``.
        """
        destination = Path(destination)
        # Per-call temp name; concurrent downloads may target the same destination
        partial_path = destination.with_name(f"{destination.name}.{uuid.uuid4().hex[:8]}.part")

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create directory for {destination}: {e}")
            return OperationOutcome.service_error("local_io", str(e))

        client = await self._get_client()
        try:
            response = await client.get_object(Bucket=container, Key=key, ChecksumMode="ENABLED")
        except Exception as e:
            outcome = classify(e)
            if outcome.kind is OutcomeKind.NOT_FOUND:
                logger.error(f"Download failed: {container}/{key} does not exist")
            else:
                logger.error(f"Download of {container}/{key} failed: {outcome}")
            return outcome

        # Composite multipart checksums ("<digest>-<parts>") cannot be checked against the whole body
        expected = response.get("ChecksumSHA256")
        checksummer = Checksummer(ChecksumAlgorithm.SHA256) if expected and "-" not in expected else None
        total_bytes = 0

        try:
            async with response["Body"] as body:
                async with aiofiles.open(partial_path, "wb") as f:
                    while chunk := await body.read(DOWNLOAD_CHUNK_SIZE):
                        await f.write(chunk)
                        total_bytes += len(chunk)
                        if checksummer is not None:
                            checksummer.update(chunk)
        except Exception as e:
            partial_path.unlink(missing_ok=True)
            outcome = classify(e)
            logger.error(f"Failed to copy {container}/{key} to {destination}: {outcome}")
            return outcome
        except BaseException:
            partial_path.unlink(missing_ok=True)
            raise

        content_length = response.get("ContentLength")
        if content_length is not None and total_bytes != content_length:
            partial_path.unlink(missing_ok=True)
            logger.error(f"Download of {container}/{key} incomplete: got {total_bytes} of {content_length} bytes")
            return OperationOutcome.service_error(
                "IncompleteBody", f"expected {content_length} bytes, received {total_bytes}"
            )

        if checksummer is not None and checksummer.b64digest() != expected:
            partial_path.unlink(missing_ok=True)
            logger.error(f"Checksum mismatch downloading {container}/{key}")
            return OperationOutcome.service_error(
                "ChecksumMismatch", f"expected {expected}, computed {checksummer.b64digest()}"
            )

        try:
            partial_path.replace(destination)
        except OSError as e:
            partial_path.unlink(missing_ok=True)
            logger.error(f"Cannot move downloaded {container}/{key} into place at {destination}: {e}")
            return OperationOutcome.service_error("local_io", str(e))

        logger.info(f"Downloaded {container}/{key} to {destination} ({total_bytes} bytes)")
        return OperationOutcome.success()
