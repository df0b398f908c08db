"""
Multipart upload

Streams a local file to the service in parallel parts with bounded memory.
Used for payloads above the single-request ceiling, where put_object would be
rejected with EntityTooLarge.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any

import aiofiles

from ..checksums import ChecksumAlgorithm, Checksummer
from ..constants import MULTIPART_MAX_CONCURRENT_PARTS, MULTIPART_QUEUE_SIZE

logger = logging.getLogger(__name__)

MAX_PARTS = 10000


class MultipartUploader:
    """Parallel multipart upload of a single file, each part carrying its own checksum."""

    def __init__(
        self,
        max_concurrent_parts: int = MULTIPART_MAX_CONCURRENT_PARTS,
        queue_size: int = MULTIPART_QUEUE_SIZE,
    ) -> None:
        self.max_concurrent_parts = max_concurrent_parts
        self.queue_size = queue_size

    def _calculate_part_size(self, file_size: int) -> int:
        """Calculate part size based on file size."""
        if file_size < 100 * 1024 * 1024:  # < 100MB
            return 10 * 1024 * 1024
        elif file_size < 1024 * 1024 * 1024:  # < 1GB
            return 16 * 1024 * 1024
        elif file_size < 5 * 1024 * 1024 * 1024:  # < 5GB
            return 32 * 1024 * 1024
        else:
            # Stay under the part count limit for very large files
            target_part_size = -(-file_size // MAX_PARTS)
            return max(target_part_size, 100 * 1024 * 1024)

    async def upload_file(
        self,
        client: Any,
        bucket: str,
        key: str,
        file_path: str | Path,
        algorithm: ChecksumAlgorithm = ChecksumAlgorithm.SHA256,
    ) -> str | None:
        """Upload ``file_path`` as ``bucket/key`` and return the final ETag.

        The upload is aborted on any failure or cancellation, then the error
        is re-raised for the caller to classify.
        """
        file_size = Path(file_path).stat().st_size
        chunk_size = self._calculate_part_size(file_size)
        checksum_field = algorithm.request_field

        response = await client.create_multipart_upload(Bucket=bucket, Key=key, ChecksumAlgorithm=algorithm.value)
        upload_id = response["UploadId"]
        estimated_parts = max(1, -(-file_size // chunk_size))

        logger.debug(
            f"Starting multipart upload for {bucket}/{key} "
            f"(upload_id={upload_id}, file_size={file_size // 1024 // 1024}MB, "
            f"chunk_size={chunk_size // 1024 // 1024}MB, estimated_parts={estimated_parts})"
        )

        chunk_queue: asyncio.Queue[tuple[int, bytes] | None] = asyncio.Queue(maxsize=self.queue_size)
        results: list[dict[str, Any]] = []

        async def producer() -> None:
            """Read the file and queue numbered chunks."""
            part_number = 1
            async with aiofiles.open(file_path, "rb") as f:
                while True:
                    chunk = await f.read(chunk_size)
                    if not chunk and part_number > 1:
                        break
                    await chunk_queue.put((part_number, chunk))
                    part_number += 1
                    if not chunk:
                        # Empty file still needs one (empty) part
                        break
            for _ in range(self.max_concurrent_parts):
                await chunk_queue.put(None)

        async def consumer() -> None:
            """Upload queued chunks until the end-of-file marker."""
            while True:
                item = await chunk_queue.get()
                if item is None:
                    break

                part_number, chunk = item
                checksum = Checksummer(algorithm)
                checksum.update(chunk)
                digest = checksum.b64digest()

                part_response = await client.upload_part(
                    Bucket=bucket,
                    Key=key,
                    PartNumber=part_number,
                    UploadId=upload_id,
                    Body=chunk,
                    ChecksumAlgorithm=algorithm.value,
                    **{checksum_field: digest},
                )
                results.append({"ETag": part_response["ETag"], "PartNumber": part_number, checksum_field: digest})
                logger.debug(f"Uploaded part {part_number} ({len(chunk) // 1024}KB) for {bucket}/{key}")

        tasks = [asyncio.create_task(producer())]
        tasks += [asyncio.create_task(consumer()) for _ in range(self.max_concurrent_parts)]

        try:
            try:
                await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

            parts = sorted(results, key=lambda part: part["PartNumber"])
            logger.debug(f"All {len(parts)} parts uploaded, completing multipart upload ({bucket}/{key})")

            completed = await client.complete_multipart_upload(
                Bucket=bucket, Key=key, UploadId=upload_id, MultipartUpload={"Parts": parts}
            )
        except BaseException:
            try:
                await client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)
                logger.error(f"Aborted multipart upload ({bucket}/{key}, upload_id={upload_id})")
            except Exception as abort_error:
                logger.warning(f"Failed to abort multipart upload {upload_id} for {bucket}/{key}: {abort_error}")
            raise

        logger.debug(f"Multipart upload completed ({bucket}/{key}, upload_id={upload_id})")
        return (completed or {}).get("ETag")
