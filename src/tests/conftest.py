"""Shared test configuration utilities and fixtures."""

from unittest.mock import patch

import pytest

from s3_confirm.client import StorageClient
from tests.test_utils.fake_s3 import FakeS3Client

FAST_CONFIG = {
    "region": "us-east-1",
    "operation_timeout": 2.0,
    "poll_min_interval": 0.0,
    "poll_max_interval": 0.0,
}


def _no_sleep(seconds):
    """Synchronous sleep stub used to short-circuit tenacity waits in tests."""
    return None


@pytest.fixture(scope="session", autouse=True)
def disable_retry_delays():
    """Disable convergence polling delays globally for all tests.

    Probes still repeat (testing the polling logic), but without wait times.
    Only patches tenacity's internal wait handling, not asyncio.sleep globally.
    """
    import tenacity

    original_base_run_wait = tenacity.BaseRetrying._run_wait
    original_async_run_wait = tenacity.AsyncRetrying._run_wait

    def _zero_wait(self, retry_state):
        """Invoke original wait logic but force the computed delay to zero."""
        original_base_run_wait(self, retry_state)
        retry_state.upcoming_sleep = 0.0

    async def _zero_wait_async(self, retry_state):
        """Async equivalent that still computes retry metadata without sleeping."""
        await original_async_run_wait(self, retry_state)
        retry_state.upcoming_sleep = 0.0

    with patch("tenacity.nap.sleep", side_effect=_no_sleep):
        with patch.object(tenacity.BaseRetrying, "_run_wait", _zero_wait):
            with patch.object(tenacity.AsyncRetrying, "_run_wait", _zero_wait_async):
                yield


@pytest.fixture
def fake_s3():
    """Empty in-memory S3 with immediate visibility."""
    return FakeS3Client()


@pytest.fixture
def storage(fake_s3):
    """StorageClient wired to the in-memory S3."""
    return StorageClient.from_client(fake_s3, dict(FAST_CONFIG))
