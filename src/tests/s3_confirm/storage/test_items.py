"""Tests for object upload / delete / list / download."""

import asyncio

import pytest

from s3_confirm.checksums import compute_checksum
from s3_confirm.outcomes import OutcomeKind
from tests.test_utils.fake_s3 import client_error


@pytest.fixture
def bucket(fake_s3):
    fake_s3.add_bucket("docs")
    return "docs"


@pytest.mark.asyncio
async def test_upload_then_download_round_trip(storage, fake_s3, bucket, tmp_path):
    payload = b"quarterly numbers\n" * 100

    key, outcome = await storage.items.upload(bucket, "reports/q1.txt", payload)

    assert outcome.ok
    assert key == "reports/q1.txt"
    put = next(params for operation, params in fake_s3.requests if operation == "put_object")
    assert put["ChecksumAlgorithm"] == "SHA256"
    assert put["ChecksumSHA256"] == compute_checksum(payload)

    destination = tmp_path / "nested" / "dir" / "q1.txt"
    outcome = await storage.items.download(bucket, "reports/q1.txt", destination)

    assert outcome.ok
    assert destination.read_bytes() == payload
    assert not destination.with_name("q1.txt.part").exists()


@pytest.mark.asyncio
async def test_upload_waits_until_visible(storage, fake_s3, bucket):
    fake_s3.visibility_lag = 2

    key, outcome = await storage.items.upload(bucket, "a.txt", b"a")

    assert outcome.ok
    assert fake_s3.calls["head_object"] == 3


@pytest.mark.asyncio
async def test_upload_with_crc32(storage, fake_s3, bucket):
    key, outcome = await storage.items.upload(bucket, "a.txt", b"hello", algorithm="CRC32")

    assert outcome.ok
    put = next(params for operation, params in fake_s3.requests if operation == "put_object")
    assert put["ChecksumCRC32"] == "NhCmhg=="


@pytest.mark.asyncio
async def test_upload_oversized_payload_makes_no_remote_call(storage, fake_s3, bucket):
    storage.items.single_put_max_bytes = 10

    key, outcome = await storage.items.upload(bucket, "big.bin", b"x" * 11)

    assert key is None
    assert outcome.kind is OutcomeKind.ENTITY_TOO_LARGE
    assert fake_s3.calls["put_object"] == 0
    assert fake_s3.calls["head_object"] == 0


@pytest.mark.asyncio
async def test_upload_service_entity_too_large(storage, fake_s3, bucket):
    fake_s3.failures["put_object"] = client_error("EntityTooLarge", "PutObject", 400)

    key, outcome = await storage.items.upload(bucket, "big.bin", b"x")

    assert key is None
    assert outcome.kind is OutcomeKind.ENTITY_TOO_LARGE
    assert fake_s3.calls["head_object"] == 0


@pytest.mark.asyncio
async def test_upload_to_missing_bucket(storage):
    key, outcome = await storage.items.upload("missing", "a.txt", b"a")

    assert key is None
    assert outcome.kind is OutcomeKind.NOT_FOUND


@pytest.mark.asyncio
async def test_upload_file_reads_local_file(storage, fake_s3, bucket, tmp_path):
    source = tmp_path / "notes.txt"
    source.write_bytes(b"some notes")

    key, outcome = await storage.items.upload_file(bucket, "notes.txt", source)

    assert outcome.ok
    assert fake_s3.buckets[bucket]["notes.txt"].body == b"some notes"


@pytest.mark.asyncio
async def test_upload_file_missing_source(storage, fake_s3, bucket, tmp_path):
    key, outcome = await storage.items.upload_file(bucket, "notes.txt", tmp_path / "missing.txt")

    assert key is None
    assert outcome.kind is OutcomeKind.SERVICE_ERROR
    assert outcome.code == "local_io"
    assert fake_s3.calls["put_object"] == 0


@pytest.mark.asyncio
async def test_upload_file_uses_multipart_above_threshold(storage, fake_s3, bucket, tmp_path, monkeypatch):
    monkeypatch.setattr(type(storage.items._multipart), "_calculate_part_size", lambda self, _: 4)
    storage.items.multipart_threshold = 8
    source = tmp_path / "large.bin"
    source.write_bytes(b"0123456789abcdef!")

    key, outcome = await storage.items.upload_file(bucket, "large.bin", source)

    assert outcome.ok
    assert fake_s3.calls["put_object"] == 0
    assert fake_s3.calls["upload_part"] == 5
    assert fake_s3.buckets[bucket]["large.bin"].body == b"0123456789abcdef!"


@pytest.mark.asyncio
async def test_delete_waits_until_gone(storage, fake_s3, bucket):
    fake_s3.add_object(bucket, "a.txt")
    fake_s3.visibility_lag = 2

    outcome = await storage.items.delete(bucket, "a.txt")

    assert outcome.ok
    assert "a.txt" not in fake_s3.buckets[bucket]
    assert fake_s3.calls["head_object"] == 3


@pytest.mark.asyncio
async def test_delete_passes_version_and_governance_bypass(storage, fake_s3, bucket):
    fake_s3.add_object(bucket, "a.txt")

    outcome = await storage.items.delete(bucket, "a.txt", version_id="v1", bypass_governance=True)

    assert outcome.ok
    params = next(params for operation, params in fake_s3.requests if operation == "delete_object")
    assert params["VersionId"] == "v1"
    assert params["BypassGovernanceRetention"] is True


@pytest.mark.asyncio
async def test_delete_access_denied(storage, fake_s3, bucket):
    fake_s3.failures["delete_object"] = client_error("AccessDenied", "DeleteObject", 403)

    outcome = await storage.items.delete(bucket, "a.txt")

    assert outcome.kind is OutcomeKind.ACCESS_DENIED
    assert fake_s3.calls["head_object"] == 0


@pytest.mark.asyncio
async def test_list_all_follows_pagination(storage, fake_s3, bucket):
    fake_s3.page_size = 2
    for index in range(5):
        fake_s3.add_object(bucket, f"logs/{index}.txt", b"x" * index)
    fake_s3.add_object(bucket, "other.txt")

    items, outcome = await storage.items.list_all(bucket, prefix="logs/")

    assert outcome.ok
    assert [item.key for item in items] == [f"logs/{index}.txt" for index in range(5)]
    assert [item.size_bytes for item in items] == [0, 1, 2, 3, 4]
    assert all(item.container == bucket for item in items)
    assert fake_s3.calls["list_objects_v2_page"] == 3


@pytest.mark.asyncio
async def test_list_all_empty_bucket(storage, bucket):
    items, outcome = await storage.items.list_all(bucket)

    assert items == []
    assert outcome.ok


@pytest.mark.asyncio
async def test_list_all_missing_bucket_is_service_error(storage):
    items, outcome = await storage.items.list_all("missing")

    assert items == []
    assert outcome.kind is OutcomeKind.SERVICE_ERROR
    assert outcome.code == "NoSuchBucket"


@pytest.mark.asyncio
async def test_download_missing_key(storage, bucket, tmp_path):
    destination = tmp_path / "out.txt"

    outcome = await storage.items.download(bucket, "missing.txt", destination)

    assert outcome.kind is OutcomeKind.NOT_FOUND
    assert not destination.exists()


@pytest.mark.asyncio
async def test_download_stream_failure_removes_partial_file(storage, fake_s3, bucket, tmp_path):
    fake_s3.add_object(bucket, "a.bin", b"abcdefgh")
    fake_s3.body_failures["a.bin"] = ConnectionResetError("connection reset by peer")
    destination = tmp_path / "a.bin"

    outcome = await storage.items.download(bucket, "a.bin", destination)

    assert outcome.kind is OutcomeKind.SERVICE_ERROR
    assert outcome.code == "transport"
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_download_checksum_mismatch(storage, fake_s3, bucket, tmp_path):
    fake_s3.add_object(bucket, "a.bin", b"abcdefgh")
    fake_s3.corrupt_keys.add("a.bin")
    destination = tmp_path / "a.bin"

    outcome = await storage.items.download(bucket, "a.bin", destination)

    assert outcome.code == "ChecksumMismatch"
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_download_keeps_existing_file_on_failure(storage, fake_s3, bucket, tmp_path):
    fake_s3.add_object(bucket, "a.bin", b"new contents")
    fake_s3.body_failures["a.bin"] = ConnectionResetError("reset")
    destination = tmp_path / "a.bin"
    destination.write_bytes(b"old contents")

    outcome = await storage.items.download(bucket, "a.bin", destination)

    assert not outcome.ok
    assert destination.read_bytes() == b"old contents"


@pytest.mark.asyncio
async def test_download_cancelled_removes_partial_file(storage, fake_s3, bucket, tmp_path):
    fake_s3.add_object(bucket, "a.bin", b"abcdefgh")
    fake_s3.hang.add("get_object")
    cancel_event = asyncio.Event()
    asyncio.get_running_loop().call_later(0.01, cancel_event.set)

    outcome = await storage.items.download(bucket, "a.bin", tmp_path / "a.bin", cancel_event=cancel_event)

    assert outcome.kind is OutcomeKind.CANCELLED
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_upload_deadline_returns_no_key(storage, fake_s3, bucket):
    fake_s3.hang.add("put_object")

    key, outcome = await storage.items.upload(bucket, "a.txt", b"a", deadline=0.05)

    assert key is None
    assert outcome.kind is OutcomeKind.TIMEOUT


@pytest.mark.asyncio
async def test_download_onto_directory_removes_partial_file(storage, fake_s3, bucket, tmp_path):
    fake_s3.add_object(bucket, "a.txt", b"data")
    destination = tmp_path / "out"
    destination.mkdir()

    outcome = await storage.items.download(bucket, "a.txt", destination)

    assert outcome.kind is OutcomeKind.SERVICE_ERROR
    assert outcome.code == "local_io"
    assert [path.name for path in tmp_path.iterdir()] == ["out"]
    assert list(destination.iterdir()) == []


@pytest.mark.asyncio
async def test_download_unusable_parent_makes_no_remote_call(storage, fake_s3, bucket, tmp_path):
    fake_s3.add_object(bucket, "a.txt", b"data")
    (tmp_path / "blocker").write_text("not a directory")

    outcome = await storage.items.download(bucket, "a.txt", tmp_path / "blocker" / "a.txt")

    assert outcome.code == "local_io"
    assert fake_s3.calls["get_object"] == 0


@pytest.mark.asyncio
async def test_concurrent_downloads_to_same_destination(storage, fake_s3, bucket, tmp_path):
    fake_s3.add_object(bucket, "a.bin", b"abcdefgh" * 1024)
    destination = tmp_path / "a.bin"

    outcomes = await asyncio.gather(
        storage.items.download(bucket, "a.bin", destination),
        storage.items.download(bucket, "a.bin", destination),
    )

    assert all(outcome.ok for outcome in outcomes)
    assert destination.read_bytes() == b"abcdefgh" * 1024
    assert [path.name for path in tmp_path.iterdir()] == ["a.bin"]
