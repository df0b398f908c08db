"""Tests for error classification."""

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from s3_confirm.errors import classify, describe_already_exists
from s3_confirm.outcomes import OperationOutcome, OutcomeKind
from tests.test_utils.fake_s3 import client_error


@pytest.mark.parametrize(
    "code,expected",
    [
        ("NoSuchBucket", OutcomeKind.NOT_FOUND),
        ("NoSuchKey", OutcomeKind.NOT_FOUND),
        ("NoSuchVersion", OutcomeKind.NOT_FOUND),
        ("404", OutcomeKind.NOT_FOUND),
        ("BucketAlreadyExists", OutcomeKind.ALREADY_EXISTS),
        ("BucketAlreadyOwnedByYou", OutcomeKind.ALREADY_EXISTS),
        ("AccessDenied", OutcomeKind.ACCESS_DENIED),
        ("403", OutcomeKind.ACCESS_DENIED),
        ("EntityTooLarge", OutcomeKind.ENTITY_TOO_LARGE),
        ("SlowDown", OutcomeKind.SERVICE_ERROR),
    ],
)
def test_classify_service_codes(code, expected):
    outcome = classify(client_error(code, "AnyOperation"))

    assert outcome.kind is expected
    assert outcome.code == code


def test_classify_keeps_service_code_and_message():
    outcome = classify(client_error("InternalError", "PutObject", 500, "We encountered an internal error"))

    assert outcome == OperationOutcome.service_error("InternalError", "We encountered an internal error")


def test_classify_uses_http_status_when_code_missing():
    error = ClientError(
        error_response={"Error": {}, "ResponseMetadata": {"HTTPStatusCode": 404}}, operation_name="HeadBucket"
    )

    outcome = classify(error)

    assert outcome.kind is OutcomeKind.NOT_FOUND
    assert outcome.code == "404"


def test_classify_forbidden_status_is_access_denied():
    error = ClientError(
        error_response={"Error": {"Code": "Forbidden"}, "ResponseMetadata": {"HTTPStatusCode": 403}},
        operation_name="HeadBucket",
    )

    assert classify(error).kind is OutcomeKind.ACCESS_DENIED


def test_classify_transport_failure():
    outcome = classify(EndpointConnectionError(endpoint_url="https://s3.example.invalid"))

    assert outcome.kind is OutcomeKind.SERVICE_ERROR
    assert outcome.code == "transport"
    assert "s3.example.invalid" in outcome.message


def test_classify_plain_exception_is_transport():
    outcome = classify(ConnectionResetError("connection reset by peer"))

    assert outcome.kind is OutcomeKind.SERVICE_ERROR
    assert outcome.code == "transport"


def test_describe_already_exists_distinguishes_owner():
    mine = OperationOutcome.already_exists("BucketAlreadyOwnedByYou")
    theirs = OperationOutcome.already_exists("BucketAlreadyExists")

    assert "owned by you" in describe_already_exists(mine, "b")
    assert "another account" in describe_already_exists(theirs, "b")


def test_outcome_str_includes_code_and_message():
    outcome = OperationOutcome.service_error("SlowDown", "Please reduce your request rate")

    assert str(outcome) == "service_error [SlowDown] Please reduce your request rate"
    assert not outcome.ok
    assert OperationOutcome.success().ok
