"""
Error classification

Maps whatever a remote call raised into an OperationOutcome. Service errors
carry a ``response["Error"]`` mapping (botocore ClientError shape); anything
without one is treated as a transport failure.
"""

from typing import Any

from .outcomes import OperationOutcome

NOT_FOUND_CODES = frozenset({"NoSuchBucket", "NoSuchKey", "NoSuchVersion", "NotFound", "404"})
ALREADY_EXISTS_CODES = frozenset({"BucketAlreadyExists", "BucketAlreadyOwnedByYou"})
ACCESS_DENIED_CODES = frozenset(
    {
        "AccessDenied",
        "AllAccessDisabled",
        "AccountProblem",
        "InvalidAccessKeyId",
        "SignatureDoesNotMatch",
        "ExpiredToken",
        "InvalidToken",
        "Forbidden",
        "403",
    }
)
ENTITY_TOO_LARGE_CODES = frozenset({"EntityTooLarge"})


class InvalidRequestError(ValueError):
    """Raised when a caller passes input that cannot be sent to the service."""

    pass


class ConfigError(ValueError):
    """Raised when client configuration is missing or malformed."""

    pass


def _service_error_details(error: BaseException) -> tuple[str | None, str, int | None]:
    """Extract (code, message, http_status) from a service error, if it has that shape."""
    response: Any = getattr(error, "response", None)
    if not isinstance(response, dict):
        return None, str(error), None

    details = response.get("Error") or {}
    code = details.get("Code")
    message = details.get("Message") or str(error)
    status = (response.get("ResponseMetadata") or {}).get("HTTPStatusCode")

    # HEAD responses have no body, so the code is often just the status number
    if not code and status is not None:
        code = str(status)
    return (str(code) if code else None), message, status


def classify(error: BaseException) -> OperationOutcome:
    """Classify a raised error into a semantic outcome.

    Pure function: no retries, no logging.
    """
    code, message, status = _service_error_details(error)

    if code is None and status is None:
        return OperationOutcome.service_error("transport", message)

    if code in NOT_FOUND_CODES or status == 404:
        return OperationOutcome.not_found(code, message)
    if code in ALREADY_EXISTS_CODES:
        return OperationOutcome.already_exists(code, message)
    if code in ACCESS_DENIED_CODES or status == 403:
        return OperationOutcome.access_denied(code, message)
    if code in ENTITY_TOO_LARGE_CODES:
        return OperationOutcome.entity_too_large(code, message)

    return OperationOutcome.service_error(code or str(status), message)


def describe_already_exists(outcome: OperationOutcome, name: str) -> str:
    """Diagnostic text distinguishing buckets we own from buckets owned by others."""
    if outcome.code == "BucketAlreadyOwnedByYou":
        return f"Bucket '{name}' already exists and is owned by you"
    return f"Bucket '{name}' already exists and is owned by another account"
