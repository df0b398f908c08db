"""
Operation outcomes

Every manager operation resolves to an OperationOutcome rather than raising,
so callers can branch on the semantic kind without matching message strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class OutcomeKind(Enum):
    """Closed set of results a storage operation can produce."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    ACCESS_DENIED = "access_denied"
    ENTITY_TOO_LARGE = "entity_too_large"
    SERVICE_ERROR = "service_error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class OperationOutcome:
    """Tagged result of a single storage operation.

    ``code`` holds the service error code when one was reported (for example
    ``BucketAlreadyOwnedByYou``) or ``"transport"`` for network failures.
    """

    kind: OutcomeKind
    code: str | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @classmethod
    def success(cls) -> OperationOutcome:
        return cls(OutcomeKind.SUCCESS)

    @classmethod
    def not_found(cls, code: str | None = None, message: str = "") -> OperationOutcome:
        return cls(OutcomeKind.NOT_FOUND, code, message)

    @classmethod
    def already_exists(cls, code: str | None = None, message: str = "") -> OperationOutcome:
        return cls(OutcomeKind.ALREADY_EXISTS, code, message)

    @classmethod
    def access_denied(cls, code: str | None = None, message: str = "") -> OperationOutcome:
        return cls(OutcomeKind.ACCESS_DENIED, code, message)

    @classmethod
    def entity_too_large(cls, code: str | None = "EntityTooLarge", message: str = "") -> OperationOutcome:
        return cls(OutcomeKind.ENTITY_TOO_LARGE, code, message)

    @classmethod
    def service_error(cls, code: str, message: str = "") -> OperationOutcome:
        return cls(OutcomeKind.SERVICE_ERROR, code, message)

    @classmethod
    def timeout(cls, message: str = "") -> OperationOutcome:
        return cls(OutcomeKind.TIMEOUT, None, message)

    @classmethod
    def cancelled(cls, message: str = "") -> OperationOutcome:
        return cls(OutcomeKind.CANCELLED, None, message)

    def __str__(self) -> str:
        parts = [self.kind.value]
        if self.code:
            parts.append(f"[{self.code}]")
        if self.message:
            parts.append(self.message)
        return " ".join(parts)


@dataclass(frozen=True, slots=True)
class Container:
    """A bucket visible to the caller's credentials."""

    name: str
    created_at: datetime | None = None
    region: str | None = None


@dataclass(frozen=True, slots=True)
class Item:
    """An object listed inside a bucket."""

    container: str
    key: str
    size_bytes: int = 0
    etag: str | None = None
    last_modified: datetime | None = None
    version_id: str | None = None


@dataclass(frozen=True, slots=True)
class ItemIdentity:
    """Key plus optional version id; omitted version means the current version."""

    key: str
    version_id: str | None = None

    def to_request(self) -> dict[str, str]:
        identifier = {"Key": self.key}
        if self.version_id:
            identifier["VersionId"] = self.version_id
        return identifier


@dataclass(frozen=True, slots=True)
class BatchItemOutcome:
    """Outcome for one item of a batch delete."""

    item: ItemIdentity
    outcome: OperationOutcome

    @property
    def ok(self) -> bool:
        return self.outcome.ok


def batch_succeeded(outcomes: list[BatchItemOutcome]) -> bool:
    """A batch counts as successful only when every item was confirmed."""
    return bool(outcomes) and all(result.ok for result in outcomes)
