"""
s3-confirm

Bucket and object operations for S3 and S3-compatible storage that report
success only once the change is observable, with every result returned as a
classified OperationOutcome.
"""

from .checksums import ChecksumAlgorithm, compute_checksum
from .client import StorageClient
from .config import ClientConfig, build_client_config
from .convergence import ConvergenceWaiter
from .errors import ConfigError, InvalidRequestError, classify
from .outcomes import (
    BatchItemOutcome,
    Container,
    Item,
    ItemIdentity,
    OperationOutcome,
    OutcomeKind,
    batch_succeeded,
)
from .storage import ContainerManager, ItemManager, MultipartUploader

__all__ = [
    # Facade and configuration
    "StorageClient",
    "ClientConfig",
    "build_client_config",
    # Managers
    "ContainerManager",
    "ItemManager",
    "MultipartUploader",
    "ConvergenceWaiter",
    # Outcomes and records
    "OperationOutcome",
    "OutcomeKind",
    "BatchItemOutcome",
    "Container",
    "Item",
    "ItemIdentity",
    "batch_succeeded",
    # Errors
    "classify",
    "ConfigError",
    "InvalidRequestError",
    # Checksums
    "ChecksumAlgorithm",
    "compute_checksum",
]
