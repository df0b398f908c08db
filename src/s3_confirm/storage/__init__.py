"""
Storage Package

Container and item managers. Both borrow the S3 client from the facade and
hold no per-call state.
"""

from .containers import ContainerManager
from .items import ItemManager
from .multipart import MultipartUploader

__all__ = [
    "ContainerManager",
    "ItemManager",
    "MultipartUploader",
]
