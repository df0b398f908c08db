"""Content checksums in the base64 form the S3 checksum headers expect."""

import base64
import hashlib
import zlib
from enum import Enum

from .errors import InvalidRequestError


class ChecksumAlgorithm(Enum):
    SHA256 = "SHA256"
    SHA1 = "SHA1"
    CRC32 = "CRC32"

    @property
    def request_field(self) -> str:
        """Parameter / response field carrying this checksum, e.g. ChecksumSHA256."""
        return f"Checksum{self.value}"

    @classmethod
    def parse(cls, value: "str | ChecksumAlgorithm") -> "ChecksumAlgorithm":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper().replace("-", ""))
        except ValueError as e:
            raise InvalidRequestError(f"Unsupported checksum algorithm: {value}") from e


class Checksummer:
    """Incremental checksum, so large payloads can be hashed while streaming."""

    def __init__(self, algorithm: ChecksumAlgorithm | str = ChecksumAlgorithm.SHA256) -> None:
        self.algorithm = ChecksumAlgorithm.parse(algorithm)
        self._crc = 0
        self._hash = None
        if self.algorithm is ChecksumAlgorithm.SHA256:
            self._hash = hashlib.sha256()
        elif self.algorithm is ChecksumAlgorithm.SHA1:
            self._hash = hashlib.sha1()

    def update(self, data: bytes) -> None:
        if self._hash is not None:
            self._hash.update(data)
        else:
            self._crc = zlib.crc32(data, self._crc)

    def digest(self) -> bytes:
        if self._hash is not None:
            return self._hash.digest()
        return self._crc.to_bytes(4, "big")

    def b64digest(self) -> str:
        return base64.b64encode(self.digest()).decode("ascii")


def compute_checksum(data: bytes, algorithm: ChecksumAlgorithm | str = ChecksumAlgorithm.SHA256) -> str:
    """Return the base64-encoded checksum of ``data``."""
    checksummer = Checksummer(algorithm)
    checksummer.update(data)
    return checksummer.b64digest()
