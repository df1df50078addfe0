import hashlib
from typing import BinaryIO, Tuple


EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

CHUNK_SIZE = 8 * 1024 * 1024


def compute_checksum(data: bytes) -> str:
    """Hex SHA-256 of an uploaded artifact."""
    return hashlib.sha256(data).hexdigest()


def checksum_stream(fileobj: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Tuple[str, int]:
    """Hash a file object chunk by chunk from its current position.

    Returns the hex digest and the number of bytes read; the stream is left
    at its end.
    """
    digest = hashlib.sha256()
    size = 0
    while True:
        chunk = fileobj.read(chunk_size)
        if not chunk:
            break
        digest.update(chunk)
        size += len(chunk)
    return digest.hexdigest(), size
