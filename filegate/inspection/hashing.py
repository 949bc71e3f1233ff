import hashlib


def sha256_hex(data: bytes) -> str:
    """Compute the SHA-256 hex digest of ``data``."""
    return hashlib.sha256(data).hexdigest()
