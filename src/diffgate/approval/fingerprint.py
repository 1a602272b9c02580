"""Content fingerprints for proposed changes."""

import hashlib

DEFAULT_FINGERPRINT_LENGTH = 16


def fingerprint(path: str, before: str, after: str, length: int = DEFAULT_FINGERPRINT_LENGTH) -> str:
    """
    Derive the identifier of a proposed change.

    Each input is framed as ``<byte length>:<bytes>`` before hashing, so no
    choice of file content can make two different triples digest the same
    byte stream.

    Args:
        path: Target file path
        before: Current file content ('' for a new file)
        after: Proposed file content
        length: Number of hex characters to keep

    Returns:
        Truncated lowercase SHA-256 hex digest
    """
    digest = hashlib.sha256()
    for part in (path, before, after):
        encoded = part.encode("utf-8", errors="surrogatepass")
        digest.update(f"{len(encoded)}:".encode("ascii"))
        digest.update(encoded)
    return digest.hexdigest()[:length]
