from __future__ import annotations

import hashlib


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def content_fingerprint(content: str) -> str:
    """
    Fingerprint used to detect unchanged document content between crawls.
    """
    return sha256_bytes(content.encode("utf-8"))


def advisory_key(text: str) -> str:
    """
    Namespaced text for pg_advisory_xact_lock(hashtextextended(...)).
    """
    return f"pika:{text}"
