"""Content-derived identifier for mapping documents.

The identifier is a name-based (version 5) UUID of the raw document bytes in
a namespace that is itself derived from a fixed DNS name, so the same mapping
file always yields the same UUID regardless of where it was loaded from.
"""
from __future__ import annotations

import hashlib
import uuid
from typing import Any

IDENTITY_DOMAIN = "guardsquare.com"
IDENTITY_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_DNS, IDENTITY_DOMAIN)


def mapping_uuid(data: Any, namespace: uuid.UUID = IDENTITY_NAMESPACE) -> uuid.UUID:
    """Return the version-5 UUID of ``data`` (any bytes-like buffer, incl. mmap).

    Equivalent to ``uuid.uuid5(namespace, data)`` but hashes the buffer in
    place instead of materializing a copy.
    """
    digest = hashlib.sha1(namespace.bytes, usedforsecurity=False)
    digest.update(data)
    return uuid.UUID(bytes=digest.digest()[:16], version=5)
