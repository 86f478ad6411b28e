"""
Deterministic content hashing for schema change detection.

A resource's create statement is hashed and the digest stored next to
the resource's name. On the next run the statement is hashed again;
the resource is only recreated when the two digests differ.

Manifesto:
    Views and functions cannot be migrated incrementally without
    hand-written ALTERs that conflict whenever two people edit the same
    definition. Hashing the full CREATE text turns "did this change?"
    into a string comparison:

    - **Deterministic:** Same SQL text always produces the same digest
    - **Collision-resistant:** SHA-256, not a checksum
    - **Printable:** URL-safe base64 so it fits a TEXT column and log lines
    - **Whitespace-sensitive:** Any edit to the SQL counts as a change

Examples:
    >>> h1 = compute_schema_hash("CREATE MATERIALIZED VIEW v1 AS SELECT 1")
    >>> h2 = compute_schema_hash("CREATE MATERIALIZED VIEW v1 AS SELECT 1")
    >>> h1 == h2
    True
    >>> len(h1)
    44

Tags:
    hashing, change-detection, idempotency, schema-spine

Doc-Types:
    - API Reference
"""

import base64
import hashlib

SCHEMA_HASH_LENGTH = 44


def compute_schema_hash(sql: str) -> str:
    """
    Compute the stored digest for a resource's create statement.

    Args:
        sql: The complete statement that creates the resource from scratch

    Returns:
        URL-safe base64 encoding of the SHA-256 digest (44 chars, padded)
    """
    digest = hashlib.sha256(sql.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii")
