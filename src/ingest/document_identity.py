"""Deterministic document identity.

This module derives the index ``_id`` used for upsert-by-id writes.
Re-ingesting the same logical record always yields the same id.
"""

from __future__ import annotations

import hashlib

from core.constants import IDENTITY_HASH_ALGORITHM, IDENTITY_SEPARATOR
from core.types import CanonicalDocument


def build_document_id(document: CanonicalDocument) -> str:
    """Return the external id when present, else a content hash.

    Args:
        document: Canonical document.

    Returns:
        Stable identity string.
    """
    if document.internal_id:
        return document.internal_id
    return build_content_hash(document)


def build_content_hash(document: CanonicalDocument) -> str:
    """Hash the identifying fields in a fixed order, case-insensitively."""
    components = (
        document.internal_id,
        document.mobile,
        document.name,
        document.father_name,
        document.address,
        document.alt_mobile,
        document.person_id,
        document.email,
    )
    hasher = hashlib.new(IDENTITY_HASH_ALGORITHM)
    hasher.update(IDENTITY_SEPARATOR.join(part.lower() for part in components).encode("utf-8"))
    return hasher.hexdigest()
