#!/usr/bin/env python3
"""
SHA-256 content fingerprinting.

The fingerprint is the primary deduplication and correlation key: two
observations with equal fingerprints carry the same content. Text is
hashed as its UTF-8 encoding so a text record and the bytes it was read
from fingerprint identically.
"""
import hashlib

__all__ = ["compute_fingerprint"]


def compute_fingerprint(content: str | bytes) -> str:
    """
    Compute SHA-256 fingerprint of clipboard content.

    Args:
        content: Text or raw bytes of the clipboard entry.

    Returns:
        Hexadecimal string representation of the SHA-256 digest.
    """
    # surrogateescape maps undecodable input bytes back to themselves
    data = content.encode("utf-8", "surrogateescape") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()

