"""Dataset identifiers and their URL-safe encoding."""

from __future__ import annotations

import base64
import binascii
import re
from typing import Optional

Dataset = str

_ALPHABET = re.compile(r"[A-Za-z0-9_-]*")


def encode_dataset(dataset: str) -> str:
    """Encode a dataset name as unpadded URL-safe base64."""
    return base64.urlsafe_b64encode(dataset.encode("utf-8")).rstrip(b"=").decode("ascii")


def decode_dataset(text: str) -> Optional[Dataset]:
    """Decode unpadded URL-safe base64 into a dataset name, or ``None`` if invalid."""
    if not _ALPHABET.fullmatch(text) or len(text) % 4 == 1:
        return None
    padded = text + "=" * (-len(text) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError):
        return None
    # Reject encodings with non-zero trailing bits.
    if base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii") != text:
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None