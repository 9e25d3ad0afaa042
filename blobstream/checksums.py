"""Checksum helpers for object payloads.

CRC32C values travel on the wire as unsigned 32 bit integers and MD5 hashes as
raw digests. Callers and object metadata use the base64 forms, matching the
JSON API, so conversions in both directions live here too.
"""

import base64
import hashlib
import struct

import google_crc32c


def crc32c(data: bytes) -> int:
    """Return the CRC32C checksum of ``data``."""
    return google_crc32c.value(data)


def md5_hash(data: bytes) -> bytes:
    """Return the raw 16 byte MD5 digest of ``data``."""
    return hashlib.md5(data).digest()


def crc32c_to_base64(value: int) -> str:
    """Encode a CRC32C value as base64 of its big-endian bytes."""
    return base64.b64encode(struct.pack(">I", value)).decode("ascii")


def crc32c_from_base64(value: str) -> int:
    """Decode a base64 big-endian CRC32C into an integer.

    Raises:
        ValueError: If the decoded value is not exactly four bytes.
    """
    decoded = base64.b64decode(value)
    if len(decoded) != 4:
        raise ValueError(f"Invalid CRC32C value: {value!r}")
    return struct.unpack(">I", decoded)[0]


def md5_to_base64(digest: bytes) -> str:
    """Encode a raw MD5 digest as base64."""
    if not digest:
        return ""
    return base64.b64encode(digest).decode("ascii")


def md5_from_base64(value: str) -> bytes:
    """Decode a base64 MD5 hash into its raw digest."""
    if not value:
        return b""
    return base64.b64decode(value)
