"""Conversions between request models and wire messages.

The streaming engine never reads metadata fields itself; it asks this module
for the object spec of the first frame and for the metadata of the finalized
object.
"""

from __future__ import annotations

from enum import Enum

from blobstream.checksums import (
    crc32c_from_base64,
    crc32c_to_base64,
    md5_from_base64,
    md5_to_base64,
)
from blobstream.exceptions import InvalidArgumentError
from blobstream.models import (
    EncryptionKey,
    ObjectMetadata,
    ObjectWriteRequest,
    ResumableUploadRequest,
    WriteConditions,
)
from blobstream.wire import (
    CommonObjectRequestParams,
    CommonRequestParams,
    InsertObjectSpec,
    WireObject,
)


class AclTarget(str, Enum):
    """Resource kind a predefined ACL applies to."""

    BUCKET = "bucket"
    OBJECT = "object"


_BUCKET_PREDEFINED_ACLS: dict[str, str] = {
    "authenticatedRead": "BUCKET_ACL_AUTHENTICATED_READ",
    "private": "BUCKET_ACL_PRIVATE",
    "projectPrivate": "BUCKET_ACL_PROJECT_PRIVATE",
    "publicRead": "BUCKET_ACL_PUBLIC_READ",
    "publicReadWrite": "BUCKET_ACL_PUBLIC_READ_WRITE",
}

_OBJECT_PREDEFINED_ACLS: dict[str, str] = {
    "authenticatedRead": "OBJECT_ACL_AUTHENTICATED_READ",
    "bucketOwnerFullControl": "OBJECT_ACL_BUCKET_OWNER_FULL_CONTROL",
    "bucketOwnerRead": "OBJECT_ACL_BUCKET_OWNER_READ",
    "private": "OBJECT_ACL_PRIVATE",
    "projectPrivate": "OBJECT_ACL_PROJECT_PRIVATE",
    "publicRead": "OBJECT_ACL_PUBLIC_READ",
}


def predefined_acl_to_wire(acl: str, target: AclTarget) -> str:
    """Map a predefined ACL name to its wire enum for the given target.

    Args:
        acl: JSON API name such as ``"publicRead"``.
        target: Whether the ACL is applied to a bucket or an object.

    Returns:
        The wire enum name.

    Raises:
        InvalidArgumentError: If the ACL is not valid for ``target``.
    """
    if target == AclTarget.BUCKET:
        mapping = _BUCKET_PREDEFINED_ACLS
    elif target == AclTarget.OBJECT:
        mapping = _OBJECT_PREDEFINED_ACLS
    else:
        raise InvalidArgumentError(f"Unknown ACL target: {target!r}")
    try:
        return mapping[acl]
    except KeyError as exc:
        raise InvalidArgumentError(
            f"Predefined ACL {acl!r} is not valid for a {target.value}"
        ) from exc


def apply_conditions(target: object, conditions: WriteConditions) -> None:
    """Copy the set preconditions onto a wire message."""
    for name in (
        "if_generation_match",
        "if_generation_not_match",
        "if_metageneration_match",
        "if_metageneration_not_match",
    ):
        value = getattr(conditions, name)
        if value is not None:
            setattr(target, name, value)


def common_request_params(
    user_project: str | None, quota_user: str | None
) -> CommonRequestParams | None:
    """Build common request parameters, or ``None`` when nothing is set."""
    if user_project is None and quota_user is None:
        return None
    return CommonRequestParams(user_project=user_project, quota_user=quota_user)


def common_object_request_params(
    key: EncryptionKey | None,
) -> CommonObjectRequestParams | None:
    """Build encryption parameters for a customer-supplied key."""
    if key is None:
        return None
    return CommonObjectRequestParams(
        encryption_algorithm=key.algorithm,
        encryption_key=key.key,
        encryption_key_sha256=key.sha256,
    )


def decode_crc32c(value: str) -> int:
    """Decode a caller-supplied base64 CRC32C.

    Raises:
        InvalidArgumentError: If ``value`` is not a base64 encoded uint32.
    """
    try:
        return crc32c_from_base64(value)
    except ValueError as exc:
        raise InvalidArgumentError(f"Invalid crc32c_value {value!r}") from exc


def decode_md5(value: str) -> bytes:
    """Decode a caller-supplied base64 MD5 hash.

    Raises:
        InvalidArgumentError: If ``value`` is not a base64 encoded digest.
    """
    try:
        digest = md5_from_base64(value)
    except ValueError as exc:
        raise InvalidArgumentError(f"Invalid md5_hash_value {value!r}") from exc
    if len(digest) != 16:
        raise InvalidArgumentError(f"Invalid md5_hash_value {value!r}")
    return digest


def build_object_spec(
    request: ObjectWriteRequest | ResumableUploadRequest,
) -> InsertObjectSpec:
    """Build the object spec sent on the first frame of a write."""
    resource = WireObject(
        bucket=request.bucket_name,
        name=request.object_name,
        content_type=request.content_type or "",
        content_encoding=request.content_encoding or "",
        metadata=dict(request.metadata),
    )
    if request.crc32c_value:
        resource.crc32c = decode_crc32c(request.crc32c_value)
    if request.md5_hash_value:
        resource.md5_hash = decode_md5(request.md5_hash_value)

    spec = InsertObjectSpec(resource=resource)
    if request.predefined_acl:
        spec.predefined_acl = predefined_acl_to_wire(
            request.predefined_acl, AclTarget.OBJECT
        )
    apply_conditions(spec, request.conditions)
    return spec


def object_metadata_from_wire(resource: WireObject) -> ObjectMetadata:
    """Translate a wire object into ``ObjectMetadata``."""
    return ObjectMetadata(
        bucket=resource.bucket,
        name=resource.name,
        generation=resource.generation,
        metageneration=resource.metageneration,
        size=resource.size,
        content_type=resource.content_type,
        content_encoding=resource.content_encoding,
        crc32c=(
            crc32c_to_base64(resource.crc32c) if resource.crc32c is not None else ""
        ),
        md5_hash=md5_to_base64(resource.md5_hash),
        metadata=dict(resource.metadata),
    )
