# union_core/uploads/storage.py
from __future__ import annotations

import base64
import binascii
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.utils import timezone

from union_core.common.api.exceptions import StorageError

logger = logging.getLogger(__name__)

UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9_.-]")
PATH_SEGMENT_RE = re.compile(r"^[a-zA-Z0-9_.-]+$")


def sanitize_filename(name: str) -> str:
    return UNSAFE_FILENAME_RE.sub("_", name or "")


def is_safe_segment(value: Optional[str]) -> bool:
    """One path component: no separators, not "." or ".."."""
    return bool(value) and PATH_SEGMENT_RE.match(value) is not None and value not in (".", "..")


def build_storage_path(
    *,
    tenant_id: UUID,
    target_table: str,
    target_id: Optional[str],
    filename: str,
    now: Optional[datetime] = None,
    file_uuid: Optional[UUID] = None,
) -> str:
    """
    union/{tenant_id}/{target_table}/{target_id?}/{yyyy}/{mm}/{dd}/{uuid}_{filename}
    """
    if not is_safe_segment(target_table):
        raise ValueError(f"unsafe target_table: {target_table!r}")
    if target_id and not is_safe_segment(str(target_id)):
        raise ValueError(f"unsafe target_id: {target_id!r}")

    now = now or timezone.now()
    file_uuid = file_uuid or uuid.uuid4()

    parts = ["union", str(tenant_id), target_table]
    if target_id:
        parts.append(str(target_id))
    parts += [f"{now:%Y}", f"{now:%m}", f"{now:%d}", f"{file_uuid}_{sanitize_filename(filename)}"]
    return "/".join(parts)


def decode_base64(data: str) -> bytes:
    """Accepts raw base64 or a data URL (data:<mime>;base64,<payload>)."""
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("invalid base64 payload") from exc


@dataclass(frozen=True)
class StoredFile:
    bucket: str
    path: str
    file_url: str


def store_file(*, path: str, content) -> StoredFile:
    """Writes under the configured bucket; storage failures become StorageError."""
    bucket = settings.UPLOAD_BUCKET
    try:
        saved = default_storage.save(f"{bucket}/{path}", content)
        url = default_storage.url(saved)
    except (OSError, ValueError) as exc:
        logger.exception("upload to %s failed", path)
        raise StorageError(f"Could not store file: {exc}") from exc

    return StoredFile(bucket=bucket, path=saved[len(bucket) + 1:], file_url=url)


def store_base64(*, path: str, data: str) -> StoredFile:
    return store_file(path=path, content=ContentFile(decode_base64(data)))
