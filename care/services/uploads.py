"""
Medical record file uploads.

Files arrive either as multipart parts or as base64 data URLs
(``data:<mime>;base64,<payload>``).  Both paths are validated against
``UPLOAD_MAX_MB`` and ``ALLOWED_UPLOAD_TYPES`` before a
:class:`~care.models.MedicalFile` row is written.
"""
from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
import os
import re
from typing import Iterable, Optional

from django.conf import settings
from django.core.files.base import ContentFile
from django.db import transaction
from rest_framework.exceptions import NotFound

from care.exceptions import UploadRejected
from care.models import MedicalFile, PatientRecord, User
from care.services.audit import log_action

logger = logging.getLogger(__name__)

DATA_URL_RE = re.compile(r'^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<payload>.*)$', re.DOTALL)

MIME_EXTENSIONS = {
    'image/jpeg': 'jpg',
    'image/png': 'png',
    'application/pdf': 'pdf',
    'application/msword': 'doc',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document': 'docx',
}


def max_upload_bytes() -> int:
    return settings.UPLOAD_MAX_MB * 1024 * 1024


def is_allowed_type(content_type: str) -> bool:
    content_type = (content_type or '').lower()
    return any(content_type.startswith(prefix) for prefix in settings.ALLOWED_UPLOAD_TYPES if prefix)


def check_file(name: str, content_type: str, size: int) -> None:
    if size > max_upload_bytes():
        raise UploadRejected(f'{name}: file exceeds {settings.UPLOAD_MAX_MB} MB')
    if size == 0:
        raise UploadRejected(f'{name}: file is empty')
    if not is_allowed_type(content_type):
        raise UploadRejected(f'{name}: file type {content_type or "unknown"} is not allowed')


def extension_for(name: str, content_type: str) -> str:
    """Extension for a stored file, taken from the name or else the MIME type."""
    ext = os.path.splitext(name or '')[1].lstrip('.').lower()
    if ext:
        return ext
    if content_type in MIME_EXTENSIONS:
        return MIME_EXTENSIONS[content_type]
    guessed = mimetypes.guess_extension(content_type or '') or ''
    return guessed.lstrip('.') or 'bin'


def decode_data_url(name: str, data: str) -> tuple[str, bytes]:
    """Return ``(content_type, raw_bytes)`` for a base64 data URL."""
    m = DATA_URL_RE.match((data or '').strip())
    if not m:
        raise UploadRejected(f'{name}: malformed data URL')
    payload = m.group('payload').strip()
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise UploadRejected(f'{name}: invalid base64 payload')
    return m.group('mime').lower(), raw


def serialize_file(f: MedicalFile) -> dict:
    return {
        'id': f.id,
        'name': f.original_name,
        'path': f.file.name,
        'url': f.file.url,
        'size': f.size,
        'type': f.content_type,
        'recordId': f.record_id,
        'createdAt': f.created_at.isoformat(),
    }


def _owned_record(owner: User, record_id: Optional[int]) -> Optional[PatientRecord]:
    if not record_id:
        return None
    record = PatientRecord.objects.filter(id=record_id, patient=owner).first()
    if not record:
        raise UploadRejected('record not found for this patient')
    return record


@transaction.atomic
def store_uploads(owner: User, *, files: Iterable = (), base64_files: Iterable[dict] = (),
                  record_id: Optional[int] = None) -> list[MedicalFile]:
    """Validate every file first, then store them all.

    A single rejected file rejects the whole batch.
    """
    record = _owned_record(owner, record_id)
    pending: list[tuple[str, str, str, object]] = []

    for upload in files:
        name = os.path.basename(upload.name or 'upload')
        content_type = (getattr(upload, 'content_type', '') or mimetypes.guess_type(name)[0] or '').lower()
        check_file(name, content_type, upload.size)
        pending.append((name, name, content_type, upload))

    for item in base64_files:
        name = os.path.basename(item.get('name') or 'upload')
        content_type, raw = decode_data_url(name, item.get('data') or '')
        check_file(name, content_type, len(raw))
        stem = os.path.splitext(name)[0] or 'upload'
        stored_name = f"{stem}.{extension_for(name, content_type)}"
        pending.append((name, stored_name, content_type, ContentFile(raw)))

    stored = []
    for name, stored_name, content_type, content in pending:
        mf = MedicalFile(owner=owner, record=record, original_name=name, content_type=content_type,
                         size=content.size)
        mf.file.save(stored_name, content, save=False)
        mf.save()
        stored.append(mf)

    log_action(user=owner, action='upload', object_type='medical_file', object_id=None,
               detail={'count': len(stored), 'ids': [f.id for f in stored]})
    logger.info('user %s uploaded %d file(s)', owner.id, len(stored))
    return stored


def delete_upload(owner: User, file_id: int) -> None:
    mf = MedicalFile.objects.filter(id=file_id, owner=owner).first()
    if not mf:
        raise NotFound('file not found')
    mf.file.delete(save=False)
    mf.delete()
    log_action(user=owner, action='upload_delete', object_type='medical_file', object_id=file_id)
