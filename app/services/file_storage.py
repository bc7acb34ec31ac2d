"""
File Storage Service - Persist registration uploads to disk.

Accept policy is keyed by field purpose:
- resume, coverLetter, certificates -> .pdf .doc .docx
- profilePhoto, logo                -> .jpg .jpeg .png .svg

Max file size: 10MB (settings.max_upload_size_mb)

Files are stored as "<purpose>-<timestamp>-<random><ext>" and referenced
as "/uploads/<stored name>".
"""

import os
import secrets
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

import structlog

from app.core.config import get_settings
from app.core.errors import UploadRejected

logger = structlog.get_logger()

DOCUMENT_EXTENSIONS = {".pdf", ".doc", ".docx"}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".svg"}

UPLOAD_POLICIES: Dict[str, set] = {
    "resume": DOCUMENT_EXTENSIONS,
    "coverLetter": DOCUMENT_EXTENSIONS,
    "certificates": DOCUMENT_EXTENSIONS,
    "profilePhoto": IMAGE_EXTENSIONS,
    "logo": IMAGE_EXTENSIONS,
}

# Fields that may carry several files
MULTI_FILE_PURPOSES = {"certificates"}

REFERENCE_PREFIX = "/uploads/"


@dataclass
class IncomingFile:
    """An uploaded blob that has been read but not yet stored."""

    purpose: str
    filename: str
    content: bytes


def get_file_extension(filename: str) -> str:
    """Get lowercase file extension."""
    if '.' not in filename:
        return ''
    return '.' + filename.rsplit('.', 1)[1].lower()


def _describe(extensions: set) -> str:
    return ", ".join(sorted(ext.lstrip(".").upper() for ext in extensions))


class FileStorageService:
    """Stores uploads under a single directory and hands back reference paths."""

    def __init__(self, upload_dir: Optional[str] = None, max_size_bytes: Optional[int] = None):
        settings = get_settings()
        self.upload_dir = upload_dir or settings.upload_dir
        self.max_size_bytes = max_size_bytes or settings.max_upload_size_bytes

    def check(self, incoming: IncomingFile) -> None:
        """
        Apply the accept policy for the file's purpose.

        Raises:
            UploadRejected on unknown purpose, missing name, bad extension or size.
        """
        allowed = UPLOAD_POLICIES.get(incoming.purpose)
        if allowed is None:
            raise UploadRejected(f"Unexpected file field '{incoming.purpose}'")

        if not incoming.filename:
            raise UploadRejected(f"{incoming.purpose}: no filename provided")

        ext = get_file_extension(incoming.filename)
        if ext not in allowed:
            raise UploadRejected(
                f"{incoming.purpose}: unsupported file type '{ext or incoming.filename}'. "
                f"Allowed: {_describe(allowed)}"
            )

        if len(incoming.content) > self.max_size_bytes:
            max_mb = self.max_size_bytes // (1024 * 1024)
            raise UploadRejected(f"{incoming.purpose}: file too large. Maximum size: {max_mb}MB")

    def check_all(self, files: List[IncomingFile]) -> None:
        seen = set()
        for incoming in files:
            if incoming.purpose in seen and incoming.purpose not in MULTI_FILE_PURPOSES:
                raise UploadRejected(f"{incoming.purpose}: only one file allowed")
            seen.add(incoming.purpose)
            self.check(incoming)

    def store(self, purpose: str, content: bytes, original_name: str) -> str:
        """Validate and write one file. Returns its reference path."""
        self.check(IncomingFile(purpose=purpose, filename=original_name, content=content))

        os.makedirs(self.upload_dir, exist_ok=True)
        stored_name = "{}-{}-{}{}".format(
            purpose,
            int(time.time() * 1000),
            secrets.token_hex(4),
            get_file_extension(original_name),
        )
        with open(os.path.join(self.upload_dir, stored_name), "wb") as fh:
            fh.write(content)

        logger.info("Upload stored", purpose=purpose, stored_name=stored_name, size=len(content))
        return REFERENCE_PREFIX + stored_name

    def delete(self, reference: str) -> bool:
        """Remove a stored file by its reference path. Returns False if it was already gone."""
        stored_name = os.path.basename(reference)
        path = os.path.join(self.upload_dir, stored_name)
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        logger.info("Upload removed", stored_name=stored_name)
        return True

    def path_for(self, reference: str) -> str:
        return os.path.join(self.upload_dir, os.path.basename(reference))


def get_supported_formats() -> dict:
    """Accept policy per upload field."""
    settings = get_settings()
    return {
        "fields": {
            purpose: sorted(extensions) for purpose, extensions in UPLOAD_POLICIES.items()
        },
        "max_size_mb": settings.max_upload_size_mb,
    }


def get_file_storage() -> FileStorageService:
    return FileStorageService()
