"""
Attachment storage collaborator — filesystem implementation.

The workflow core persists attachment metadata only; the bytes go through
this object, keyed by a relative path string. The app factory installs one
instance at ``app.extensions["attachment_storage"]`` rooted at
``UPLOAD_FOLDER``.
"""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass

from flask import current_app
from werkzeug.utils import secure_filename

from reqflow.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class StoredFile:
    file_name: str
    file_path: str
    file_type: str | None
    file_size: int


class LocalAttachmentStorage:
    def __init__(self, root: str, max_bytes: int):
        self.root = root
        self.max_bytes = max_bytes

    def _absolute(self, relative_path: str) -> str:
        full = os.path.abspath(os.path.join(self.root, relative_path))
        if not full.startswith(os.path.abspath(self.root) + os.sep):
            raise ValidationError("Invalid attachment path", details={"file_path": "invalid"})
        return full

    def save(self, request_id: int, file_storage) -> StoredFile:
        """Write an uploaded ``werkzeug.datastructures.FileStorage`` to disk."""
        original = file_storage.filename or ""
        safe = secure_filename(original)
        if not safe:
            raise ValidationError("A file name is required", details={"file": "required"})

        data = file_storage.read()
        if len(data) > self.max_bytes:
            raise ValidationError(
                f"Attachment exceeds the {self.max_bytes} byte limit",
                details={"file": "too_large", "limit": self.max_bytes},
            )

        relative = os.path.join("requests", str(request_id), f"{uuid.uuid4().hex}_{safe}")
        full = self._absolute(relative)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "wb") as fh:
            fh.write(data)

        logger.debug("Attachment stored at %s (%d bytes)", relative, len(data))
        return StoredFile(
            file_name=original,
            file_path=relative,
            file_type=file_storage.mimetype or None,
            file_size=len(data),
        )

    def delete(self, relative_path: str) -> None:
        full = self._absolute(relative_path)
        if os.path.exists(full):
            os.remove(full)
        else:
            logger.warning("Attachment file already missing: %s", relative_path)


def get_storage() -> LocalAttachmentStorage:
    return current_app.extensions["attachment_storage"]
