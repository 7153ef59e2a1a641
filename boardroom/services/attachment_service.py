"""
Board attachment service.

Upload handling for board messages:
  - filenames are reduced to [A-Za-z0-9._-]
  - extensions must be on the allow-list; validate_uploads() runs before
    anything is written, so a rejected batch leaves no thread, message or file
  - text-like files get extracted_text (capped at MAX_EXTRACTED_TEXT)
  - files land in <upload_root>/<thread_id>/<epoch_ms>-<uuid8>-<filename>
"""

from __future__ import annotations

import json
import logging
import os
import time
import uuid
from dataclasses import dataclass

from boardroom.core.exceptions import UnsupportedAttachmentError
from boardroom.models import db
from boardroom.models.board import BoardAttachment
from boardroom.services.board_context import MAX_EXTRACTED_TEXT, sanitize_text

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = frozenset({
    ".pdf", ".docx", ".xlsx",
    ".txt", ".csv", ".json", ".md",
    ".png", ".jpg", ".jpeg",
})
TEXT_EXTENSIONS = frozenset({".txt", ".csv", ".json", ".md"})
DEFAULT_MIME = "application/octet-stream"


@dataclass
class UploadedFile:
    """Transport-neutral upload: the blueprint converts werkzeug FileStorage into this."""
    filename: str
    data: bytes
    mime: str = DEFAULT_MIME
    size: int | None = None


def sanitize_file_name(value) -> str:
    base = os.path.basename(str(value or "").replace("\\", "/")) or "file"
    safe = "".join(ch if (ch.isascii() and (ch.isalnum() or ch in "._-")) else "_" for ch in base)
    return safe or "file"


def extension_of(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


def is_supported(filename: str) -> bool:
    return extension_of(filename) in SUPPORTED_EXTENSIONS


def is_text_like(filename: str, mime: str | None) -> bool:
    if extension_of(filename) in TEXT_EXTENSIONS:
        return True
    mime = (mime or "").lower()
    return mime.startswith("text/") or "json" in mime


def validate_uploads(files) -> None:
    """Reject the whole batch if any file has an unsupported extension.

    Raises:
        UnsupportedAttachmentError
    """
    for upload in files or []:
        filename = sanitize_file_name(upload.filename)
        if not is_supported(filename):
            raise UnsupportedAttachmentError(filename, extension_of(filename))


def extract_text(upload: UploadedFile, filename: str) -> str | None:
    if not is_text_like(filename, upload.mime):
        return None
    text = sanitize_text(upload.data.decode("utf-8", errors="replace"), MAX_EXTRACTED_TEXT)
    return text or None


def persist_attachment(workspace_id: str, thread_id: int, message_id: int,
                       upload: UploadedFile, upload_root: str) -> BoardAttachment:
    """Write the file under the thread directory and add the BoardAttachment row.

    The caller commits.
    """
    filename = sanitize_file_name(upload.filename)
    if not is_supported(filename):
        raise UnsupportedAttachmentError(filename, extension_of(filename))

    mime = sanitize_text(upload.mime or DEFAULT_MIME, 120) or DEFAULT_MIME
    data = upload.data or b""
    size = upload.size if upload.size and upload.size > 0 else len(data)
    extracted_text = extract_text(upload, filename)

    directory = os.path.join(upload_root, str(thread_id))
    os.makedirs(directory, exist_ok=True)
    storage_name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{filename}"
    path = os.path.join(directory, storage_name)
    with open(path, "wb") as fh:
        fh.write(data)

    attachment = BoardAttachment(
        workspace_id=workspace_id,
        thread_id=thread_id,
        message_id=message_id,
        file_name=filename,
        mime=mime,
        size=size,
        storage_path=f"{thread_id}/{storage_name}",
        extracted_text=extracted_text,
    )
    db.session.add(attachment)
    try:
        db.session.flush()
    except Exception:
        _remove_file(path)
        raise
    logger.info("Stored attachment %s (%d bytes)", filename, size,
                extra={"workspace_id": workspace_id, "thread_id": thread_id, "message_id": message_id})
    return attachment


def _remove_file(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove stored file %s: %s", path, exc)


def remove_stored_files(attachments, upload_root: str) -> int:
    """Delete the files behind ``attachments`` (rows of a failed submission).

    Returns the number of files removed.
    """
    removed = 0
    for attachment in attachments:
        path = os.path.join(upload_root, attachment.storage_path)
        if os.path.isfile(path):
            _remove_file(path)
            removed += 1
    return removed


def attachment_chips(attachments) -> list[dict]:
    return [a.to_chip() for a in attachments]


def chips_json(attachments) -> str:
    return json.dumps(attachment_chips(attachments), ensure_ascii=False)
