import logging
import os
import shutil
import time
import uuid
from pathlib import Path
from typing import List, Optional, Sequence

from fastapi import UploadFile

from app.config.settings import get_settings

logger = logging.getLogger(__name__)


class UploadRejected(ValueError):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def _upload_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    upload.file.seek(0, os.SEEK_END)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


async def save_uploads(files: Sequence[UploadFile]) -> List[str]:
    """Check and store uploaded images, returning their generated filenames.

    Count, extension and size are checked from the upload metadata before
    anything is read, and every file is checked before any is written, so a
    rejected batch leaves nothing behind on disk.
    """
    settings = get_settings()
    files = [upload for upload in files if upload.filename]
    if len(files) > settings.max_upload_files:
        raise UploadRejected(
            '"images" must contain less than or equal to %d items' % settings.max_upload_files
        )

    accepted = []
    for upload in files:
        extension = _extension(upload.filename)
        if extension not in settings.allowed_image_extensions:
            raise UploadRejected(
                '"images" only %s files are allowed'
                % ", ".join(settings.allowed_image_extensions)
            )
        if _upload_size(upload) > settings.max_upload_bytes:
            raise UploadRejected(
                '"images" file %s exceeds %d bytes' % (upload.filename, settings.max_upload_bytes)
            )
        accepted.append((extension, upload))

    if not accepted:
        return []

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    names = []
    for extension, upload in accepted:
        name = "%d-%s.%s" % (int(time.time() * 1000), uuid.uuid4().hex, extension)
        await upload.seek(0)
        with open(upload_dir / name, "wb") as out:
            shutil.copyfileobj(upload.file, out)
        logger.info("Stored upload %s from %s", name, upload.filename)
        names.append(name)
    return names


def resolve_upload(filename: str) -> Optional[Path]:
    """Path of a stored upload, or ``None`` if it is missing or outside the upload dir."""
    upload_dir = Path(get_settings().upload_dir).resolve()
    candidate = (upload_dir / filename).resolve()
    if candidate.parent != upload_dir or not candidate.is_file():
        return None
    return candidate


def remove_uploads(names: Sequence[str]) -> None:
    for name in names:
        path = resolve_upload(name)
        if path is not None:
            os.remove(path)
