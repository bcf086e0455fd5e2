"""Photo validation and persistence on the local filesystem."""

from pathlib import Path
from typing import Optional

from fastapi import UploadFile

import config
from errors import UnprocessableUpload


def validate_photo(content_type: Optional[str], size: int) -> None:
    if not content_type or not content_type.startswith("image"):
        raise UnprocessableUpload("Please upload an image file")
    if size > config.MAX_FILE_UPLOAD:
        raise UnprocessableUpload(f"Please upload an image less than {config.MAX_FILE_UPLOAD}")


def read_photo(upload: UploadFile) -> bytes:
    """Check the declared type and size, then read no more than one byte past the limit."""
    validate_photo(upload.content_type, upload.size or 0)
    content = upload.file.read(config.MAX_FILE_UPLOAD + 1)
    validate_photo(upload.content_type, len(content))
    return content


def photo_filename(bootcamp_id: str, original_name: Optional[str]) -> str:
    return f"photo_{bootcamp_id}{Path(original_name or '').suffix}"


def save_file(content: bytes, filename: str) -> Path:
    """Write the upload under FILE_UPLOAD_PATH; OSError propagates."""
    directory = Path(config.FILE_UPLOAD_PATH)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_bytes(content)
    return path
