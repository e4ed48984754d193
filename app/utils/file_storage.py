from typing import List, Tuple

from fastapi import UploadFile

from app.core.config import settings
from app.core.exceptions import InvalidInputError


MAX_FILES_PER_REQUEST = 10


def validate_upload(filename: str, content_type: str, size: int) -> None:
    """
    Rejects files over the configured size or with a MIME type outside
    the allow-list.
    """
    if not filename:
        raise InvalidInputError("Filename is required for uploads.")

    if size > settings.max_file_size:
        limit_mb = settings.max_file_size / 1024 / 1024
        raise InvalidInputError(
            f"{filename}: File size exceeds maximum limit of {limit_mb:g}MB"
        )

    allowed = settings.allowed_file_type_list
    if content_type not in allowed:
        raise InvalidInputError(
            f"{filename}: Invalid file type: {content_type}. Allowed types: {', '.join(allowed)}"
        )


async def read_upload(upload_file: UploadFile) -> Tuple[bytes, str, str]:
    """
    Reads an UploadFile into memory and validates it.
    Returns (content, filename, content_type).
    """
    content = await upload_file.read()
    filename = upload_file.filename or ""
    content_type = upload_file.content_type or "application/octet-stream"
    validate_upload(filename, content_type, len(content))
    return content, filename, content_type


async def read_uploads(files: List[UploadFile]) -> List[Tuple[bytes, str, str]]:
    if not files:
        raise InvalidInputError("No files uploaded")
    if len(files) > MAX_FILES_PER_REQUEST:
        raise InvalidInputError(f"At most {MAX_FILES_PER_REQUEST} files can be uploaded at once.")
    return [await read_upload(f) for f in files]
