"""Upload checks run before a CNAB file reaches the parser"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from fastapi import UploadFile

from cnab_processor.config import settings
from cnab_processor.domain.parser import LINE_LENGTH

ALLOWED_EXTENSIONS = {".txt", ".cnab", ""}
ALLOWED_CONTENT_TYPES = {"text/plain", "application/octet-stream", "application/x-cnab"}
MAX_FILE_NAME_LENGTH = 255
FIRST_LINE_PROBE_BYTES = 4096


@dataclass
class ValidationResult:
    """Errors reject the upload; warnings are only logged"""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error_message(self) -> str:
        return " ".join(self.errors)

    def warning_message(self) -> str:
        return " ".join(self.warnings)


async def _file_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size

    file.file.seek(0, os.SEEK_END)
    size = file.file.tell()
    await file.seek(0)
    return size


async def validate_upload(file: Optional[UploadFile], max_bytes: Optional[int] = None) -> ValidationResult:
    """
    Validate an uploaded CNAB file.

    Checks size, extension, content type and file name, then peeks at the
    first line. A first line whose trimmed length is not 81 is a warning only,
    because the parser normalizes line length. The file is rewound afterwards.
    """
    result = ValidationResult()
    max_bytes = max_bytes or settings.max_upload_bytes

    if file is None:
        result.errors.append("No file was uploaded.")
        return result

    size = await _file_size(file)
    if size == 0:
        result.errors.append("The uploaded file is empty.")
        return result

    if size > max_bytes:
        result.errors.append(
            f"File is too large. Maximum allowed size is {max_bytes // (1024 * 1024)} MB."
        )

    file_name = file.filename or ""
    extension = os.path.splitext(file_name)[1].lower()
    if extension not in ALLOWED_EXTENSIONS:
        result.errors.append(
            f"Invalid file extension '{extension}'. Allowed extensions: .txt, .cnab or no extension."
        )

    content_type = (file.content_type or "").lower()
    if content_type and content_type not in ALLOWED_CONTENT_TYPES:
        result.errors.append(
            f"Invalid content type '{file.content_type}'. "
            f"Allowed types: {', '.join(sorted(ALLOWED_CONTENT_TYPES))}."
        )

    if not file_name.strip():
        result.errors.append("File name is missing.")
    elif len(file_name) > MAX_FILE_NAME_LENGTH:
        result.errors.append(f"File name is too long (maximum {MAX_FILE_NAME_LENGTH} characters).")

    if not result.is_valid:
        return result

    head = await file.read(FIRST_LINE_PROBE_BYTES)
    await file.seek(0)

    first_line = head.decode("utf-8-sig", errors="replace").splitlines()[0] if head else ""
    if not first_line.strip():
        result.errors.append("File appears to be empty or contains only whitespace.")
        return result

    if not first_line[0].isdigit():
        result.errors.append("Invalid CNAB format: First character must be a transaction type (1-9).")

    trimmed_length = len(first_line.rstrip())
    if trimmed_length != LINE_LENGTH:
        result.warnings.append(
            f"Line length is {trimmed_length} characters. Expected {LINE_LENGTH} characters. "
            "The parser will normalize this."
        )

    return result
