# tasktrack/services/file_validation.py
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple
import logging

from tasktrack.config import settings

logger = logging.getLogger(__name__)


@dataclass
class ArtifactUpload:
    """A single file submitted as evidence of task completion"""

    filename: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


class FileValidationService:
    """Validation for artifact uploads: one archive per submission"""

    # Archive signatures (magic numbers) accepted per extension
    ARCHIVE_SIGNATURES = {
        '.zip': (
            b'PK\x03\x04',  # ZIP archive
            b'PK\x05\x06',  # ZIP archive (empty)
            b'PK\x07\x08',  # ZIP archive (spanned)
        ),
    }

    DANGEROUS_PATTERNS = ['..', '/', '\\', '<', '>', ':', '"', '|', '?', '*', '\x00']

    def __init__(self, max_file_size: Optional[int] = None, allowed_extensions=None, allowed_content_types=None):
        self.max_file_size = max_file_size or settings.FILE_UPLOAD['max_file_size']
        self.allowed_extensions = set(allowed_extensions or settings.allowed_extensions())
        self.allowed_content_types = set(
            allowed_content_types or settings.FILE_UPLOAD['allowed_content_types']
        )

    def validate_filename(self, filename: str) -> Tuple[bool, str]:
        if not filename or not filename.strip():
            return False, "File must have a filename"

        if any(pattern in filename for pattern in self.DANGEROUS_PATTERNS):
            return False, "Filename contains invalid characters"

        file_ext = Path(filename).suffix.lower()
        if file_ext not in self.allowed_extensions:
            return False, (
                f"File type '{file_ext or filename}' is not allowed. "
                f"Allowed types: {', '.join(sorted(self.allowed_extensions))}"
            )
        return True, ""

    def validate_size(self, size: int) -> Tuple[bool, str]:
        if size <= 0:
            return False, "File is empty"
        if size > self.max_file_size:
            return False, f"File size exceeds maximum allowed size of {self.max_file_size / (1024*1024):.1f}MB"
        return True, ""

    def validate_content_type(self, content_type: Optional[str]) -> Tuple[bool, str]:
        """Check the declared MIME type; uploads without one are judged on content alone"""
        if not content_type:
            return True, ""
        mime_type = content_type.split(";", 1)[0].strip().lower()
        if mime_type not in self.allowed_content_types:
            return False, f"Content type '{mime_type}' is not allowed for archives"
        return True, ""

    def validate_signature(self, filename: str, content: bytes) -> Tuple[bool, str]:
        """Check the archive's magic signature matches its extension"""
        file_ext = Path(filename).suffix.lower()
        signatures = self.ARCHIVE_SIGNATURES.get(file_ext)
        if signatures is None:
            return True, ""
        if not any(content.startswith(signature) for signature in signatures):
            return False, f"File content is not a valid {file_ext} archive"
        return True, ""

    def comprehensive_validation(self, upload: ArtifactUpload) -> Tuple[bool, List[str]]:
        """
        Run every check against an upload

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        ok, message = self.validate_filename(upload.filename)
        if not ok:
            errors.append(message)

        ok, message = self.validate_size(upload.size)
        if not ok:
            errors.append(message)

        ok, message = self.validate_content_type(upload.content_type)
        if not ok:
            errors.append(message)

        # Signature only makes sense for a named, non-empty archive
        if not errors:
            ok, message = self.validate_signature(upload.filename, upload.content)
            if not ok:
                errors.append(message)

        if errors:
            logger.warning(f"Rejected upload {upload.filename!r}: {'; '.join(errors)}")
        return not errors, errors


file_validator = FileValidationService()
