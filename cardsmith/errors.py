"""
cardsmith/errors.py — Exception taxonomy for the card pipeline.

File-level errors (UnsupportedFormat, ExtractionFailed, NoContentExtracted)
propagate to the caller and fail that one file. SectionAssemblyError is
item-level: the assembler catches it, logs it and moves on to the next
section or row.
"""

from __future__ import annotations


class CardsmithError(Exception):
    """Base class for all pipeline errors."""


class UnsupportedFormat(CardsmithError):
    def __init__(self, extension: str) -> None:
        self.extension = extension
        super().__init__(f"Unsupported file type: {extension or '(none)'}")


class ExtractionFailed(CardsmithError):
    """A format parser raised. The original message is kept for diagnostics."""

    def __init__(self, fmt: str, cause: BaseException | str) -> None:
        self.format = fmt
        self.cause = cause
        super().__init__(f"{fmt} extraction failed: {cause}")


class NoContentExtracted(CardsmithError):
    def __init__(self, file_name: str, skipped: list | None = None) -> None:
        self.file_name = file_name
        self.skipped = list(skipped or [])
        super().__init__(f"No cards could be created from {file_name}")


class SectionAssemblyError(CardsmithError):
    def __init__(self, location: str, cause: BaseException | str) -> None:
        self.location = location
        self.cause = cause
        super().__init__(f"{location}: {cause}")


class FileTooLarge(CardsmithError):
    def __init__(self, file_name: str, size: int, limit: int) -> None:
        self.file_name = file_name
        self.size = size
        self.limit = limit
        super().__init__(f"{file_name} is {size} bytes, limit is {limit}")


class BatchTooLarge(CardsmithError):
    def __init__(self, count: int, limit: int) -> None:
        self.count = count
        self.limit = limit
        super().__init__(f"Batch of {count} files exceeds limit of {limit}")


class InvalidFileType(CardsmithError):
    """Declared MIME type is not on the upload allow-list."""

    def __init__(self, file_name: str, mimetype: str | None) -> None:
        self.file_name = file_name
        self.mimetype = mimetype
        super().__init__(f"Invalid file type for {file_name}: {mimetype or 'unknown'}")
