from __future__ import annotations

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
	from photo_reports.models import StoredFileRef


class PhotoReportsError(Exception):
	"""Base exception for the application."""


class MetadataParseError(PhotoReportsError):
	"""Raised when an EXIF block is absent or unreadable."""


class IngestionError(PhotoReportsError):
	"""Raised when an upload batch cannot be completed.

	Carries the batch identity and the files already written so the caller
	can reconcile partial writes.
	"""

	def __init__(
		self,
		message: str,
		task: Optional[str] = None,
		location_id: Optional[str] = None,
		written: Optional[List["StoredFileRef"]] = None,
	) -> None:
		super().__init__(message)
		self.task = task
		self.location_id = location_id
		self.written = list(written or [])

	def to_dict(self) -> dict:
		return {
			"error": str(self),
			"task": self.task,
			"base_id": self.location_id,
			"paths": [ref.url for ref in self.written],
		}


class InvalidInputError(IngestionError):
	"""Raised before any processing when the batch is malformed."""


class ImageProcessingError(IngestionError):
	"""Raised when an image cannot be decoded, annotated or written."""

	def __init__(self, message: str, index: Optional[int] = None, **kwargs) -> None:
		super().__init__(message, **kwargs)
		self.index = index


class PersistenceError(IngestionError):
	"""Raised when the report record cannot be stored."""


class IngestionCancelledError(IngestionError):
	"""Raised when the caller cancels a batch between images."""


class StorageError(IngestionError):
	"""Raised when the destination directory cannot be prepared or scanned."""
