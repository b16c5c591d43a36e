from __future__ import annotations

import logging
import uuid
from typing import Callable, List, Optional

from photo_reports.config import Settings, settings as default_settings
from photo_reports.errors import (
	ImageProcessingError,
	IngestionCancelledError,
	IngestionError,
	InvalidInputError,
	PersistenceError,
	StorageError,
)
from photo_reports.models import Report, StoredFileRef, UploadBatch
from photo_reports.services.annotate import annotate, build_caption
from photo_reports.services.image_utils import load_caption_font, output_format
from photo_reports.services.metadata import extract_metadata
from photo_reports.services.report_store import ReportStore
from photo_reports.services.status_store import StatusStore
from photo_reports.services.storage_layout import SequenceAllocator, StorageLayout, check_segment

logger = logging.getLogger(__name__)

CancelCb = Callable[[], bool]  # returns True if cancelled


def validate_batch(batch: UploadBatch) -> None:
	ctx = {"task": batch.task, "location_id": batch.location_id}
	if not batch.task or not batch.location_id:
		raise InvalidInputError("Base ID or Task is missing", **ctx)
	try:
		check_segment(batch.task, "task")
		check_segment(batch.location_id, "base ID")
	except InvalidInputError as e:
		raise InvalidInputError(str(e), **ctx) from e
	if not batch.images:
		raise InvalidInputError("No files uploaded", **ctx)


def ingest(
	batch: UploadBatch,
	layout: StorageLayout,
	store: ReportStore,
	*,
	status_store: Optional[StatusStore] = None,
	settings: Settings = default_settings,
	cancel_cb: Optional[CancelCb] = None,
	batch_id: Optional[str] = None,
) -> Report:
	"""Annotate and store every image of a batch, then persist its report.

	Images are handled in order and the first failure aborts the batch.
	Files written before a failure stay on disk and are listed on the raised
	error; nothing is rolled back.
	"""
	validate_batch(batch)

	batch_id = batch_id or uuid.uuid4().hex
	base = {"batch_id": batch_id, "task": batch.task, "base_id": batch.location_id}

	def write_status(data: dict) -> None:
		if status_store is not None:
			status_store.write_status(batch_id, {**base, **data})

	written: List[StoredFileRef] = []
	with layout.lock_for(batch.task, batch.location_id):
		try:
			write_status({"status": "processing", "total": len(batch.images), "done": 0})
			try:
				layout.ensure_directory(batch.task, batch.location_id)
				allocator = SequenceAllocator(layout, batch.task, batch.location_id, policy=settings.sequence_policy)
			except OSError as e:
				logger.error("Cannot prepare storage for task %s base %s: %s", batch.task, batch.location_id, e)
				raise StorageError(
					"Cannot prepare storage for upload",
					task=batch.task,
					location_id=batch.location_id,
					written=written,
				) from e
			font = load_caption_font(settings.caption_font_size, settings.caption_font_path)

			for i, data in enumerate(batch.images):
				if cancel_cb is not None and cancel_cb():
					raise IngestionCancelledError(
						"Upload cancelled",
						task=batch.task,
						location_id=batch.location_id,
						written=written,
					)
				written.append(_process_one(i, data, batch, layout, allocator, font, settings, written))
				write_status({
					"status": "processing",
					"total": len(batch.images),
					"done": len(written),
					"paths": [ref.url for ref in written],
				})

			report = Report.for_batch(batch, written)
			try:
				store.insert(report)
			except Exception as e:
				logger.exception("Error saving report to database")
				raise PersistenceError(
					"Failed to save report",
					task=batch.task,
					location_id=batch.location_id,
					written=written,
				) from e
		except IngestionError as e:
			write_status({"status": "error", **e.to_dict()})
			raise

		write_status({"status": "completed", "report_id": report.id, "paths": report.files})

	logger.info(
		"Stored %d image(s) for task %s base %s (report %s)",
		len(written), batch.task, batch.location_id, report.id,
	)
	return report


def _process_one(
	index: int,
	data: bytes,
	batch: UploadBatch,
	layout: StorageLayout,
	allocator: SequenceAllocator,
	font,
	settings: Settings,
	written: List[StoredFileRef],
) -> StoredFileRef:
	metadata = extract_metadata(data, seconds_mode=settings.gps_seconds_mode)
	caption = build_caption(metadata, batch.task, batch.location_id, batch.author.name)
	try:
		out = annotate(
			data,
			caption,
			bounding_box=settings.bounding_box,
			font=font,
			quality=settings.jpeg_quality,
			fmt=output_format(settings.output_ext),
		)
		seq, relative_path = allocator.next()
		layout.absolute_path(relative_path).write_bytes(out)
	except (ImageProcessingError, OSError) as e:
		logger.error("Error processing image %d of task %s base %s: %s", index + 1, batch.task, batch.location_id, e)
		raise ImageProcessingError(
			"Error processing one or more images",
			index=index,
			task=batch.task,
			location_id=batch.location_id,
			written=written,
		) from e
	return StoredFileRef(
		task=batch.task,
		location_id=batch.location_id,
		sequence_number=seq,
		relative_path=relative_path,
	)
