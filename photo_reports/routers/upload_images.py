from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from photo_reports.config import Settings
from photo_reports.deps import get_author, get_layout, get_report_store, get_settings, get_status_store
from photo_reports.errors import IngestionError, InvalidInputError
from photo_reports.models import AuthorContext, UploadBatch
from photo_reports.services.report_store import ReportStore
from photo_reports.services.status_store import StatusStore
from photo_reports.services.storage_layout import StorageLayout
from photo_reports.services.upload_pipeline import ingest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["upload"])


@router.post("", summary="Annotate and store inspection photos for one base")
async def upload(
	task: Optional[str] = Form(None),
	base_id: Optional[str] = Form(None, alias="baseId"),
	images: List[UploadFile] = File([], alias="image[]"),
	author: AuthorContext = Depends(get_author),
	settings: Settings = Depends(get_settings),
	layout: StorageLayout = Depends(get_layout),
	store: ReportStore = Depends(get_report_store),
	status_store: StatusStore = Depends(get_status_store),
):
	data = [await f.read() for f in images]
	batch = UploadBatch(task=task or "", location_id=base_id or "", author=author, images=data)
	batch_id = uuid.uuid4().hex
	try:
		# Decode/encode is CPU bound; keep it off the event loop
		report = await run_in_threadpool(
			ingest,
			batch,
			layout,
			store,
			status_store=status_store,
			settings=settings,
			batch_id=batch_id,
		)
	except InvalidInputError as e:
		return JSONResponse(status_code=400, content={"error": str(e)})
	except IngestionError as e:
		return JSONResponse(status_code=500, content={**e.to_dict(), "batch_id": batch_id})

	return {
		"message": "Images processed successfully",
		"batch_id": batch_id,
		"paths": list(report.files),
		"report": report.to_dict(),
	}


@router.get("/status/{batch_id}", summary="Get upload batch status")
def status(batch_id: str, status_store: StatusStore = Depends(get_status_store)):
	return status_store.read_status(batch_id)
