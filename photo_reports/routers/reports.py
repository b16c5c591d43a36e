from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from photo_reports.deps import get_report_store
from photo_reports.services.report_store import ReportStore
from photo_reports.services.status import describe_report, group_by_task

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("", summary="List reports with their rollup status")
def list_reports(task: Optional[str] = None, store: ReportStore = Depends(get_report_store)):
	return [describe_report(r) for r in store.list_reports(task)]


@router.get("/tasks", summary="Reports grouped per task with the task rollup status")
def list_tasks(store: ReportStore = Depends(get_report_store)):
	return group_by_task(store.list_reports())
