from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, Request

from photo_reports.config import Settings
from photo_reports.models import AuthorContext
from photo_reports.services.report_store import ReportStore
from photo_reports.services.status_store import StatusStore
from photo_reports.services.storage_layout import StorageLayout

# Services are built once per app in create_app() and kept on app.state


def get_settings(request: Request) -> Settings:
	return request.app.state.settings


def get_layout(request: Request) -> StorageLayout:
	# Shared per app so every request sees the same per-base locks
	return request.app.state.layout


def get_report_store(request: Request) -> ReportStore:
	return request.app.state.report_store


def get_status_store(request: Request) -> StatusStore:
	return request.app.state.status_store


def get_author(
	x_user_id: Optional[str] = Header(None),
	x_user_first_name: Optional[str] = Header(None),
	x_user_last_name: Optional[str] = Header(None),
	x_user_avatar: Optional[str] = Header(None),
) -> AuthorContext:
	"""Author of the request, as forwarded by the authenticating proxy."""
	if not x_user_id:
		raise HTTPException(status_code=401, detail="User is not authenticated")
	return AuthorContext(
		id=x_user_id,
		name=AuthorContext.display_name(x_user_first_name, x_user_last_name),
		avatar_ref=x_user_avatar or "",
	)
