import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from photo_reports.config import Settings, settings as default_settings
from photo_reports.routers.reports import router as reports_router
from photo_reports.routers.upload_images import router as upload_router
from photo_reports.services.report_store import build_report_store
from photo_reports.services.status_store import StatusStore
from photo_reports.services.storage_layout import UPLOADS, StorageLayout


def create_app(settings: Settings = default_settings) -> FastAPI:
	logging.basicConfig(level=settings.log_level.upper())
	app = FastAPI(title="Photo Reports API", version="0.1.0")

	# Read by the dependencies in photo_reports.deps
	app.state.settings = settings
	app.state.layout = StorageLayout(Path(settings.public_dir), ext=settings.output_ext)
	app.state.report_store = build_report_store(settings)
	app.state.status_store = StatusStore(Path(settings.jobs_dir))

	app.add_middleware(
		CORSMiddleware,
		allow_origins=settings.cors_origins,
		allow_credentials=False,
		allow_methods=["*"],
		allow_headers=["*"],
	)

	@app.get("/health")
	def health():
		return {"ok": True}

	# Routers
	app.include_router(upload_router)
	app.include_router(reports_router)

	# Stored photos are served under the same URLs recorded in reports
	uploads_dir = Path(settings.public_dir) / UPLOADS
	uploads_dir.mkdir(parents=True, exist_ok=True)
	app.mount(f"/{UPLOADS}", StaticFiles(directory=str(uploads_dir)), name=UPLOADS)

	return app


app = create_app()


if __name__ == "__main__":
	# Local dev server: uvicorn photo_reports.main:app --reload
	import uvicorn

	uvicorn.run("photo_reports.main:app", host="0.0.0.0", port=8000, reload=True)
