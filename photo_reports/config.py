from __future__ import annotations

import os
from typing import List, Optional

from pydantic import BaseModel, field_validator

from photo_reports.services.image_utils import output_format


class Settings(BaseModel):
	# Filesystem layout; stored images live under <public_dir>/uploads
	public_dir: str = os.getenv("PUBLIC_DIR", "public")
	jobs_dir: str = os.getenv("JOBS_DIR", "jobs")
	reports_dir: str = os.getenv("REPORTS_DIR", "reports")

	# "json" or "mongo"
	report_store: str = os.getenv("REPORT_STORE", "json")
	mongo_uri: str = os.getenv("MONGO_URI", "mongodb://localhost:27017/")
	mongo_db: str = os.getenv("MONGO_DB", "photo_reports")
	mongo_collection: str = os.getenv("MONGO_COLLECTION", "reports")

	max_width: int = int(os.getenv("MAX_WIDTH", "1280"))
	max_height: int = int(os.getenv("MAX_HEIGHT", "1280"))
	output_ext: str = os.getenv("OUTPUT_EXT", "jpg")
	jpeg_quality: int = int(os.getenv("JPEG_QUALITY", "85"))
	caption_font_path: Optional[str] = os.getenv("CAPTION_FONT_PATH") or None
	caption_font_size: int = int(os.getenv("CAPTION_FONT_SIZE", "18"))

	# "continue" picks up after the highest file already stored for the base,
	# "restart" numbers every batch from 1 and overwrites earlier files
	sequence_policy: str = os.getenv("SEQUENCE_POLICY", "continue")
	# "legacy" decodes GPS seconds as numerator / 100, "rational" as numerator / denominator
	gps_seconds_mode: str = os.getenv("GPS_SECONDS_MODE", "legacy")

	log_level: str = os.getenv("LOG_LEVEL", "INFO")
	cors_origins: List[str] = (
		os.getenv("CORS_ORIGINS", "*").split(",")
		if os.getenv("CORS_ORIGINS")
		else ["*"]
	)

	@field_validator("output_ext")
	@classmethod
	def _known_output_ext(cls, v: str) -> str:
		v = v.lstrip(".").lower()
		output_format(v)
		return v

	@property
	def bounding_box(self) -> tuple:
		return (self.max_width, self.max_height)


settings = Settings()
