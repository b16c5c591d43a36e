from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple

import piexif
import pytest
from PIL import Image

from photo_reports.config import Settings
from photo_reports.models import AuthorContext, UploadBatch


def exif_block(
	when: Optional[bytes] = b"2024:05:01 10:20:30",
	lat=((40, 1), (26, 1), (4600, 100)),
	lat_ref: bytes = b"N",
	lon=((3, 1), (42, 1), (5167, 100)),
	lon_ref: bytes = b"W",
	orientation: Optional[int] = None,
) -> bytes:
	zeroth = {}
	if orientation is not None:
		zeroth[piexif.ImageIFD.Orientation] = orientation
	exif = {}
	if when is not None:
		exif[piexif.ExifIFD.DateTimeOriginal] = when
	gps = {}
	if lat is not None:
		gps[piexif.GPSIFD.GPSLatitudeRef] = lat_ref
		gps[piexif.GPSIFD.GPSLatitude] = lat
	if lon is not None:
		gps[piexif.GPSIFD.GPSLongitudeRef] = lon_ref
		gps[piexif.GPSIFD.GPSLongitude] = lon
	return piexif.dump({"0th": zeroth, "Exif": exif, "GPS": gps, "1st": {}, "thumbnail": None})


def make_jpeg(
	size: Tuple[int, int] = (64, 48),
	color=(120, 80, 40),
	exif: Optional[bytes] = None,
) -> bytes:
	img = Image.new("RGB", size, color)
	buf = BytesIO()
	if exif is not None:
		img.save(buf, format="JPEG", exif=exif)
	else:
		img.save(buf, format="JPEG")
	return buf.getvalue()


def open_image(data: bytes) -> Image.Image:
	img = Image.open(BytesIO(data))
	img.load()
	return img


@pytest.fixture
def author() -> AuthorContext:
	return AuthorContext(id="user_1", name="Ada Lovelace", avatar_ref="https://img.example/ada.png")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
	return Settings(
		public_dir=str(tmp_path / "public"),
		jobs_dir=str(tmp_path / "jobs"),
		reports_dir=str(tmp_path / "reports"),
		report_store="json",
		sequence_policy="continue",
	)


@pytest.fixture
def batch_factory(author: AuthorContext):
	def _make(images, task: str = "siteA", location_id: str = "bs1") -> UploadBatch:
		return UploadBatch(task=task, location_id=location_id, author=author, images=list(images))

	return _make
