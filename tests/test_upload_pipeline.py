from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from conftest import exif_block, make_jpeg, open_image
from photo_reports.errors import (
	ImageProcessingError,
	IngestionCancelledError,
	InvalidInputError,
	PersistenceError,
	StorageError,
)
from photo_reports.services.report_store import JsonReportStore, ReportStore
from photo_reports.services.status_store import StatusStore
from photo_reports.services.storage_layout import StorageLayout
from photo_reports.services.upload_pipeline import ingest


class FailingStore(ReportStore):
	def insert(self, report) -> None:
		raise RuntimeError("database unavailable")

	def list_reports(self, task=None):
		return []


@pytest.fixture
def layout(settings) -> StorageLayout:
	return StorageLayout(Path(settings.public_dir))


@pytest.fixture
def store(settings) -> JsonReportStore:
	return JsonReportStore(Path(settings.reports_dir))


@pytest.fixture
def status_store(settings) -> StatusStore:
	return StatusStore(Path(settings.jobs_dir))


def test_batch_writes_files_and_report(layout, store, status_store, settings, batch_factory) -> None:
	images = [make_jpeg(size=(2000, 1500), exif=exif_block()), make_jpeg()]
	report = ingest(batch_factory(images), layout, store, status_store=status_store, settings=settings, batch_id="b1")

	assert report.files == ["/uploads/siteA/bs1/bs1-001.jpg", "/uploads/siteA/bs1/bs1-002.jpg"]
	assert report.task == "siteA"
	assert report.creation_status == "Pending"
	assert [(ls.location_id, ls.status) for ls in report.location_statuses] == [("bs1", "Pending")]
	assert report.user_id == "user_1"
	assert report.user_name == "Ada Lovelace"

	first = Path(settings.public_dir) / "uploads" / "siteA" / "bs1" / "bs1-001.jpg"
	assert open_image(first.read_bytes()).size == (1280, 960)

	stored = store.list_reports("siteA")
	assert [r.id for r in stored] == [report.id]

	status = status_store.read_status("b1")
	assert status["status"] == "completed"
	assert status["report_id"] == report.id


def test_restart_policy_overwrites_previous_batch(layout, store, settings, batch_factory) -> None:
	settings.sequence_policy = "restart"
	first = ingest(batch_factory([make_jpeg(color=(255, 0, 0))]), layout, store, settings=settings)
	second = ingest(batch_factory([make_jpeg(color=(0, 0, 255))]), layout, store, settings=settings)

	assert first.files == second.files == ["/uploads/siteA/bs1/bs1-001.jpg"]
	d = Path(settings.public_dir) / "uploads" / "siteA" / "bs1"
	assert sorted(p.name for p in d.iterdir()) == ["bs1-001.jpg"]
	# the second upload replaced the first file
	r, g, b = open_image((d / "bs1-001.jpg").read_bytes()).getpixel((0, 0))
	assert b > r
	# both batches still get their own report
	assert len(store.list_reports("siteA")) == 2


def test_continue_policy_keeps_previous_batch(layout, store, settings, batch_factory) -> None:
	ingest(batch_factory([make_jpeg()]), layout, store, settings=settings)
	second = ingest(batch_factory([make_jpeg()]), layout, store, settings=settings)

	assert second.files == ["/uploads/siteA/bs1/bs1-002.jpg"]
	d = Path(settings.public_dir) / "uploads" / "siteA" / "bs1"
	assert sorted(p.name for p in d.iterdir()) == ["bs1-001.jpg", "bs1-002.jpg"]


def test_concurrent_batches_for_same_base_do_not_collide(layout, store, settings, batch_factory) -> None:
	batches = [batch_factory([make_jpeg(), make_jpeg()]) for _ in range(4)]
	with ThreadPoolExecutor(max_workers=4) as pool:
		reports = list(pool.map(lambda b: ingest(b, layout, store, settings=settings), batches))

	paths = [p for r in reports for p in r.files]
	assert len(paths) == len(set(paths)) == 8
	d = Path(settings.public_dir) / "uploads" / "siteA" / "bs1"
	assert len(list(d.iterdir())) == 8


def test_bad_image_aborts_batch_and_keeps_earlier_files(layout, store, status_store, settings, batch_factory) -> None:
	images = [make_jpeg(), b"corrupt", make_jpeg()]
	with pytest.raises(ImageProcessingError) as exc:
		ingest(batch_factory(images), layout, store, status_store=status_store, settings=settings, batch_id="b2")

	err = exc.value
	assert err.index == 1
	assert err.task == "siteA"
	assert err.location_id == "bs1"
	assert [ref.relative_path for ref in err.written] == ["uploads/siteA/bs1/bs1-001.jpg"]

	d = Path(settings.public_dir) / "uploads" / "siteA" / "bs1"
	assert sorted(p.name for p in d.iterdir()) == ["bs1-001.jpg"]
	assert store.list_reports() == []

	status = status_store.read_status("b2")
	assert status["status"] == "error"
	assert status["paths"] == ["/uploads/siteA/bs1/bs1-001.jpg"]


def test_persistence_failure_keeps_files(layout, settings, batch_factory) -> None:
	with pytest.raises(PersistenceError) as exc:
		ingest(batch_factory([make_jpeg(), make_jpeg()]), layout, FailingStore(), settings=settings)

	assert len(exc.value.written) == 2
	for ref in exc.value.written:
		assert layout.absolute_path(ref.relative_path).is_file()


def test_blocked_directory_raises_storage_error(layout, store, status_store, settings, batch_factory) -> None:
	blocker = Path(settings.public_dir) / "uploads" / "siteA"
	blocker.parent.mkdir(parents=True)
	blocker.write_text("not a directory")
	with pytest.raises(StorageError) as exc:
		ingest(batch_factory([make_jpeg()]), layout, store, status_store=status_store, settings=settings, batch_id="b5")

	assert (exc.value.task, exc.value.location_id, exc.value.written) == ("siteA", "bs1", [])
	assert status_store.read_status("b5")["status"] == "error"
	assert store.list_reports() == []


def test_png_output_writes_png_files(store, settings, batch_factory) -> None:
	png_settings = settings.model_copy(update={"output_ext": "png"})
	png_layout = StorageLayout(Path(settings.public_dir), ext="png")
	report = ingest(batch_factory([make_jpeg()]), png_layout, store, settings=png_settings)

	assert report.files == ["/uploads/siteA/bs1/bs1-001.png"]
	assert png_layout.absolute_path("uploads/siteA/bs1/bs1-001.png").read_bytes()[:4] == b"\x89PNG"


def test_cancel_stops_before_next_file(layout, store, settings, batch_factory) -> None:
	calls = []

	def cancel_cb() -> bool:
		calls.append(1)
		return len(calls) > 1

	with pytest.raises(IngestionCancelledError) as exc:
		ingest(batch_factory([make_jpeg(), make_jpeg(), make_jpeg()]), layout, store, settings=settings, cancel_cb=cancel_cb)

	assert [ref.sequence_number for ref in exc.value.written] == [1]
	assert store.list_reports() == []


@pytest.mark.parametrize(
	"task,location_id,images",
	[
		("", "bs1", [b"x"]),
		("siteA", "", [b"x"]),
		("siteA", "bs1", []),
		("../etc", "bs1", [b"x"]),
	],
)
def test_invalid_input_has_no_side_effects(layout, store, status_store, settings, batch_factory, task, location_id, images) -> None:
	with pytest.raises(InvalidInputError):
		ingest(
			batch_factory(images, task=task, location_id=location_id),
			layout,
			store,
			status_store=status_store,
			settings=settings,
			batch_id="b3",
		)
	assert not (Path(settings.public_dir) / "uploads").exists()
	assert not (Path(settings.jobs_dir) / "b3.json").exists()


def test_status_record_is_json(layout, store, status_store, settings, batch_factory) -> None:
	ingest(batch_factory([make_jpeg()]), layout, store, status_store=status_store, settings=settings, batch_id="b4")
	data = json.loads((Path(settings.jobs_dir) / "b4.json").read_text(encoding="utf-8"))
	assert data["task"] == "siteA"
	assert data["base_id"] == "bs1"
	assert data["paths"] == ["/uploads/siteA/bs1/bs1-001.jpg"]
