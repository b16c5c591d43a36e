from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Optional

from pymongo import MongoClient

from photo_reports.config import Settings
from photo_reports.models import Report

logger = logging.getLogger(__name__)


class ReportStore(ABC):
	"""Append-only report collection."""

	@abstractmethod
	def insert(self, report: Report) -> None:
		...

	@abstractmethod
	def list_reports(self, task: Optional[str] = None) -> List[Report]:
		...


class JsonReportStore(ReportStore):
	"""One JSON document per report under `directory`."""

	def __init__(self, directory: Path) -> None:
		self.directory = Path(directory)

	def insert(self, report: Report) -> None:
		self.directory.mkdir(parents=True, exist_ok=True)
		out_path = self.directory / f"{report.id}.json"
		tmp_path = out_path.with_suffix(".json.tmp")
		with tmp_path.open("w", encoding="utf-8") as f:
			json.dump(report.to_dict(), f, indent=2)
		os.replace(tmp_path, out_path)

	def list_reports(self, task: Optional[str] = None) -> List[Report]:
		if not self.directory.is_dir():
			return []
		reports = []
		for p in self.directory.glob("*.json"):
			with p.open("r", encoding="utf-8") as f:
				data = json.load(f)
			if task is not None and data.get("task") != task:
				continue
			reports.append(Report.from_dict(data))
		reports.sort(key=lambda r: (r.created_at, r.id))
		return reports


class MongoReportStore(ReportStore):
	"""Reports kept in a MongoDB collection (`photo_reports.reports` by default)."""

	def __init__(self, collection: Any) -> None:
		self.collection = collection

	@classmethod
	def connect(cls, uri: str, db_name: str, collection_name: str) -> "MongoReportStore":
		client = MongoClient(uri)
		logger.info("Reports stored in MongoDB %s.%s", db_name, collection_name)
		return cls(client[db_name][collection_name])

	def insert(self, report: Report) -> None:
		doc = report.to_dict()
		doc["createdAt"] = report.created_at
		self.collection.insert_one(doc)

	def list_reports(self, task: Optional[str] = None) -> List[Report]:
		query = {} if task is None else {"task": task}
		return [Report.from_dict(doc) for doc in self.collection.find(query).sort("createdAt", 1)]


def build_report_store(settings: Settings) -> ReportStore:
	if settings.report_store == "mongo":
		return MongoReportStore.connect(settings.mongo_uri, settings.mongo_db, settings.mongo_collection)
	return JsonReportStore(Path(settings.reports_dir))
