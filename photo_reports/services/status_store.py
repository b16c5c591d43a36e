from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict


class StatusStore:
	"""Batch progress records, one JSON file per batch id."""

	def __init__(self, jobs_dir: Path) -> None:
		self.jobs_dir = Path(jobs_dir)

	def _path(self, batch_id: str) -> Path:
		return self.jobs_dir / f"{batch_id}.json"

	def write_status(self, batch_id: str, data: Dict[str, Any]) -> None:
		self.jobs_dir.mkdir(parents=True, exist_ok=True)
		with self._path(batch_id).open("w", encoding="utf-8") as f:
			json.dump(data, f, indent=2)

	def read_status(self, batch_id: str) -> Dict[str, Any]:
		status_path = self._path(batch_id)
		if not status_path.exists():
			return {"batch_id": batch_id, "status": "unknown"}
		with status_path.open("r", encoding="utf-8") as f:
			return json.load(f)
