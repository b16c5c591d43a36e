from __future__ import annotations

import re
import threading
from pathlib import Path
from typing import Dict, List, Tuple

from photo_reports.errors import InvalidInputError

UPLOADS = "uploads"

POLICY_CONTINUE = "continue"
POLICY_RESTART = "restart"


def check_segment(value: str, what: str) -> str:
	"""Reject identifiers that cannot be used as a single directory name."""
	if not value or not value.strip():
		raise InvalidInputError(f"{what} is missing")
	if value in (".", "..") or "/" in value or "\\" in value or "\x00" in value:
		raise InvalidInputError(f"{what} is not a valid path segment: {value!r}")
	return value


class StorageLayout:
	"""Deterministic paths for stored photos.

	Files live at `uploads/{task}/{location_id}/{location_id}-{seq:03d}.{ext}`
	relative to `root`.
	"""

	def __init__(self, root: Path, ext: str = "jpg") -> None:
		self.root = Path(root)
		self.ext = ext.lstrip(".")
		self._locks: Dict[Tuple[str, str], threading.Lock] = {}
		self._locks_guard = threading.Lock()

	def directory(self, task: str, location_id: str) -> str:
		return f"{UPLOADS}/{task}/{location_id}"

	def filename(self, location_id: str, sequence_number: int) -> str:
		return f"{location_id}-{sequence_number:03d}.{self.ext}"

	def allocate_path(self, task: str, location_id: str, sequence_number: int) -> str:
		return f"{self.directory(task, location_id)}/{self.filename(location_id, sequence_number)}"

	def absolute_path(self, relative_path: str) -> Path:
		return self.root / relative_path

	def ensure_directory(self, task: str, location_id: str) -> Path:
		p = self.root / self.directory(task, location_id)
		p.mkdir(parents=True, exist_ok=True)
		return p

	def existing_sequences(self, task: str, location_id: str) -> List[int]:
		d = self.root / self.directory(task, location_id)
		if not d.is_dir():
			return []
		pattern = re.compile(rf"^{re.escape(location_id)}-(\d+)\.{re.escape(self.ext)}$")
		out = []
		for p in d.iterdir():
			m = pattern.match(p.name)
			if m and p.is_file():
				out.append(int(m.group(1)))
		return sorted(out)

	def lock_for(self, task: str, location_id: str) -> threading.Lock:
		with self._locks_guard:
			return self._locks.setdefault((task, location_id), threading.Lock())


class SequenceAllocator:
	"""Hands out sequence numbers for one batch.

	Only use while holding `layout.lock_for(task, location_id)`; the
	continue policy reads the directory once and counts on from there.
	"""

	def __init__(self, layout: StorageLayout, task: str, location_id: str, policy: str = POLICY_CONTINUE) -> None:
		if policy not in (POLICY_CONTINUE, POLICY_RESTART):
			raise ValueError(f"unknown sequence policy: {policy}")
		self.layout = layout
		self.task = task
		self.location_id = location_id
		if policy == POLICY_RESTART:
			self._next = 1
		else:
			existing = layout.existing_sequences(task, location_id)
			self._next = (existing[-1] + 1) if existing else 1

	def next(self) -> Tuple[int, str]:
		seq = self._next
		self._next += 1
		return seq, self.layout.allocate_path(self.task, self.location_id, seq)
