from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
import uuid


UNKNOWN_DATE = "Unknown Date"
UNKNOWN_LOCATION = "Unknown Location"


class StatusKind(str, Enum):
	AGREED = "Agreed"
	PENDING = "Pending"
	ISSUES = "Issues"
	RECHECK = "ReCheck"


@dataclass(frozen=True)
class DmsAxis:
	"""One axis of a coordinate in degrees/minutes/seconds.

	`degrees` is signed; `hemisphere` is fixed from that sign when the axis
	is decoded and is not recomputed afterwards.
	"""

	degrees: int
	minutes: int
	seconds: float
	hemisphere: str


@dataclass(frozen=True)
class GeoCoordinate:
	latitude: DmsAxis
	longitude: DmsAxis


@dataclass(frozen=True)
class CaptureMetadata:
	timestamp: str = UNKNOWN_DATE
	coordinate: Optional[GeoCoordinate] = None


FALLBACK_METADATA = CaptureMetadata()


@dataclass(frozen=True)
class AuthorContext:
	id: str
	name: str
	avatar_ref: str = ""

	@staticmethod
	def display_name(first_name: Optional[str], last_name: Optional[str]) -> str:
		return f"{first_name or 'Unknown'} {last_name or ''}".strip()


@dataclass
class LocationStatus:
	location_id: str
	status: str

	def to_dict(self) -> Dict[str, str]:
		return {"baseId": self.location_id, "status": self.status}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "LocationStatus":
		return cls(location_id=str(data["baseId"]), status=str(data["status"]))


@dataclass(frozen=True)
class StoredFileRef:
	task: str
	location_id: str
	sequence_number: int
	relative_path: str

	@property
	def url(self) -> str:
		return "/" + self.relative_path


@dataclass
class UploadBatch:
	task: str
	location_id: str
	author: AuthorContext
	images: Sequence[bytes]


@dataclass
class Report:
	task: str
	user_id: str
	user_name: str
	user_avatar_ref: str = ""
	location_statuses: List[LocationStatus] = field(default_factory=list)
	files: List[str] = field(default_factory=list)
	creation_status: str = StatusKind.PENDING.value
	created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
	id: str = field(default_factory=lambda: uuid.uuid4().hex)

	@classmethod
	def for_batch(cls, batch: UploadBatch, written: List[StoredFileRef]) -> "Report":
		return cls(
			task=batch.task,
			user_id=batch.author.id,
			user_name=batch.author.name,
			user_avatar_ref=batch.author.avatar_ref,
			location_statuses=[LocationStatus(batch.location_id, StatusKind.PENDING.value)],
			files=[ref.url for ref in written],
		)

	def to_dict(self) -> Dict[str, Any]:
		# Key names follow the stored report documents.
		return {
			"_id": self.id,
			"task": self.task,
			"baseId": self.location_statuses[0].location_id if self.location_statuses else None,
			"baseStatuses": [ls.to_dict() for ls in self.location_statuses],
			"userId": self.user_id,
			"userName": self.user_name,
			"userAvatar": self.user_avatar_ref,
			"createdAt": self.created_at.isoformat(),
			"status": self.creation_status,
			"files": list(self.files),
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "Report":
		statuses = [LocationStatus.from_dict(d) for d in data.get("baseStatuses") or []]
		if not statuses and data.get("baseId"):
			statuses = [LocationStatus(str(data["baseId"]), str(data.get("status") or StatusKind.PENDING.value))]
		created = data.get("createdAt")
		if isinstance(created, str):
			created = datetime.fromisoformat(created)
		elif created is None:
			created = datetime.now(timezone.utc)
		return cls(
			id=str(data.get("_id") or uuid.uuid4().hex),
			task=str(data["task"]),
			user_id=str(data.get("userId", "")),
			user_name=str(data.get("userName", "")),
			user_avatar_ref=str(data.get("userAvatar", "")),
			location_statuses=statuses,
			files=list(data.get("files") or []),
			creation_status=str(data.get("status") or StatusKind.PENDING.value),
			created_at=created,
		)
