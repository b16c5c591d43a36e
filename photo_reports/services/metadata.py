from __future__ import annotations

import logging
import struct
from typing import Any, Optional, Sequence

import piexif

from photo_reports.errors import MetadataParseError
from photo_reports.models import (
	CaptureMetadata,
	DmsAxis,
	FALLBACK_METADATA,
	GeoCoordinate,
	UNKNOWN_DATE,
)
from photo_reports.services.coordinates import hemisphere_for

logger = logging.getLogger(__name__)

SECONDS_LEGACY = "legacy"
SECONDS_RATIONAL = "rational"

EXIF_HEADER = b"Exif\x00\x00"

# bytes per component for each TIFF field type
TYPE_SIZES = {1: 1, 2: 1, 3: 2, 4: 4, 5: 8, 6: 1, 7: 1, 8: 2, 9: 4, 10: 8, 11: 4, 12: 8}

# tags whose value points at a nested IFD (Exif, GPS, Interoperability)
IFD_POINTERS = (0x8769, 0x8825, 0xA005)


def _bytes_to_str(v: Any) -> Optional[str]:
	if v is None:
		return None
	if isinstance(v, bytes):
		return v.decode("utf-8", errors="ignore").rstrip("\x00").strip() or None
	if isinstance(v, str):
		return v.strip() or None
	return str(v)


def _numerator(x: Any) -> int:
	if isinstance(x, (tuple, list)) and x:
		return int(x[0])
	return int(x)


def _rational_to_float(x: Any) -> Optional[float]:
	if isinstance(x, (tuple, list)) and len(x) == 2:
		num, den = x
		if not den:
			return None
		return float(num) / float(den)
	try:
		return float(x)
	except (TypeError, ValueError):
		return None


def _decode_axis(
	values: Sequence[Any],
	ref: Any,
	is_latitude: bool,
	seconds_mode: str,
) -> DmsAxis:
	"""Decode a GPS [degrees, minutes, seconds] rational triple.

	Degrees and minutes take the numerator of their rational. In legacy mode
	seconds are the numerator divided by 100, which is what stored captions
	were produced with; it loses precision for writers that use another
	denominator. Rational mode divides by the stored denominator.
	"""
	if len(values) < 3:
		raise MetadataParseError(f"GPS value has {len(values)} components, expected 3")
	degrees = _numerator(values[0])
	minutes = _numerator(values[1])
	if seconds_mode == SECONDS_RATIONAL:
		seconds = _rational_to_float(values[2])
		if seconds is None:
			raise MetadataParseError("GPS seconds has a zero denominator")
	else:
		seconds = _numerator(values[2]) / 100
	if _bytes_to_str(ref) in ("S", "W"):
		degrees = -degrees
	return DmsAxis(
		degrees=degrees,
		minutes=minutes,
		seconds=seconds,
		hemisphere=hemisphere_for(degrees, is_latitude),
	)


def _tiff_block(data: bytes) -> Optional[bytes]:
	"""TIFF structure holding the EXIF tags, or None when the image carries none."""
	if data[:2] == b"\xff\xd8":
		pos = 2
		while pos + 4 <= len(data):
			if data[pos] != 0xFF:
				return None
			marker = data[pos + 1]
			if marker in (0xD9, 0xDA):
				return None
			length = struct.unpack(">H", data[pos + 2:pos + 4])[0]
			segment = data[pos + 4:pos + 2 + length]
			if marker == 0xE1 and segment[:6] == EXIF_HEADER:
				return segment[6:]
			pos += 2 + length
		return None
	if data[:2] in (b"II", b"MM"):
		return data
	if data[:6] == EXIF_HEADER:
		return data[6:]
	raise MetadataParseError("neither JPEG nor TIFF data")


def _check_ifd_counts(tiff: bytes) -> None:
	"""Reject IFD entries whose declared size exceeds the whole EXIF block.

	piexif sizes its unpack buffers from the declared count, so a corrupt
	count would otherwise allocate gigabytes.
	"""
	if tiff[:2] == b"II":
		endian = "<"
	elif tiff[:2] == b"MM":
		endian = ">"
	else:
		raise MetadataParseError("bad TIFF byte order mark")
	if len(tiff) < 8:
		raise MetadataParseError("truncated TIFF header")

	pending = [struct.unpack(endian + "L", tiff[4:8])[0]]
	seen = set()
	while pending:
		offset = pending.pop()
		if offset == 0 or offset in seen:
			continue
		seen.add(offset)
		if offset + 2 > len(tiff):
			raise MetadataParseError(f"IFD offset {offset} outside EXIF block")
		count = struct.unpack(endian + "H", tiff[offset:offset + 2])[0]
		end = offset + 2 + 12 * count
		if end > len(tiff):
			raise MetadataParseError(f"IFD at {offset} runs past EXIF block")
		for i in range(count):
			entry = tiff[offset + 2 + 12 * i:offset + 14 + 12 * i]
			tag, typ, n = struct.unpack(endian + "HHL", entry[:8])
			if TYPE_SIZES.get(typ, 1) * n > len(tiff):
				raise MetadataParseError(f"tag 0x{tag:04x} declares {n} values, larger than the EXIF block")
			if tag in IFD_POINTERS:
				pending.append(struct.unpack(endian + "L", entry[8:12])[0])
		if end + 4 <= len(tiff):
			pending.append(struct.unpack(endian + "L", tiff[end:end + 4])[0])


def read_capture(image_bytes: bytes, seconds_mode: str = SECONDS_LEGACY) -> CaptureMetadata:
	"""Parse capture metadata, raising MetadataParseError on any failure."""
	if not image_bytes:
		raise MetadataParseError("empty image buffer")
	tiff = _tiff_block(image_bytes)
	if tiff is None:
		return CaptureMetadata()
	_check_ifd_counts(tiff)
	try:
		# piexif only sees the block whose entry counts were checked
		ex = piexif.load(EXIF_HEADER + tiff)
	except (ValueError, OSError, struct.error, KeyError, IndexError, TypeError) as e:
		raise MetadataParseError(str(e)) from e

	exif = ex.get("Exif") or {}
	gps = ex.get("GPS") or {}

	timestamp = _bytes_to_str(exif.get(piexif.ExifIFD.DateTimeOriginal)) or UNKNOWN_DATE

	coordinate = None
	lat = gps.get(piexif.GPSIFD.GPSLatitude)
	lon = gps.get(piexif.GPSIFD.GPSLongitude)
	if lat and lon:
		try:
			coordinate = GeoCoordinate(
				latitude=_decode_axis(lat, gps.get(piexif.GPSIFD.GPSLatitudeRef), True, seconds_mode),
				longitude=_decode_axis(lon, gps.get(piexif.GPSIFD.GPSLongitudeRef), False, seconds_mode),
			)
		except (TypeError, ValueError) as e:
			raise MetadataParseError(f"unreadable GPS value: {e}") from e

	return CaptureMetadata(timestamp=timestamp, coordinate=coordinate)


def extract_metadata(image_bytes: bytes, seconds_mode: str = SECONDS_LEGACY) -> CaptureMetadata:
	"""Capture metadata for one image; unreadable EXIF degrades to the fallback."""
	try:
		return read_capture(image_bytes, seconds_mode=seconds_mode)
	except MetadataParseError as e:
		logger.warning("Error reading Exif data: %s", e)
		return FALLBACK_METADATA

