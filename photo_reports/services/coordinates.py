from __future__ import annotations

from typing import Optional

from photo_reports.models import DmsAxis, GeoCoordinate, UNKNOWN_LOCATION


def hemisphere_for(degrees: float, is_latitude: bool) -> str:
	if is_latitude:
		return "N" if degrees >= 0 else "S"
	return "E" if degrees >= 0 else "W"


def to_dms(degrees: int, minutes: int, seconds: float, is_latitude: bool) -> str:
	# degrees keeps its sign in the numeric field as well as in the letter
	direction = hemisphere_for(degrees, is_latitude)
	return f"{degrees}° {minutes}' {seconds:.2f}\" {direction}"


def format_axis(axis: DmsAxis, is_latitude: bool) -> str:
	return to_dms(axis.degrees, axis.minutes, axis.seconds, is_latitude)


def format_coordinate(coordinate: Optional[GeoCoordinate]) -> str:
	if coordinate is None:
		return UNKNOWN_LOCATION
	lat = format_axis(coordinate.latitude, True)
	lon = format_axis(coordinate.longitude, False)
	return f"{lat} | {lon}"
