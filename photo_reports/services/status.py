from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, Iterable, List

from photo_reports.models import LocationStatus, Report, StatusKind


STATUS_STYLES = {
	StatusKind.AGREED.value: "success",
	StatusKind.PENDING.value: "warning",
	StatusKind.RECHECK.value: "warning",
	StatusKind.ISSUES.value: "danger",
}


def aggregate(location_statuses: Iterable[LocationStatus]) -> str:
	"""Overall status for a sequence of per-location statuses.

	The first status that is not "Agreed" wins, in stored order; this is not
	a severity ranking. An empty sequence is "Agreed".
	"""
	for ls in location_statuses:
		if ls.status != StatusKind.AGREED.value:
			return ls.status
	return StatusKind.AGREED.value


def status_style(status: str) -> str:
	return STATUS_STYLES.get(status, "neutral")


def report_rollup(report: Report) -> str:
	return aggregate(report.location_statuses)


def task_rollup(reports: Iterable[Report]) -> str:
	statuses: List[LocationStatus] = []
	for r in reports:
		statuses.extend(r.location_statuses)
	return aggregate(statuses)


def describe_report(report: Report) -> Dict[str, Any]:
	data = report.to_dict()
	rollup = report_rollup(report)
	data["rollupStatus"] = rollup
	data["rollupStyle"] = status_style(rollup)
	data["baseStatuses"] = [
		{**ls.to_dict(), "style": status_style(ls.status)} for ls in report.location_statuses
	]
	return data


def group_by_task(reports: Iterable[Report]) -> List[Dict[str, Any]]:
	groups: "OrderedDict[str, List[Report]]" = OrderedDict()
	for r in reports:
		groups.setdefault(r.task, []).append(r)
	out = []
	for task, items in groups.items():
		rollup = task_rollup(items)
		out.append({
			"task": task,
			"status": rollup,
			"style": status_style(rollup),
			"reports": [describe_report(r) for r in items],
		})
	return out
