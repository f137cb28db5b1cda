"""Pure attendance arithmetic: status rollups, rates and period deltas."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from backend.app.models.attendance_record import ABSENT, EXCUSED, LATE, PRESENT, UNEXCUSED_ABSENT

COUNTED_STATUSES = (PRESENT, ABSENT, LATE, EXCUSED, UNEXCUSED_ABSENT)
ATTENDED_STATUSES = (PRESENT, LATE)


def round_one(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def aggregate_status_counts(pairs: Iterable[tuple[str, int]]) -> dict[str, int]:
    """Fold ``(status, count)`` pairs from a group-by into one count per status."""
    counts = {status: 0 for status in COUNTED_STATUSES}
    for status, count in pairs:
        if status in counts:
            counts[status] += int(count or 0)
    return counts


def compute_attendance_rate(present: int, late: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round_one((present + late) / total * 100)


def summarize_status_counts(counts: dict[str, int]) -> dict:
    total = sum(counts.get(status, 0) for status in COUNTED_STATUSES)
    present = counts.get(PRESENT, 0)
    late = counts.get(LATE, 0)
    return {
        "total": total,
        "present": present,
        "absent": counts.get(ABSENT, 0),
        "late": late,
        "excused": counts.get(EXCUSED, 0),
        "unexcused_absent": counts.get(UNEXCUSED_ABSENT, 0),
        "attendance_rate": compute_attendance_rate(present, late, total),
    }


def rate_from_status_counts(counts: dict[str, int]) -> float:
    return summarize_status_counts(counts)["attendance_rate"]


def sort_by_family_then_name(students: list[dict]) -> list[dict]:
    """Keep siblings together.

    Students with a ``family_reference_id`` come first, grouped by that id
    ascending and by name inside each group. Students without one follow,
    ordered by name.
    """

    def key(student: dict):
        family = student.get("family_reference_id")
        name = (student.get("name") or "").lower()
        if family:
            return (0, family, name)
        return (1, "", name)

    return sorted(students, key=key)


def compare_periods(current: dict[str, int], previous: dict[str, int]) -> dict:
    """Rate delta between two periods; ``diff`` is None without prior history."""
    current_summary = summarize_status_counts(current)
    previous_summary = summarize_status_counts(previous)
    diff = None
    if previous_summary["total"] > 0:
        diff = round_one(current_summary["attendance_rate"] - previous_summary["attendance_rate"])
    return {
        "current_rate": current_summary["attendance_rate"],
        "previous_rate": previous_summary["attendance_rate"] if previous_summary["total"] > 0 else None,
        "current_total": current_summary["total"],
        "previous_total": previous_summary["total"],
        "diff": diff,
    }


def compare_grouped(
    current: dict[str, dict[str, int]],
    previous: dict[str, dict[str, int]],
    groups: Iterable[str] | None = None,
) -> dict[str, dict]:
    """Compare each group independently; a group missing a period counts as empty."""
    keys = list(groups) if groups is not None else sorted(set(current) | set(previous))
    return {key: compare_periods(current.get(key, {}), previous.get(key, {})) for key in keys}


def merge_counts(*count_maps: dict[str, int]) -> dict[str, int]:
    merged = {status: 0 for status in COUNTED_STATUSES}
    for counts in count_maps:
        for status, count in counts.items():
            if status in merged:
                merged[status] += count
    return merged
