"""
Leaderboard ranking.

A pure, deterministic total order over (teacher_id, average, count) entries:

1. average: descending for "top", ascending for "bottom"; a missing
   average always sorts last
2. count: descending in both directions (bigger sample wins a tie)
3. teacher_id: ascending, so equal entries still get distinct positions

The same ordering stamps rank_position into immutable week snapshots, so it
must never depend on input order or on anything but the entry values.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from ratings_engine.errors import ValidationError

TOP = "top"
BOTTOM = "bottom"
DIRECTIONS = (TOP, BOTTOM)


@dataclass(frozen=True)
class RankedEntry:
    teacher_id: str
    average: Optional[Decimal]
    count: int
    rank_position: int

    def to_dict(self) -> dict:
        return {
            "teacher_id": self.teacher_id,
            "average": float(self.average) if self.average is not None else None,
            "count": self.count,
            "rank_position": self.rank_position,
        }


def validate_direction(direction: str) -> str:
    if direction not in DIRECTIONS:
        raise ValidationError(f"direction must be one of {', '.join(DIRECTIONS)}, got {direction!r}")
    return direction


def _sort_key(entry, direction: str):
    average = entry.average
    if average is None:
        return (1, Decimal(0), -entry.count, entry.teacher_id)
    average = Decimal(str(average)) if isinstance(average, float) else Decimal(average)
    signed = -average if direction == TOP else average
    return (0, signed, -entry.count, entry.teacher_id)


def rank(entries: Iterable, direction: str = TOP) -> List[RankedEntry]:
    """
    Order entries and assign 1-based rank positions.

    Args:
        entries: Objects with ``teacher_id``, ``average`` (may be None) and
            ``count`` attributes, e.g. TeacherAggregate
        direction: "top" (best first) or "bottom" (worst first)

    Returns:
        RankedEntry list; rank_position equals list index + 1

    Raises:
        ValidationError: On unknown direction or duplicate teacher ids
    """
    validate_direction(direction)
    items = list(entries)

    seen = set()
    for item in items:
        if item.teacher_id in seen:
            raise ValidationError(f"Duplicate teacher_id in ranking input: {item.teacher_id}")
        seen.add(item.teacher_id)

    ordered = sorted(items, key=lambda item: _sort_key(item, direction))
    return [
        RankedEntry(
            teacher_id=item.teacher_id,
            average=item.average,
            count=item.count,
            rank_position=position,
        )
        for position, item in enumerate(ordered, start=1)
    ]
