"""Cut a path into index intervals over which every hazard attribute is constant."""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from bikesafe.schemas.routing import AttributeRange

Interval = Tuple[int, int]


def segment_intervals(
    point_count: int,
    extras: Optional[Mapping[str, Sequence[AttributeRange]]] = None,
) -> List[Interval]:
    """Split ``[0, point_count - 1]`` at every attribute-range boundary.

    Boundaries are the sorted union of all range starts and ends plus the
    path's first and last index. Consecutive intervals share their boundary
    point, so together they cover every edge of the path exactly once.
    Indices outside the path are ignored.

    Returns an empty list for paths with fewer than 2 points.
    """
    if point_count < 2:
        return []

    last_index = point_count - 1
    cuts = {0, last_index}
    for ranges in (extras or {}).values():
        for attr in ranges or []:
            for index in (attr.start_index, attr.end_index):
                if 0 <= index <= last_index:
                    cuts.add(index)

    boundaries = sorted(cuts)
    intervals = []
    for i in range(len(boundaries) - 1):
        start = boundaries[i]
        end = max(start + 1, boundaries[i + 1])
        intervals.append((start, end))
    return intervals


def value_at(
    index: int,
    ranges: Optional[Iterable[AttributeRange]],
    default: Optional[float] = None,
) -> Optional[float]:
    """Value of the first range containing ``index`` (inclusive bounds), else ``default``."""
    for attr in ranges or []:
        if attr.start_index <= index <= attr.end_index:
            return attr.value
    return default


def parse_provider_extras(raw_extras: Optional[Mapping]) -> Dict[str, List[AttributeRange]]:
    """Convert provider ``extras`` (``{kind: {"values": [[start, end, value], ...]}}``)."""
    extras: Dict[str, List[AttributeRange]] = {}
    for kind, payload in (raw_extras or {}).items():
        values = payload.get("values", []) if isinstance(payload, Mapping) else []
        ranges = []
        for triple in values:
            if len(triple) < 3:
                continue
            start, end, value = triple[0], triple[1], triple[2]
            if start is None or end is None or value is None or start < 0 or end < 0:
                continue
            ranges.append(AttributeRange(start_index=int(start), end_index=int(end), value=float(value)))
        extras[kind] = ranges
    return extras
