"""Finding aggregation: threshold, ordering and canonical output records."""
from enum import Enum
from typing import Iterable, List

from .models import Finding, FindingRecord


class SortPolicy(str, Enum):
    BY_LOCATION = "by-location"
    BY_SIZE = "by-size"


def _location_key(finding: Finding):
    symbol = finding.symbol
    return (symbol.file, symbol.location.line, symbol.location.column, symbol.name)


def aggregate(findings: Iterable[Finding], min_confidence: int = 0,
              sort_policy: SortPolicy = SortPolicy.BY_LOCATION) -> List[FindingRecord]:
    """Filter and order findings into output records.

    Findings below ``min_confidence`` are dropped. ``BY_LOCATION`` orders by
    file, line, column and name; ``BY_SIZE`` puts the largest definitions
    first and breaks ties by location.
    """
    kept = [f for f in findings if f.confidence >= min_confidence]

    if SortPolicy(sort_policy) == SortPolicy.BY_SIZE:
        kept.sort(key=lambda f: (-f.symbol.size,) + _location_key(f))
    else:
        kept.sort(key=_location_key)

    return [
        FindingRecord(
            file=f.symbol.file,
            line=f.symbol.location.line,
            symbol_name=f.symbol.name,
            kind=f.symbol.kind,
            confidence=f.confidence,
            size=f.symbol.size,
            reasons=f.reasons,
        )
        for f in kept
    ]
