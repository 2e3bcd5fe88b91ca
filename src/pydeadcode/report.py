"""Report rendering: line-oriented text for terminals, JSON for machines."""
import json
from typing import Iterable, List, Sequence

from rich.console import Console

from .analyzer.heuristics import REASON_DESCRIPTIONS
from .analyzer.models import AnalysisWarning, FindingRecord

HEADER = "Dead Code Found:"
EMPTY_MESSAGE = "✓ No dead code found!"


def format_finding(record: FindingRecord) -> str:
    """``<file>: line <n> - <name> [<kind>] (<confidence>% confidence)``"""
    return (
        f"{record.file}: line {record.line} - {record.symbol_name} "
        f"[{record.kind.value}] ({record.confidence}% confidence)"
    )


def format_summary(count: int) -> str:
    return f"{count} dead code items found"


def render_text(records: Sequence[FindingRecord], console: Console, explain: bool = False) -> None:
    """Print findings one per line, followed by a count."""
    if not records:
        console.print(EMPTY_MESSAGE, style="bold green", markup=False, highlight=False)
        return

    console.print(HEADER, style="bold yellow", markup=False, highlight=False)
    for record in records:
        console.print(format_finding(record), markup=False, highlight=False)
        if explain:
            for reason in record.reasons:
                detail = REASON_DESCRIPTIONS.get(reason, "")
                line = f"    {reason}: {detail}" if detail else f"    {reason}"
                console.print(line, style="dim", markup=False, highlight=False)
    console.print()
    console.print(format_summary(len(records)), style="bold", markup=False, highlight=False)


def render_json(records: Iterable[FindingRecord], explain: bool = False) -> str:
    """JSON array of ``{file, line, symbol_name, kind, confidence}`` records."""
    return json.dumps([r.to_dict(include_reasons=explain) for r in records], indent=2)


def render_warnings(warnings: List[AnalysisWarning], console: Console) -> None:
    """Print warnings (expected on a stderr console)."""
    for warning in warnings:
        console.print(
            f"warning: {warning} [{warning.kind.value}]",
            style="yellow", markup=False, highlight=False,
        )
