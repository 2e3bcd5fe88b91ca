"""Tests for finding aggregation: threshold, ordering and output records."""
from pydeadcode.analyzer.aggregator import SortPolicy, aggregate
from pydeadcode.analyzer.models import Finding, Location, Symbol, SymbolKind


def make_finding(name, file="a.py", line=1, size=1, confidence=100, column=0,
                 kind=SymbolKind.FUNCTION, reasons=("no-references",)):
    symbol = Symbol(
        id=f"{file}::{name}",
        name=name,
        qualified_name=name,
        kind=kind,
        scope_id=f"{file}::<module>",
        location=Location(file, line, column, line + size - 1, 4),
        start_line=line,
    )
    return Finding(symbol=symbol, confidence=confidence, reasons=reasons)


class TestThreshold:

    def test_findings_below_threshold_dropped(self):
        findings = [
            make_finding("low", confidence=59),
            make_finding("edge", line=2, confidence=60),
            make_finding("high", line=3, confidence=100),
        ]
        records = aggregate(findings, min_confidence=60)

        assert [r.symbol_name for r in records] == ['edge', 'high'], \
            "A finding exactly at the threshold is kept"

    def test_zero_threshold_keeps_everything(self):
        findings = [make_finding("zero", confidence=0)]
        assert len(aggregate(findings)) == 1


class TestOrdering:

    def test_by_location(self):
        findings = [
            make_finding("c", file="b.py", line=1),
            make_finding("b", file="a.py", line=9),
            make_finding("a", file="a.py", line=2),
            make_finding("d", file="a.py", line=2, column=4),
        ]
        records = aggregate(findings, sort_policy=SortPolicy.BY_LOCATION)
        assert [r.symbol_name for r in records] == ['a', 'd', 'b', 'c']

    def test_by_size_breaks_ties_by_location(self):
        findings = [
            make_finding("small", line=1, size=2),
            make_finding("big", file="z.py", line=50, size=30),
            make_finding("mid_late", line=40, size=10),
            make_finding("mid_early", line=20, size=10),
        ]
        records = aggregate(findings, sort_policy=SortPolicy.BY_SIZE)

        assert [r.symbol_name for r in records] == ['big', 'mid_early', 'mid_late', 'small']
        assert [r.size for r in records] == [30, 10, 10, 2]

    def test_policy_accepts_plain_string(self):
        findings = [make_finding("small", size=1), make_finding("big", line=5, size=5)]
        records = aggregate(findings, sort_policy="by-size")
        assert records[0].symbol_name == 'big'


class TestRecords:

    def test_record_fields(self):
        record = aggregate([make_finding("run", file="x.py", line=7, confidence=65,
                                         kind=SymbolKind.METHOD)])[0]

        assert record.to_dict() == {
            "file": "x.py",
            "line": 7,
            "symbol_name": "run",
            "kind": "method",
            "confidence": 65,
        }

    def test_reasons_only_on_request(self):
        record = aggregate([make_finding("run", reasons=("no-references", "exported"))])[0]

        assert "reasons" not in record.to_dict()
        assert record.to_dict(include_reasons=True)["reasons"] == ["no-references", "exported"]
