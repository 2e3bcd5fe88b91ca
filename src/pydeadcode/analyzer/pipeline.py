"""Analysis entry point: per-file fan-out, single merge, scoring.

Parsing, symbol tables and usage collection run per file on a bounded
thread pool. Results are sorted by path before the resolver merges them, so
the output never depends on which worker finished first.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from ..config import AnalysisSettings
from ..exceptions import ParseError
from .aggregator import aggregate
from .models import AnalysisWarning, FileAnalysis, FindingRecord, WarningKind
from .parser import LanguageParser, first_error_line, thread_parser, tree_has_errors
from .reachability import ReachabilityEngine
from .resolver import CrossFileResolver, module_parts_for
from .sources import SourceFile
from .symbols import SymbolTableBuilder
from .usages import UsageCollector

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


@dataclass
class AnalysisResult:
    """Ordered findings plus every warning raised along the way."""
    findings: List[FindingRecord] = field(default_factory=list)
    warnings: List[AnalysisWarning] = field(default_factory=list)
    files_analyzed: int = 0


def analyze_file(source: SourceFile, parser: Optional[LanguageParser] = None) -> FileAnalysis:
    """Parse one file and extract its scopes, symbols and references.

    Raises:
        ParseError: If nothing in the file could be parsed
    """
    parser = parser or thread_parser()
    started = time.perf_counter()

    tree = parser.parse_source(source.text, source.path)
    symbols, scopes, warnings = SymbolTableBuilder(source.path).build(tree)
    references = UsageCollector(source.path).collect(tree)

    partial = tree_has_errors(tree)
    if partial and not warnings:
        # Errors only inside regions the builder does not walk (signatures, decorators)
        warnings = [AnalysisWarning(
            file=source.path,
            line=first_error_line(tree.root_node),
            kind=WarningKind.PARTIAL_PARSE,
            message="skipped 1 malformed region(s)",
        )]

    logger.debug(
        "%s: %d symbols, %d references in %.1fms",
        source.path, len(symbols), len(references), (time.perf_counter() - started) * 1000,
    )
    return FileAnalysis(
        path=source.path,
        module_parts=module_parts_for(source.path),
        symbols=tuple(symbols),
        scopes=tuple(scopes),
        references=tuple(references),
        partial=partial,
        warnings=tuple(warnings),
    )


def _analyze_safely(source: SourceFile) -> FileAnalysis:
    """analyze_file, degrading any failure to a warning and an empty result."""
    try:
        return analyze_file(source)
    except ParseError as e:
        logger.debug("Parse failure in %s: %s", source.path, e.reason)
        warning = AnalysisWarning(source.path, e.line, WarningKind.PARSE_ERROR, e.reason)
    except Exception as e:
        logger.debug("Unexpected failure analyzing %s", source.path, exc_info=True)
        warning = AnalysisWarning(source.path, 0, WarningKind.PARSE_ERROR, f"analysis failed: {e}")

    return FileAnalysis(
        path=source.path,
        module_parts=module_parts_for(source.path),
        warnings=(warning,),
    )


def analyze_sources(sources: Iterable[SourceFile], settings: Optional[AnalysisSettings] = None,
                    on_progress: Optional[ProgressCallback] = None) -> AnalysisResult:
    """Run the whole engine over in-memory sources.

    Args:
        sources: Files to analyze; a path given twice is analyzed once
        settings: Validated run settings (defaults when None)
        on_progress: Called with each file's path as it finishes

    Returns:
        AnalysisResult with findings ordered per ``settings.sort_policy``
    """
    settings = settings or AnalysisSettings()

    unique: List[SourceFile] = []
    seen = set()
    for source in sources:
        if source.path not in seen:
            seen.add(source.path)
            unique.append(source)

    analyses = _run_per_file(unique, settings.workers, on_progress)
    analyses.sort(key=lambda a: a.path)

    index = CrossFileResolver(analyses).resolve()
    findings = ReachabilityEngine(index, settings.weights, settings.rules).score()
    records = aggregate(findings, settings.min_confidence, settings.sort_policy)

    warnings = [w for analysis in analyses for w in analysis.warnings]
    warnings.sort(key=lambda w: (w.file, w.line, w.kind.value))

    return AnalysisResult(
        findings=records,
        warnings=warnings,
        files_analyzed=len(analyses),
    )


def _run_per_file(sources: List[SourceFile], workers: int,
                  on_progress: Optional[ProgressCallback]) -> List[FileAnalysis]:
    results: List[FileAnalysis] = []

    if workers <= 1 or len(sources) < 2:
        for source in sources:
            results.append(_analyze_safely(source))
            if on_progress:
                on_progress(source.path)
        return results

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(_analyze_safely, source): source for source in sources}
        for future in as_completed(futures):
            results.append(future.result())
            if on_progress:
                on_progress(futures[future].path)
    return results
