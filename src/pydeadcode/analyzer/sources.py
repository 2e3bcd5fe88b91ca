"""Source enumeration: turn command-line paths into readable Python files."""
import fnmatch
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from ..exceptions import SourceReadError
from .models import AnalysisWarning, WarningKind
from .parser import LanguageParser

logger = logging.getLogger(__name__)

# Directories never worth descending into
EXCLUDED_DIRS = {
    'venv', '.venv', 'env', '.virtualenv',
    'vendor', 'third_party', 'site-packages',
    '.tox', '.nox', 'dist', 'build', '__pycache__', '.eggs',
    '.mypy_cache', '.pytest_cache', '.ruff_cache',
    'node_modules', '.git', '.hg', '.svn',
}


@dataclass(frozen=True)
class SourceFile:
    """A file path and its decoded text."""
    path: str
    text: str


def parse_exclude(value: Optional[str]) -> List[str]:
    """Split a comma-separated glob list (``"tests/*,*_pb2.py"``)."""
    if not value:
        return []
    return [pattern.strip() for pattern in value.split(',') if pattern.strip()]


def is_excluded(path: Path, patterns: Sequence[str], root: Optional[Path] = None) -> bool:
    """True if a path matches any glob.

    Patterns are tried against the path (relative to ``root`` when given),
    its file name, and each of its directory parts.
    """
    if not patterns:
        return False
    relative = path.relative_to(root) if root is not None else path
    candidates = [relative.as_posix(), path.name] + list(relative.parts)
    return any(fnmatch.fnmatch(c, pattern) for pattern in patterns for c in candidates)


def read_source(path: Path) -> str:
    """Read a file as UTF-8 text.

    Raises:
        SourceReadError: If the file cannot be read or is not valid UTF-8
    """
    try:
        with open(path, 'r', encoding='utf-8-sig') as f:
            return f.read()
    except UnicodeDecodeError as e:
        raise SourceReadError(path, f"not valid UTF-8 ({e.reason} at byte {e.start})") from e
    except OSError as e:
        raise SourceReadError(path, e.strerror or str(e)) from e


def enumerate_sources(paths: Iterable[str | Path],
                      exclude: Sequence[str] = ()) -> Tuple[List[SourceFile], List[AnalysisWarning]]:
    """Collect the Python files under ``paths``.

    Directories are walked recursively, skipping ``EXCLUDED_DIRS`` and
    anything matching ``exclude``. Files named explicitly are taken as long
    as they have a Python extension and are not excluded. A file reached
    twice is read once.

    Args:
        paths: Files and/or directories
        exclude: Glob patterns to leave out

    Returns:
        (sources sorted by path, warnings for paths that could not be read)
    """
    warnings: List[AnalysisWarning] = []
    found: List[Path] = []
    seen = set()

    for raw in paths:
        root = Path(raw)
        if root.is_dir():
            candidates = _walk(root, exclude)
        elif root.is_file():
            candidates = [root] if LanguageParser.supports(root) and not is_excluded(root, exclude) else []
        else:
            warnings.append(AnalysisWarning(
                file=str(root), line=0, kind=WarningKind.UNREADABLE, message="path does not exist",
            ))
            continue

        for path in candidates:
            key = os.path.realpath(path)
            if key in seen:
                continue
            seen.add(key)
            found.append(path)

    sources: List[SourceFile] = []
    for path in sorted(found, key=lambda p: p.as_posix()):
        try:
            sources.append(SourceFile(path=str(path), text=read_source(path)))
        except SourceReadError as e:
            logger.debug("Skipping %s: %s", path, e.reason)
            warnings.append(AnalysisWarning(
                file=str(path), line=0, kind=WarningKind.UNREADABLE, message=e.reason,
            ))

    return sources, warnings


def _walk(root: Path, exclude: Sequence[str]) -> List[Path]:
    results: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in EXCLUDED_DIRS and not d.endswith('.egg-info')
            and not is_excluded(current / d, exclude, root)
        )
        for name in sorted(filenames):
            path = current / name
            if name.endswith('.py') and not is_excluded(path, exclude, root):
                results.append(path)
    return results
