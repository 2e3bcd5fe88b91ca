"""Shared fixtures: in-memory projects and a clean configuration environment."""
from typing import Dict

import pytest

from pydeadcode.analyzer.parser import LanguageParser
from pydeadcode.analyzer.pipeline import analyze_file, analyze_sources
from pydeadcode.analyzer.resolver import CrossFileResolver
from pydeadcode.analyzer.sources import SourceFile
from pydeadcode.config import AnalysisSettings

ENV_VARS = (
    "PYDEADCODE_MIN_CONFIDENCE",
    "PYDEADCODE_SORT",
    "PYDEADCODE_WORKERS",
    "PYDEADCODE_EXCLUDE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove pydeadcode variables, restoring them (or their absence) afterwards.

    Setting before deleting makes monkeypatch record the original state, so
    values a test loads from a .env file are undone as well.
    """
    for name in ENV_VARS:
        monkeypatch.setenv(name, "unset")
        monkeypatch.delenv(name)


@pytest.fixture
def parser():
    return LanguageParser()


@pytest.fixture
def index_of():
    """Resolve an in-memory project given as {path: source}."""
    def _index(files: Dict[str, str]):
        analyses = [analyze_file(SourceFile(path, text)) for path, text in files.items()]
        return CrossFileResolver(analyses).resolve()
    return _index


@pytest.fixture
def run():
    """Run the whole engine over an in-memory project given as {path: source}."""
    def _run(files: Dict[str, str], **settings):
        settings.setdefault("workers", 1)
        sources = [SourceFile(path, text) for path, text in files.items()]
        return analyze_sources(sources, AnalysisSettings(**settings))
    return _run
