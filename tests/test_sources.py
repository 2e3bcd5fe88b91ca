"""Tests for source enumeration and reading."""
from pathlib import Path

import pytest

from pydeadcode.analyzer.models import WarningKind
from pydeadcode.analyzer.sources import enumerate_sources, is_excluded, parse_exclude, read_source
from pydeadcode.exceptions import SourceReadError


@pytest.fixture
def project(tmp_path):
    """A small tree with files that must and must not be picked up."""
    files = {
        "a.py": "x = 1\n",
        "sub/b.py": "y = 2\n",
        "tests/test_a.py": "z = 3\n",
        "gen/api_pb2.py": "w = 4\n",
        "venv/lib/site.py": "v = 5\n",
        ".git/hooks/hook.py": "h = 6\n",
        "pkg.egg-info/setup.py": "e = 7\n",
        "notes.txt": "not python\n",
    }
    for relative, text in files.items():
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return tmp_path


def relative_paths(sources, root: Path):
    return [Path(s.path).relative_to(root).as_posix() for s in sources]


class TestEnumerateSources:

    def test_walk_skips_environment_directories(self, project):
        sources, warnings = enumerate_sources([project])

        assert relative_paths(sources, project) == [
            'a.py', 'gen/api_pb2.py', 'sub/b.py', 'tests/test_a.py',
        ]
        assert warnings == []

    def test_exclude_patterns(self, project):
        sources, _ = enumerate_sources([project], exclude=["tests", "*_pb2.py"])
        assert relative_paths(sources, project) == ['a.py', 'sub/b.py']

    def test_exclude_relative_glob(self, project):
        sources, _ = enumerate_sources([project], exclude=["sub/*"])
        assert 'sub/b.py' not in relative_paths(sources, project)

    def test_file_reached_twice_is_read_once(self, project):
        sources, _ = enumerate_sources([project, project / "a.py"])
        paths = relative_paths(sources, project)
        assert paths.count('a.py') == 1

    def test_explicit_non_python_file_ignored(self, project):
        sources, warnings = enumerate_sources([project / "notes.txt"])
        assert sources == [] and warnings == []

    def test_missing_path_is_a_warning(self, tmp_path):
        sources, warnings = enumerate_sources([tmp_path / "nope"])

        assert sources == []
        assert len(warnings) == 1
        assert warnings[0].kind == WarningKind.UNREADABLE
        assert warnings[0].message == "path does not exist"

    def test_invalid_utf8_is_a_warning(self, tmp_path):
        (tmp_path / "good.py").write_text("ok = 1\n", encoding="utf-8")
        (tmp_path / "latin.py").write_bytes(b"name = '\xff'\n")

        sources, warnings = enumerate_sources([tmp_path])

        assert [Path(s.path).name for s in sources] == ['good.py']
        assert [Path(w.file).name for w in warnings] == ['latin.py']
        assert warnings[0].kind == WarningKind.UNREADABLE


class TestHelpers:

    def test_read_source_strips_bom(self, tmp_path):
        path = tmp_path / "bom.py"
        path.write_bytes(b"\xef\xbb\xbfx = 1\n")
        assert read_source(path) == "x = 1\n"

    def test_read_source_raises_on_missing_file(self, tmp_path):
        with pytest.raises(SourceReadError) as excinfo:
            read_source(tmp_path / "missing.py")
        assert excinfo.value.file.endswith("missing.py")

    @pytest.mark.parametrize("value,expected", [
        (None, []),
        ("", []),
        ("tests/*", ["tests/*"]),
        ("a, ,b ,*_pb2.py", ["a", "b", "*_pb2.py"]),
    ])
    def test_parse_exclude(self, value, expected):
        assert parse_exclude(value) == expected

    def test_is_excluded_matches_name_and_parts(self):
        root = Path("/repo")
        assert is_excluded(root / "gen" / "x.py", ["gen"], root)
        assert is_excluded(root / "x_pb2.py", ["*_pb2.py"], root)
        assert not is_excluded(root / "src" / "x.py", ["gen"], root)
        assert not is_excluded(root / "src" / "x.py", [], root)
