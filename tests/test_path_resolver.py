from __future__ import annotations

import logging
from pathlib import Path

import pytest

from conftest import make_file
from path_resolver import PathResolver, SpecKind, classify_spec, split_recursive_spec, translate_pattern
from rule_engine import iter_entries


def test_classify_spec() -> None:
    assert classify_spec("/var/tmp") is SpecKind.LITERAL
    assert classify_spec("/var/*cache*") is SpecKind.GLOB
    assert classify_spec("/var/**/*.log") is SpecKind.RECURSIVE


def test_literal_directory_resolves(tmp_path: Path) -> None:
    roots = PathResolver().resolve(str(tmp_path))
    assert [r.base for r in roots] == [str(tmp_path)]
    assert roots[0].pattern is None


def test_missing_literal_is_skipped_with_error(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.ERROR, logger="dirclean"):
        roots = PathResolver().resolve(str(tmp_path / "missing"))
    assert roots == []
    assert "does not exist" in caplog.text


def test_literal_file_is_not_a_directory(tmp_path: Path) -> None:
    make_file(tmp_path / "file.txt")
    assert PathResolver().resolve(str(tmp_path / "file.txt")) == []


def test_single_level_glob_keeps_only_directories(tmp_path: Path) -> None:
    (tmp_path / "a_worker_1").mkdir()
    (tmp_path / "b_worker_2").mkdir()
    (tmp_path / "nested" / "c_worker_3").mkdir(parents=True)
    make_file(tmp_path / "d_worker.txt")

    roots = PathResolver().resolve(str(tmp_path / "*worker*"))

    assert [Path(r.base).name for r in roots] == ["a_worker_1", "b_worker_2"]


@pytest.mark.parametrize("spec", ["**", "*", "*cache*", "**/*.log"])
def test_wildcard_without_base_is_rejected(spec: str, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.ERROR, logger="dirclean"):
        assert PathResolver().resolve(spec) == []
    assert "Invalid wildcard path" in caplog.text


def test_empty_spec_is_rejected() -> None:
    assert PathResolver().resolve("") == []


@pytest.mark.parametrize(
    ("spec", "base", "pattern"),
    [
        ("/a/b/**", "/a/b", "**"),
        ("/a/b/**/*.log", "/a/b", "**/*.log"),
        ("/a/b/c**", "/a/b", "c**"),
        ("/**", "/", "**"),
        ("/a/*/x/**", "/a", "*/x/**"),
    ],
)
def test_split_recursive_spec(spec: str, base: str, pattern: str) -> None:
    assert split_recursive_spec(spec) == (base, pattern)


def test_translate_pattern_suffix_semantics() -> None:
    regex = translate_pattern("**/*.log")
    assert regex.search("a/b/c.log")
    assert regex.search("c.log")
    assert not regex.search("c.log.gz")

    single = translate_pattern("*.log")
    assert single.search("deep/dir/c.log")
    assert not single.search("deep/dir/c.txt")

    assert translate_pattern("**").search("any/thing/at/all")


def test_recursive_glob_visits_deep_entries(tmp_path: Path) -> None:
    deep = make_file(tmp_path / "b" / "c" / "d" / "file.txt")
    make_file(tmp_path / "b" / "top.txt")

    roots = PathResolver().resolve(str(tmp_path / "b") + "/**")

    assert len(roots) == 1
    assert roots[0].base == str(tmp_path / "b")
    visited = [entry.path for entry in iter_entries(roots[0])]
    assert str(deep) in visited
    assert str(tmp_path / "b" / "top.txt") in visited


def test_recursive_glob_filters_by_pattern(tmp_path: Path) -> None:
    make_file(tmp_path / "exports" / "2024" / "jan.csv")
    make_file(tmp_path / "exports" / "2024" / "notes.txt")
    make_file(tmp_path / "exports" / "top.csv")

    (root,) = PathResolver().resolve(str(tmp_path / "exports") + "/**/*.csv")

    names = sorted(Path(e.path).name for e in iter_entries(root))
    assert names == ["jan.csv", "top.csv"]


def test_recursive_glob_with_missing_base(tmp_path: Path) -> None:
    assert PathResolver().resolve(str(tmp_path / "nope") + "/**") == []


def test_resolve_all_continues_past_bad_specs(tmp_path: Path) -> None:
    (tmp_path / "good").mkdir()
    roots = PathResolver().resolve_all(["**", str(tmp_path / "missing"), str(tmp_path / "good")])
    assert [r.base for r in roots] == [str(tmp_path / "good")]
