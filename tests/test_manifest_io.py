"""Tests for ci_mirrors.tools.manifest_io."""
import tomllib
from pathlib import Path

import pytest

from conftest import declared

from ci_mirrors.models.manifest import DeclaredFile, LegacyFile
from ci_mirrors.tools.errors import ValidationError
from ci_mirrors.tools.manifest_io import (
    append_entry,
    find_manifest_files,
    load_entries,
    load_manifest,
    render_entry,
)

SHA = "ab" * 32

EXAMPLE = f"""\
# Artifacts used by the dist builders
[[file]]
name = "org/repo/artifact-1.0.0.tar.gz"
source = "https://example.com/artifact-1.0.0.tar.gz"
sha256 = "{SHA}"
license = "MIT"

[[file]]
name = "legacy/old-artifact.bin"
legacy = true
"""


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def test_load_manifest(tmp_path: Path) -> None:
    manifest = load_manifest(_write(tmp_path / "files.toml", EXAMPLE))

    assert manifest.path == tmp_path / "files.toml"
    assert isinstance(manifest.files[0], DeclaredFile)
    assert isinstance(manifest.files[1], LegacyFile)
    assert {e.name for e in manifest.files} == {"org/repo/artifact-1.0.0.tar.gz", "legacy/old-artifact.bin"}


def test_empty_manifest(tmp_path: Path) -> None:
    assert load_manifest(_write(tmp_path / "empty.toml", "")).files == []


def test_invalid_toml(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="invalid TOML"):
        load_manifest(_write(tmp_path / "bad.toml", "[[file]\nname = "))


def test_unknown_top_level_key(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="files"):
        load_manifest(_write(tmp_path / "typo.toml", '[[files]]\nname = "a"\nlegacy = true\n'))


def test_invalid_entry_names_file_and_index(tmp_path: Path) -> None:
    text = EXAMPLE + '\n[[file]]\nname = "broken"\nsource = "https://example.com/x"\n'
    with pytest.raises(ValidationError, match=r"broken.toml: entry #3"):
        load_manifest(_write(tmp_path / "broken.toml", text))


def test_find_manifest_files_walks_directories(tmp_path: Path) -> None:
    b = _write(tmp_path / "files" / "b.toml", "")
    a = _write(tmp_path / "files" / "sub" / "a.toml", "")
    _write(tmp_path / "files" / "notes.md", "")
    single = _write(tmp_path / "extra.toml", "")

    found = find_manifest_files([tmp_path / "files", single])
    assert found == sorted([a, b]) + [single]


def test_find_manifest_files_missing_path(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="not found"):
        find_manifest_files([tmp_path / "nope"])


def test_load_entries_rejects_duplicates_across_files(tmp_path: Path) -> None:
    _write(tmp_path / "files" / "one.toml", EXAMPLE)
    _write(tmp_path / "files" / "two.toml", '[[file]]\nname = "legacy/old-artifact.bin"\nlegacy = true\n')
    with pytest.raises(ValidationError, match="legacy/old-artifact.bin"):
        load_entries([tmp_path / "files"])


def test_append_entry_preserves_existing_text(tmp_path: Path) -> None:
    path = _write(tmp_path / "files.toml", EXAMPLE)
    entry = declared("org/new.zip", b"new")

    append_entry(path, entry)

    text = path.read_text()
    assert text.startswith(EXAMPLE)
    reloaded = load_manifest(path)
    assert reloaded.files[-1] == entry
    assert len(reloaded.files) == 3


def test_append_entry_creates_file(tmp_path: Path) -> None:
    path = tmp_path / "files" / "new.toml"
    entry = declared("a", b"a")
    append_entry(path, entry)
    assert load_manifest(path).files == [entry]
    assert not path.with_suffix(".toml.tmp").exists()


def test_render_entry_escapes_strings() -> None:
    entry = DeclaredFile(
        name="odd/na\"me.bin",
        source="https://example.com/a?x=1&y=2",
        sha256=SHA,
        license="MIT OR Apache-2.0 (Ünïcode, see \\LICENSE)",
    )
    parsed = tomllib.loads(render_entry(entry))["file"][0]
    assert parsed == {"name": entry.name, "source": entry.source, "sha256": SHA, "license": entry.license}
