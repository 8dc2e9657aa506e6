"""Manifest I/O: discover, load and append TOML manifest files."""
import json
import tomllib
from pathlib import Path
from typing import Iterable

from ci_mirrors.models.manifest import DeclaredFile, Manifest, ManifestEntry, parse_entry
from ci_mirrors.tools.errors import ValidationError
from ci_mirrors.tools.reconciler import check_unique_names

_ENTRY_KEY = "file"


def load_manifest(manifest_path: Path) -> Manifest:
    """
    Load one manifest file.

    Raises:
        ValidationError: unreadable file, bad TOML, unknown top-level keys or
            an invalid entry. The message names the file and entry index.
    """
    try:
        data = tomllib.loads(manifest_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ValidationError(f"{manifest_path}: cannot read manifest: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ValidationError(f"{manifest_path}: invalid TOML: {exc}") from exc

    unknown = sorted(set(data) - {_ENTRY_KEY})
    if unknown:
        raise ValidationError(f"{manifest_path}: unknown top-level keys: {', '.join(unknown)}")

    raw_entries = data.get(_ENTRY_KEY, [])
    if not isinstance(raw_entries, list):
        raise ValidationError(f"{manifest_path}: '{_ENTRY_KEY}' must be an array of tables")

    files = []
    for index, raw in enumerate(raw_entries):
        try:
            files.append(parse_entry(raw))
        except ValidationError as exc:
            raise ValidationError(f"{manifest_path}: entry #{index + 1}: {exc}") from exc

    return Manifest(path=manifest_path, files=files)


def find_manifest_files(paths: Iterable[Path]) -> list[Path]:
    """Expand directories into the *.toml files below them (sorted)."""
    found = []
    for path in paths:
        if path.is_dir():
            found.extend(sorted(p for p in path.rglob("*.toml") if p.is_file()))
        elif path.is_file():
            found.append(path)
        else:
            raise ValidationError(f"manifest path not found: {path}")
    return found


def load_entries(paths: Iterable[Path]) -> list[ManifestEntry]:
    """Load every manifest under ``paths`` into one declared set.

    Names must be unique across all files, not only within each one.
    """
    entries = []
    for manifest_path in find_manifest_files(paths):
        entries.extend(load_manifest(manifest_path).files)
    check_unique_names(entries)
    return entries


def render_entry(entry: DeclaredFile) -> str:
    """TOML text for a single ``[[file]]`` table."""
    lines = [f"[[{_ENTRY_KEY}]]"]
    for key in ("name", "source", "sha256", "license"):
        lines.append(f"{key} = {_toml_string(getattr(entry, key))}")
    return "\n".join(lines) + "\n"


def append_entry(manifest_path: Path, entry: DeclaredFile) -> None:
    """
    Append ``entry`` to a manifest file, keeping its existing text intact.

    The new content is parsed back before it replaces the file, which is
    written atomically (temp file then replace).
    """
    existing = manifest_path.read_text(encoding="utf-8") if manifest_path.exists() else ""
    if existing and not existing.endswith("\n"):
        existing += "\n"
    separator = "\n" if existing.strip() else ""
    content = existing + separator + render_entry(entry)

    try:
        tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        raise ValidationError(f"{manifest_path}: appending the entry would corrupt the file: {exc}") from exc

    manifest_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = manifest_path.with_suffix(manifest_path.suffix + ".tmp")
    temp_path.write_text(content, encoding="utf-8")
    temp_path.replace(manifest_path)


def _toml_string(value: str) -> str:
    # JSON string escapes are a subset of TOML basic-string escapes.
    return json.dumps(value, ensure_ascii=False)
