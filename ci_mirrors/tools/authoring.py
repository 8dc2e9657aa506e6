"""Create new manifest entries from a source URL (the add-file workflow)."""
import logging
from pathlib import Path
from typing import Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from ci_mirrors.models.manifest import DeclaredFile, Manifest, ManifestEntry, parse_entry
from ci_mirrors.tools.errors import ValidationError
from ci_mirrors.tools.fetcher import Downloader, Fetcher
from ci_mirrors.tools.manifest_io import append_entry, load_manifest

logger = logging.getLogger(__name__)


def add_entry(
    source_url: str,
    desired_name: str,
    license: Optional[str] = None,
    existing: Iterable[ManifestEntry] = (),
    fetcher: Optional[Fetcher] = None,
) -> DeclaredFile:
    """
    Download ``source_url`` and build a verified entry for it.

    The name is checked against ``existing`` only; whether it is already
    in the mirror is left to the next sync run. Nothing is uploaded.

    Raises:
        ValidationError: bad name/URL, missing license or a duplicate name
            (all before any download)
        FetchError: the source could not be downloaded
    """
    if license is None or not license.strip():
        raise ValidationError(f"a license is required for {desired_name!r} (pass --license)")

    # Validate everything we can before downloading, with a placeholder digest.
    parse_entry({"name": desired_name, "source": source_url, "sha256": "0" * 64, "license": license})

    if any(entry.name == desired_name for entry in existing):
        raise ValidationError(f"{desired_name!r} is already declared in the manifest")

    with Downloader(fetcher) as downloader:
        fetched = downloader.download(source_url)

    logger.info("%s: %d bytes, sha256 %s", source_url, fetched.size_bytes, fetched.sha256)
    try:
        return DeclaredFile(name=desired_name, source=source_url, sha256=fetched.sha256, license=license)
    except PydanticValidationError as exc:
        raise ValidationError(str(exc)) from exc


def add_file_to_manifest(
    toml_path: Path,
    source_url: str,
    name: str,
    license: Optional[str] = None,
    fetcher: Optional[Fetcher] = None,
) -> DeclaredFile:
    """Fetch a new source and append its entry to ``toml_path`` (created if missing)."""
    manifest = load_manifest(toml_path) if toml_path.exists() else Manifest(path=toml_path)
    entry = add_entry(source_url, name, license=license, existing=manifest.files, fetcher=fetcher)
    append_entry(toml_path, entry)
    logger.info("added %s to %s", entry.name, toml_path)
    return entry
